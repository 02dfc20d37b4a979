"""
autofill/broker.py
------------------
Background message broker between page scripts and the vault API.

Every message is {"type": ..., "payload": {...}} and every answer is an
envelope {"ok": bool, "data": ..., "error": ...}. handle() never raises:
a missing token is NOT_AUTHENTICATED, and failed requests or undecodable
bodies come back as ok=false with the error text.
"""

from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from vault.autofill.state import ExtensionState
from vault.core.logging import get_logger

logger = get_logger(__name__)

NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
NO_CREDENTIALS = "NO_CREDENTIALS"
MISSING_HOST = "MISSING_HOST"
UNKNOWN_MESSAGE = "UNKNOWN_MESSAGE"

Envelope = dict[str, Any]


def ok(data: Any = None) -> Envelope:
    return {"ok": True, "data": data, "error": None}


def fail(error: str) -> Envelope:
    return {"ok": False, "data": None, "error": error}


class NotAuthenticated(Exception):
    """No token stored, or the API rejected it."""


class CredentialBroker:

    def __init__(
        self,
        state: ExtensionState,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.state = state
        self._client = client
        self._timeout = timeout
        self._handlers: dict[str, Callable[[Mapping[str, Any]], Awaitable[Envelope]]] = {
            "AUTH_LOGIN": self._auth_login,
            "AUTH_LOGOUT": self._auth_logout,
            "FETCH_CREDENTIALS": self._fetch_credentials,
            "FETCH_ALL_CREDENTIALS": self._fetch_all_credentials,
            "SET_SELECTED_CREDENTIAL": self._set_selected_credential,
            "CHECK_MULTIPLE_CREDENTIALS": self._check_multiple_credentials,
            "QUICK_ADD": self._quick_add,
            "GET_STATUS": self._get_status,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def handle(self, message: Mapping[str, Any]) -> Envelope:
        message_type = message.get("type")
        payload = message.get("payload") or {}
        self.state.debug_log("Message received", type=message_type)
        handler = self._handlers.get(message_type)
        if handler is None:
            self.state.debug_log("Unknown message", type=message_type)
            return fail(UNKNOWN_MESSAGE)
        try:
            return await handler(payload)
        except NotAuthenticated:
            self.state.debug_log("Not authenticated", type=message_type)
            return fail(NOT_AUTHENTICATED)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Vault API request failed", type=message_type, error=str(exc))
            return fail(str(exc) or exc.__class__.__name__)

    # ── HTTP ──────────────────────────────────────────────────────────────────

    async def _request(
        self, method: str, path: str, *, auth: bool = True, **kwargs: Any
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", {}))
        if auth:
            if not self.state.auth_token:
                raise NotAuthenticated()
            headers["Authorization"] = f"Bearer {self.state.auth_token}"
        url = f"{self.state.api_base_url.rstrip('/')}{path}"
        client = await self._get_client()
        response = await client.request(method, url, headers=headers, **kwargs)
        self.state.debug_log("HTTP", method=method, path=path, status=response.status_code)
        if response.status_code == 401:
            raise NotAuthenticated()
        return response

    async def _locate(self, host: str) -> dict[str, Any]:
        response = await self._request("GET", "/extension/by-domain", params={"host": host})
        response.raise_for_status()
        return response.json()

    # ── Handlers ──────────────────────────────────────────────────────────────

    async def _auth_login(self, payload: Mapping[str, Any]) -> Envelope:
        email, password = payload.get("email"), payload.get("password")
        if not email or not password:
            return fail("Missing credentials")
        response = await self._request(
            "POST", "/login", auth=False, data={"username": email, "password": password}
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            return fail("No token in response")
        self.state.set_token(token)
        self.state.debug_log("Logged in")
        return ok()

    async def _auth_logout(self, payload: Mapping[str, Any]) -> Envelope:
        self.state.clear_token()
        return ok()

    async def _fetch_credentials(self, payload: Mapping[str, Any]) -> Envelope:
        """The credential to fill for a host; the server applies hint and memory."""
        body = {"host": payload.get("host"), "credential_id_hint": payload.get("credential_id")}
        response = await self._request("POST", "/extension/autofill", json=body)
        if response.status_code not in (200, 400):
            response.raise_for_status()
        envelope = response.json()
        if envelope.get("ok"):
            self.state.mark_synced()
        return {
            "ok": bool(envelope.get("ok")),
            "data": envelope.get("data"),
            "error": envelope.get("error"),
        }

    async def _fetch_all_credentials(self, payload: Mapping[str, Any]) -> Envelope:
        host = payload.get("host")
        if not host:
            return fail(MISSING_HOST)
        located = await self._locate(host)
        items = located.get("items") or []
        if not items:
            return fail(NO_CREDENTIALS)
        return ok([
            {
                "id": item["id"],
                "username": item["username"],
                "secret": item["secret"],
                "label": item.get("display_label") or item["username"] or "Untitled",
            }
            for item in items
        ])

    async def _set_selected_credential(self, payload: Mapping[str, Any]) -> Envelope:
        host, credential_id = payload.get("host"), payload.get("credential_id")
        if not host or not credential_id:
            return fail("Missing host or credential_id")
        response = await self._request(
            "PUT", "/extension/selection", json={"host": host, "credential_id": credential_id}
        )
        response.raise_for_status()
        return ok()

    async def _check_multiple_credentials(self, payload: Mapping[str, Any]) -> Envelope:
        """Best effort: any failure answers has_multiple=False."""
        host = payload.get("host")
        if not host or not self.state.auth_token:
            return ok({"has_multiple": False})
        try:
            located = await self._locate(host)
        except (NotAuthenticated, httpx.HTTPError, ValueError) as exc:
            self.state.debug_log("Multiple-credential check failed", error=str(exc))
            return ok({"has_multiple": False})
        return ok({"has_multiple": bool(located.get("has_multiple"))})

    async def _quick_add(self, payload: Mapping[str, Any]) -> Envelope:
        response = await self._request("POST", "/extension/quick-add", json=dict(payload))
        response.raise_for_status()
        return ok(response.json())

    async def _get_status(self, payload: Mapping[str, Any]) -> Envelope:
        site_config = self.state.site_config
        return ok({
            "is_logged_in": self.state.is_logged_in,
            "site_config": site_config.to_dict() if site_config else None,
            "last_sync": self.state.last_sync,
        })
