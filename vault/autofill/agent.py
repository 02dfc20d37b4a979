"""
autofill/agent.py
-----------------
Fills login forms on a live Playwright page. Never submits them.

State machine, restarted from IDLE on every main-frame navigation
(full loads and history-API route changes alike):

    idle → waiting-for-fields → filling → settled

Each navigation opens a new NavigationEpoch and cancels the previous one.
A run checks its epoch after every await; once superseded it stops
silently, and its state writes are ignored. Page and timing failures are
logged and swallowed: a failed autofill must never disturb the page.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import urlsplit

from playwright.async_api import ElementHandle, Frame, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from vault.autofill.fields import (
    INPUT_TYPE_SCRIPT,
    IS_CONNECTED_SCRIPT,
    PASSWORD_FALLBACK,
    SET_VALUE_SCRIPT,
    USERNAME_FALLBACKS,
    SiteConfig,
)
from vault.autofill.state import ExtensionState
from vault.core.logging import get_logger

logger = get_logger(__name__)

# origin -> FETCH_CREDENTIALS envelope, e.g. a bound CredentialBroker call
CredentialRequester = Callable[[str], Awaitable[Mapping[str, Any]]]


class AutofillState(str, Enum):
    idle = "idle"
    waiting_for_fields = "waiting-for-fields"
    filling = "filling"
    settled = "settled"


class EpochCancelled(Exception):
    """Raised inside a run whose navigation has been superseded."""


class NavigationEpoch:

    def __init__(self, number: int) -> None:
        self.number = number
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def check(self) -> None:
        if self._cancelled:
            raise EpochCancelled()


@dataclass(frozen=True)
class FillResult:
    username_filled: bool = False
    password_filled: bool = False
    submit_found: bool = False
    retries: int = 0
    cancelled: bool = False


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    return f"{parts.scheme}://{parts.netloc}"


class AutofillAgent:

    def __init__(
        self,
        page: Page,
        request_credentials: CredentialRequester,
        state: ExtensionState,
        *,
        ready_delays: tuple[float, ...] = (0.5, 2.0),
        field_timeout: float = 5.0,
        submit_timeout: float = 3.0,
        retry_attempts: int = 5,
        retry_interval: float = 0.2,
    ) -> None:
        self.page = page
        self._request_credentials = request_credentials
        self._ext = state
        self._ready_delays = ready_delays
        self._field_timeout = field_timeout
        self._submit_timeout = submit_timeout
        self._retry_attempts = retry_attempts
        self._retry_interval = retry_interval

        self._epoch = NavigationEpoch(0)
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        self.state = AutofillState.idle
        self.last_result: Optional[FillResult] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def attach(self) -> None:
        self.page.on("framenavigated", self._on_frame_navigated)

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame == self.page.main_frame:
            self.navigate()

    @property
    def epoch(self) -> NavigationEpoch:
        return self._epoch

    def navigate(self) -> NavigationEpoch:
        """Supersede any in-flight run and schedule fresh ones."""
        self._epoch.cancel()
        epoch = NavigationEpoch(self._epoch.number + 1)
        self._epoch = epoch
        self.state = AutofillState.idle
        for delay in self._ready_delays:
            task = asyncio.create_task(self._run_after(delay, epoch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return epoch

    async def close(self) -> None:
        self._epoch.cancel()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run_after(self, delay: float, epoch: NavigationEpoch) -> None:
        await asyncio.sleep(delay)
        if not epoch.cancelled:
            await self.run(epoch)

    def _set_state(self, epoch: NavigationEpoch, state: AutofillState) -> None:
        if epoch is self._epoch and not epoch.cancelled:
            self.state = state

    # ── Run ───────────────────────────────────────────────────────────────────

    async def run(self, epoch: Optional[NavigationEpoch] = None) -> FillResult:
        epoch = epoch or self._epoch
        async with self._lock:
            try:
                result = await self._run(epoch)
            except EpochCancelled:
                self._ext.debug_log("Autofill run superseded", epoch=epoch.number)
                return FillResult(cancelled=True)
            except PlaywrightError as exc:
                logger.warning("Autofill failed", epoch=epoch.number, error=str(exc))
                self._set_state(epoch, AutofillState.settled)
                result = FillResult()
            if epoch is self._epoch:
                self.last_result = result
            return result

    async def _run(self, epoch: NavigationEpoch) -> FillResult:
        url = self.page.url
        site_config = self._ext.site_config or SiteConfig()
        if not site_config.applies_to(url):
            self._ext.debug_log("URL does not match site pattern, skipping")
            return FillResult()

        try:
            envelope = await self._request_credentials(origin_of(url))
        except Exception as exc:
            logger.warning("Credential request failed", epoch=epoch.number, error=repr(exc))
            epoch.check()
            self._set_state(epoch, AutofillState.settled)
            return FillResult()
        epoch.check()
        data = envelope.get("data") if envelope.get("ok") else None
        username = (data or {}).get("username")
        secret = (data or {}).get("secret") or ""
        if not username:
            self._ext.debug_log("No credentials for page", error=envelope.get("error"))
            self._set_state(epoch, AutofillState.idle)
            return FillResult()

        self._set_state(epoch, AutofillState.waiting_for_fields)
        user_selector = site_config.username_selectors()
        pass_selector = site_config.password_selectors()
        user_el, pass_el, submit_el = await asyncio.gather(
            self._wait_for(user_selector, self._field_timeout),
            self._wait_for(pass_selector, self._field_timeout),
            self._wait_for(site_config.submit_selectors(), self._submit_timeout),
        )
        epoch.check()
        if pass_el is None:
            pass_el = await self._first_visible(PASSWORD_FALLBACK)
        if user_el is None:
            user_el = await self._fallback_username()
        epoch.check()
        self._ext.debug_log(
            "Fields found",
            have_user=user_el is not None,
            have_pass=pass_el is not None,
            have_submit=submit_el is not None,
        )
        if user_el is None:
            self._set_state(epoch, AutofillState.settled)
            return FillResult(submit_found=submit_el is not None)

        self._set_state(epoch, AutofillState.filling)
        user_ok = await self._fill(epoch, user_el, username)
        # Password is optional: only filled when there is both a value and a field.
        fill_password = bool(secret) and pass_el is not None
        pass_ok = False
        if fill_password:
            pass_ok = await self._fill(epoch, pass_el, secret)

        retries = 0
        while retries < self._retry_attempts and not (user_ok and (pass_ok or not fill_password)):
            await asyncio.sleep(self._retry_interval)
            epoch.check()
            retries += 1
            if not user_ok:
                user_el = await self._fresh(user_el, user_selector)
                user_ok = await self._fill(epoch, user_el, username)
            if fill_password and not pass_ok:
                pass_el = await self._fresh(pass_el, pass_selector)
                pass_ok = await self._fill(epoch, pass_el, secret)

        self._set_state(epoch, AutofillState.settled)
        self._ext.debug_log(
            "Autofill settled; submission is left to the user",
            username_filled=user_ok,
            password_filled=pass_ok,
            retries=retries,
        )
        return FillResult(
            username_filled=user_ok,
            password_filled=pass_ok,
            submit_found=submit_el is not None,
            retries=retries,
        )

    # ── DOM helpers ───────────────────────────────────────────────────────────

    async def _wait_for(self, selector: str, timeout: float) -> Optional[ElementHandle]:
        try:
            return await self.page.wait_for_selector(
                selector, state="attached", timeout=timeout * 1000
            )
        except PlaywrightTimeoutError:
            return None

    async def _first_visible(self, selector: str) -> Optional[ElementHandle]:
        for element in await self.page.query_selector_all(selector):
            if await element.is_visible():
                return element
        return None

    async def _fallback_username(self) -> Optional[ElementHandle]:
        for selector in USERNAME_FALLBACKS:
            element = await self.page.query_selector(selector)
            if element is None or not await element.is_visible():
                continue
            input_type = await element.evaluate(INPUT_TYPE_SCRIPT)
            if input_type != "password" and "hidden" not in input_type:
                self._ext.debug_log("Username field from fallback selector", selector=selector)
                return element
        return None

    async def _fresh(self, element: ElementHandle, selector: str) -> ElementHandle:
        """The same element if still in the DOM, else its re-rendered replacement."""
        try:
            if await element.evaluate(IS_CONNECTED_SCRIPT):
                return element
        except PlaywrightError:
            pass
        return await self.page.query_selector(selector) or element

    async def _fill(self, epoch: NavigationEpoch, element: ElementHandle, value: str) -> bool:
        epoch.check()
        try:
            return bool(await element.evaluate(SET_VALUE_SCRIPT, value))
        except PlaywrightError as exc:
            self._ext.debug_log("Fill attempt failed", error=str(exc))
            return False
