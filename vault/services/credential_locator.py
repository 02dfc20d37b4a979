"""
services/credential_locator.py
------------------------------
Answers "which stored credentials apply to this site for this caller".

Pipeline:
  1. Normalise the raw host/URL to a hostname and its base domain.
  2. One query: the resolver's broad predicate AND a case-insensitive
     substring match of the base domain over the serialised URL list.
     The JSON serialiser escapes non-ASCII ("bücher.de" is stored as
     "b\\u00fccher.de"), so the escaped spelling is matched as well.
  3. Strict permission re-check of every returned row.
  4. Exact base-domain comparison per stored URL; the substring match in
     step 2 over-matches ("notgoogle.com" contains "google.com").
  5. Decrypt the survivors and label them "{item_name} ({username})".
  6. Most recently updated first, then pick the one to fill.

Nothing here writes. Two calls with no writes in between return the same
matches and the same selection.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.encryption import decrypt
from vault.core.exceptions import MissingHost
from vault.core.logging import get_logger
from vault.models.credential import Credential
from vault.services.domain import base_domain, parse_hostname, url_matches_host
from vault.services.permission_resolver import Caller, PermissionResolver
from vault.services.selection_service import SelectionCoordinator, choose

logger = get_logger(__name__)


@dataclass(frozen=True)
class LocatedCredential:
    """A visible, matching credential with its fields decrypted."""

    credential: Credential
    username: str
    secret: str
    notes: str

    @property
    def id(self) -> str:
        return self.credential.id

    @property
    def display_label(self) -> str:
        return f"{self.credential.item_name} ({self.username})"


@dataclass(frozen=True)
class LocateResult:
    host: str
    base_host: str
    matches: list[LocatedCredential] = field(default_factory=list)
    selected: Optional[LocatedCredential] = None
    selection_source: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def has_multiple(self) -> bool:
        return self.count > 1


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def stored_spellings(value: str) -> list[str]:
    """value as it may appear inside a serialised JSON list: raw and \\u-escaped."""
    escaped = json.dumps(value)[1:-1]
    return [value] if escaped == value else [value, escaped]


def decrypt_credential(credential: Credential) -> LocatedCredential:
    return LocatedCredential(
        credential=credential,
        username=decrypt(credential.username),
        secret=decrypt(credential.secret),
        notes=decrypt(credential.notes),
    )


class CredentialLocator:

    @staticmethod
    async def find_matches(
        db: AsyncSession, caller: Caller, host: str, base_host: str
    ) -> list[Credential]:
        if not base_host:
            return []
        urls_text = cast(Credential.website_urls, String)
        coarse = or_(*(
            urls_text.ilike(f"%{escape_like(spelling)}%", escape="\\")
            for spelling in stored_spellings(base_host)
        ))
        candidates = await PermissionResolver.resolve(db, caller, coarse)
        return [
            c for c in candidates
            if any(url_matches_host(url, host) for url in (c.website_urls or []))
        ]

    @staticmethod
    async def locate(
        db: AsyncSession,
        caller: Caller,
        raw_host: Optional[str],
        credential_id_hint: Optional[str] = None,
    ) -> LocateResult:
        """
        Raises:
            MissingHost: raw_host is missing or blank; storage is not touched.
        """
        if raw_host is None or not raw_host.strip():
            raise MissingHost()
        host = parse_hostname(raw_host.strip())
        base_host = base_domain(host)

        credentials = await CredentialLocator.find_matches(db, caller, host, base_host)
        matches = [decrypt_credential(c) for c in credentials]

        remembered = None
        if matches:
            remembered = await SelectionCoordinator.get_selection(db, caller, host)
        selected, source = choose(matches, remembered_id=remembered, hint_id=credential_id_hint)

        logger.info(
            "Credentials located",
            user_id=caller.id,
            base_host=base_host,
            match_count=len(matches),
            selection_source=source,
        )
        return LocateResult(
            host=host,
            base_host=base_host,
            matches=matches,
            selected=selected,
            selection_source=source,
        )
