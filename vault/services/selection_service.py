"""
services/selection_service.py
-----------------------------
Remembers which credential a caller picked for a host when several match.

Storage is a last-write-wins row per (caller, normalised host). Only the
owning caller ever writes its rows, so there is no conflict handling beyond
the unique constraint.
"""

from typing import Optional, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import Conflict, MissingHost
from vault.core.logging import get_logger
from vault.models.credential_selection import CredentialSelection
from vault.services.domain import normalize_host, parse_hostname
from vault.services.permission_resolver import Caller, PermissionResolver

logger = get_logger(__name__)

T = TypeVar("T")

# Where LocateResult.selected came from.
SOURCE_HINT = "hint"
SOURCE_REMEMBERED = "remembered"
SOURCE_SINGLE = "single"
SOURCE_MOST_RECENT = "most_recent"


def selection_key(host: str) -> str:
    return normalize_host(parse_hostname(host.strip()))


def choose(
    matches: Sequence[T],
    remembered_id: Optional[str] = None,
    hint_id: Optional[str] = None,
) -> tuple[Optional[T], Optional[str]]:
    """
    Pick the credential to fill from matches ordered most recent first.

    Order of preference: a hint that is among the matches, the remembered
    choice if still among the matches, the only match, the most recent one.
    Ids that are no longer among the matches are ignored, never an error.
    """
    if not matches:
        return None, None
    by_id = {m.id: m for m in matches}
    if hint_id and hint_id in by_id:
        return by_id[hint_id], SOURCE_HINT
    if remembered_id and remembered_id in by_id:
        return by_id[remembered_id], SOURCE_REMEMBERED
    if len(matches) == 1:
        return matches[0], SOURCE_SINGLE
    return matches[0], SOURCE_MOST_RECENT


class SelectionCoordinator:

    @staticmethod
    async def get_selection(db: AsyncSession, caller: Caller, host: str) -> Optional[str]:
        result = await db.execute(
            select(CredentialSelection.credential_id).where(
                CredentialSelection.caller_id == caller.id,
                CredentialSelection.host == selection_key(host),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def set_selection(
        db: AsyncSession, caller: Caller, host: str, credential_id: str
    ) -> CredentialSelection:
        """
        Remember credential_id for (caller, host).

        Raises:
            MissingHost: host is blank.
            NotFound: the credential is missing or not visible to the caller.
        """
        if not host or not host.strip():
            raise MissingHost()
        await PermissionResolver.get_visible(db, caller, credential_id)

        key = selection_key(host)
        result = await db.execute(
            select(CredentialSelection).where(
                CredentialSelection.caller_id == caller.id,
                CredentialSelection.host == key,
            )
        )
        selection = result.scalar_one_or_none()
        if selection is None:
            selection = CredentialSelection(caller_id=caller.id, host=key, credential_id=credential_id)
            db.add(selection)
        else:
            selection.credential_id = credential_id
        try:
            await db.flush()
            await db.refresh(selection)
        except IntegrityError:
            await db.rollback()
            raise Conflict(f"Selection for '{key}' changed concurrently")
        logger.info("Credential selection stored", user_id=caller.id, host=key)
        return selection
