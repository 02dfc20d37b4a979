"""
schemas/extension.py
--------------------
Wire models for the browser extension.

The autofill endpoint answers with an envelope rather than raising, so the
extension can tell "no credentials for this site" from a real failure:

    {"ok": true,  "data": {...}, "error": null}
    {"ok": false, "data": null,  "error": "NO_CREDENTIALS"}
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from vault.services.credential_locator import LocatedCredential, LocateResult

T = TypeVar("T")


class ExtensionError(str, Enum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    NO_CREDENTIALS = "NO_CREDENTIALS"
    MISSING_HOST = "MISSING_HOST"


class Envelope(BaseModel, Generic[T]):
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None


class MatchedCredential(BaseModel):
    id: str
    item_name: str
    username: str
    secret: str
    notes: str
    display_label: str
    website_urls: list[str]

    @classmethod
    def from_located(cls, item: LocatedCredential) -> "MatchedCredential":
        return cls(
            id=item.id,
            item_name=item.credential.item_name,
            username=item.username,
            secret=item.secret,
            notes=item.notes,
            display_label=item.display_label,
            website_urls=list(item.credential.website_urls or []),
        )


class LocateResponse(BaseModel):
    host: str
    base_host: str
    items: list[MatchedCredential]
    count: int
    has_multiple: bool
    selected: Optional[str] = None
    selection_source: Optional[str] = None

    @classmethod
    def from_result(cls, result: LocateResult) -> "LocateResponse":
        return cls(
            host=result.host,
            base_host=result.base_host,
            items=[MatchedCredential.from_located(m) for m in result.matches],
            count=result.count,
            has_multiple=result.has_multiple,
            selected=result.selected.id if result.selected else None,
            selection_source=result.selection_source,
        )


class AutofillRequest(BaseModel):
    host: Optional[str] = None
    credential_id_hint: Optional[str] = None


class AutofillData(BaseModel):
    credential_id: str
    username: str
    secret: str
    match_count: int
    selected: bool = Field(
        ..., description="True when the caller chose this credential (hint or remembered)"
    )


class SelectionUpdate(BaseModel):
    host: str = Field(..., min_length=1)
    credential_id: str = Field(..., min_length=1)


class SelectionRead(BaseModel):
    host: str
    credential_id: str

    model_config = {"from_attributes": True}


class QuickAddRequest(BaseModel):
    """Save the login typed into the current tab."""
    item_name: Optional[str] = Field(default=None, max_length=255)
    username: str = Field(..., max_length=1024)
    secret: str = Field(..., min_length=1, max_length=4096)
    website_url: str = Field(..., min_length=1)
    notes: str = Field(default="", max_length=10000)
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    folder_id: Optional[str] = None
