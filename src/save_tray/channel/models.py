"""
Pydantic models for the delegated write channel.

Every exchange between a requester and the authority handler is described
here:
1. SetAttachmentRequest: what a requester sends to the coordinator
2. CommitResult: what comes back (and what every mutation operation returns)

Failures are values, never exceptions. The stable ``reason`` strings are part
of the wire contract.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator


class CommitReason(StrEnum):
    """
    Stable failure reasons for a commit.

    Values:
        NO_AUTHORITY: No coordinator is currently reachable; nothing was sent.
        NOT_AUTHORIZED: The serving peer was not the coordinator when the
            request was processed (coordinator handoff race).
        BAD_REQUEST: The request shape was malformed. Caller defect.
        NOT_FOUND: The target document could not be resolved.
        UNSUPPORTED_TARGET: The target document cannot hold attachments.
        INTERNAL_ERROR: Unexpected failure inside the authority handler.
        TRANSPORT_FAILURE: Timeout or delivery failure. The only reason for
            which a caller-initiated retry is reasonable.
    """

    NO_AUTHORITY = "no-authority"
    NOT_AUTHORIZED = "not-authorized"
    BAD_REQUEST = "bad-request"
    NOT_FOUND = "not-found"
    UNSUPPORTED_TARGET = "unsupported-target"
    INTERNAL_ERROR = "internal-error"
    TRANSPORT_FAILURE = "transport-failure"


class SetAttachmentRequest(BaseModel):
    """
    Request to replace one attachment on a document.

    Attributes:
        document_ref: Reference of the host document (non-empty)
        namespace: Attachment namespace
        key: Attachment key within the namespace
        value: The complete new attachment value (wire-form ledger)
    """

    model_config = ConfigDict(populate_by_name=True)

    document_ref: StrictStr = Field(alias="documentRef", min_length=1)
    namespace: StrictStr
    key: StrictStr
    value: Any = None

    @field_validator("document_ref")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("documentRef must not be blank")
        return value

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the camelCase wire names."""
        return self.model_dump(by_alias=True)


class CommitResult(BaseModel):
    """
    Outcome of a commit.

    Attributes:
        ok: True when the coordinator persisted the attachment
        reason: Failure reason, None on success
        changed: True when the stored value was replaced
    """

    ok: StrictBool
    reason: CommitReason | None = None
    changed: StrictBool = False

    @field_validator("reason", mode="before")
    @classmethod
    def _blank_reason(cls, value: Any) -> Any:
        return None if value == "" else value

    @classmethod
    def success(cls) -> CommitResult:
        return cls(ok=True, changed=True)

    @classmethod
    def failure(cls, reason: CommitReason) -> CommitResult:
        return cls(ok=False, reason=reason)

    def to_reply(self) -> dict[str, Any]:
        """Wire form: ``{"ok": true, "changed": true}`` or ``{"ok": false, "reason": ...}``."""
        if self.ok:
            return {"ok": True, "changed": self.changed}
        return {"ok": False, "reason": self.reason.value if self.reason else None}
