"""
Claim Events
============

Typed change events published after every committed claim write.

Version: 0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from shared.models.warranty import WarrantyClaim


@dataclass(frozen=True)
class ClaimInserted:
    claim: WarrantyClaim

    event_type = "INSERT"

    @property
    def claim_id(self) -> str:
        return self.claim.id

    @property
    def user_id(self) -> str:
        return self.claim.user_id

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "claim_id": self.claim_id,
            "user_id": self.user_id,
            "new": self.claim.model_dump(mode="json"),
            "old": None,
        }


@dataclass(frozen=True)
class ClaimUpdated:
    old: WarrantyClaim
    new: WarrantyClaim

    event_type = "UPDATE"

    @property
    def claim_id(self) -> str:
        return self.new.id

    @property
    def user_id(self) -> str:
        return self.new.user_id

    @property
    def status_changed(self) -> bool:
        return self.old.status != self.new.status

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "claim_id": self.claim_id,
            "user_id": self.user_id,
            "new": self.new.model_dump(mode="json"),
            "old": self.old.model_dump(mode="json"),
        }


@dataclass(frozen=True)
class ClaimDeleted:
    claim: WarrantyClaim

    event_type = "DELETE"

    @property
    def claim_id(self) -> str:
        return self.claim.id

    @property
    def user_id(self) -> str:
        return self.claim.user_id

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "claim_id": self.claim_id,
            "user_id": self.user_id,
            "new": None,
            "old": self.claim.model_dump(mode="json"),
        }


ClaimEvent = ClaimInserted | ClaimUpdated | ClaimDeleted
