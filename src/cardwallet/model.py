from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

CARD_TYPES: tuple[str, ...] = (
    "business", "reward", "membership", "currency",
    "identification", "transit", "ticket", "other",
)

CATEGORY_LABELS: dict[str, str] = {
    "mycard": "My Business Card",
    "business": "Business Cards",
    "reward": "Reward Cards",
    "membership": "Memberships",
    "currency": "Currency Cards",
    "identification": "ID Cards",
    "transit": "Transit Passes",
    "ticket": "Tickets",
    "other": "Other Cards",
}

DEFAULT_COLOR = "#0070d1"

SyncOutcome = Literal["success", "partial_failure"]
ConflictChoice = Literal["local", "server"]


@dataclass
class Card:
    id: int | None = None
    user_id: int | None = None
    name: str = ""
    company: str = ""
    type: str = "other"
    is_my_card: bool = False
    position: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    website: str | None = None
    address: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    department: str | None = None
    color: str = DEFAULT_COLOR
    logo: str | None = None
    photo: str | None = None
    verified: bool = False
    # type-specific
    identifier: str | None = None
    balance: str | None = None
    expiry: str | None = None
    date: str | None = None
    time: str | None = None
    seat: str | None = None
    venue: str | None = None
    barcode: str | None = None
    barcode_type: str | None = None   # code128 | qr
    barcode_data: str | None = None
    qr_code_data: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)  # unmapped keys, round-tripped

    @property
    def label(self) -> str:
        return self.name or self.company or "Unnamed"


@dataclass(frozen=True)
class ConflictPair:
    local: Card    # id/user_id stripped
    server: Card
