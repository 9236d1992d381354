"""Card comparison used by the sync reconciler and the conflict review."""
from __future__ import annotations

from typing import Any, Iterable

from .model import Card

# id/user_id are identity; photo, logo and the barcode/QR payloads are derived
# or volatile and never count as a difference.
SEMANTIC_FIELDS: tuple[str, ...] = (
    "name", "company", "position", "email", "phone", "mobile",
    "address", "website", "notes", "type",
    "is_my_card", "color", "linkedin_url", "verified",
    "identifier", "balance", "expiry", "date", "time", "seat", "venue", "department",
)


def _norm(v: Any) -> Any:
    if v is None:
        return ""
    if isinstance(v, str):
        return v.strip()
    return v


def differing_fields(a: Card, b: Card) -> list[str]:
    return [f for f in SEMANTIC_FIELDS if _norm(getattr(a, f)) != _norm(getattr(b, f))]


def are_semantically_identical(a: Card, b: Card) -> bool:
    return not differing_fields(a, b)


def sync_key(card: Card) -> tuple[str, str]:
    return ((card.name or "").strip().lower(), (card.company or "").strip().lower())


def find_server_match(local: Card, server_cards: Iterable[Card]) -> Card | None:
    """First server card with the same (name, company); both must be non-empty."""
    name, company = sync_key(local)
    if not name or not company:
        return None
    for s in server_cards:
        if sync_key(s) == (name, company):
            return s
    return None
