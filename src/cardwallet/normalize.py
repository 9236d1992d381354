"""normalize.py — the single boundary between JSON records and Card objects.

Two naming conventions meet here:

  client  the shape the app keeps in local storage (camelCase, `type`, `company`)
  server  the REST API's column names (`cardType`, `companyName`, `photoUrl`, ...)

Nothing outside this module should look at raw key names.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Mapping
from typing import Any

from .model import CARD_TYPES, DEFAULT_COLOR, Card

logger = logging.getLogger(__name__)

# attribute -> client key
CLIENT_KEYS: dict[str, str] = {
    "id": "id",
    "user_id": "userId",
    "name": "name",
    "company": "company",
    "type": "type",
    "is_my_card": "isMyCard",
    "position": "position",
    "email": "email",
    "phone": "phone",
    "mobile": "mobile",
    "website": "website",
    "address": "address",
    "linkedin_url": "linkedinUrl",
    "notes": "notes",
    "department": "department",
    "color": "color",
    "logo": "logo",
    "photo": "photo",
    "verified": "verified",
    "identifier": "identifier",
    "balance": "balance",
    "expiry": "expiry",
    "date": "date",
    "time": "time",
    "seat": "seat",
    "venue": "venue",
    "barcode": "barcode",
    "barcode_type": "barcodeType",
    "barcode_data": "barcodeData",
    "qr_code_data": "qrCodeData",
}

# attribute -> server key, where it differs from the client key
SERVER_RENAMES: dict[str, str] = {
    "type": "cardType",
    "company": "companyName",
    "color": "cardColor",
    "photo": "photoUrl",
    "expiry": "expiryDate",
    "date": "eventDate",
    "time": "eventTime",
}

SERVER_KEYS: dict[str, str] = {attr: SERVER_RENAMES.get(attr, key) for attr, key in CLIENT_KEYS.items()}

# kept on this device only; the Cards table has no column for them
CLIENT_ONLY_FIELDS = frozenset({"department", "barcode_data", "qr_code_data"})

_BOOL_FIELDS = {"is_my_card", "verified"}
_REQUIRED_TEXT = {"name", "company"}

# The cards table hands some names back with a stray trailing "0".
_NAME_ARTIFACT = re.compile(r"0$")


def is_valid_card_type(value: Any) -> bool:
    return isinstance(value, str) and value in CARD_TYPES


def normalize_card_type(card: Card) -> Card:
    """Return `card` with a valid type; invalid or missing types become "other"."""
    if is_valid_card_type(card.type):
        return card
    logger.warning(
        "Invalid card type %r for card %r; defaulting to 'other'", card.type, card.name or "Unknown Card"
    )
    return dataclasses.replace(card, type="other")


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes"}
    return bool(v)


def _as_id(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _as_text(v: Any) -> str | None:
    if v is None:
        return None
    return v if isinstance(v, str) else str(v)


def _coerce(attr: str, v: Any) -> Any:
    if attr in ("id", "user_id"):
        return _as_id(v)
    if attr in _BOOL_FIELDS:
        return _as_bool(v)
    if attr in _REQUIRED_TEXT:
        return _as_text(v) or ""
    if attr == "color":
        return _as_text(v) or DEFAULT_COLOR
    if attr == "type":
        return v
    return _as_text(v)


def card_from_dict(obj: Any) -> Card:
    """Build a Card from a client-shaped record (local storage). Never raises."""
    if not isinstance(obj, Mapping):
        logger.warning("Invalid card object encountered during normalization: %r", obj)
        return Card(type="other")

    values: dict[str, Any] = {}
    for attr, key in CLIENT_KEYS.items():
        if key in obj:
            values[attr] = _coerce(attr, obj[key])
    if "type" not in values:
        values["type"] = None
    known = set(CLIENT_KEYS.values())
    values["extra"] = {k: v for k, v in obj.items() if k not in known}
    return normalize_card_type(Card(**values))


def card_from_server(obj: Any, default_user_id: int | None = None) -> Card:
    """Build a Card from a server record, translating server field names."""
    if not isinstance(obj, Mapping):
        logger.warning("Invalid server card record: %r", obj)
        return Card(type="other", user_id=default_user_id)

    def pick(attr: str) -> Any:
        server_key = SERVER_KEYS[attr]
        v = obj.get(server_key)
        if v in (None, "") and server_key != CLIENT_KEYS[attr]:
            v = obj.get(CLIENT_KEYS[attr])
        return v

    values: dict[str, Any] = {attr: _coerce(attr, pick(attr)) for attr in CLIENT_KEYS}
    values["name"] = _NAME_ARTIFACT.sub("", values["name"])
    values["user_id"] = values["user_id"] or default_user_id
    values["type"] = values["type"] or "other"
    known = set(SERVER_KEYS.values()) | set(CLIENT_KEYS.values())
    values["extra"] = {k: v for k, v in obj.items() if k not in known}
    return normalize_card_type(Card(**values))


def card_to_dict(card: Card) -> dict[str, Any]:
    """Client-shaped record for local storage."""
    out = {key: getattr(card, attr) for attr, key in CLIENT_KEYS.items()}
    for k, v in card.extra.items():
        out.setdefault(k, v)
    return out


def card_to_server_payload(card: Card) -> dict[str, Any]:
    """Request body for POST/PUT /api/cards.

    Only server columns are sent; the PUT handler turns every body key into
    a column assignment. Identity fields are never sent.
    """
    return {
        SERVER_KEYS[attr]: getattr(card, attr)
        for attr in CLIENT_KEYS
        if attr not in ("id", "user_id") and attr not in CLIENT_ONLY_FIELDS
    }


def strip_identity(card: Card) -> Card:
    """Drop the local-only id and owner before a card is compared or uploaded."""
    return dataclasses.replace(card, id=None, user_id=None)
