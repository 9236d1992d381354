from __future__ import annotations

import dataclasses
import logging

from cardwallet.model import CARD_TYPES, Card
from cardwallet.normalize import (
    card_from_dict,
    card_from_server,
    card_to_dict,
    card_to_server_payload,
    normalize_card_type,
    strip_identity,
)


def _card(**kwargs) -> Card:
    base = dict(id=1, user_id=0, name="Jane Doe", company="Acme", type="business", email="jane@acme.com")
    base.update(kwargs)
    return Card(**base)


# ── type normalization ─────────────────────────────────────────────────────────

def test_invalid_type_becomes_other_and_nothing_else_changes(caplog):
    card = _card(type="loyalty", notes="keep me", is_my_card=False)
    with caplog.at_level(logging.WARNING):
        fixed = normalize_card_type(card)
    assert fixed.type == "other"
    assert dataclasses.replace(fixed, type="loyalty") == card
    assert "loyalty" in caplog.text


def test_missing_type_becomes_other():
    assert normalize_card_type(_card(type=None)).type == "other"


def test_valid_types_untouched():
    for t in CARD_TYPES:
        card = _card(type=t)
        assert normalize_card_type(card) is card


def test_normalize_is_a_fixed_point():
    once = normalize_card_type(_card(type="???"))
    assert normalize_card_type(once) == once
    assert card_from_dict(card_to_dict(once)) == once


# ── client records (local storage) ─────────────────────────────────────────────

def test_card_from_dict_reads_client_keys():
    card = card_from_dict({
        "id": 1700000000000, "userId": 0, "name": "Jane", "company": "Acme",
        "type": "business", "isMyCard": True, "linkedinUrl": "https://li/jane",
        "barcodeType": "qr", "qrCodeData": "xyz", "isPublic": False,
    })
    assert card.id == 1700000000000
    assert card.is_my_card is True
    assert card.linkedin_url == "https://li/jane"
    assert card.barcode_type == "qr"
    assert card.extra == {"isPublic": False}


def test_card_from_dict_without_type_defaults_to_other():
    assert card_from_dict({"name": "Gym", "company": "FitCo"}).type == "other"


def test_card_from_dict_never_raises_on_garbage():
    for junk in (None, 42, "card", ["a"]):
        card = card_from_dict(junk)
        assert card.type == "other"


def test_client_round_trip_keeps_unknown_keys():
    card = card_from_dict({"name": "A", "company": "B", "type": "reward", "createdAt": "2024-01-01"})
    assert card_to_dict(card)["createdAt"] == "2024-01-01"


# ── server records ────────────────────────────────────────────────────────────

def test_card_from_server_translates_field_names():
    card = card_from_server({
        "id": 5, "userId": 7, "name": "Jane Doe0", "cardType": "reward",
        "companyName": "Acme", "photoUrl": "p.png", "cardColor": "#ffffff",
        "expiryDate": "2026-01", "eventDate": "2025-05-01", "eventTime": "19:30",
        "isMyCard": 0, "verified": 1, "isPublic": 0,
    })
    assert card.id == 5 and card.user_id == 7
    assert card.name == "Jane Doe"
    assert card.type == "reward"
    assert card.company == "Acme"
    assert card.photo == "p.png"
    assert card.color == "#ffffff"
    assert (card.expiry, card.date, card.time) == ("2026-01", "2025-05-01", "19:30")
    assert card.is_my_card is False and card.verified is True
    assert card.extra == {"isPublic": 0}


def test_card_from_server_falls_back_to_client_names():
    card = card_from_server({"id": 1, "name": "X", "company": "Y", "photo": "a.png", "cardType": "ticket"})
    assert card.company == "Y"
    assert card.photo == "a.png"


def test_card_from_server_defaults():
    card = card_from_server({"id": 3, "name": "Lib"}, default_user_id=9)
    assert card.user_id == 9
    assert card.type == "other"
    assert card.company == ""


def test_card_from_server_invalid_type():
    assert card_from_server({"id": 3, "name": "Lib", "cardType": "library"}).type == "other"


def test_server_payload_uses_server_names_without_identity():
    payload = card_to_server_payload(_card(color="#000000", photo="p.png", expiry="12/27"))
    assert "id" not in payload and "userId" not in payload
    assert payload["cardType"] == "business"
    assert payload["companyName"] == "Acme"
    assert payload["cardColor"] == "#000000"
    assert payload["photoUrl"] == "p.png"
    assert payload["expiryDate"] == "12/27"


def test_strip_identity():
    card = strip_identity(_card(id=99, user_id=0))
    assert card.id is None and card.user_id is None
    assert card.name == "Jane Doe"


def test_server_payload_only_has_server_columns():
    payload = card_to_server_payload(_card(department="Sales", barcode_data="123", qr_code_data="qr"))
    assert set(payload) == {
        "name", "isMyCard", "cardType", "companyName", "identifier", "position",
        "email", "phone", "mobile", "website", "address", "linkedinUrl",
        "cardColor", "logo", "notes", "verified", "barcode", "barcodeType",
        "balance", "expiryDate", "eventDate", "eventTime", "seat", "venue", "photoUrl",
    }
