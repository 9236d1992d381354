from __future__ import annotations

import dataclasses

import pytest

from cardwallet.compare import are_semantically_identical, differing_fields, find_server_match, sync_key
from cardwallet.model import Card


def _card(**kwargs) -> Card:
    base = dict(name="Jane Doe", company="Acme", type="business", email="jane@acme.com", phone="0123")
    base.update(kwargs)
    return Card(**base)


@pytest.mark.parametrize("field,value", [
    ("id", 42),
    ("user_id", 7),
    ("photo", "data:image/png;base64,AAAA"),
    ("qr_code_data", "qr"),
    ("barcode_data", "123"),
    ("barcode", "code"),
    ("barcode_type", "qr"),
    ("logo", "logo.png"),
])
def test_volatile_fields_ignored(field, value):
    a = _card()
    b = dataclasses.replace(a, **{field: value})
    assert are_semantically_identical(a, b)


@pytest.mark.parametrize("field,value", [
    ("email", "jane@other.com"),
    ("position", "CTO"),
    ("type", "reward"),
    ("is_my_card", True),
    ("verified", True),
    ("color", "#ffffff"),
    ("balance", "10.00"),
    ("department", "Sales"),
])
def test_semantic_field_difference_detected(field, value):
    a = _card()
    b = dataclasses.replace(a, **{field: value})
    assert not are_semantically_identical(a, b)
    assert differing_fields(a, b) == [field]


def test_whitespace_and_empty_values_normalized():
    a = _card(notes="  hello ", website=None)
    b = _card(notes="hello", website="")
    assert are_semantically_identical(a, b)


def test_sync_key_is_case_and_space_insensitive():
    assert sync_key(_card(name="  JANE doe", company="ACME ")) == ("jane doe", "acme")


def test_find_server_match():
    server = [_card(id=1, name="Bob", company="Acme"), _card(id=2, name="jane DOE", company="acme")]
    assert find_server_match(_card(), server).id == 2


def test_find_server_match_needs_name_and_company():
    server = [_card(id=1, name="", company="Acme")]
    assert find_server_match(_card(name=""), server) is None
    assert find_server_match(_card(name="Jane Doe", company="Other"), server) is None
