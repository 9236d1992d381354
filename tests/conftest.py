"""Shared fixtures: a temp-file store, a session, and an in-memory card API."""
from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from cardwallet.auth import AuthSession
from cardwallet.errors import ApiError
from cardwallet.model import Card
from cardwallet.storage import LocalStore
from cardwallet.wallet import CardWallet

FIXED_NOW = 1_700_000_000.0
USER_ID = 7


class FakeCardApi:
    """Stands in for CardApiClient; records every call."""

    def __init__(self, server_cards: list[Card] | None = None):
        self.cards: list[Card] = list(server_cards or [])
        self.calls: list[tuple] = []
        self.fail_names: set[str] = set()
        self.fail_with: Exception | None = None  # raised for fail_names instead of a 500
        self.get_error: Exception | None = None
        self.before_return = None  # hook run just before a mutating call returns
        self._next_id = 100

    @property
    def created_names(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "create"]

    def _hook(self) -> None:
        if self.before_return is not None:
            self.before_return()

    def get_cards(self, token, user_id=None):
        self.calls.append(("get", token))
        if self.get_error is not None:
            raise self.get_error
        return [dataclasses.replace(c) for c in self.cards]

    def create_card(self, token, card, user_id=None):
        self.calls.append(("create", card.name))
        if card.name in self.fail_names:
            raise self.fail_with or ApiError("Failed to create card.", status=500)
        created = dataclasses.replace(card, id=self._next_id, user_id=user_id)
        self._next_id += 1
        self.cards.append(created)
        self._hook()
        return dataclasses.replace(created)

    def update_card(self, token, card):
        self.calls.append(("update", card.id))
        for i, c in enumerate(self.cards):
            if c.id == card.id:
                self.cards[i] = dataclasses.replace(card)
                self._hook()
                return dataclasses.replace(card)
        raise ApiError("Card not found, access denied, or no changes made.", status=404)

    def delete_card(self, token, card_id):
        self.calls.append(("delete", card_id))
        before = len(self.cards)
        self.cards = [c for c in self.cards if c.id != card_id]
        if len(self.cards) == before:
            raise ApiError("Card not found or access denied.", status=404)
        self._hook()


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    return LocalStore(tmp_path / "var" / "storage.json")


@pytest.fixture
def auth(store: LocalStore) -> AuthSession:
    return AuthSession(store)


@pytest.fixture
def api() -> FakeCardApi:
    return FakeCardApi()


@pytest.fixture
def wallet(auth: AuthSession, store: LocalStore, api: FakeCardApi) -> CardWallet:
    return CardWallet(auth, store, api, clock=lambda: FIXED_NOW)


@pytest.fixture
def logged_in(auth: AuthSession) -> AuthSession:
    auth.login("tok-123", USER_ID, "jane@example.com")
    return auth
