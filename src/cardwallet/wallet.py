"""wallet.py — card collection state and CRUD in the two session modes.

Logged out, cards live only in the local store under
LOCAL_UNAUTH_CARDS_KEY and get a millisecond-timestamp id. Logged in, every
change goes to the REST API first and is mirrored into memory and the
per-user cache only once the server accepted it.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable, Literal, Protocol

from rapidfuzz import fuzz

from .auth import AuthSession
from .errors import ApiError, NetworkError, ValidationError
from .model import CARD_TYPES, CATEGORY_LABELS, Card
from .normalize import strip_identity
from .storage import LOCAL_UNAUTH_CARDS_KEY, LocalStore, user_cache_key

logger = logging.getLogger(__name__)

SortOption = Literal["name", "company", "none"]
SORT_OPTIONS: tuple[str, ...] = ("name", "company", "none")
DEFAULT_SORT: SortOption = "name"

# identity and round-trip storage, never user-edited
_NOT_EDITABLE = frozenset({"id", "user_id", "extra"})

# partial_ratio score at which a search term counts as a near miss
FUZZY_SEARCH_THRESHOLD = 85


class CardApi(Protocol):
    def get_cards(self, token: str, user_id: int | None = None) -> list[Card]: ...
    def create_card(self, token: str, card: Card, user_id: int | None = None) -> Card: ...
    def update_card(self, token: str, card: Card) -> Card: ...
    def delete_card(self, token: str, card_id: int) -> None: ...


def validate_card(card: Card) -> None:
    if card.type not in CARD_TYPES:
        raise ValidationError(f"Card type must be one of: {', '.join(CARD_TYPES)}", "type")
    if (card.type == "business" or card.is_my_card) and not (card.name or "").strip():
        raise ValidationError("Name is required for business cards", "name")
    if not (card.company or "").strip():
        raise ValidationError("Company/Club name is required", "company")


def _enforce_my_card(card: Card) -> Card:
    if card.is_my_card and card.type != "business":
        return dataclasses.replace(card, type="business")
    return card


def _matches(card: Card, term: str) -> bool:
    for value in (card.name, card.company):
        v = (value or "").lower()
        if not v:
            continue
        if term in v:
            return True
        if len(term) >= 4 and fuzz.partial_ratio(term, v) >= FUZZY_SEARCH_THRESHOLD:
            return True
    return False


class CardWallet:
    def __init__(
        self,
        auth: AuthSession,
        store: LocalStore,
        api: CardApi,
        clock: Callable[[], float] = time.time,
    ):
        self.auth = auth
        self.store = store
        self.api = api
        self.clock = clock
        self.cards: list[Card] = []
        self.selected_card: Card | None = None
        self.editing_card: Card | None = None
        self._original_editing: Card | None = None
        self.sort_by: SortOption = self._saved_sort()
        self.is_loading = False
        self.load_error: Exception | None = None

    # ── helpers ──────────────────────────────────────────────────────────────

    @property
    def cache_key(self) -> str:
        return user_cache_key(self.auth.user_id)

    def _is_current(self, generation: int, what: str) -> bool:
        if self.auth.generation == generation:
            return True
        logger.warning("Session changed while %s was in flight; discarding the response", what)
        return False

    def _local_id(self, taken: set[int | None]) -> int:
        new_id = int(self.clock() * 1000)
        while new_id in taken:
            new_id += 1
        return new_id

    def _mirror(self) -> None:
        self.store.write_cards(self.cache_key, self.cards)

    # ── load ─────────────────────────────────────────────────────────────────

    def load_cards(self) -> list[Card]:
        self.is_loading = True
        self.load_error = None
        try:
            if self.auth.is_authenticated:
                self._load_from_server()
            else:
                self.cards = self.store.read_cards_or_reset(LOCAL_UNAUTH_CARDS_KEY)
                logger.debug("Loaded %d local card(s)", len(self.cards))
        finally:
            self.is_loading = False
        return self.cards

    def _load_from_server(self) -> None:
        generation = self.auth.generation
        try:
            fetched = self.api.get_cards(self.auth.token, self.auth.user_id)
        except (NetworkError, ApiError) as e:
            logger.error("Error loading cards from API: %s", e)
            self.load_error = e
            self.cards = self.store.read_cards_or_reset(self.cache_key)
            if self.cards:
                logger.info("Loaded %d cached card(s) for user %s", len(self.cards), self.auth.user_id)
            return
        if not self._is_current(generation, "loading cards"):
            return
        self.cards = fetched
        self._mirror()

    # ── CRUD ─────────────────────────────────────────────────────────────────

    def add_card(self, card: Card) -> Card:
        card = _enforce_my_card(card)
        validate_card(card)

        if not self.auth.is_authenticated:
            local = self.store.read_cards_or_reset(LOCAL_UNAUTH_CARDS_KEY)
            new_card = dataclasses.replace(card, id=self._local_id({c.id for c in local}), user_id=0)
            local.append(new_card)
            self.store.write_cards(LOCAL_UNAUTH_CARDS_KEY, local)
            self.cards = local
            return new_card

        generation = self.auth.generation
        created = self.api.create_card(self.auth.token, strip_identity(card), self.auth.user_id)
        if self._is_current(generation, "adding a card"):
            self.cards = [*self.cards, created]
            self._mirror()
        return created

    def update_card(self, card: Card) -> Card:
        card = _enforce_my_card(card)
        validate_card(card)

        if not self.auth.is_authenticated:
            local = self.store.read_cards_or_reset(LOCAL_UNAUTH_CARDS_KEY)
            for i, existing in enumerate(local):
                if existing.id == card.id:
                    local[i] = card
                    self.store.write_cards(LOCAL_UNAUTH_CARDS_KEY, local)
                    self.cards = local
                    break
            else:
                logger.warning("Local card %s not found; nothing updated", card.id)
            return card

        generation = self.auth.generation
        updated = self.api.update_card(self.auth.token, card)
        if self._is_current(generation, "updating a card"):
            self.cards = [updated if c.id == updated.id else c for c in self.cards]
            self._mirror()
            if self.selected_card and self.selected_card.id == updated.id:
                self.selected_card = updated
            if self.editing_card and self.editing_card.id == updated.id:
                self.editing_card = updated
        return updated

    def delete_card(self, card_or_id: Card | int) -> None:
        card_id = card_or_id.id if isinstance(card_or_id, Card) else card_or_id

        if self.auth.is_authenticated:
            generation = self.auth.generation
            self.api.delete_card(self.auth.token, card_id)
            if not self._is_current(generation, "deleting a card"):
                return
            self.cards = [c for c in self.cards if c.id != card_id]
            self._mirror()
        else:
            local = self.store.read_cards_or_reset(LOCAL_UNAUTH_CARDS_KEY)
            self.cards = [c for c in local if c.id != card_id]
            self.store.write_cards(LOCAL_UNAUTH_CARDS_KEY, self.cards)

        if self.selected_card and self.selected_card.id == card_id:
            self.selected_card = None
        if self.editing_card and self.editing_card.id == card_id:
            self.editing_card = None
            self._original_editing = None

    # ── editing ──────────────────────────────────────────────────────────────

    def start_editing(self, card: Card) -> None:
        self.editing_card = dataclasses.replace(card)
        self._original_editing = dataclasses.replace(card)

    def cancel_editing(self) -> None:
        self.editing_card = None
        self._original_editing = None

    def update_editing_field(self, field: str, value: Any) -> None:
        if self.editing_card is None:
            return
        if field in _NOT_EDITABLE:
            raise ValueError(f"Card field cannot be edited: {field}")
        if field not in {f.name for f in dataclasses.fields(Card)}:
            raise ValueError(f"Unknown card field: {field}")
        updated = dataclasses.replace(self.editing_card, **{field: value})

        if field == "is_my_card":
            if value:
                updated.type = "business"
            elif self._original_editing is not None:
                updated.type = self._original_editing.type
        if field == "type" and value != "business":
            updated.is_my_card = False

        self.editing_card = updated

    def save_edited_card(self) -> bool:
        """Persist the card being edited. On error the edit stays open and the error propagates."""
        if self.editing_card is None:
            return False
        self.update_card(self.editing_card)
        self.editing_card = None
        self._original_editing = None
        return True

    # ── listing ──────────────────────────────────────────────────────────────

    def _saved_sort(self) -> SortOption:
        value = self.store.read_preferences().get("sortBy", DEFAULT_SORT)
        if value not in SORT_OPTIONS:
            logger.warning("Ignoring saved sort preference %r", value)
            return DEFAULT_SORT
        return value

    def set_sort(self, sort_by: SortOption) -> None:
        """Change the list order and remember it for the next run."""
        if sort_by not in SORT_OPTIONS:
            raise ValueError(f"sort must be one of: {', '.join(SORT_OPTIONS)}")
        self.sort_by = sort_by
        self.store.update_preferences(sortBy=sort_by)

    def sorted_cards(self, sort_by: SortOption | None = None) -> list[Card]:
        order = sort_by or self.sort_by
        if order == "name":
            return sorted(self.cards, key=lambda c: (c.name or "").lower())
        if order == "company":
            return sorted(self.cards, key=lambda c: (c.company or "").lower())
        return list(self.cards)

    def grouped_cards(self) -> dict[str, list[Card]]:
        groups: dict[str, list[Card]] = {}
        for card in self.sorted_cards():
            category = "mycard" if card.is_my_card else card.type
            groups.setdefault(category, []).append(card)
        return groups

    def ordered_categories(self) -> list[str]:
        def key(category: str) -> tuple[int, str]:
            if category == "mycard":
                return (0, "")
            return (1, CATEGORY_LABELS.get(category, category).lower())

        return sorted(self.grouped_cards(), key=key)

    def filtered_categories(self, term: str) -> list[str]:
        if not term:
            return self.ordered_categories()
        groups = self.grouped_cards()
        needle = term.lower()
        return [cat for cat in self.ordered_categories() if any(_matches(c, needle) for c in groups[cat])]

    def search(self, term: str) -> list[Card]:
        if not term:
            return self.sorted_cards()
        needle = term.lower()
        return [c for c in self.sorted_cards() if _matches(c, needle)]
