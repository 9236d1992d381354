"""storage.py — local key/value store standing in for browser local storage.

The whole store is one JSON object on disk mapping key -> string value.
Values are themselves JSON text, so a single key can be corrupt while the
rest of the store is fine; readers of card lists must cope with that.

Keys used by the wallet:
  cardwallet_local_unauth_cards    cards created while logged out
  cardwallet_cards_user_<id>       per-user mirror of the server card list
  authToken / authUserId / authUserEmail   persisted session
  cardwallet_preferences           UI preferences (sortBy)
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .errors import StorageParseError
from .model import Card
from .normalize import card_from_dict, card_to_dict

logger = logging.getLogger(__name__)

LOCAL_UNAUTH_CARDS_KEY = "cardwallet_local_unauth_cards"
AUTH_USER_CARDS_KEY_PREFIX = "cardwallet_cards_user_"
PREFERENCES_KEY = "cardwallet_preferences"


def user_cache_key(user_id: int | None) -> str:
    return f"{AUTH_USER_CARDS_KEY_PREFIX}{user_id}"


class LocalStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    # ── raw key/value ─────────────────────────────────────────────────────────

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Store file %s is unreadable, starting empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store file %s does not hold an object, starting empty", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def has_item(self, key: str) -> bool:
        return key in self._load()

    # ── card lists ────────────────────────────────────────────────────────────

    def read_cards(self, key: str) -> list[Card]:
        """Return the normalized cards under `key` ([] if absent).

        Raises StorageParseError when the value is not a JSON array.
        """
        raw = self.get_item(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageParseError(key, f"invalid JSON ({e})") from e
        if not isinstance(data, list):
            raise StorageParseError(key, f"expected a list, got {type(data).__name__}")
        return [card_from_dict(item) for item in data]

    def read_cards_or_reset(self, key: str) -> list[Card]:
        """Like read_cards, but a corrupt value is removed and [] returned."""
        try:
            return self.read_cards(key)
        except StorageParseError as e:
            logger.error("Clearing corrupt card data: %s", e)
            self.remove_item(key)
            return []

    def write_cards(self, key: str, cards: list[Card]) -> None:
        self.set_item(key, json.dumps([card_to_dict(c) for c in cards]))

    # ── preferences ───────────────────────────────────────────────────────────

    def read_preferences(self) -> dict[str, Any]:
        """Saved UI preferences, or {} when absent or unreadable."""
        raw = self.get_item(PREFERENCES_KEY)
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Error loading preferences: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def update_preferences(self, **changes: Any) -> None:
        prefs = self.read_preferences()
        prefs.update(changes)
        self.set_item(PREFERENCES_KEY, json.dumps(prefs))
