"""api.py — REST client for the CardWallet backend.

All calls go through `_request`, which turns transport failures into
NetworkError and non-2xx responses into ApiError. Only NetworkError is
retried, with exponential backoff.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import requests

from .errors import ApiError, NetworkError, ValidationError
from .model import Card
from .normalize import card_from_server, card_to_server_payload

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_BASE_SECONDS = 0.3


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `operation`, retrying NetworkError up to `max_retries` attempts in total."""
    for attempt in range(max_retries):
        try:
            return operation()
        except NetworkError as e:
            retries_left = max_retries - attempt - 1
            e.retries_left = retries_left
            if retries_left <= 0:
                raise
            delay = (2 ** attempt) * BACKOFF_BASE_SECONDS
            logger.info("Network error (%s); retrying in %.1fs (%d left)", e, delay, retries_left)
            sleep(delay)
    raise NetworkError("No attempts made", retries_left=0)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text.strip() or resp.reason or "request failed"


class _Client:
    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.sleep = sleep

    def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self.session.request(method, url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        if not resp.ok:
            raise ApiError(f"{method} {path}: {_error_message(resp)}", status=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"{method} {path}: response is not JSON", status=resp.status_code) from e

    def _call(self, method: str, path: str, token: str | None = None, payload: dict[str, Any] | None = None) -> Any:
        return with_retry(lambda: self._request(method, path, token, payload), self.max_retries, self.sleep)


class CardApiClient(_Client):
    def get_cards(self, token: str, user_id: int | None = None) -> list[Card]:
        data = self._call("GET", "/api/cards", token)
        if not isinstance(data, list):
            raise ApiError("GET /api/cards: expected a list of cards", status=502)
        logger.debug("Fetched %d card(s) from the server", len(data))
        return [card_from_server(item, default_user_id=user_id) for item in data]

    def create_card(self, token: str, card: Card, user_id: int | None = None) -> Card:
        data = self._call("POST", "/api/cards", token, card_to_server_payload(card))
        return card_from_server(data, default_user_id=user_id)

    def update_card(self, token: str, card: Card) -> Card:
        if card.id is None:
            raise ValidationError("Card ID is required", "id")
        data = self._call("PUT", f"/api/cards/{card.id}", token, card_to_server_payload(card))
        return card_from_server(data, default_user_id=card.user_id)

    def delete_card(self, token: str, card_id: int) -> None:
        self._call("DELETE", f"/api/cards/{card_id}", token)


@dataclass
class AuthResult:
    token: str
    user_id: int
    email: str


class AuthClient(_Client):
    def check_backend(self) -> bool:
        try:
            resp = self.session.get(f"{self.base_url}/", timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Backend connection check failed: %s", e)
            return False
        return resp.ok

    def login(self, email: str, password: str) -> AuthResult:
        email, password = email.strip(), password.strip()
        if not email or not password:
            raise ValidationError("Email and password are required.", "email" if not email else "password")
        data = self._request("POST", "/api/auth/login", payload={"email": email, "password": password})
        try:
            return AuthResult(token=str(data["token"]), user_id=int(data["userId"]), email=str(data.get("email") or email))
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError("Login response is missing token or userId", status=502) from e

    def register(self, email: str, password: str, name: str | None = None) -> int | None:
        email, password = email.strip(), password.strip()
        if not email or not password:
            raise ValidationError("Email and password are required.", "email" if not email else "password")
        body: dict[str, Any] = {"email": email, "password": password}
        if name and name.strip():
            body["name"] = name.strip()
        data = self._request("POST", "/api/auth/register", payload=body)
        return data.get("userId") if isinstance(data, dict) else None

    def delete_account(self, token: str) -> None:
        self._request("DELETE", "/api/auth/account", token)
