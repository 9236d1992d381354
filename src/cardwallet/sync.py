"""sync.py — merge cards created while logged out into the server account.

After login, every card under LOCAL_UNAUTH_CARDS_KEY is matched against the
server list by (name, company), case-insensitively:

  no match                   new       -> upload queue
  match, same content        identical -> dropped
  match, different content   conflict  -> user decides, one pair at a time

Review is an explicit state machine:

  Idle ──sync with conflicts──▶ Reviewing(0) ──advance──▶ Reviewing(i+1)
                                     │                          │
                                     └────── advance on last ───┴──▶ Finalizing ──▶ Idle

Uploads are sequential and every queued card is attempted. Local storage is
cleared only when nothing failed, so a failed card is retried on the next
login (and a card that did upload may be sent again then).
"""
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Callable, Union

from .compare import are_semantically_identical, find_server_match
from .errors import CardWalletError, StorageParseError, SyncStateError
from .model import Card, ConflictChoice, ConflictPair, SyncOutcome
from .normalize import strip_identity
from .storage import LOCAL_UNAUTH_CARDS_KEY
from .wallet import CardWallet

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 1.5


# ── review states ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Reviewing:
    index: int
    conflicts: tuple[ConflictPair, ...]
    uploads: tuple[Card, ...] = ()
    decision: str | None = None   # local | server | skipped, for the current pair

    def __post_init__(self) -> None:
        if not self.conflicts:
            raise ValueError("Reviewing needs at least one conflict")
        if not 0 <= self.index < len(self.conflicts):
            raise ValueError(f"Conflict index {self.index} out of range")

    @property
    def current(self) -> ConflictPair:
        return self.conflicts[self.index]

    @property
    def total(self) -> int:
        return len(self.conflicts)


@dataclass(frozen=True)
class Finalizing:
    uploads: tuple[Card, ...]


ReviewState = Union[Idle, Reviewing, Finalizing]


# ── reconciler ───────────────────────────────────────────────────────────────

class SyncReconciler:
    def __init__(
        self,
        wallet: CardWallet,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.wallet = wallet
        self.store = wallet.store
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.state: ReviewState = Idle()
        self.outcome: SyncOutcome | None = None
        self.has_synced = False
        wallet.auth.on_logout(self._on_logout)

    def _on_logout(self) -> None:
        self.has_synced = False
        if not isinstance(self.state, Idle):
            # local storage is untouched until finalization, so the next login starts over
            logger.info("Logged out during conflict review; review abandoned")
            self.state = Idle()

    @property
    def current_conflict(self) -> ConflictPair | None:
        return self.state.current if isinstance(self.state, Reviewing) else None

    @property
    def is_reviewing(self) -> bool:
        return isinstance(self.state, Reviewing)

    def clear_outcome(self) -> None:
        self.outcome = None

    # ── triggering ───────────────────────────────────────────────────────────

    def maybe_sync(self) -> bool:
        """Run the sync pass once per session, after the server list loaded.

        A successful load that returned no cards still counts: an empty
        account is exactly where every local card is new. Only a failed
        load (load_error set) holds the sync back.
        """
        w = self.wallet
        if self.has_synced or not w.auth.is_authenticated or w.is_loading or w.load_error is not None:
            return False
        logger.debug("Conditions met for sync; waiting %.1fs for the load to settle", self.settle_delay)
        if self.settle_delay > 0:
            self.sleep(self.settle_delay)
        self.sync_local_cards()
        self.has_synced = True
        return True

    # ── sync pass ────────────────────────────────────────────────────────────

    def sync_local_cards(self) -> None:
        w = self.wallet
        if not w.auth.is_authenticated or w.is_loading:
            logger.debug("Not authenticated or still loading; skipping sync")
            return
        if not isinstance(self.state, Idle):
            logger.debug("Conflict review already in progress; skipping sync")
            return
        if not self.store.has_item(LOCAL_UNAUTH_CARDS_KEY):
            logger.debug("No local cards stored; nothing to sync")
            return

        try:
            local_cards = self.store.read_cards(LOCAL_UNAUTH_CARDS_KEY)
        except StorageParseError as e:
            logger.error("Error parsing local cards, clearing them: %s", e)
            self.store.remove_item(LOCAL_UNAUTH_CARDS_KEY)
            return

        if not local_cards:
            self.store.remove_item(LOCAL_UNAUTH_CARDS_KEY)
            return

        logger.info("Found %d local card(s) to sync", len(local_cards))
        conflicts: list[ConflictPair] = []
        new_cards: list[Card] = []
        for stored in local_cards:
            local = strip_identity(stored)
            match = find_server_match(local, w.cards)
            if match is None:
                logger.debug("Local card is new to the server: %s", local.label)
                new_cards.append(local)
            elif are_semantically_identical(local, match):
                logger.debug("Local card is identical to server card: %s", local.label)
            else:
                logger.debug("Conflict detected: %s", local.label)
                conflicts.append(ConflictPair(local=local, server=match))

        if conflicts:
            logger.info("%d conflict(s) and %d new card(s); starting review", len(conflicts), len(new_cards))
            self.state = Reviewing(index=0, conflicts=tuple(conflicts), uploads=tuple(new_cards))
            return

        if new_cards:
            failures = self._upload(new_cards)
            self.outcome = "partial_failure" if failures else "success"
            if not failures:
                self.store.remove_item(LOCAL_UNAUTH_CARDS_KEY)
            return

        logger.info("All local cards already exist on the server")
        self.store.remove_item(LOCAL_UNAUTH_CARDS_KEY)
        self.outcome = None

    def _upload(self, cards: list[Card] | tuple[Card, ...]) -> int:
        failures = 0
        for card in cards:
            try:
                self.wallet.add_card(card)
            except CardWalletError as e:
                failures += 1
                logger.error("Error uploading local card %r: %s", card.label, e)
        logger.info("Uploaded %d of %d local card(s)", len(cards) - failures, len(cards))
        return failures

    # ── conflict review ──────────────────────────────────────────────────────

    def _reviewing(self, op: str) -> Reviewing:
        if not isinstance(self.state, Reviewing):
            raise SyncStateError(f"Cannot {op}: no conflict is under review")
        return self.state

    def resolve(self, choice: ConflictChoice) -> None:
        state = self._reviewing("resolve")
        if choice not in ("local", "server"):
            raise ValueError(f"Unknown conflict choice: {choice!r}")
        if state.decision is not None:
            raise SyncStateError(f"Conflict {state.index + 1} already decided ({state.decision})")

        local = state.current.local
        if choice == "local":
            logger.info("Conflict resolved: keeping local version of %s", local.label)
            self.state = dataclasses.replace(state, uploads=state.uploads + (local,), decision="local")
        else:
            logger.info("Conflict resolved: keeping server version of %s; local version discarded: %r",
                        local.label, local)
            self.state = dataclasses.replace(state, decision="server")

    def skip(self) -> None:
        state = self._reviewing("skip")
        if state.decision is None:
            logger.info("Skipping conflict for %s", state.current.local.label)
            self.state = dataclasses.replace(state, decision="skipped")

    def advance(self) -> None:
        state = self._reviewing("advance")
        next_index = state.index + 1
        if next_index < state.total:
            self.state = Reviewing(index=next_index, conflicts=state.conflicts, uploads=state.uploads)
            return
        self.state = Finalizing(uploads=state.uploads)
        self._finalize(state.uploads)

    def _finalize(self, uploads: tuple[Card, ...]) -> None:
        try:
            failures = 0
            if uploads:
                failures = self._upload(uploads)
                self.outcome = "partial_failure" if failures else "success"
            if not failures:
                self.store.remove_item(LOCAL_UNAUTH_CARDS_KEY)
        finally:
            # never left in Finalizing, or later syncs in this session are blocked
            self.state = Idle()
        logger.info("Sync finalized")
