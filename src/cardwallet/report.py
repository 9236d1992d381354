from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .model import CATEGORY_LABELS, Card, SyncOutcome
from .wallet import CardWallet

console = Console()

# ── Palette ────────────────────────────────────────────────────────────────────
_ACCENT  = "#4d9fff"
_GREEN   = "#3ecf8e"
_AMBER   = "#f0a500"
_TEXT    = "#c9d1e0"
_MID     = "#8896af"
_DIM     = "#546075"
_BORDER  = "#2a3347"

OUTCOME_MESSAGES: dict[str, tuple[str, str]] = {
    "success": ("Your local cards were synced to your account.", _GREEN),
    "partial_failure": (
        "Some local cards could not be synced. They are kept on this device "
        "and will be retried next time you log in.",
        _AMBER,
    ),
}


def _detail(card: Card) -> str:
    if card.type == "business" or card.is_my_card:
        parts = [card.position, card.email, card.phone or card.mobile]
    else:
        parts = [card.identifier, card.balance, card.expiry, card.date, card.venue]
    return "  ".join(p for p in parts if p)


def print_cards(wallet: CardWallet, term: str = "") -> None:
    categories = wallet.filtered_categories(term)
    if not categories:
        console.print(Text("  No cards to show.", style=f"dim {_DIM}"))
        return

    groups = wallet.grouped_cards()
    hits = {id(c) for c in wallet.search(term)}
    for category in categories:
        cards = [c for c in groups[category] if id(c) in hits]
        table = Table(
            title=Text(CATEGORY_LABELS.get(category, category).upper(), style=f"dim {_DIM}"),
            title_justify="left",
            border_style=_BORDER,
            expand=True,
        )
        table.add_column("ID", justify="right", style=_MID, no_wrap=True)
        table.add_column("Name", style=f"bold {_TEXT}")
        table.add_column("Company", style=_TEXT)
        table.add_column("Details", style=f"dim {_MID}")
        for c in cards:
            table.add_row(str(c.id) if c.id is not None else "", c.name, c.company, _detail(c))
        console.print(table)


def print_card(card: Card) -> None:
    lines: list[str] = []
    for label, value in (
        ("Type", card.type),
        ("Company", card.company),
        ("Position", card.position),
        ("Department", card.department),
        ("Email", card.email),
        ("Phone", card.phone),
        ("Mobile", card.mobile),
        ("Website", card.website),
        ("LinkedIn", card.linkedin_url),
        ("Address", card.address),
        ("Identifier", card.identifier),
        ("Balance", card.balance),
        ("Expiry", card.expiry),
        ("Date", card.date),
        ("Time", card.time),
        ("Seat", card.seat),
        ("Venue", card.venue),
        ("Notes", card.notes),
    ):
        if value:
            lines.append(f"[bold cyan]{label + ':':<12}[/] {value}")
    title = card.label + ("  [dim](my card)[/dim]" if card.is_my_card else "")
    console.print(Panel("\n".join(lines) or "[dim](no details)[/dim]", title=title,
                        border_style=_ACCENT, padding=(0, 2)))


def print_outcome(outcome: SyncOutcome | None) -> None:
    if outcome is None:
        return
    message, colour = OUTCOME_MESSAGES[outcome]
    console.print(Panel(Text(message, style=f"bold {colour}"), border_style=colour, padding=(0, 2)))
