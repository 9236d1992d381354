"""
review.py — interactive conflict review after login.

Each conflicting pair is shown side by side (local version on the left,
server version on the right, differing fields highlighted) and the user picks:
  • l  keep the local version (uploaded when the review finishes)
  • s  keep the server version (local version is discarded)
  • k  decide later (skip; nothing is uploaded for this card)

Progress is shown as  Conflict N / Total.
"""
from __future__ import annotations

from rich.console import Console
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table

from .compare import SEMANTIC_FIELDS, differing_fields
from .model import ConflictPair, SyncOutcome
from .sync import SyncReconciler

console = Console()

_FIELD_LABELS = {
    "is_my_card": "My card",
    "linkedin_url": "LinkedIn",
}

_CHOICES = {"l": "local", "s": "server", "k": "skip"}


def _label(field: str) -> str:
    return _FIELD_LABELS.get(field, field.replace("_", " ").capitalize())


def _fmt(v) -> str:
    if v is None or v == "":
        return "[dim](empty)[/dim]"
    if isinstance(v, bool):
        return "yes" if v else "no"
    return str(v)


def _show_pair(pair: ConflictPair, index: int, total: int) -> None:
    diff = set(differing_fields(pair.local, pair.server))
    table = Table(show_lines=False, expand=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Local (unsaved)")
    table.add_column("Server")
    for field in SEMANTIC_FIELDS:
        local_v, server_v = getattr(pair.local, field), getattr(pair.server, field)
        if field not in diff and not local_v and not server_v:
            continue
        style = "bold yellow" if field in diff else None
        table.add_row(_label(field), _fmt(local_v), _fmt(server_v), style=style)

    console.print()
    console.print(Rule(f"[dim]Conflict {index} / {total}[/dim]  [bold]{pair.local.label}[/bold]"))
    console.print(table)
    console.print(f"[yellow]{len(diff)} field(s) differ[/yellow]")


def review_conflicts(reconciler: SyncReconciler) -> SyncOutcome | None:
    """Walk the user through every pending conflict, then finalize the sync."""
    if not reconciler.is_reviewing:
        return reconciler.outcome

    console.print(
        "\n[bold]Some cards you saved while logged out differ from the ones in your account.[/bold]"
    )
    console.print("[dim]At each card:  l = keep local • s = keep server • k = decide later[/dim]")

    while reconciler.is_reviewing:
        state = reconciler.state
        _show_pair(state.current, state.index + 1, state.total)
        choice = _CHOICES[Prompt.ask("  Keep which version?", choices=list(_CHOICES), default="s")]
        if choice == "skip":
            reconciler.skip()
        else:
            reconciler.resolve(choice)
        reconciler.advance()

    console.print("[green]Review complete.[/green]")
    return reconciler.outcome
