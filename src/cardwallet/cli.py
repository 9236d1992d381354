from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from .api import AuthClient, CardApiClient
from .auth import AuthSession
from .config import ensure_workspace, storage_path
from .errors import CardWalletError, describe_error
from .exporter import export_vcard, export_vcards
from .model import CARD_TYPES, Card
from .normalize import CLIENT_KEYS
from .report import print_card, print_cards, print_outcome
from .review import review_conflicts
from .storage import LocalStore
from .sync import SyncReconciler
from .wallet import CardWallet

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="cardwallet: keep business cards, reward cards and tickets in one wallet, synced to your account.",
)
console = Console()

_BOOL_FIELDS = {"is_my_card", "verified"}
# accepts attribute or client key spelling: is_my_card, isMyCard, is-my-card
_FIELD_ALIASES = {
    name.lower().replace("_", ""): attr for attr, key in CLIENT_KEYS.items() for name in (attr, key)
}


@dataclass
class _Context:
    wallet: CardWallet
    reconciler: SyncReconciler
    auth_client: AuthClient
    default_region: str
    export_dir: Path


_ctx: _Context | None = None


@app.callback()
def main(
    api_url: str | None = typer.Option(None, "--api-url", help="Backend base URL. Falls back to local/cardwallet.conf."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    global _ctx
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    paths, settings = ensure_workspace()
    base_url = (api_url or settings.api_base_url).rstrip("/")
    store = LocalStore(storage_path(paths, settings))
    auth = AuthSession(store)
    card_api = CardApiClient(base_url, timeout=settings.request_timeout, max_retries=settings.max_retries)
    wallet = CardWallet(auth, store, card_api)
    _ctx = _Context(
        wallet=wallet,
        reconciler=SyncReconciler(wallet, settle_delay=settings.settle_delay),
        auth_client=AuthClient(base_url, timeout=settings.request_timeout),
        default_region=settings.default_region,
        export_dir=paths.export_dir,
    )


def _context() -> _Context:
    if _ctx is None:  # pragma: no cover
        raise RuntimeError("CLI context not initialised")
    return _ctx


def _fail(exc: CardWalletError, action: str) -> typer.Exit:
    message, _ = describe_error(exc, action)
    console.print(f"[bold red]{message}[/bold red]")
    return typer.Exit(code=1)


def _find(wallet: CardWallet, card_id: int) -> Card:
    for c in wallet.cards:
        if c.id == card_id:
            return c
    console.print(f"[bold red]No card with id {card_id}.[/bold red]")
    raise typer.Exit(code=2)


def _parse_assignment(raw: str) -> tuple[str, object]:
    if "=" not in raw:
        raise typer.BadParameter(f"expected FIELD=VALUE, got {raw!r}")
    field, value = raw.split("=", 1)
    lookup = field.strip().lower().replace("_", "").replace("-", "")
    attr = _FIELD_ALIASES.get(lookup, field.strip())
    if attr in _BOOL_FIELDS:
        return attr, value.strip().lower() in {"1", "true", "yes", "y"}
    return attr, value


def _finish_sync(reconciler: SyncReconciler) -> None:
    review_conflicts(reconciler)
    print_outcome(reconciler.outcome)
    reconciler.clear_outcome()


# ── session ────────────────────────────────────────────────────────────────────

@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Log in, load your cards and merge any cards saved while logged out."""
    ctx = _context()
    if not ctx.auth_client.check_backend():
        console.print("[bold red]Cannot connect to the server. Is the backend running?[/bold red]")
        raise typer.Exit(code=1)
    try:
        result = ctx.auth_client.login(email, password)
    except CardWalletError as e:
        console.print(f"[bold red]Login failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    ctx.wallet.auth.login(result.token, result.user_id, result.email)
    console.print(f"[green]✓ Logged in as {result.email}[/green]")

    ctx.wallet.load_cards()
    if ctx.wallet.load_error is not None:
        console.print("[yellow]Could not load cards from the server; showing cached cards.[/yellow]")
    ctx.reconciler.maybe_sync()
    _finish_sync(ctx.reconciler)


@app.command()
def register(
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True),
    name: str | None = typer.Option(None, "--name", "-n"),
) -> None:
    """Create an account."""
    ctx = _context()
    try:
        ctx.auth_client.register(email, password, name)
    except CardWalletError as e:
        console.print(f"[bold red]Registration failed:[/bold red] {e}")
        raise typer.Exit(code=1)
    console.print("[green]✓ Account created. Run  cardwallet login  to sign in.[/green]")


@app.command()
def logout() -> None:
    """Log out. Cards added afterwards are kept on this device until the next login."""
    _context().wallet.auth.logout()
    console.print("[dim]Logged out.[/dim]")


@app.command("delete-account")
def delete_account(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt")) -> None:
    """Delete your account and every card stored on the server."""
    ctx = _context()
    auth = ctx.wallet.auth
    if not auth.is_authenticated:
        console.print("[bold red]You are not logged in.[/bold red]")
        raise typer.Exit(code=2)
    if not yes and not typer.confirm("Delete your account and all its cards?", default=False):
        console.print("[dim]Aborted.[/dim]")
        raise typer.Exit(code=0)
    try:
        ctx.auth_client.delete_account(auth.token)
    except CardWalletError as e:
        console.print(f"[bold red]Account deletion failed:[/bold red] {e}")
        raise typer.Exit(code=1)
    auth.logout()
    console.print("[green]✓ Account deleted.[/green]")


# ── cards ──────────────────────────────────────────────────────────────────────

@app.command("list")
def list_cards(
    sort: str | None = typer.Option(None, "--sort", "-s", help="name, company or none; remembered for next time"),
    search: str = typer.Option("", "--search", "-q", help="Filter by name or company"),
) -> None:
    """Show your cards grouped by category."""
    wallet = _context().wallet
    if sort is not None:
        try:
            wallet.set_sort(sort)
        except ValueError as e:
            raise typer.BadParameter(str(e))
    wallet.load_cards()
    print_cards(wallet, search)


@app.command()
def show(card_id: int = typer.Argument(..., help="Card id")) -> None:
    """Show one card in full."""
    wallet = _context().wallet
    wallet.load_cards()
    wallet.selected_card = _find(wallet, card_id)
    print_card(wallet.selected_card)


@app.command()
def add(
    name: str = typer.Option("", "--name", "-n"),
    company: str = typer.Option(..., "--company", "-c", prompt=True),
    card_type: str = typer.Option("business", "--type", "-t", help=f"One of: {', '.join(CARD_TYPES)}"),
    my_card: bool = typer.Option(False, "--my-card", help="This is your own business card"),
    verified: bool = typer.Option(False, "--verified", help="Mark the card details as checked"),
    position: str | None = typer.Option(None),
    email: str | None = typer.Option(None),
    phone: str | None = typer.Option(None),
    mobile: str | None = typer.Option(None),
    website: str | None = typer.Option(None),
    address: str | None = typer.Option(None),
    identifier: str | None = typer.Option(None, help="Membership / account number"),
    balance: str | None = typer.Option(None),
    expiry: str | None = typer.Option(None),
    date: str | None = typer.Option(None, help="Event date (tickets)"),
    time: str | None = typer.Option(None, help="Event time (tickets)"),
    seat: str | None = typer.Option(None),
    venue: str | None = typer.Option(None),
    notes: str | None = typer.Option(None),
) -> None:
    """Add a card (to your account when logged in, to this device otherwise)."""
    wallet = _context().wallet
    card = Card(
        name=name, company=company, type=card_type, is_my_card=my_card, position=position,
        email=email, phone=phone, mobile=mobile, website=website, address=address,
        identifier=identifier, balance=balance, expiry=expiry, date=date, time=time,
        seat=seat, venue=venue, notes=notes, verified=verified,
    )
    wallet.load_cards()
    try:
        added = wallet.add_card(card)
    except CardWalletError as e:
        raise _fail(e, "add")
    where = "your account" if wallet.auth.is_authenticated else "this device"
    console.print(f"[green]✓ Added {added.label} to {where}[/green] [dim](id {added.id})[/dim]")


@app.command()
def edit(
    card_id: int = typer.Argument(..., help="Card id"),
    assignments: list[str] = typer.Option(..., "--set", help="FIELD=VALUE, repeatable"),
) -> None:
    """Change fields of a card, e.g.  --set email=jane@acme.com --set isMyCard=true"""
    wallet = _context().wallet
    wallet.load_cards()
    wallet.start_editing(_find(wallet, card_id))
    try:
        for raw in assignments:
            wallet.update_editing_field(*_parse_assignment(raw))
    except ValueError as e:
        wallet.cancel_editing()
        raise typer.BadParameter(str(e))
    try:
        wallet.save_edited_card()
    except CardWalletError as e:
        raise _fail(e, "update")
    console.print(f"[green]✓ Card {card_id} updated[/green]")


@app.command()
def delete(
    card_id: int = typer.Argument(..., help="Card id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Delete a card."""
    wallet = _context().wallet
    wallet.load_cards()
    card = _find(wallet, card_id)
    if not yes and not typer.confirm(f"Delete {card.label}?", default=False):
        console.print("[dim]Aborted.[/dim]")
        raise typer.Exit(code=0)
    try:
        wallet.delete_card(card)
    except CardWalletError as e:
        raise _fail(e, "delete")
    console.print(f"[green]✓ Deleted {card.label}[/green]")


@app.command()
def sync() -> None:
    """Merge cards saved on this device into your account now."""
    ctx = _context()
    wallet = ctx.wallet
    if not wallet.auth.is_authenticated:
        console.print("[bold red]Log in first to sync cards.[/bold red]")
        raise typer.Exit(code=2)
    wallet.load_cards()
    if wallet.load_error is not None:
        console.print(Panel(f"[bold red]Could not load your cards:[/bold red] {wallet.load_error}",
                            border_style="red"))
        raise typer.Exit(code=1)
    ctx.reconciler.sync_local_cards()
    ctx.reconciler.has_synced = True
    _finish_sync(ctx.reconciler)


@app.command("export-vcard")
def export_vcard_cmd(
    card_id: int | None = typer.Argument(None, help="Card id; omit to export every business card"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Explicit output .vcf path"),
) -> None:
    """Export business cards as vCard (.vcf)."""
    ctx = _context()
    wallet = ctx.wallet
    wallet.load_cards()
    if card_id is not None:
        card = _find(wallet, card_id)
        if output is None:
            console.print(export_vcard(card, ctx.default_region), highlight=False)
            return
        cards = [card]
    else:
        cards = [c for c in wallet.cards if c.type == "business"]
    out_path = output or ctx.export_dir / "business-cards.vcf"
    count = export_vcards(cards, out_path, ctx.default_region)
    console.print(f"[bold green]✓ Wrote {count} card(s) → {out_path}[/bold green]")


if __name__ == "__main__":
    app()
