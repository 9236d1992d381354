#!/usr/bin/env python3
"""cardwallet — card wallet client.  Run with:  python3 start.py <command>"""
import sys
import os
from pathlib import Path

script_dir = os.path.dirname(os.path.abspath(__file__))
src_dir    = os.path.join(script_dir, "src")

sys.path.insert(0, src_dir)
os.environ["PYTHONPATH"] = src_dir + os.pathsep + os.environ.get("PYTHONPATH", "")
os.chdir(script_dir)

# ── First-run detection ───────────────────────────────────────────────────────
# No local config yet means cardwallet has never run from this folder
def _first_run() -> bool:
    return not (Path(script_dir) / "local" / "cardwallet.conf").exists()

def _welcome() -> None:
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console()
    console.print()
    console.print(Panel(
        Text.from_markup(
            "[bold #4d9fff]Welcome to cardwallet[/]\n\n"
            "Cards you add while logged out are kept on this device in [bold]var/[/].\n"
            "The next time you log in they are merged into your account; if a card\n"
            "already exists there with different details, you choose which version to keep.\n\n"
            "  [bold #4d9fff]local/cardwallet.conf[/]   Server address and other settings\n"
            "  [bold #3ecf8e]cards-export/[/]           vCard files written by  export-vcard\n\n"
            "[dim]Try  python3 start.py --help  to see every command.[/]"
        ),
        title=Text("  Getting Started  ", style="dim #546075"),
        title_align="left",
        border_style="#2a3347",
        padding=(1, 2),
    ))
    console.print()

if _first_run():
    _welcome()

from cardwallet.cli import app
app()
