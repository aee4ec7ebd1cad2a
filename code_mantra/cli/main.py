"""Code Mantra CLI — Entry point.

Usage:
    code-mantra replay <events.jsonl> [--config FILE] [--seed N] [--until SECONDS]
    code-mantra rules validate [--config FILE]
    code-mantra version
"""

from __future__ import annotations

import typer
from rich.console import Console

from code_mantra.cli.commands import replay, rules

app = typer.Typer(
    name="code-mantra",
    help="Code Mantra — reminder trigger engine for editor activity.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.command("replay")(replay.replay_command)
app.add_typer(rules.app, name="rules")


@app.command("version")
def version() -> None:
    """Print the installed version."""
    from code_mantra import __version__

    console.print(f"code-mantra {__version__}")


if __name__ == "__main__":
    app()
