"""Daily run command.

Runs the full daily sequence: local backup, archives, monthly offload
and shared staging, then cleanup with exit code 0.
"""

import typer

from dailyctl.cli.types import open_session
from dailyctl.daily import run_daily

app = typer.Typer(
    help="Run the daily maintenance sequence.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def run(ctx: typer.Context) -> None:
    """Run every daily maintenance step in order.

    Examples:
        dailyctl run
        dailyctl --verbose run
    """
    if ctx.invoked_subcommand is not None:
        return

    with open_session(ctx, "dailyctl run") as session:
        run_daily(session)
