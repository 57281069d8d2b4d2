import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown

load_dotenv()
app = typer.Typer(help="Compare Bluesky follower/following lists.")
console = Console()


async def _run_compare(handles: list[str], kind: str):
    from venn_sky.cache import CacheStore
    from venn_sky.fetchers.lists import ListFetcher
    from venn_sky.orchestrator import compare_accounts
    from venn_sky.platforms.bluesky.client import BlueskyClient

    async with BlueskyClient() as client:
        fetcher = ListFetcher(client, CacheStore.from_env())
        return await compare_accounts(handles, kind, fetcher)


@app.command()
def compare(
    handles: list[str] = typer.Argument(help="Two or more Bluesky handles, with or without @"),
    kind: str = typer.Option("followers", "--type", "-t", help="List to compare: 'followers' or 'following'"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save report to file instead of printing"),
    show: int = typer.Option(20, "--show", "-n", help="Accounts listed per section"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every page request"),
):
    if kind not in ("followers", "following"):
        console.print(f"[bold red]Error:[/] --type must be 'followers' or 'following', got '{kind}'")
        raise typer.Exit(1)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from venn_sky.orchestrator import ComparisonError

    with console.status(f"[bold green]Fetching {kind} for {len(handles)} accounts..."):
        try:
            report = asyncio.run(_run_compare(handles, kind))
        except ComparisonError as exc:
            console.print(f"[bold red]Error:[/] {exc}")
            raise typer.Exit(1)

    from venn_sky.formatter import format_comparison_report
    md = format_comparison_report(report, show=show)

    if output:
        output.write_text(md)
        console.print(f"[bold green]✓[/] Report saved to [cyan]{output}[/]")
    else:
        console.print(Markdown(md))


if __name__ == "__main__":
    app()
