"""pagescout CLI - Typer-based command line interface."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from pagescout import __version__
from pagescout.config import ConfigurationError, DiscoveryConfig, RENDERERS, load_config
from pagescout.discovery.orchestrator import DiscoveryResult, discover
from pagescout.log import configure_logging

app = typer.Typer(
    name="pagescout",
    help="pagescout - find the pages of a website from its sitemaps and links",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


def write_urls(path: Path, urls: list[str]) -> None:
    """Write the discovered URL list as a JSON array."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(urls, f, indent=2)
        f.write("\n")


def show_summary(result: DiscoveryResult, output: Path) -> None:
    """Print a summary table of a discovery run."""
    table = Table(title="Discovery Summary")
    table.add_column("Source", style="cyan")
    table.add_column("URLs", justify="right")

    table.add_row("Sitemaps", str(len(result.sitemap_urls)))
    table.add_row("Crawl", str(len(result.crawled_urls)))
    table.add_row("[bold]Total (deduplicated)[/]", f"[bold]{len(result.urls)}[/]")
    console.print(table)

    if result.failed_sitemaps:
        console.print(f"[yellow]⚠ {len(result.failed_sitemaps)} sitemap(s) skipped:[/]")
        for url in result.failed_sitemaps:
            console.print(f"  • {url}")
    if result.crawl_errors:
        console.print(f"[yellow]⚠ {len(result.crawl_errors)} page(s) failed to load[/]")

    console.print(f"\n[green]✓[/] Discovered {len(result.urls)} URL(s). Written to {output}")


@app.command("discover")
def discover_command(
    base: Annotated[str, typer.Option("--base", "-b", help="Base URL of the site")],
    sitemap: Annotated[
        str | None, typer.Option("--sitemap", "-s", help="Extra sitemap URL to harvest")
    ] = None,
    max_pages: Annotated[
        int | None, typer.Option("--max-pages", help="Maximum pages to crawl")
    ] = None,
    max_depth: Annotated[int | None, typer.Option("--max-depth", help="Maximum link depth")] = None,
    concurrency: Annotated[
        int | None, typer.Option("--concurrency", "-c", help="Pages loaded in parallel")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Per-page timeout in seconds")
    ] = None,
    ignore_robots: Annotated[
        bool, typer.Option("--ignore-robots", help="Ignore robots.txt while crawling")
    ] = False,
    renderer: Annotated[
        str | None,
        typer.Option("--renderer", "-r", help=f"Page loader: {', '.join(RENDERERS)}"),
    ] = None,
    headed: Annotated[
        bool, typer.Option("--headed", help="Show the browser window")
    ] = False,
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Where to write the URL list")
    ] = Path("urls.json"),
    config_file: Annotated[
        Path | None, typer.Option("--config", help="Custom config file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Discover the pages of a site and write them to a JSON file."""
    configure_logging(verbose)

    if not base.startswith(("http://", "https://")):
        base = f"https://{base}"

    try:
        config = DiscoveryConfig.from_dict(
            base,
            load_config(config_file),
            sitemap_url=sitemap,
            max_pages=max_pages,
            max_depth=max_depth,
            concurrency=concurrency,
            timeout=timeout,
            renderer=renderer,
            respect_robots=False if ignore_robots else None,
            headless=False if headed else None,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    console.print(f"\n[bold]Target:[/] {config.base_url}")
    console.print(
        f"[bold]Limits:[/] {config.max_pages} pages, depth {config.max_depth}, "
        f"concurrency {config.concurrency}"
    )
    console.print(f"[bold]Renderer:[/] {config.renderer}\n")

    try:
        result = asyncio.run(discover(config))
    except (ConfigurationError, ImportError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Discovery interrupted by user.[/]")
        raise typer.Exit(130)

    write_urls(output, result.urls)
    show_summary(result, output)


@app.command()
def version() -> None:
    """Show the pagescout version."""
    console.print(f"pagescout {__version__}")


if __name__ == "__main__":
    app()
