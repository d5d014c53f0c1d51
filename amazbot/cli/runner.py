# amazbot/cli/runner.py

"""Headless CLI commands: one-off extraction, health check, bot mode."""

import asyncio
import logging

from rich.console import Console
from rich.table import Table

from amazbot.config.domains import get_profile
from amazbot.config.settings import Settings
from amazbot.errors import AmazbotError
from amazbot.models.extraction import Extraction
from amazbot.models.search_key import SearchKey
from amazbot.scrapers.amazon_scraper import AmazonScraper
from amazbot.scrapers.fetcher import DocumentFetcher
from amazbot.scrapers.transport import SessionTransport
from amazbot.services.captcha_client import CaptchaSolver

logger = logging.getLogger("amazbot.cli")

# Stderr console for status messages so stdout stays clean
_err = Console(stderr=True)

_CLI_DESTINATION = "cli"


def _print_extraction(extraction: Extraction) -> None:
    """Render a Rich table with the price of every condition tier."""
    profile = get_profile(extraction.domain)
    table = Table(
        title=extraction.title[:80],
        caption=extraction.link,
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Condition")
    table.add_column("Price", justify="right", style="green")

    for tier, price in extraction.prices.items():
        price_str = (
            f"{price:,.2f} {profile.currency}" if price > 0 else "—"
        )
        table.add_row(str(int(tier)), profile.tier_label(tier), price_str)

    Console().print(table)


def run_check(
    raw_key: str,
    captcha_url: str,
    proxy_url: str = "",
) -> int:
    """Scrape one ``<code>.<domain>`` once and print its prices."""
    try:
        key = SearchKey.parse(raw_key, _CLI_DESTINATION)
        transport = SessionTransport(proxy_url)
    except AmazbotError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1

    _err.print(
        f"[bold]Checking:[/bold] {key.product_id} "
        f"[dim]amazon.{key.domain}[/dim]"
    )
    try:
        fetcher = DocumentFetcher(transport, CaptchaSolver(captcha_url))
        fetcher.ensure_session(key.domain)
        extraction = AmazonScraper(fetcher).scrape(
            key.product_id, key.domain,
        )
    except AmazbotError as exc:
        logger.error("Check failed for %s: %s", key.query, exc)
        _err.print(f"[red]Error: {exc}[/red]")
        return 1
    finally:
        transport.close()

    _print_extraction(extraction)
    if not extraction.prices_found:
        _err.print("[yellow]No offer prices found.[/yellow]")
        return 1
    return 0


async def run_health_check(captcha_url: str, proxy_url: str = "") -> int:
    """Probe every marketplace and the captcha solver."""
    from amazbot.services.health_checker import HealthChecker

    _err.print("[bold]Running health check...[/bold]")
    try:
        solver = CaptchaSolver(captcha_url)
    except AmazbotError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    checker = HealthChecker(solver, proxy_url=proxy_url)
    results = await checker.check_all()

    table = Table(
        title="Marketplace Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status in ("slow", "captcha"):
            status = f"[yellow]⚠️  {r.status.upper()}[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.source_id, status, latency, r.message,
        )

    Console().print(table)
    return 1 if any_down else 0


def run_bot_mode(
    token: str,
    captcha_url: str,
    proxy_url: str = "",
    admin_id: int = 0,
    user_ids: list[int] | None = None,
) -> int:
    """Run the Telegram bot until interrupted."""
    from amazbot.services.bot import run_bot

    if not token:
        _err.print("[red]Telegram token not provided (--token).[/red]")
        return 1
    try:
        asyncio.run(
            run_bot(
                token=token,
                db_path=Settings.DB_PATH,
                captcha_url=captcha_url,
                proxy_url=proxy_url,
                admin_id=admin_id,
                user_ids=user_ids,
            )
        )
    except AmazbotError as exc:
        logger.critical("amazbot failed to start: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return 1
    return 0
