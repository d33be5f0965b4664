"""
Command-line interface for the insider scorer.

Usage:
    insider-scorer init-db
    insider-scorer score 0x1234... --venue polymarket [--force]
    insider-scorer scan --limit 10
    insider-scorer alerts --limit 20
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from insider_scorer.config import Settings, get_settings
from insider_scorer.scan import ScanRunner
from insider_scorer.scoring.engine import InsiderScorer
from insider_scorer.scoring.market_cache import MarketCache
from insider_scorer.scoring.models import ScoringResult, Venue
from insider_scorer.storage.database import DatabaseManager
from insider_scorer.storage.repos import AlertRepository
from insider_scorer.venues.base import RateLimiter, VenueAdapter
from insider_scorer.venues.kalshi import KalshiAdapter, KalshiSigner
from insider_scorer.venues.polymarket import PolymarketAdapter

app = typer.Typer(
    name="insider-scorer",
    help="Score prediction-market accounts for insider-trading behavior (Polymarket, Kalshi)",
    add_completion=False,
)

console = Console()


def setup_logging(settings: Settings, debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else settings.get_logging_level()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_polymarket_adapter(settings: Settings) -> PolymarketAdapter:
    return PolymarketAdapter.create(
        data_api_url=settings.polymarket.data_api_url,
        gamma_api_url=settings.polymarket.gamma_api_url,
        rate_limiter=RateLimiter(
            capacity=settings.polymarket.burst,
            refill_rate=settings.polymarket.requests_per_second,
        ),
        trade_limit=settings.scoring.trade_limit,
        activity_limit=settings.scoring.activity_limit,
    )


def build_kalshi_adapter(settings: Settings) -> KalshiAdapter:
    signer = None
    pem = settings.kalshi.load_private_key_pem()
    if settings.kalshi.api_key_id and pem:
        signer = KalshiSigner.from_pem(settings.kalshi.api_key_id, pem)
    return KalshiAdapter.create(
        api_url=settings.kalshi.api_url,
        signer=signer,
        owner_id=settings.kalshi.account_id,
        rate_limiter=RateLimiter(
            capacity=settings.kalshi.burst,
            refill_rate=settings.kalshi.requests_per_second,
        ),
        fill_limit=settings.scoring.trade_limit,
    )


def build_scorer(
    settings: Settings,
    db: DatabaseManager,
    adapters: dict[Venue, VenueAdapter],
) -> InsiderScorer:
    market_cache = MarketCache(
        db.get_async_session,
        ttl_seconds=settings.scoring.market_cache_ttl_seconds,
        batch_size=settings.scoring.market_fetch_batch_size,
    )
    return InsiderScorer(db.get_async_session, adapters, market_cache=market_cache)


def _database(settings: Settings) -> DatabaseManager:
    return DatabaseManager(settings.database.url, echo=settings.database.echo)


def print_result(result: ScoringResult) -> None:
    table = Table(title=f"{result.account_id} ({result.venue.value})")
    table.add_column("Signal")
    table.add_column("Raw", justify="right")
    table.add_column("Weighted", justify="right")
    table.add_column("Details")
    for name, signal in result.signals.items():
        table.add_row(name, f"{signal.raw:.2f}", f"{signal.weighted:.1f}/{signal.weight}", signal.details)
    console.print(table)
    console.print(
        f"[bold]Score: {result.total_score}/100[/bold]  "
        f"volume ${result.metadata.total_volume:,.2f}, "
        f"PnL ${result.metadata.total_pnl:,.2f}, "
        f"{result.metadata.trade_count} trades"
    )


@app.command("init-db")
def init_db() -> None:
    """Create database tables (use alembic for managed deployments)."""
    settings = get_settings()
    setup_logging(settings)

    async def run() -> None:
        db = _database(settings)
        try:
            await db.init_schema_async()
        finally:
            await db.dispose_async()

    asyncio.run(run())
    console.print("[green]Database schema initialized[/green]")


@app.command()
def score(
    account: str = typer.Argument(..., help="Wallet address or venue account id"),
    venue: Venue = typer.Option(Venue.POLYMARKET, "--venue", "-v", help="Venue to score on"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Rescore even if a recent score is stored"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """Score one account and store the result.

    A score younger than SCORING_RESCORE_TTL_SECONDS is shown without
    rescoring unless --force is given.
    """
    settings = get_settings()
    setup_logging(settings, debug)
    try:
        settings.validate_requirements(venue=venue.value)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2) from e

    async def run() -> ScoringResult:
        db = _database(settings)
        adapter: VenueAdapter
        if venue is Venue.KALSHI:
            adapter = build_kalshi_adapter(settings)
        else:
            adapter = build_polymarket_adapter(settings)
        try:
            scorer = build_scorer(settings, db, {venue: adapter})
            max_age = None if force else settings.scoring.rescore_ttl_seconds
            return await scorer.score_account(account, venue, max_age_seconds=max_age)
        finally:
            await adapter.aclose()
            await db.dispose_async()

    print_result(asyncio.run(run()))


@app.command()
def scan(
    limit: int | None = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum accounts to score (defaults to SCORING_MAX_ACCOUNTS_PER_SCAN)",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """Discover recently active Polymarket wallets and score the stale ones."""
    settings = get_settings()
    setup_logging(settings, debug)

    async def run() -> None:
        db = _database(settings)
        adapter = build_polymarket_adapter(settings)
        try:
            runner = ScanRunner(
                build_scorer(settings, db, {Venue.POLYMARKET: adapter}),
                adapter,
                db.get_async_session,
                max_accounts=limit or settings.scoring.max_accounts_per_scan,
                rescore_ttl_seconds=settings.scoring.rescore_ttl_seconds,
                discovery_limit=settings.scoring.discovery_limit,
            )
            summary = await runner.run()
        finally:
            await adapter.aclose()
            await db.dispose_async()

        console.print(
            f"Scanned {summary.scanned} of {summary.discovered} discovered accounts, "
            f"{summary.new_alerts} new alerts"
        )
        for error in summary.errors:
            console.print(f"[red]{error}[/red]")

    asyncio.run(run())


@app.command()
def alerts(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of alerts to show"),
    account: str | None = typer.Option(None, "--account", "-a", help="Only alerts for this account"),
) -> None:
    """Show the most recent alerts."""
    settings = get_settings()
    setup_logging(settings)

    async def run() -> None:
        db = _database(settings)
        try:
            async with db.get_async_session() as session:
                rows = await AlertRepository(session).list_recent(account_id=account, limit=limit)
        finally:
            await db.dispose_async()

        table = Table(title="Alerts")
        table.add_column("Created")
        table.add_column("Tier")
        table.add_column("Account")
        table.add_column("Score", justify="right")
        table.add_column("Details")
        for alert in rows:
            table.add_row(
                alert.created_at.strftime("%Y-%m-%d %H:%M"),
                alert.tier.value,
                alert.account_id,
                str(alert.score_at_time),
                alert.details,
            )
        console.print(table)

    asyncio.run(run())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
