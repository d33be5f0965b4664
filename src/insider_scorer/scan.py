"""Batch scan: discover recently active accounts and score the stale ones."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from insider_scorer.scoring.alerts import classify_alert_tier
from insider_scorer.scoring.engine import InsiderScorer
from insider_scorer.scoring.market_cache import SessionScope
from insider_scorer.scoring.models import Venue
from insider_scorer.scoring.utils import now_unix
from insider_scorer.storage.repos import AccountRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACCOUNTS = 10
DEFAULT_RESCORE_TTL_SECONDS = 2 * 60 * 60
DEFAULT_DISCOVERY_LIMIT = 500


class TraderDiscovery(Protocol):
    async def get_recent_traders(self, limit: int = DEFAULT_DISCOVERY_LIMIT) -> list[str]: ...


@dataclass(frozen=True)
class ScanSummary:
    """Outcome of one scan run.

    Attributes:
        scanned: Accounts scored successfully.
        new_alerts: Scored accounts whose score crossed the alert threshold.
        discovered: Accounts found by discovery (before filtering).
        errors: One "address…: message" entry per failed account.
    """

    scanned: int
    new_alerts: int
    discovered: int
    errors: list[str] = field(default_factory=list)


class ScanRunner:
    """Scores up to ``max_accounts`` recently active, not recently scored accounts."""

    def __init__(
        self,
        scorer: InsiderScorer,
        discovery: TraderDiscovery,
        session_scope: SessionScope,
        *,
        venue: Venue = Venue.POLYMARKET,
        max_accounts: int = DEFAULT_MAX_ACCOUNTS,
        rescore_ttl_seconds: int = DEFAULT_RESCORE_TTL_SECONDS,
        discovery_limit: int = DEFAULT_DISCOVERY_LIMIT,
        clock: Callable[[], int] = now_unix,
    ) -> None:
        self.scorer = scorer
        self.discovery = discovery
        self._session_scope = session_scope
        self.venue = venue
        self.max_accounts = max_accounts
        self.rescore_ttl_seconds = rescore_ttl_seconds
        self.discovery_limit = discovery_limit
        self._clock = clock

    async def run(self) -> ScanSummary:
        """Run one scan.

        Discovery failures propagate. Failures scoring an individual account
        are recorded in ``errors`` and the scan moves on.
        """
        accounts = await self.discovery.get_recent_traders(self.discovery_limit)

        since = datetime.fromtimestamp(self._clock() - self.rescore_ttl_seconds, tz=UTC)
        async with self._session_scope() as session:
            fresh = await AccountRepository(session).list_recently_scored(
                since=since, account_ids=accounts
            )

        scanned = 0
        new_alerts = 0
        errors: list[str] = []

        for account_id in accounts:
            if scanned >= self.max_accounts:
                break
            if account_id in fresh:
                continue
            try:
                result = await self.scorer.score_account(account_id, self.venue)
            except Exception as e:
                logger.warning("Failed to score %s: %s", account_id[:10], e)
                errors.append(f"{account_id[:10]}…: {e}")
                continue
            scanned += 1
            if classify_alert_tier(result.total_score) is not None:
                new_alerts += 1

        logger.info(
            "Scan finished: %d scanned, %d alerts, %d discovered, %d errors",
            scanned,
            new_alerts,
            len(accounts),
            len(errors),
        )
        return ScanSummary(
            scanned=scanned,
            new_alerts=new_alerts,
            discovered=len(accounts),
            errors=errors,
        )
