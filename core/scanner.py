# =============================================================================
# core/scanner.py - Inventory scan workflow
# =============================================================================

import logging
from datetime import datetime
from typing import Optional

from core.enrichment import EnrichmentEngine
from core.models import InventoryReport
from core.policy import apply_policy
from core.report import aggregate


class InventoryScanner:
    """Runs discovery, policy, enrichment and aggregation against one AD client"""

    def __init__(self, ad_client, include_servers: bool = False,
                 max_last_logon_age_days: int = 0, max_workers: int = 1):
        self.ad_client = ad_client
        self.include_servers = include_servers
        self.max_last_logon_age_days = max_last_logon_age_days
        self.engine = EnrichmentEngine(ad_client, max_workers=max_workers)
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, scope: Optional[str] = None, now: Optional[datetime] = None) -> InventoryReport:
        """Scan once and return the finished report"""
        self.logger.info(f"Starting BitLocker inventory scan (scope: {scope or 'entire directory'})")

        endpoints = self.ad_client.list_endpoints(scope)
        in_scope = apply_policy(
            endpoints,
            include_servers=self.include_servers,
            max_last_logon_age_days=self.max_last_logon_age_days,
            now=now
        )
        rows = self.engine.enrich_all(in_scope)
        report = aggregate(rows, generated_at=now)

        self.log_statistics(report)
        return report

    def log_statistics(self, report: InventoryReport) -> None:
        summary = report.summary
        self.logger.info(f"Key coverage: {summary.coverage_rate:.1f}% ({summary.with_key}/{summary.total})")
        if summary.failed_lookups:
            self.logger.warning(f"{summary.failed_lookups} endpoints could not be queried for recovery keys "
                                f"and are counted as without keys")
