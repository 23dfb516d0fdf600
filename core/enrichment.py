# =============================================================================
# core/enrichment.py - Recovery key escrow enrichment
# =============================================================================

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from ldap3.core.exceptions import LDAPException

from core.ad_client import DirectoryQueryError
from core.models import EndpointRecord, EscrowLookupStatus, InventoryRow

PROGRESS_INTERVAL = 100


class EnrichmentEngine:
    """Turns endpoint records into inventory rows by counting their escrowed keys"""

    def __init__(self, ad_client, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.ad_client = ad_client
        self.max_workers = max_workers
        self.logger = logging.getLogger(self.__class__.__name__)

    def enrich(self, endpoint: EndpointRecord) -> InventoryRow:
        """
        Build the inventory row for one endpoint.

        A failed escrow query yields a zero-key row flagged QUERY_FAILED
        instead of an exception, so one denied subtree cannot sink the run.
        The encryption date is the newest escrow object's whenCreated, which
        approximates (but does not prove) when encryption happened.
        """
        status = EscrowLookupStatus.OK
        try:
            children = self.ad_client.list_escrow_children(endpoint.distinguished_name)
        except (DirectoryQueryError, LDAPException) as e:
            self.logger.warning(f"Recovery key lookup failed for {endpoint.name}, recording as no keys: {e}")
            children = []
            status = EscrowLookupStatus.QUERY_FAILED

        count = len(children)
        encryption_date = max(child.created for child in children) if children else None

        return InventoryRow(
            computer_name=endpoint.name,
            operating_system=endpoint.operating_system,
            last_logon_date=endpoint.last_logon,
            has_recovery_key=count > 0,
            recovery_key_count=count,
            encryption_date=encryption_date,
            distinguished_name=endpoint.distinguished_name,
            lookup_status=status
        )

    def enrich_all(self, endpoints: Sequence[EndpointRecord]) -> List[InventoryRow]:
        """Enrich every endpoint; result order is unspecified"""
        self.logger.info(f"Enriching {len(endpoints)} endpoints with {self.max_workers} worker(s)")

        if self.max_workers == 1:
            return [self._enrich_with_progress(i, endpoint, len(endpoints))
                    for i, endpoint in enumerate(endpoints, start=1)]

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="enrich") as executor:
            futures = [executor.submit(self._enrich_with_progress, i, endpoint, len(endpoints))
                       for i, endpoint in enumerate(endpoints, start=1)]
            return [future.result() for future in futures]

    def _enrich_with_progress(self, index: int, endpoint: EndpointRecord, total: int) -> InventoryRow:
        row = self.enrich(endpoint)
        if index % PROGRESS_INTERVAL == 0:
            self.logger.info(f"Processed {index}/{total} endpoints")
        return row
