# =============================================================================
# core/policy.py - Endpoint exclusion and staleness policy
# =============================================================================

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from core.models import EndpointRecord

logger = logging.getLogger(__name__)


def is_server(endpoint: EndpointRecord) -> bool:
    """Server iff the OS string mentions 'server'; blank OS is never a server"""
    os_name = endpoint.operating_system or ""
    return "server" in os_name.lower()


def is_recent(endpoint: EndpointRecord, cutoff: datetime) -> bool:
    """Seen at or after cutoff; never-seen endpoints are not recent"""
    return endpoint.last_logon is not None and endpoint.last_logon >= cutoff


def apply_policy(endpoints: Sequence[EndpointRecord], include_servers: bool = False,
                 max_last_logon_age_days: int = 0,
                 now: Optional[datetime] = None) -> List[EndpointRecord]:
    """
    Keep the endpoints that are in scope for the inventory.

    Servers are dropped unless include_servers is set. When
    max_last_logon_age_days is positive, endpoints not seen within that many
    days of now (or never seen) are dropped as well. Input order is preserved.
    """
    if max_last_logon_age_days < 0:
        raise ValueError("max_last_logon_age_days must be zero or positive")

    cutoff = None
    if max_last_logon_age_days > 0:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=max_last_logon_age_days)

    kept = []
    servers_dropped = 0
    stale_dropped = 0
    for endpoint in endpoints:
        if not include_servers and is_server(endpoint):
            servers_dropped += 1
            continue
        if cutoff is not None and not is_recent(endpoint, cutoff):
            stale_dropped += 1
            continue
        kept.append(endpoint)

    if not include_servers:
        logger.info(f"Excluded {servers_dropped} server endpoints")
    if cutoff is not None:
        logger.info(f"Excluded {stale_dropped} endpoints not seen since {cutoff:%Y-%m-%d}")
    logger.info(f"{len(kept)} of {len(endpoints)} endpoints in scope")
    return kept
