# =============================================================================
# core/models.py - Inventory data models
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class EscrowLookupStatus(Enum):
    """Outcome of the recovery-escrow subquery for one endpoint"""
    OK = "ok"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class EndpointRecord:
    """Computer object as returned by the directory"""
    distinguished_name: str
    name: str
    operating_system: str = ""
    last_logon: Optional[datetime] = None


@dataclass(frozen=True)
class RecoveryEscrowObject:
    """msFVE-RecoveryInformation child of a computer object"""
    parent_dn: str
    created: datetime


@dataclass(frozen=True)
class InventoryRow:
    """
    One enriched endpoint, ready for display and export.

    encryption_date is the creation time of the newest escrow object. It is a
    proxy for when the volume was encrypted, not a record of the event itself.
    """
    computer_name: str
    operating_system: str
    last_logon_date: Optional[datetime]
    has_recovery_key: bool
    recovery_key_count: int
    encryption_date: Optional[datetime]
    distinguished_name: str
    lookup_status: EscrowLookupStatus = EscrowLookupStatus.OK

    def __post_init__(self):
        if self.recovery_key_count < 0:
            raise ValueError(f"Negative recovery key count for {self.distinguished_name}")
        if self.has_recovery_key != (self.recovery_key_count > 0):
            raise ValueError(f"has_recovery_key disagrees with count for {self.distinguished_name}")
        if (self.encryption_date is not None) != self.has_recovery_key:
            raise ValueError(f"encryption_date must be set iff a key exists for {self.distinguished_name}")

    @property
    def lookup_failed(self) -> bool:
        return self.lookup_status == EscrowLookupStatus.QUERY_FAILED


@dataclass(frozen=True)
class InventorySummary:
    """Key escrow counts for one report"""
    with_key: int = 0
    without_key: int = 0
    failed_lookups: int = 0

    @property
    def total(self) -> int:
        return self.with_key + self.without_key

    @property
    def coverage_rate(self) -> float:
        """Percentage of devices with at least one escrowed key"""
        if self.total == 0:
            return 0.0
        return (self.with_key / self.total) * 100


@dataclass(frozen=True)
class InventoryReport:
    """Sorted rows plus summary, immutable once aggregated"""
    rows: Tuple[InventoryRow, ...] = ()
    summary: InventorySummary = field(default_factory=InventorySummary)
    generated_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)
