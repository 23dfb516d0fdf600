# =============================================================================
# utils/csv_utils.py - Inventory CSV export
# =============================================================================

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from core.models import InventoryRow

INVENTORY_FIELDNAMES = [
    'ComputerName', 'OperatingSystem', 'LastLogonDate', 'HasRecoveryKeyInAD',
    'RecoveryKeyCountAD', 'EncryptionDate', 'DistinguishedName'
]
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ExportError(Exception):
    """Inventory could not be written to the requested destination"""


def default_export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"BitLockerInventory_{now:%Y%m%d_%H%M%S}.csv"


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def sanitize_field(value) -> str:
    """
    Make a value safe for the unquoted output format.

    Commas become semicolons and line breaks become spaces. This is the only
    collision handling; fields are never quoted, so the output is not RFC 4180.
    """
    text = "" if value is None else str(value)
    text = text.replace(',', ';')
    return ' '.join(text.splitlines()) if ('\n' in text or '\r' in text) else text


def row_to_fields(row: InventoryRow) -> List[str]:
    return [
        sanitize_field(row.computer_name),
        sanitize_field(row.operating_system),
        format_timestamp(row.last_logon_date),
        str(row.has_recovery_key),
        str(row.recovery_key_count),
        format_timestamp(row.encryption_date),
        sanitize_field(row.distinguished_name),
    ]


def export_inventory_csv(rows: Sequence[InventoryRow], output_path: str) -> int:
    """Write rows with a header line; returns the number of rows written"""
    logger = logging.getLogger(__name__)

    try:
        with open(output_path, 'w', newline='', encoding='utf-8') as file:
            file.write(','.join(INVENTORY_FIELDNAMES) + '\n')
            for row in rows:
                file.write(','.join(row_to_fields(row)) + '\n')
    except OSError as e:
        logger.error(f"Error writing CSV to {output_path}: {e}")
        raise ExportError(f"Could not write {output_path}: {e}") from e

    if not rows:
        logger.warning(f"No rows to export, wrote header only to {output_path}")
    else:
        logger.info(f"Successfully wrote {len(rows)} records to {output_path}")
    return len(rows)
