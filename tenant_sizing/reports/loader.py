"""
CSV report loading.

Parses downloaded usage-detail, storage-history and archive-statistics
exports into immutable records. Loading is strict: a row with a missing
or unparseable required column aborts the load with its row number.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

from tenant_sizing.core.errors import MalformedRecordError
from .models import HistoricalSample, MailboxArchiveStat, RecipientType, UsageRecord, Workload

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ReportSchema:
    """Column names of a usage-detail export."""
    identifier: str
    bytes_used: str
    item_count: str
    is_deleted: str = "Is Deleted"
    recipient_type: Optional[str] = None
    has_archive: Optional[str] = None


REPORT_SCHEMAS: Dict[Workload, ReportSchema] = {
    Workload.MAIL: ReportSchema(
        identifier="User Principal Name",
        bytes_used="Storage Used (Byte)",
        item_count="Item Count",
        recipient_type="Recipient Type",
        has_archive="Has Archive",
    ),
    Workload.FILE_SYNC: ReportSchema(
        identifier="Owner Principal Name",
        bytes_used="Storage Used (Byte)",
        item_count="File Count",
    ),
    Workload.SITES: ReportSchema(
        identifier="Site URL",
        bytes_used="Storage Used (Byte)",
        item_count="File Count",
    ),
}

HISTORY_DATE = "Report Date"
HISTORY_PERIOD = "Report Period"
HISTORY_BYTES = "Storage Used (Byte)"
HISTORY_TYPE = "Site Type"

ARCHIVE_MAILBOX = "Mailbox"
ARCHIVE_BYTES = "Archive Size (Byte)"
ARCHIVE_ITEMS = "Archive Item Count"

_RECIPIENT_TYPES = {
    "user": RecipientType.USER,
    "shared": RecipientType.SHARED,
    "room": RecipientType.SHARED,
    "equipment": RecipientType.SHARED,
}

_TRUE = {"true", "yes", "1"}
_FALSE = {"false", "no", "0"}


def load_usage_report(path: PathLike, workload: Workload) -> List[UsageRecord]:
    """Load a usage-detail export for a workload.

    Args:
        path: CSV file path
        workload: Workload the report describes

    Returns:
        One UsageRecord per row

    Raises:
        FileNotFoundError: If the report doesn't exist
        MalformedRecordError: If a row is missing or has an invalid value
    """
    schema = REPORT_SCHEMAS[workload]
    records = []
    for line, row in _read_rows(path):
        reader = _RowReader(str(path), line, row)
        recipient_type = RecipientType.SITE if workload == Workload.SITES else None
        if schema.recipient_type is not None:
            recipient_type = reader.recipient_type(schema.recipient_type)

        records.append(UsageRecord(
            identifier=reader.text(schema.identifier),
            bytes_used=reader.integer(schema.bytes_used),
            item_count=reader.integer(schema.item_count),
            is_deleted=reader.boolean(schema.is_deleted),
            recipient_type=recipient_type,
            has_archive=reader.boolean(schema.has_archive) if schema.has_archive else False,
            attributes={k: (v or "").strip() for k, v in row.items() if k},
        ))

    logger.info("Loaded %d %s usage records from %s", len(records), workload.value, path)
    return records


def load_history_report(path: PathLike) -> List[HistoricalSample]:
    """Load a storage-history export.

    The workload type column is optional; it is only present in
    mixed-workload site histories.
    """
    samples = []
    for line, row in _read_rows(path):
        reader = _RowReader(str(path), line, row)
        workload_type = (row.get(HISTORY_TYPE) or "").strip() or None
        samples.append(HistoricalSample(
            report_date=reader.date(HISTORY_DATE),
            report_period_days=reader.integer(HISTORY_PERIOD),
            bytes_used=reader.integer(HISTORY_BYTES),
            workload_type=workload_type,
        ))

    logger.info("Loaded %d history samples from %s", len(samples), path)
    return samples


def load_archive_stats(path: PathLike) -> List[MailboxArchiveStat]:
    """Load per-mailbox archive statistics."""
    stats = []
    for line, row in _read_rows(path):
        reader = _RowReader(str(path), line, row)
        stats.append(MailboxArchiveStat(
            mailbox_id=reader.text(ARCHIVE_MAILBOX),
            archive_bytes=reader.integer(ARCHIVE_BYTES),
            archive_item_count=reader.integer(ARCHIVE_ITEMS),
        ))

    logger.info("Loaded archive statistics for %d mailboxes from %s", len(stats), path)
    return stats


def load_membership_filter(path: PathLike) -> FrozenSet[str]:
    """Load a membership filter, one identifier per line.

    Blank lines and lines starting with ``#`` are ignored.
    """
    filter_path = Path(path)
    if not filter_path.exists():
        raise FileNotFoundError(f"Membership file not found: {path}")

    with open(filter_path, "r", encoding="utf-8-sig") as f:
        members = {
            line.strip() for line in f
            if line.strip() and not line.strip().startswith("#")
        }
    logger.info("Loaded %d members from %s", len(members), path)
    return frozenset(members)


def _read_rows(path: PathLike):
    """Yield (line number, row) pairs from a CSV export."""
    report_path = Path(path)
    if not report_path.exists():
        raise FileNotFoundError(f"Report file not found: {path}")

    # Exports carry a UTF-8 byte order mark
    with open(report_path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            yield reader.line_num, row


class _RowReader:
    """Typed access to the columns of one CSV row."""

    def __init__(self, source: str, line: int, row: Dict[str, Optional[str]]):
        self.source = source
        self.line = line
        self.row = row

    def text(self, column: str) -> str:
        value = (self.row.get(column) or "").strip()
        if not value:
            raise MalformedRecordError(self.source, self.line, column)
        return value

    def integer(self, column: str) -> int:
        value = self.text(column)
        try:
            number = int(value)
        except ValueError:
            raise MalformedRecordError(self.source, self.line, column, f"is not an integer: {value!r}")
        if number < 0:
            raise MalformedRecordError(self.source, self.line, column, f"is negative: {value!r}")
        return number

    def boolean(self, column: str) -> bool:
        value = self.text(column).lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise MalformedRecordError(self.source, self.line, column, f"is not a boolean: {value!r}")

    def date(self, column: str) -> date:
        value = self.text(column)
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise MalformedRecordError(self.source, self.line, column, f"is not an ISO date: {value!r}")

    def recipient_type(self, column: str) -> RecipientType:
        value = self.text(column).lower()
        try:
            return _RECIPIENT_TYPES[value]
        except KeyError:
            raise MalformedRecordError(self.source, self.line, column, f"is not a known recipient type: {value!r}")
