"""
Data models for downloaded usage reports.

Defines the immutable records parsed from usage-detail, storage-history
and per-mailbox archive exports.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional


class Workload(Enum):
    """Usage categories being sized."""
    MAIL = "mail"
    FILE_SYNC = "file_sync"
    SITES = "sites"


class RecipientType(Enum):
    """Owner or recipient classification of a usage row."""
    USER = "user"
    SHARED = "shared"
    SITE = "site"


@dataclass(frozen=True)
class UsageRecord:
    """One per-entity usage snapshot (mailbox, personal storage account or site).

    Records are produced once per run from a downloaded report and are
    never modified afterwards.
    """
    identifier: str
    bytes_used: int
    item_count: int
    is_deleted: bool = False
    recipient_type: Optional[RecipientType] = None
    has_archive: bool = False
    attributes: Dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if self.bytes_used < 0:
            raise ValueError("bytes_used cannot be negative")
        if self.item_count < 0:
            raise ValueError("item_count cannot be negative")

    def value_of(self, field_name: str) -> Optional[str]:
        """Return the value of a named column, ``identifier`` included."""
        if field_name == "identifier":
            return self.identifier
        return self.attributes.get(field_name)


@dataclass(frozen=True)
class HistoricalSample:
    """Storage used by a workload on one report date."""
    report_date: date
    report_period_days: int
    bytes_used: int
    workload_type: Optional[str] = None

    def __post_init__(self):
        if self.bytes_used < 0:
            raise ValueError("bytes_used cannot be negative")
        if self.report_period_days <= 0:
            raise ValueError("report_period_days must be > 0")


@dataclass(frozen=True)
class MailboxArchiveStat:
    """Archive folder size collected for a single mailbox."""
    mailbox_id: str
    archive_bytes: int
    archive_item_count: int
