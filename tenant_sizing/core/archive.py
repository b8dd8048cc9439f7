"""
In-place archive size accumulation.

Archive folders are sized one mailbox at a time, outside the usage
reports, and folded into the mail workload before projection.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Tuple

from .aggregation import WorkloadTotals, bytes_per_entity
from .units import bytes_to_gb
from tenant_sizing.reports.models import MailboxArchiveStat, UsageRecord, Workload

logger = logging.getLogger(__name__)

# Collaborator returning (archive bytes, archive item count) for a mailbox
ArchiveStatFetcher = Callable[[str], Tuple[int, int]]


@dataclass(frozen=True)
class ArchiveTotals:
    """Summed archive usage across mailboxes."""
    total_archive_bytes: int
    total_archive_items: int
    mailboxes_with_archive: int

    @property
    def total_archive_gb(self) -> float:
        """Archive storage in GB, 3 decimal places."""
        return bytes_to_gb(self.total_archive_bytes, places=3)


@dataclass(frozen=True)
class ArchiveCollection:
    """Result of a per-mailbox collection pass."""
    stats: List[MailboxArchiveStat]
    failed: List[str] = field(default_factory=list)


def accumulate_archives(stats: Iterable[MailboxArchiveStat]) -> ArchiveTotals:
    """Sum per-mailbox archive statistics.

    Args:
        stats: Successfully collected archive stats

    Returns:
        ArchiveTotals (all zero for no input)
    """
    total_bytes = 0
    total_items = 0
    mailboxes = 0
    for stat in stats:
        total_bytes += stat.archive_bytes
        total_items += stat.archive_item_count
        mailboxes += 1

    return ArchiveTotals(
        total_archive_bytes=total_bytes,
        total_archive_items=total_items,
        mailboxes_with_archive=mailboxes,
    )


def archived_mailboxes(records: Iterable[UsageRecord]) -> List[str]:
    """Identifiers of live mailboxes that have an in-place archive."""
    return [r.identifier for r in records if r.has_archive and not r.is_deleted]


def fold_archive_into_mail(mail: WorkloadTotals, archive: ArchiveTotals) -> WorkloadTotals:
    """Return mail totals with archive storage and items added.

    The mailbox count is unchanged; archives belong to existing mailboxes.
    """
    if mail.workload != Workload.MAIL:
        raise ValueError(f"archives can only be folded into mail, not {mail.workload.value}")

    total_bytes = mail.total_bytes + archive.total_archive_bytes
    return WorkloadTotals(
        workload=mail.workload,
        entity_count=mail.entity_count,
        total_bytes=total_bytes,
        total_items=mail.total_items + archive.total_archive_items,
        bytes_per_entity=bytes_per_entity(total_bytes, mail.entity_count),
        recipient_subtotals=mail.recipient_subtotals,
    )


def collect_archive_stats(
    mailbox_ids: Iterable[str],
    fetch_stat: ArchiveStatFetcher,
) -> ArchiveCollection:
    """Gather archive stats with an injected per-mailbox fetcher.

    A mailbox whose fetch fails is logged and listed in ``failed``; the
    remaining mailboxes are still collected. Retries are the fetcher's
    responsibility.

    Args:
        mailbox_ids: Mailboxes that have an archive
        fetch_stat: Returns (archive bytes, archive item count) for a mailbox

    Returns:
        ArchiveCollection of collected stats and failed mailbox ids
    """
    stats = []
    failed = []
    for mailbox_id in mailbox_ids:
        try:
            archive_bytes, item_count = fetch_stat(mailbox_id)
        except Exception as e:
            logger.warning("Archive statistics unavailable for %s: %s", mailbox_id, e)
            failed.append(mailbox_id)
            continue
        stats.append(MailboxArchiveStat(
            mailbox_id=mailbox_id,
            archive_bytes=archive_bytes,
            archive_item_count=item_count,
        ))

    logger.info("Collected archive statistics for %d mailboxes (%d failed)", len(stats), len(failed))
    return ArchiveCollection(stats=stats, failed=failed)
