"""
Usage aggregation per workload.

Reduces per-entity usage rows to workload totals.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import AbstractSet, Dict, List, Optional

from .errors import EmptyFilteredSetError
from tenant_sizing.reports.models import RecipientType, UsageRecord, Workload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientSubtotal:
    """Entity count and storage for one recipient type."""
    entity_count: int
    total_bytes: int


@dataclass(frozen=True)
class WorkloadTotals:
    """Aggregated usage for a single workload."""
    workload: Workload
    entity_count: int
    total_bytes: int
    total_items: int
    bytes_per_entity: float
    recipient_subtotals: Dict[RecipientType, RecipientSubtotal] = field(default_factory=dict)

    def __post_init__(self):
        """Validate aggregates are non-negative."""
        if self.entity_count < 0:
            raise ValueError("entity_count cannot be negative")
        if self.total_bytes < 0:
            raise ValueError("total_bytes cannot be negative")
        if self.total_items < 0:
            raise ValueError("total_items cannot be negative")


def bytes_per_entity(total_bytes: int, entity_count: int) -> float:
    """Average bytes per entity rounded to 2 decimal places, 0 for no entities."""
    if entity_count == 0:
        return 0.0
    average = Decimal(total_bytes) / Decimal(entity_count)
    return float(average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def aggregate_usage(
    workload: Workload,
    records: List[UsageRecord],
    filter_deleted: bool = True,
    membership_filter: Optional[AbstractSet[str]] = None,
    identifier_field: str = "identifier",
) -> WorkloadTotals:
    """Aggregate per-entity usage records into workload totals.

    Deleted records never contribute. When a membership filter is given,
    only records whose ``identifier_field`` value is in the filter survive;
    identifiers are compared case-insensitively.

    Args:
        workload: Workload the records belong to
        records: Usage rows from the workload's detail report
        filter_deleted: Exclude records flagged as deleted
        membership_filter: Optional set of identifiers to keep
        identifier_field: Record field compared against the filter

    Returns:
        WorkloadTotals for the surviving records

    Raises:
        EmptyFilteredSetError: If the membership filter matched no records
    """
    survivors = [r for r in records if not (filter_deleted and r.is_deleted)]

    if membership_filter is not None:
        wanted = {member.casefold() for member in membership_filter}
        before = len(survivors)
        survivors = [
            r for r in survivors
            if (r.value_of(identifier_field) or "").casefold() in wanted
        ]
        if not survivors:
            raise EmptyFilteredSetError(identifier_field, len(wanted), before)
        logger.debug(
            "%s: membership filter kept %d of %d records", workload.value, len(survivors), before
        )

    total_bytes = sum(r.bytes_used for r in survivors)
    total_items = sum(r.item_count for r in survivors)

    subtotals: Dict[RecipientType, RecipientSubtotal] = {}
    if workload == Workload.MAIL:
        for recipient_type in (RecipientType.USER, RecipientType.SHARED):
            matching = [r for r in survivors if r.recipient_type == recipient_type]
            subtotals[recipient_type] = RecipientSubtotal(
                entity_count=len(matching),
                total_bytes=sum(r.bytes_used for r in matching),
            )

    return WorkloadTotals(
        workload=workload,
        entity_count=len(survivors),
        total_bytes=total_bytes,
        total_items=total_items,
        bytes_per_entity=bytes_per_entity(total_bytes, len(survivors)),
        recipient_subtotals=subtotals,
    )
