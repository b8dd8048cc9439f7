"""
Unit tests for usage aggregation.

Tests deleted-record exclusion, membership filtering and mail splits.
"""

import pytest

from tenant_sizing.core.aggregation import (
    RecipientSubtotal,
    WorkloadTotals,
    aggregate_usage,
    bytes_per_entity
)
from tenant_sizing.core.errors import EmptyFilteredSetError
from tenant_sizing.reports.models import RecipientType, UsageRecord, Workload


def make_record(identifier="user@contoso.com", bytes_used=100, items=10, deleted=False,
                recipient_type=None, attributes=None) -> UsageRecord:
    """Create a test usage record."""
    return UsageRecord(
        identifier=identifier,
        bytes_used=bytes_used,
        item_count=items,
        is_deleted=deleted,
        recipient_type=recipient_type,
        attributes=attributes or {},
    )


class TestBytesPerEntity:
    """Test the per-entity average."""

    def test_rounds_to_two_places(self):
        """Test average is rounded to 2 decimal places."""
        assert bytes_per_entity(10, 3) == 3.33

    def test_rounds_half_up(self):
        """Test halves round away from zero."""
        assert bytes_per_entity(1, 8) == 0.13  # 0.125

    def test_zero_entities(self):
        """Test no entities yields 0 instead of dividing by zero."""
        assert bytes_per_entity(0, 0) == 0.0


class TestAggregateUsage:
    """Test aggregation of usage records."""

    def test_totals_over_live_records(self):
        """Test counts and sums over non-deleted records."""
        records = [
            make_record("a@contoso.com", bytes_used=100, items=1),
            make_record("b@contoso.com", bytes_used=300, items=2),
            make_record("c@contoso.com", bytes_used=200, items=3),
        ]

        totals = aggregate_usage(Workload.FILE_SYNC, records)

        assert totals.workload == Workload.FILE_SYNC
        assert totals.entity_count == 3
        assert totals.total_bytes == 600
        assert totals.total_items == 6
        assert totals.bytes_per_entity == 200.0
        assert totals.recipient_subtotals == {}

    def test_deleted_records_never_contribute(self):
        """Test a deleted record is excluded regardless of its size."""
        records = [
            make_record(bytes_used=100, deleted=False),
            make_record(bytes_used=9999, items=500, deleted=True),
        ]

        totals = aggregate_usage(Workload.FILE_SYNC, records)

        assert totals.total_bytes == 100
        assert totals.entity_count == 1
        assert totals.total_items == 10

    def test_deleted_records_kept_when_filter_disabled(self):
        """Test filter_deleted=False keeps deleted records."""
        records = [make_record(bytes_used=100), make_record(bytes_used=50, deleted=True)]

        totals = aggregate_usage(Workload.SITES, records, filter_deleted=False)

        assert totals.entity_count == 2
        assert totals.total_bytes == 150

    def test_empty_records(self):
        """Test no records yields zero totals without error."""
        totals = aggregate_usage(Workload.SITES, [])

        assert totals.entity_count == 0
        assert totals.total_bytes == 0
        assert totals.bytes_per_entity == 0.0

    def test_membership_filter_keeps_members(self):
        """Test only filtered identifiers survive, case-insensitively."""
        records = [
            make_record("Alice@contoso.com", bytes_used=100),
            make_record("bob@contoso.com", bytes_used=200),
            make_record("carol@contoso.com", bytes_used=400),
        ]

        totals = aggregate_usage(
            Workload.MAIL,
            records,
            membership_filter={"alice@contoso.com", "CAROL@contoso.com"},
        )

        assert totals.entity_count == 2
        assert totals.total_bytes == 500

    def test_membership_filter_excludes_deleted_members(self):
        """Test a deleted member is still excluded."""
        records = [
            make_record("alice@contoso.com", bytes_used=100),
            make_record("bob@contoso.com", bytes_used=200, deleted=True),
        ]

        totals = aggregate_usage(
            Workload.FILE_SYNC, records, membership_filter={"alice@contoso.com", "bob@contoso.com"}
        )

        assert totals.entity_count == 1
        assert totals.total_bytes == 100

    def test_membership_filter_on_other_field(self):
        """Test filtering on a named report column."""
        records = [
            make_record("https://contoso.sharepoint.com/sites/a", bytes_used=10,
                        attributes={"Owner Principal Name": "alice@contoso.com"}),
            make_record("https://contoso.sharepoint.com/sites/b", bytes_used=20,
                        attributes={"Owner Principal Name": "bob@contoso.com"}),
        ]

        totals = aggregate_usage(
            Workload.SITES,
            records,
            membership_filter={"bob@contoso.com"},
            identifier_field="Owner Principal Name",
        )

        assert totals.entity_count == 1
        assert totals.total_bytes == 20

    def test_membership_filter_without_matches_raises(self):
        """Test masked identifiers produce a specific error."""
        records = [
            make_record("5A1B7C2D9E0F", bytes_used=100),
            make_record("8F3E6D4C2B1A", bytes_used=200),
        ]

        with pytest.raises(EmptyFilteredSetError, match="identifier masking") as exc_info:
            aggregate_usage(Workload.MAIL, records, membership_filter={"alice@contoso.com"})

        assert exc_info.value.record_count == 2
        assert exc_info.value.filter_size == 1

    def test_mail_split_by_recipient_type(self):
        """Test mail totals keep user and shared subtotals."""
        records = [
            make_record("a@contoso.com", bytes_used=100, recipient_type=RecipientType.USER),
            make_record("b@contoso.com", bytes_used=200, recipient_type=RecipientType.USER),
            make_record("info@contoso.com", bytes_used=50, recipient_type=RecipientType.SHARED),
            make_record("old@contoso.com", bytes_used=999, recipient_type=RecipientType.SHARED,
                        deleted=True),
        ]

        totals = aggregate_usage(Workload.MAIL, records)

        assert totals.entity_count == 3
        assert totals.total_bytes == 350
        assert totals.recipient_subtotals[RecipientType.USER] == RecipientSubtotal(2, 300)
        assert totals.recipient_subtotals[RecipientType.SHARED] == RecipientSubtotal(1, 50)

    def test_aggregation_is_deterministic(self):
        """Test the same input produces the same totals."""
        records = [make_record(bytes_used=i * 7, items=i) for i in range(20)]

        assert aggregate_usage(Workload.FILE_SYNC, records) == aggregate_usage(Workload.FILE_SYNC, records)


class TestWorkloadTotalsValidation:
    """Test WorkloadTotals validation."""

    def test_negative_bytes_rejected(self):
        """Test negative totals are rejected."""
        with pytest.raises(ValueError, match="total_bytes cannot be negative"):
            WorkloadTotals(
                workload=Workload.MAIL,
                entity_count=1,
                total_bytes=-1,
                total_items=0,
                bytes_per_entity=0.0
            )

    def test_negative_record_bytes_rejected(self):
        """Test usage records reject negative sizes."""
        with pytest.raises(ValueError, match="bytes_used cannot be negative"):
            make_record(bytes_used=-5)
