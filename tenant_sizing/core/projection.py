"""
Storage projection over multi-year horizons.

Projections are linear: h years of growth is h times one year's growth
added once to the base, never compounded.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .aggregation import WorkloadTotals
from tenant_sizing.reports.models import Workload

ONE_YEAR = 1
THREE_YEARS = 3


@dataclass(frozen=True)
class TenantForecast:
    """Tenant-wide storage totals across all workloads."""
    required_license_users: int
    total_bytes: int
    total_items: int
    one_year_bytes: float
    three_year_bytes: float
    custom_bytes: float
    incomplete_workloads: List[Workload]
    failed_workloads: List[Workload] = field(default_factory=list)  # No totals at all


def project(total_bytes: float, growth_fraction: float, horizons_years: Iterable[int]) -> Dict[int, float]:
    """Project storage for each horizon.

    Args:
        total_bytes: Current storage
        growth_fraction: Annual growth (negative for shrinking workloads)
        horizons_years: Horizons in years

    Returns:
        Mapping of horizon to projected bytes, total * (1 + growth * horizon)
    """
    return {
        horizon: total_bytes * (1 + growth_fraction * horizon)
        for horizon in horizons_years
    }


def project_workload(
    totals: WorkloadTotals,
    growth_fraction: float,
    horizons_years: Iterable[int] = (ONE_YEAR, THREE_YEARS),
) -> Dict[int, float]:
    """Project a workload's total storage."""
    return project(totals.total_bytes, growth_fraction, horizons_years)


def aggregate_tenant(
    totals: Dict[Workload, WorkloadTotals],
    projections: Dict[Workload, Optional[Dict[int, float]]],
    custom_projections: Dict[Workload, Optional[float]],
    failed: Iterable[Workload] = (),
) -> TenantForecast:
    """Sum per-workload totals and projections into a tenant forecast.

    Workloads without projections still count towards the current totals
    but are listed in ``incomplete_workloads`` instead of being treated as
    zero growth in the horizon sums.

    Workloads that could not be aggregated at all are listed in
    ``failed_workloads``; none of the tenant sums include them.

    Args:
        totals: Aggregated totals per workload (archive already folded in)
        projections: Projected bytes per horizon per workload, or None
        custom_projections: Custom-rate projection per workload, or None
        failed: Workloads whose aggregation failed

    Returns:
        TenantForecast
    """
    license_counts = [
        totals[w].entity_count for w in (Workload.MAIL, Workload.FILE_SYNC) if w in totals
    ]

    incomplete = [w for w in totals if projections.get(w) is None]
    projected = [projections[w] for w in totals if projections.get(w) is not None]

    return TenantForecast(
        required_license_users=max(license_counts, default=0),
        total_bytes=sum(t.total_bytes for t in totals.values()),
        total_items=sum(t.total_items for t in totals.values()),
        one_year_bytes=sum(p[ONE_YEAR] for p in projected),
        three_year_bytes=sum(p[THREE_YEARS] for p in projected),
        custom_bytes=sum(c for c in custom_projections.values() if c is not None),
        incomplete_workloads=incomplete,
        failed_workloads=list(failed),
    )
