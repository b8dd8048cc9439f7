"""
Tenant sizing pipeline.

Runs aggregation, archive folding, growth estimation, projection and
license allocation over already-parsed report data.

The pipeline differs from calling the stages directly in these ways:
1. Workload failures are collected as warnings instead of raised
2. A failed workload never contributes guessed zeros to tenant totals
3. A license solver failure only affects the license plan
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from .aggregation import WorkloadTotals, aggregate_usage
from .archive import ArchiveTotals, accumulate_archives, archived_mailboxes, fold_archive_into_mail
from .errors import EmptyFilteredSetError, InsufficientHistoryError
from .growth import GrowthEstimate, GrowthMethod, estimate_annual_growth, filter_series
from .licensing import DEFAULT_CATALOG, LicensePlan, LicenseSolver, TierCatalog, allocate_licenses
from .projection import ONE_YEAR, THREE_YEARS, TenantForecast, aggregate_tenant, project_workload
from .units import bytes_to_gb
from tenant_sizing.reports.models import HistoricalSample, MailboxArchiveStat, UsageRecord, Workload

logger = logging.getLogger(__name__)

REPORT_PERIODS = (7, 30, 90, 180)

# Workloads whose rows are keyed by a user principal name
USER_KEYED_WORKLOADS = (Workload.MAIL, Workload.FILE_SYNC)


class HistoryPolicy(Enum):
    """What to do when a workload has too little history."""
    ASSUME_ZERO = "assume_zero"  # Continue with 0% growth
    FAIL = "fail"                # Leave growth and projections unset


class StorageBasis(Enum):
    """Storage figure used for license allocation."""
    ONE_YEAR = "one_year"
    CURRENT = "current"


@dataclass(frozen=True)
class ForecastSettings:
    """Parameters of a sizing run."""
    report_period_days: int = 180
    growth_method: GrowthMethod = GrowthMethod.ENDPOINTS
    custom_growth_percent: int = 30
    custom_horizon_years: int = 1
    insufficient_history: HistoryPolicy = HistoryPolicy.ASSUME_ZERO
    storage_basis: StorageBasis = StorageBasis.ONE_YEAR
    membership_filter: Optional[FrozenSet[str]] = None
    identifier_field: str = "identifier"

    def __post_init__(self):
        """Validate settings."""
        if self.report_period_days not in REPORT_PERIODS:
            raise ValueError(f"report_period_days must be one of {list(REPORT_PERIODS)}")
        if self.custom_horizon_years < 1:
            raise ValueError("custom_horizon_years must be >= 1")

    @property
    def custom_growth_fraction(self) -> float:
        return self.custom_growth_percent / 100


@dataclass(frozen=True)
class WorkloadInput:
    """Parsed report data for one workload."""
    workload: Workload
    records: List[UsageRecord]
    history: List[HistoricalSample] = field(default_factory=list)
    history_type: Optional[str] = None  # Keep only samples with this workload type
    current_bytes: Optional[int] = None  # Authoritative current usage, if known


@dataclass(frozen=True)
class ForecastWarning:
    """A recoverable problem attached to a workload or to the whole run."""
    workload: Optional[Workload]
    message: str


@dataclass(frozen=True)
class WorkloadForecast:
    """Computed sizing for one workload; None marks values that could not be computed."""
    workload: Workload
    totals: Optional[WorkloadTotals]
    growth: Optional[GrowthEstimate]
    projections: Optional[Dict[int, float]]
    custom_projection: Optional[float]

    @property
    def one_year_bytes(self) -> Optional[float]:
        return None if self.projections is None else self.projections[ONE_YEAR]

    @property
    def three_year_bytes(self) -> Optional[float]:
        return None if self.projections is None else self.projections[THREE_YEARS]


@dataclass(frozen=True)
class SizingResult:
    """Complete output of a sizing run."""
    workloads: Dict[Workload, WorkloadForecast]
    tenant: TenantForecast
    license_plan: Optional[LicensePlan]
    archive: Optional[ArchiveTotals]
    warnings: List[ForecastWarning]


def run_forecast(
    inputs: List[WorkloadInput],
    settings: ForecastSettings = ForecastSettings(),
    archive_stats: Optional[List[MailboxArchiveStat]] = None,
    solver: Optional[LicenseSolver] = None,
    catalog: TierCatalog = DEFAULT_CATALOG,
) -> SizingResult:
    """Size storage growth and licenses for a tenant.

    Args:
        inputs: Parsed report data, one entry per workload
        settings: Run parameters
        archive_stats: Per-mailbox archive stats to fold into mail
        solver: License solver for the finite pack mix
        catalog: License tier catalog

    Returns:
        SizingResult with everything that could be computed
    """
    warnings: List[ForecastWarning] = []

    def _warn(workload: Optional[Workload], message: str) -> None:
        logger.warning("%s: %s", workload.value if workload else "tenant", message)
        warnings.append(ForecastWarning(workload=workload, message=message))

    archive = accumulate_archives(archive_stats) if archive_stats is not None else None

    totals: Dict[Workload, WorkloadTotals] = {}
    forecasts: Dict[Workload, WorkloadForecast] = {}
    for item in inputs:
        workload_totals = _aggregate(item, settings, _warn)

        # Growth is measured against the usage total before archives are added
        current_bytes = item.current_bytes
        if current_bytes is None and workload_totals is not None:
            current_bytes = workload_totals.total_bytes

        if workload_totals is not None and archive is not None and item.workload == Workload.MAIL:
            _check_archive_coverage(item.records, archive_stats, _warn)
            workload_totals = fold_archive_into_mail(workload_totals, archive)
            logger.info(
                "Added %.3f GB of archive storage from %d mailboxes",
                archive.total_archive_gb,
                archive.mailboxes_with_archive,
            )

        growth = _estimate(item, settings, current_bytes, _warn)

        projections = None
        custom_projection = None
        if workload_totals is not None:
            totals[item.workload] = workload_totals
            if growth is not None:
                projections = project_workload(workload_totals, growth.fraction, (ONE_YEAR, THREE_YEARS))
            custom_horizon = settings.custom_horizon_years
            custom_projection = project_workload(
                workload_totals, settings.custom_growth_fraction, (custom_horizon,)
            )[custom_horizon]

        forecasts[item.workload] = WorkloadForecast(
            workload=item.workload,
            totals=workload_totals,
            growth=growth,
            projections=projections,
            custom_projection=custom_projection,
        )

    if archive is not None and Workload.MAIL not in totals:
        _warn(Workload.MAIL, "archive statistics were not applied: no mail totals available")

    tenant = aggregate_tenant(
        totals,
        {w: f.projections for w, f in forecasts.items()},
        {w: f.custom_projection for w, f in forecasts.items()},
        failed=[w for w, f in forecasts.items() if f.totals is None],
    )
    for workload in tenant.incomplete_workloads:
        _warn(workload, "no growth projection; excluded from projected tenant totals")
    for workload in tenant.failed_workloads:
        _warn(workload, "no usage totals; excluded from all tenant totals")

    license_plan = _allocate(tenant, totals, settings, solver, catalog, _warn)

    return SizingResult(
        workloads=forecasts,
        tenant=tenant,
        license_plan=license_plan,
        archive=archive,
        warnings=warnings,
    )


def _aggregate(item: WorkloadInput, settings: ForecastSettings, warn) -> Optional[WorkloadTotals]:
    """Aggregate one workload, reporting a filter mismatch as a warning.

    The membership filter lists users, so it only applies to user-keyed
    workloads; sites are always aggregated in full.
    """
    membership_filter = settings.membership_filter
    if item.workload not in USER_KEYED_WORKLOADS:
        membership_filter = None

    try:
        return aggregate_usage(
            workload=item.workload,
            records=item.records,
            membership_filter=membership_filter,
            identifier_field=settings.identifier_field,
        )
    except EmptyFilteredSetError as e:
        warn(item.workload, str(e))
        return None


def _check_archive_coverage(records: List[UsageRecord], stats: List[MailboxArchiveStat], warn) -> None:
    """Compare archive statistics against mailboxes flagged as having an archive."""
    expected = {mailbox.casefold() for mailbox in archived_mailboxes(records)}
    collected = {stat.mailbox_id.casefold() for stat in stats}

    missing = expected - collected
    if missing:
        warn(Workload.MAIL, f"{len(missing)} mailbox(es) flagged with an archive have no archive statistics")
    unexpected = collected - expected
    if unexpected:
        warn(Workload.MAIL, f"{len(unexpected)} archive statistic row(s) match no mailbox flagged with an archive")


def _estimate(
    item: WorkloadInput,
    settings: ForecastSettings,
    current_bytes: Optional[int],
    warn,
) -> Optional[GrowthEstimate]:
    """Estimate growth for one workload, applying the insufficient-history policy."""
    series = item.history
    if item.history_type is not None:
        series = filter_series(series, item.history_type)

    periods = {s.report_period_days for s in series}
    if periods and periods != {settings.report_period_days}:
        warn(
            item.workload,
            f"history report period {sorted(periods)} days differs from the configured "
            f"{settings.report_period_days} days",
        )

    try:
        return estimate_annual_growth(series, settings.growth_method, current_bytes)
    except InsufficientHistoryError as e:
        if settings.insufficient_history == HistoryPolicy.FAIL:
            warn(item.workload, f"{e}; growth not estimated")
            return None
        warn(item.workload, f"{e}; assuming 0% growth")
        return GrowthEstimate(
            fraction=0.0,
            method=settings.growth_method,
            earliest_bytes=series[0].bytes_used if series else 0,
            latest_bytes=series[-1].bytes_used if series else 0,
            current_bytes=current_bytes,
            window_days=settings.report_period_days,
            sample_count=len(series),
            assumed=True,
        )


def _allocate(
    tenant: TenantForecast,
    totals: Dict[Workload, WorkloadTotals],
    settings: ForecastSettings,
    solver: Optional[LicenseSolver],
    catalog: TierCatalog,
    warn,
) -> Optional[LicensePlan]:
    """Allocate licenses for the tenant forecast."""
    if tenant.required_license_users < 1:
        warn(None, "no licensed users found; license recommendation skipped")
        return None

    if settings.storage_basis == StorageBasis.CURRENT:
        basis_bytes = float(tenant.total_bytes)
    else:
        # Incomplete workloads count at their current size
        basis_bytes = tenant.one_year_bytes + sum(
            totals[w].total_bytes for w in tenant.incomplete_workloads
        )
        if tenant.incomplete_workloads:
            warn(None, "license storage includes unprojected workloads at their current size")

    return allocate_licenses(
        required_users=tenant.required_license_users,
        required_storage_gb=bytes_to_gb(basis_bytes),
        solver=solver,
        catalog=catalog,
    )
