"""
Annualized storage growth estimation.

Derives a yearly growth fraction from a workload's storage history.

Two methods are supported:
1. Endpoints - linear extrapolation of the change between the earliest
   and latest samples to 365 days
2. Stepwise - average of successive period-over-period percentage
   changes, scaled from the observation window to a year

Neither method compounds. The stepwise figure in particular is a coarse
approximation: it multiplies a sub-annual average by 365 / window days and
rounds up to a whole percent, so volatile series can produce anomalously
large or negative rates.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .errors import InsufficientHistoryError
from .units import bytes_to_gb
from tenant_sizing.reports.models import HistoricalSample

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


class GrowthMethod(Enum):
    """Growth estimation methods."""
    ENDPOINTS = "endpoints"
    STEPWISE = "stepwise"


@dataclass(frozen=True)
class GrowthEstimate:
    """Annual growth computed for one storage history."""
    fraction: float
    method: GrowthMethod
    earliest_bytes: int
    latest_bytes: int
    current_bytes: Optional[int]
    window_days: int
    sample_count: int
    assumed: bool = False

    @property
    def percent(self) -> float:
        """Growth as a percentage."""
        return self.fraction * 100


def filter_series(series: List[HistoricalSample], workload_type: str) -> List[HistoricalSample]:
    """Keep samples tagged with the given workload type (case-insensitive)."""
    wanted = workload_type.casefold()
    return [s for s in series if (s.workload_type or "").casefold() == wanted]


def estimate_annual_growth(
    series: List[HistoricalSample],
    method: GrowthMethod = GrowthMethod.ENDPOINTS,
    current_bytes: Optional[int] = None,
) -> GrowthEstimate:
    """Estimate the annual growth fraction of a storage history.

    Args:
        series: Storage samples for one workload, in any order
        method: Estimation method
        current_bytes: Authoritative current usage, preferred over the
            latest sample as the endpoints denominator

    Returns:
        GrowthEstimate with the annualized fraction (0.13 = 13%/year)

    Raises:
        InsufficientHistoryError: If fewer than 2 samples are given
    """
    if len(series) < 2:
        raise InsufficientHistoryError(len(series))

    ordered = sorted(series, key=lambda s: s.report_date)
    earliest, latest = ordered[0], ordered[-1]
    window_days = earliest.report_period_days

    if method == GrowthMethod.ENDPOINTS:
        fraction = _endpoints_growth(earliest, latest, current_bytes)
    else:
        fraction = _stepwise_growth(ordered, window_days)

    estimate = GrowthEstimate(
        fraction=fraction,
        method=method,
        earliest_bytes=earliest.bytes_used,
        latest_bytes=latest.bytes_used,
        current_bytes=current_bytes,
        window_days=window_days,
        sample_count=len(ordered),
    )

    current = current_bytes if current_bytes is not None else latest.bytes_used
    logger.info(
        "Current usage %.2f GB; %s usage %.2f GB; %s usage %.2f GB; "
        "%s growth %.2f%%/year over %d days",
        bytes_to_gb(current),
        earliest.report_date.isoformat(),
        bytes_to_gb(earliest.bytes_used),
        latest.report_date.isoformat(),
        bytes_to_gb(latest.bytes_used),
        method.value,
        estimate.percent,
        window_days,
    )
    return estimate


def _endpoints_growth(
    earliest: HistoricalSample,
    latest: HistoricalSample,
    current_bytes: Optional[int],
) -> float:
    """Extrapolate the earliest-to-latest change linearly to a year."""
    growth_over_period = latest.bytes_used - earliest.bytes_used
    avg_per_day = growth_over_period / earliest.report_period_days
    annual_growth = avg_per_day * DAYS_PER_YEAR

    denominator = current_bytes if current_bytes is not None else latest.bytes_used
    if denominator == 0:
        return 0.0
    return annual_growth / denominator


def _stepwise_growth(ordered: List[HistoricalSample], window_days: int) -> float:
    """Average successive percent changes and scale them to a year."""
    changes = []
    for previous, sample in zip(ordered, ordered[1:]):
        if previous.bytes_used == 0:
            logger.debug("Skipping step from %s: zero usage", previous.report_date)
            continue
        changes.append((sample.bytes_used / previous.bytes_used - 1) * 100)

    if not changes:
        return 0.0

    average = sum(changes) / len(changes)
    # Rounded first so float noise like 73.00000000000001 does not ceil up
    annual_percent = math.ceil(round(average * DAYS_PER_YEAR / window_days, 9))
    return annual_percent / 100
