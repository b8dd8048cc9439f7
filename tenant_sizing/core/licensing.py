"""
License pack allocation.

Chooses subscription packs that cover the required users and storage.

Decision order:
1. Average GB per user above the unlimited threshold - unlimited packs only
2. Otherwise - a mix of finite-capacity packs from a solver
3. Solver failure or a mix that falls short - recommendation unavailable, never fatal
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional, Protocol, Tuple

from .errors import LicenseSolverUnavailable

logger = logging.getLogger(__name__)


class PlanStatus(Enum):
    """Outcome of a license allocation."""
    FINITE = auto()       # Mix of fixed-capacity packs
    UNLIMITED = auto()    # Unlimited-tier packs only
    UNAVAILABLE = auto()  # Finite mix could not be computed


@dataclass(frozen=True)
class TierCatalog:
    """Fixed license tier catalog."""
    finite_capacities_gb: Tuple[int, ...]  # Per-seat capacity, ascending
    seats_per_pack: int
    unlimited_threshold_gb: float  # Average GB/user above which unlimited is chosen

    def __post_init__(self):
        """Validate the catalog."""
        if len(self.finite_capacities_gb) != 3:
            raise ValueError("catalog must define exactly three finite tiers")
        if list(self.finite_capacities_gb) != sorted(set(self.finite_capacities_gb)):
            raise ValueError("finite tier capacities must be unique and ascending")
        if self.seats_per_pack <= 0:
            raise ValueError("seats_per_pack must be > 0")


# Fixed catalog - 5/20/50 GB per seat in packs of 10, plus unlimited
DEFAULT_CATALOG = TierCatalog(
    finite_capacities_gb=(5, 20, 50),
    seats_per_pack=10,
    unlimited_threshold_gb=76.0,
)


@dataclass(frozen=True)
class SolveRequest:
    """Rounded demand submitted to a license solver."""
    required_users: int
    required_storage_gb: int

    def to_payload(self) -> Dict[str, str]:
        """Wire representation, integers rendered as strings."""
        return {
            "requiredUsers": str(self.required_users),
            "requiredStorageGB": str(self.required_storage_gb),
        }


@dataclass(frozen=True)
class SolveResponse:
    """Pack counts per finite tier returned by a solver."""
    five_gb_packs: int
    twenty_gb_packs: int
    fifty_gb_packs: int

    def __post_init__(self):
        """Validate pack counts."""
        for name in ("five_gb_packs", "twenty_gb_packs", "fifty_gb_packs"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer")

    def as_counts(self, catalog: TierCatalog) -> Dict[int, int]:
        small, medium, large = catalog.finite_capacities_gb
        return {
            small: self.five_gb_packs,
            medium: self.twenty_gb_packs,
            large: self.fifty_gb_packs,
        }


class LicenseSolver(Protocol):
    """Anything that turns a SolveRequest into pack counts."""

    def solve(self, request: SolveRequest) -> SolveResponse:
        ...


@dataclass(frozen=True)
class LicensePlan:
    """Recommended license packs.

    Finite pack counts are None when the recommendation is unavailable.
    """
    status: PlanStatus
    pack_counts: Dict[int, Optional[int]]
    unlimited_packs: int
    seats_per_pack: int
    required_users: int
    required_storage_gb: float
    message: str = ""

    @property
    def users_per_tier(self) -> Dict[int, Optional[int]]:
        """Seats provided by each finite tier."""
        return {
            capacity: None if packs is None else packs * self.seats_per_pack
            for capacity, packs in self.pack_counts.items()
        }

    @property
    def unlimited_users(self) -> int:
        return self.unlimited_packs * self.seats_per_pack

    @property
    def total_users_covered(self) -> int:
        finite = sum(users for users in self.users_per_tier.values() if users is not None)
        return finite + self.unlimited_users

    @property
    def total_capacity_gb(self) -> Optional[int]:
        """Storage covered by finite packs; None when not capacity-bound."""
        if self.status != PlanStatus.FINITE:
            return None
        return sum(
            capacity * users for capacity, users in self.users_per_tier.items()
        )


def allocate_licenses(
    required_users: int,
    required_storage_gb: float,
    solver: Optional[LicenseSolver] = None,
    catalog: TierCatalog = DEFAULT_CATALOG,
) -> LicensePlan:
    """Allocate license packs covering the required users and storage.

    Args:
        required_users: Users needing a license (must be >= 1)
        required_storage_gb: Storage the licenses must cover
        solver: Finite pack-mix solver; None makes the finite
            recommendation unavailable
        catalog: Tier catalog

    Returns:
        LicensePlan

    Raises:
        ValueError: If required_users is less than 1
    """
    if required_users < 1:
        raise ValueError("required_users must be >= 1")

    average_gb = required_storage_gb / required_users
    logger.debug("Average demand %.2f GB/user for %d users", average_gb, required_users)

    if average_gb > catalog.unlimited_threshold_gb:
        packs = math.ceil(required_users / catalog.seats_per_pack)
        return LicensePlan(
            status=PlanStatus.UNLIMITED,
            pack_counts={capacity: 0 for capacity in catalog.finite_capacities_gb},
            unlimited_packs=packs,
            seats_per_pack=catalog.seats_per_pack,
            required_users=required_users,
            required_storage_gb=required_storage_gb,
            message=(
                f"Average {average_gb:.2f} GB/user exceeds "
                f"{catalog.unlimited_threshold_gb:g} GB/user: unlimited tier"
            ),
        )

    request = SolveRequest(
        required_users=math.ceil(required_users),
        required_storage_gb=math.ceil(required_storage_gb),
    )

    try:
        if solver is None:
            raise LicenseSolverUnavailable("no license solver configured")
        response = solver.solve(request)
        plan = LicensePlan(
            status=PlanStatus.FINITE,
            pack_counts=response.as_counts(catalog),
            unlimited_packs=0,
            seats_per_pack=catalog.seats_per_pack,
            required_users=required_users,
            required_storage_gb=required_storage_gb,
        )
        if (plan.total_users_covered < request.required_users
                or plan.total_capacity_gb < request.required_storage_gb):
            raise LicenseSolverUnavailable(
                f"solver packs cover {plan.total_users_covered} users and {plan.total_capacity_gb} GB, "
                f"short of {request.required_users} users and {request.required_storage_gb} GB"
            )
    except LicenseSolverUnavailable as e:
        logger.warning("License recommendation unavailable: %s", e)
        return LicensePlan(
            status=PlanStatus.UNAVAILABLE,
            pack_counts={capacity: None for capacity in catalog.finite_capacities_gb},
            unlimited_packs=0,
            seats_per_pack=catalog.seats_per_pack,
            required_users=required_users,
            required_storage_gb=required_storage_gb,
            message=f"License recommendation unavailable: {e}",
        )

    return plan


class LocalPackSolver:
    """In-process solver for the finite pack mix.

    Finds the pack counts with the smallest provisioned capacity that
    cover both constraints, preferring fewer packs on ties.
    """

    def __init__(self, catalog: TierCatalog = DEFAULT_CATALOG):
        self.catalog = catalog

    def solve(self, request: SolveRequest) -> SolveResponse:
        seats = self.catalog.seats_per_pack
        small, medium, large = (c * seats for c in self.catalog.finite_capacities_gb)
        packs_needed = math.ceil(request.required_users / seats)
        storage = request.required_storage_gb

        best: Optional[Tuple[Tuple[int, int], Tuple[int, int, int]]] = None
        for n_large in range(math.ceil(storage / large) + 1):
            users_left = max(packs_needed - n_large, 0)
            storage_left = max(storage - n_large * large, 0)
            max_medium = math.ceil(storage_left / medium)

            # Both constraints bind where medium*k + small*(users_left - k) == storage_left
            crossover = (storage_left - small * users_left) // (medium - small)
            candidates = {0, max_medium, storage_left // medium, crossover, crossover + 1}

            for n_medium in sorted(c for c in candidates if 0 <= c <= max_medium):
                n_small = max(
                    users_left - n_medium,
                    math.ceil((storage_left - n_medium * medium) / small),
                    0,
                )
                counts = (n_small, n_medium, n_large)
                capacity = n_small * small + n_medium * medium + n_large * large
                cost = (capacity, sum(counts))
                if best is None or cost < best[0]:
                    best = (cost, counts)

        n_small, n_medium, n_large = best[1]
        return SolveResponse(
            five_gb_packs=n_small,
            twenty_gb_packs=n_medium,
            fifty_gb_packs=n_large,
        )
