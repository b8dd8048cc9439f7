"""
License solver HTTP client.

Submits rounded user and storage demand to a remote pack-mix solver.
"""

import logging
from typing import Any, Dict

import requests

from ..core.errors import LicenseSolverUnavailable
from ..core.licensing import SolveRequest, SolveResponse

logger = logging.getLogger(__name__)

RESPONSE_FIELDS = {
    "fiveGBPackCount": "five_gb_packs",
    "twentyGBPackCount": "twenty_gb_packs",
    "fiftyGBPackCount": "fifty_gb_packs",
}


class LicenseSolverClient:
    """Client for a remote license pack-mix solver.

    Every failure mode (network, status, body) surfaces as
    LicenseSolverUnavailable so the allocator can recover.
    """

    def __init__(self, url: str, timeout: float = 30, session: requests.Session = None):
        """Initialize the solver client.

        Args:
            url: Solver endpoint (required)
            timeout: Request timeout in seconds
            session: Optional requests session to reuse

        Raises:
            ValueError: If url is missing/empty or timeout is not positive
        """
        if not url or not url.strip():
            raise ValueError("url is required and cannot be empty")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def solve(self, request: SolveRequest) -> SolveResponse:
        """Request a pack mix for the given demand.

        Args:
            request: Rounded users and storage

        Returns:
            Pack counts per finite tier

        Raises:
            LicenseSolverUnavailable: If the solver can't be reached, answers
                with a non-2xx status or returns a malformed body
        """
        payload = request.to_payload()
        logger.debug("Submitting license solve request %s to %s", payload, self.url)

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise LicenseSolverUnavailable(f"solver request failed: {e}") from e
        except ValueError as e:
            raise LicenseSolverUnavailable(f"solver returned invalid JSON: {e}") from e

        return _parse_response(body)


def _parse_response(body: Any) -> SolveResponse:
    """Convert a solver response body into a SolveResponse."""
    if not isinstance(body, dict):
        raise LicenseSolverUnavailable("solver response must be a JSON object")

    counts: Dict[str, int] = {}
    for wire_name, field_name in RESPONSE_FIELDS.items():
        if wire_name not in body:
            raise LicenseSolverUnavailable(f"solver response missing '{wire_name}'")
        value = body[wire_name]
        if isinstance(value, bool) or not isinstance(value, int):
            raise LicenseSolverUnavailable(f"'{wire_name}' is not an integer: {value!r}")
        counts[field_name] = value

    try:
        return SolveResponse(**counts)
    except ValueError as e:
        raise LicenseSolverUnavailable(f"invalid solver response: {e}") from e
