"""
Storage unit conversion.

Report values are bytes; sizing figures and license capacities are GB.
"""

from decimal import Decimal, ROUND_HALF_UP

BYTES_PER_GB = 1024 ** 3


def bytes_to_gb(value: float, places: int = 2) -> float:
    """Convert bytes to GB rounded half away from zero.

    Args:
        value: Amount in bytes
        places: Number of decimal places to keep

    Returns:
        Amount in GB
    """
    gb = Decimal(str(value)) / Decimal(BYTES_PER_GB)
    quantum = Decimal(1).scaleb(-places)
    return float(gb.quantize(quantum, rounding=ROUND_HALF_UP))
