"""
SDK for Tenant Sizing.

Provides clients for remote services used during sizing.
"""

from .solver_client import LicenseSolverClient

__all__ = ["LicenseSolverClient"]
