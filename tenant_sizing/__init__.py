"""
Tenant Sizing.

Storage-growth forecasting and license sizing for mail, file-sync and
collaboration-site workloads.
"""

__version__ = "0.1.0"
