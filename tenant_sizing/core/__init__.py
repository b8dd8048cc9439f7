"""
Core modules for Tenant Sizing.

This package contains the forecasting engine: usage aggregation, growth
estimation, projection, archive accumulation and license allocation.
"""
