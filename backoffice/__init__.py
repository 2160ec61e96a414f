"""Apartment back office: units, tenants, leases and rental requests."""

__version__ = "1.0.0"
