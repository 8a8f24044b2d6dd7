"""Core infrastructure for the tenant boundary."""
