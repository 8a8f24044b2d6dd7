"""Tenants module - firm records, provisioning state and admin routes."""
