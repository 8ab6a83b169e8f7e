"""Provisioning services."""
