"""Provisioning flows."""
