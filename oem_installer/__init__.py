"""Unattended first-boot disk provisioning for OEM devices."""

from .__version__ import __version__


__all__ = ["__version__"]
