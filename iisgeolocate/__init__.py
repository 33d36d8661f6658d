"""Geolocate client addresses in IIS W3C extended logs."""

__version__ = "1.0.0"
