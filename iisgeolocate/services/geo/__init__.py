"""Geo resolution and the unique-IP registry."""
from .registry import UniqueIpRegistry
from .resolver import GeoResolver, create_reader

__all__ = ["GeoResolver", "UniqueIpRegistry", "create_reader"]
