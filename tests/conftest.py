from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Callable

import pytest
from geoip2.errors import AddressNotFoundError

from iisgeolocate.services.geo import GeoResolver, UniqueIpRegistry


ENV_PREFIXES = ("APP_", "GEOIP_", "PIPELINE_")

KNOWN_CITIES: dict[str, tuple[str | None, str | None]] = {
    "203.0.113.5": ("New York", "United States"),
    "198.51.100.7": ("Rio de Janeiro", "Brazil"),
    "2001:db8::1": (None, "Germany"),
}


class FakeReader:
    """Stands in for geoip2.database.Reader, recording every lookup."""

    def __init__(
        self,
        cities: dict[str, tuple[str | None, str | None]] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.cities = dict(KNOWN_CITIES if cities is None else cities)
        self.errors = errors or {}
        self.calls: list[str] = []
        self.closed = False

    def city(self, ip: str) -> SimpleNamespace:
        self.calls.append(ip)
        if ip in self.errors:
            raise self.errors[ip]
        if ip not in self.cities:
            raise AddressNotFoundError(f"The address {ip} is not in the database.")
        city, country = self.cities[ip]
        return SimpleNamespace(
            city=SimpleNamespace(name=city),
            country=SimpleNamespace(name=country),
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def baseline_settings_env(monkeypatch):
    """Remove app env vars so tests are not affected by the local environment.

    Pydantic-settings precedence: init args > env vars > .env > defaults.
    """
    import os

    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def refresh_settings_cache():
    """Clear settings cache so env changes take effect per test."""
    from iisgeolocate.config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_reader() -> FakeReader:
    return FakeReader()


@pytest.fixture
def registry() -> UniqueIpRegistry:
    return UniqueIpRegistry()


@pytest.fixture
def resolver(fake_reader: FakeReader, registry: UniqueIpRegistry) -> GeoResolver:
    return GeoResolver(fake_reader, registry)


@pytest.fixture
def write_log(tmp_path: Path) -> Callable[..., Path]:
    """Write a log file under tmp_path/logs and return its path."""
    def _write(name: str, *lines: str, raw: str | None = None) -> Path:
        path = tmp_path / "logs" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        content = raw if raw is not None else "".join(f"{line}\n" for line in lines)
        path.write_text(content, encoding="utf-8")
        return path
    return _write
