"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import pytest
from hypothesis import settings, Verbosity, Phase
from starlette.requests import Request

from session.registry import RegistryConfig, SessionRegistry

# Hypothesis profiles, selected with HYPOTHESIS_PROFILE
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough, reproducible
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples, no shrinking
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class FakeClock:
    """Manually advanced clock for driving expiry without sleeping."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_request(
    cookies: Optional[dict[str, str]] = None,
    headers: Optional[Iterable[tuple[str, str]]] = None,
) -> Request:
    """
    Build a bare Starlette request.

    Headers are given as (name, value) pairs so the same header can be
    repeated. Cookie values are sent exactly as given.
    """
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode("latin-1")))

    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": raw_headers,
    })


@pytest.fixture
def request_factory():
    """Return make_request for building inbound requests."""
    return make_request


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry_config() -> RegistryConfig:
    return RegistryConfig(
        cleaner_interval=timedelta(seconds=1),
        max_lifetime=timedelta(seconds=30),
    )


@pytest.fixture
def registry(registry_config, clock) -> SessionRegistry:
    return SessionRegistry(registry_config, clock=clock)
