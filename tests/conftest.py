"""Pytest fixtures shared across the gateway test suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

# Ensure the package is importable when running pytest from the repo root
# without ``pip install -e .``
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from tenant_gateway.observability.metrics import GatewayMetrics  # noqa: E402
from tenant_gateway.storage.access import Requester, Role  # noqa: E402


@pytest.fixture
def metrics() -> GatewayMetrics:
    return GatewayMetrics(CollectorRegistry())


@pytest.fixture
def alice() -> Requester:
    return Requester(id="u1", role=Role.USER, name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> Requester:
    return Requester(id="u2", role=Role.USER, name="Bob")


@pytest.fixture
def admin() -> Requester:
    return Requester(id="root", role=Role.ADMIN)

