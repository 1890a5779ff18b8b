from __future__ import annotations

import pytest

from src.attendance_tracker.attendance_tracker.container import build_container
from tests.factories import create_tenant, memory_settings


@pytest.fixture
def container():
    return build_container(memory_settings())


@pytest.fixture
def tenant(container):
    return create_tenant(container)
