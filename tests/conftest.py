from __future__ import annotations

import pytest

from fakes import FIXED_NOW, make_item


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def five_upcoming_items():
    # Deliberately out of order.
    return [
        make_item("e3", "2025-01-13T09:00:00+00:00", "2025-01-13T10:00:00+00:00", "Dentist"),
        make_item("e1", "2025-01-11T09:00:00+00:00", "2025-01-11T10:00:00+00:00", "Standup"),
        make_item("e5", "2025-01-15T09:00:00+00:00", "2025-01-15T10:00:00+00:00", "Review"),
        make_item("e2", "2025-01-12T09:00:00+09:00", "2025-01-12T10:00:00+09:00", "Lunch"),
        make_item("e4", "2025-01-14T09:00:00+00:00", "2025-01-14T10:00:00+00:00", "Gym"),
    ]
