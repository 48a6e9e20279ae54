"""Tests for costs module."""

import pytest

from voicecast.costs import calculate_cost, warning_level


def test_within_quota():
    estimate = calculate_cost(5_000, used=10_000, quota=30_000)
    assert estimate.within_quota
    assert estimate.quota_remaining == 20_000
    assert estimate.quota_characters == 5_000
    assert estimate.overage_characters == 0
    assert estimate.cost == 0
    assert estimate.warning == "none"


def test_partial_overage():
    estimate = calculate_cost(15_000, used=20_000, quota=30_000, rate=0.0003)
    assert estimate.quota_characters == 10_000
    assert estimate.overage_characters == 5_000
    assert estimate.cost == pytest.approx(1.5)
    assert not estimate.within_quota
    assert estimate.warning == "low"


def test_quota_already_exceeded():
    estimate = calculate_cost(1_000, used=50_000, quota=30_000)
    assert estimate.quota_remaining == 0
    assert estimate.overage_characters == 1_000


def test_zero_characters():
    estimate = calculate_cost(0, used=0, quota=100)
    assert estimate.within_quota
    assert estimate.cost == 0


@pytest.mark.parametrize("cost,level", [
    (0, "none"),
    (0.01, "low"),
    (24.99, "low"),
    (25, "medium"),
    (99.99, "medium"),
    (100, "high"),
    (249.99, "high"),
    (250, "critical"),
    (1000, "critical"),
])
def test_warning_levels(cost, level):
    assert warning_level(cost) == level
