"""
Tests for rent calculation.
"""

import pytest

from tycoon.core.game.board import get_square
from tycoon.core.game.rent import calculate_rent, land_rent, railway_rent, utility_rent


def test_land_rent_tiers():
    mediterranean = get_square(1)
    assert [land_rent(mediterranean, level) for level in range(6)] == [2, 10, 30, 90, 160, 250]


def test_land_rent_out_of_range_development_is_zero():
    assert land_rent(get_square(1), 6) == 0
    assert land_rent(get_square(1), -1) == 0


def test_railway_rent_table():
    assert [railway_rent(n) for n in (1, 2, 3, 4)] == [25, 50, 100, 200]


def test_railway_rent_strictly_increasing():
    rents = [railway_rent(n) for n in (1, 2, 3, 4)]
    assert all(a < b for a, b in zip(rents, rents[1:]))


@pytest.mark.parametrize("count", [0, 5])
def test_railway_rent_unknown_count(count):
    assert railway_rent(count) == 0


def test_utility_rent_multipliers():
    assert utility_rent(7, 1) == 28
    assert utility_rent(7, 2) == 70
    assert utility_rent(7, 0) == 0


def test_railway_rent_uses_owner_count():
    """An opponent holding all four railways charges 200, whatever the lander owns."""
    assert calculate_rent(get_square(25), owned_railways=4) == 200


def test_calculate_rent_dispatch():
    assert calculate_rent(get_square(39), development=5) == 2000
    assert calculate_rent(get_square(12), owned_utilities=2, dice_total=9) == 90
    assert calculate_rent(get_square(4)) == 0
    assert calculate_rent(get_square(0)) == 0
