"""
Shared test fixtures for Member Equity tests

Provides settings isolation and member fixtures.
"""
import pytest
from decimal import Decimal

from app.core.settings import get_settings
from tests.factories import create_test_member, reset_sequences


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; clear around each test so env overrides apply."""
    reset_sequences()
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def override_settings(monkeypatch):
    """
    Override settings through the environment.

    Usage:
        def test_x(override_settings):
            override_settings(RECONCILIATION_TOLERANCE="5")
    """
    def _override(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        get_settings.cache_clear()
        return get_settings()
    return _override


@pytest.fixture
def make_member():
    """Factory fixture for members."""
    return create_test_member


@pytest.fixture
def two_members():
    """A holds 60% with $600k capital, B holds 40% with $400k."""
    return [
        create_test_member("a", equity_percentage=Decimal("60"), capital_balance=Decimal("600000"),
                           first_name="Alice", last_name="Adams"),
        create_test_member("b", equity_percentage=Decimal("40"), capital_balance=Decimal("400000"),
                           first_name="Bob", last_name="Brown"),
    ]


@pytest.fixture
def four_members():
    """Four active members summing to 100%."""
    return [
        create_test_member("a", equity_percentage=Decimal("40"), capital_balance=Decimal("400000")),
        create_test_member("b", equity_percentage=Decimal("30"), capital_balance=Decimal("300000")),
        create_test_member("c", equity_percentage=Decimal("20"), capital_balance=Decimal("200000")),
        create_test_member("d", equity_percentage=Decimal("10"), capital_balance=Decimal("100000")),
    ]
