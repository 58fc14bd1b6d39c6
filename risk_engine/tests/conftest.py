"""
Shared fixtures for the risk engine unit tests.

Provides:
- Known return series with hand-checked VaR values
- Sample position snapshots (with and without sectors)
- Seeded numpy generators for reproducible Monte Carlo runs
"""

import pytest
import numpy as np

from risk_engine.core.models.domain import Position
from risk_engine.services.risk.limits import RiskLimitManager
from risk_engine.services.risk.stress_test import StressTestService


# =============================================================================
# Known constants for deterministic tests
# =============================================================================

KNOWN_PORTFOLIO_VALUE = 100000.0

# Deliberately unsorted; sorted ascending it is
# [-0.05, -0.03, -0.02, -0.01, 0.00, 0.01, 0.02, 0.03, 0.04, 0.05]
KNOWN_RETURNS = [0.02, -0.01, 0.05, -0.05, 0.00, 0.03, -0.03, 0.04, 0.01, -0.02]

KNOWN_SEED = 20240601


# =============================================================================
# Return series fixtures
# =============================================================================

@pytest.fixture
def known_returns():
    return list(KNOWN_RETURNS)


@pytest.fixture
def rng():
    """Seeded generator so simulations are reproducible."""
    return np.random.default_rng(KNOWN_SEED)


@pytest.fixture
def return_series_map():
    """Three series: B moves with A, C moves against A."""
    a = [0.010, -0.020, 0.015, 0.003, -0.007, 0.012, -0.004, 0.009]
    b = [x * 2 + 0.001 for x in a]
    c = [-x for x in a]
    return {'AAPL': a, 'MSFT': b, 'GLD': c}


# =============================================================================
# Position fixtures
# =============================================================================

@pytest.fixture
def sample_positions():
    """Three positions with known value * volatility risk."""
    return [
        Position(symbol='AAPL', value=50000.0, volatility=0.20, sector='Technology'),   # risk 10000
        Position(symbol='XOM', value=30000.0, volatility=0.10, sector='Energy'),        # risk 3000
        Position(symbol='NVDA', value=20000.0, volatility=0.35, sector='Technology'),   # risk 7000
    ]


@pytest.fixture
def raw_positions():
    """Mapping-shaped positions as a portfolio collaborator would send them."""
    return [
        {'symbol': 'SPY', 'quantity': 100, 'current_price': 450.0, 'volatility': 0.18},
        {'symbol': 'QQQ', 'quantity': 50, 'current_price': 400.0, 'volatility': 0.22},
    ]


# =============================================================================
# Service fixtures
# =============================================================================

@pytest.fixture
def stress_service(rng):
    return StressTestService(rng=rng)


@pytest.fixture
def limit_manager():
    return RiskLimitManager()
