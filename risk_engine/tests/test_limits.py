"""
Tests for RiskLimitManager and pre-trade checks.

Validates:
- Limit lookup by (level, entity, metric)
- Ceilings violated above threshold, min_* floors below
- Unlimited metrics and unsupplied metrics are skipped
- Hierarchical view (strategy + GLOBAL portfolio)
- Concurrent writers never lose updates
- Concurrent readers see a whole load_limits batch or none of it
"""

import threading

import pytest

from risk_engine.core.errors import ValidationError
from risk_engine.core.models.domain import LimitLevel, OrderRequest, RiskLimit
from risk_engine.services.risk.checks import MaxOrderValueCheck, RiskCheck
from risk_engine.services.risk.limits import GLOBAL_ENTITY, RiskLimitManager


class TestSetAndGet:

    def test_set_limit(self, limit_manager):
        limit = limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)

        assert limit == RiskLimit(LimitLevel.PORTFOLIO, 'GLOBAL', 'var_95', 50000.0)
        assert limit_manager.get_limit(LimitLevel.PORTFOLIO, 'GLOBAL', 'var_95') == limit
        assert limit_manager.get_limits('portfolio', 'GLOBAL') == {'var_95': 50000.0}

    def test_overwrite(self, limit_manager):
        limit_manager.set_limit('STRATEGY', 'momentum', 'position_size', 10000)
        limit_manager.set_limit('STRATEGY', 'momentum', 'position_size', 25000)

        assert limit_manager.get_limits('STRATEGY', 'momentum') == {'position_size': 25000.0}
        assert len(limit_manager.all_limits()) == 1

    def test_entities_are_independent(self, limit_manager):
        limit_manager.set_limit('STRATEGY', 'momentum', 'position_size', 10000)
        limit_manager.set_limit('STRATEGY', 'mean_rev', 'position_size', 5000)
        limit_manager.set_limit('INSTRUMENT', 'momentum', 'position_size', 1)

        assert limit_manager.get_limits('STRATEGY', 'momentum') == {'position_size': 10000.0}
        assert limit_manager.get_limits('STRATEGY', 'unknown') == {}

    def test_remove_limit(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)

        assert limit_manager.remove_limit('PORTFOLIO', 'GLOBAL', 'var_95') is True
        assert limit_manager.remove_limit('PORTFOLIO', 'GLOBAL', 'var_95') is False
        assert limit_manager.get_limit('PORTFOLIO', 'GLOBAL', 'var_95') is None

    def test_unknown_level(self, limit_manager):
        with pytest.raises(ValidationError):
            limit_manager.set_limit('DESK', 'GLOBAL', 'var_95', 50000)

    def test_load_limits_from_dicts(self):
        manager = RiskLimitManager()
        count = manager.load_limits([
            {'level': 'PORTFOLIO', 'entity_id': 'GLOBAL', 'metric': 'var_95', 'threshold': 50000},
            RiskLimit(LimitLevel.STRATEGY, 'default', 'position_size', 100000.0),
        ])
        assert count == 2
        assert manager.get_limits('STRATEGY', 'default') == {'position_size': 100000.0}

    def test_load_limits_rejects_bad_entry(self, limit_manager):
        with pytest.raises(ValidationError):
            limit_manager.load_limits([{'level': 'PORTFOLIO', 'metric': 'var_95', 'threshold': 1}])
        assert limit_manager.all_limits() == []

    def test_constructor_limits(self):
        manager = RiskLimitManager([RiskLimit(LimitLevel.PORTFOLIO, GLOBAL_ENTITY, 'var_95', 1.0)])
        assert manager.get_limits('PORTFOLIO', GLOBAL_ENTITY) == {'var_95': 1.0}


class TestCheckLimits:

    def test_var_breach(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        result = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 60000})

        assert result.approved is False
        assert len(result.violations) == 1
        violation = result.violations[0]
        assert violation.metric == 'var_95'
        assert violation.limit == 50000.0
        assert violation.current == 60000.0
        assert 'exceeds limit' in violation.message

    def test_within_limit(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        result = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 40000})
        assert result.approved is True
        assert result.summary() == "All limits OK"

    def test_equal_to_limit_passes(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        assert limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 50000}).approved is True

    def test_floor_metric(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'min_equity', 25000)

        below = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'min_equity': 20000})
        above = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'min_equity': 30000})

        assert below.approved is False
        assert 'below floor' in below.violations[0].message
        assert above.approved is True

    def test_unlimited_metric_skipped(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        result = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'gross_exposure': 1e9})
        assert result.approved is True

    def test_no_limits_registered(self, limit_manager):
        assert limit_manager.check_limits('STRATEGY', 'momentum', {'position_size': 1e9}).approved is True

    def test_multiple_violations(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'max_drawdown', 20)
        result = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 60000, 'max_drawdown': 25})

        assert sorted(v.metric for v in result.violations) == ['max_drawdown', 'var_95']

    def test_check_does_not_mutate(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        before = limit_manager.all_limits()
        limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 60000})
        assert limit_manager.all_limits() == before

    def test_violation_to_dict(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        violation = limit_manager.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 60000}).violations[0]
        assert violation.to_dict() == {'metric': 'var_95', 'limit': 50000.0, 'current': 60000.0}


class TestHierarchicalLimits:

    def test_strategy_and_portfolio(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        limit_manager.set_limit('STRATEGY', 'momentum', 'position_size', 25000)
        limit_manager.set_limit('STRATEGY', 'mean_rev', 'position_size', 5000)

        limits = limit_manager.get_hierarchical_limits('momentum')
        assert limits == {
            'strategy': {'position_size': 25000.0},
            'portfolio': {'var_95': 50000.0},
        }

    def test_unknown_strategy(self, limit_manager):
        limit_manager.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        limits = limit_manager.get_hierarchical_limits('nobody')
        assert limits['strategy'] == {}
        assert limits['portfolio'] == {'var_95': 50000.0}


class TestConcurrentWriters:

    def test_no_lost_updates(self, limit_manager):
        def writer(strategy):
            for i in range(200):
                limit_manager.set_limit('STRATEGY', strategy, f'metric_{i}', i)

        threads = [threading.Thread(target=writer, args=(f's{n}',)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(limit_manager.all_limits()) == 1000
        assert limit_manager.get_limits('STRATEGY', 's3')['metric_199'] == 199.0


class TestReadersDuringBatchLoads:
    """Every batch k sets ten strategy limits and the GLOBAL marker to k."""

    BATCHES = 200
    METRICS = [f'metric_{i}' for i in range(10)]

    def _batch(self, k):
        limits = [RiskLimit(LimitLevel.STRATEGY, 'batch', metric, float(k)) for metric in self.METRICS]
        limits.append(RiskLimit(LimitLevel.PORTFOLIO, GLOBAL_ENTITY, 'generation', float(k)))
        return limits

    def _run(self, limit_manager, read):
        done = threading.Event()
        errors = []
        reads = [0]

        def reader():
            while True:
                try:
                    read()
                except AssertionError as exc:
                    errors.append(exc)
                    return
                reads[0] += 1
                if done.is_set():
                    return

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for k in range(1, self.BATCHES + 1):
                limit_manager.load_limits(self._batch(k))
        finally:
            done.set()
            thread.join()

        assert errors == []
        assert reads[0] > 0

    def test_hierarchical_view_is_never_partial(self, limit_manager):
        def read():
            view = limit_manager.get_hierarchical_limits('batch')
            strategy, portfolio = view['strategy'], view['portfolio']
            if not strategy:
                assert portfolio == {}
                return
            assert set(strategy) == set(self.METRICS)
            assert set(strategy.values()) == {portfolio['generation']}

        self._run(limit_manager, read)

    def test_check_limits_is_never_partial(self, limit_manager):
        # Thresholds below 100 are all exceeded, 100 and above are all met
        metrics = {metric: 100.0 for metric in self.METRICS}

        def read():
            result = limit_manager.check_limits('STRATEGY', 'batch', metrics)
            assert len(result.violations) in (0, len(self.METRICS))
            assert len({v.limit for v in result.violations}) <= 1

        self._run(limit_manager, read)


class TestOrderChecks:

    def test_max_order_value(self):
        check = MaxOrderValueCheck(10000)
        assert isinstance(check, RiskCheck)
        assert check.check(OrderRequest('AAPL', 10, 190.0)) is None

        violation = check.check(OrderRequest('AAPL', -100, 190.0))
        assert violation.metric == 'order_value'
        assert violation.current == pytest.approx(19000.0)
