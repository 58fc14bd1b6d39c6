"""
Risk Limits Management

Hierarchical limit registry (portfolio / strategy / instrument) and the
pre-trade violation check run against it.

Limits are keyed by (level, entity_id, metric). Metrics named min_* are
floors (violated when the current value falls below); every other metric
is a ceiling (violated when the current value exceeds it).

Concurrency: many readers, rare writers. Writers serialize on a lock and
publish a fresh immutable snapshot; readers only dereference the current
snapshot, so they never see a half-applied write.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union, Any
import logging
import threading

from risk_engine.core.models.domain import (
    LimitCheckResult,
    LimitLevel,
    LimitViolation,
    RiskLimit,
)

logger = logging.getLogger(__name__)

GLOBAL_ENTITY = "GLOBAL"

LimitKey = Tuple[LimitLevel, str, str]
LevelInput = Union[str, LimitLevel]


class RiskLimitManager:
    """
    Manage and check risk limits.

    Usage:
        limits = RiskLimitManager()
        limits.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
        limits.set_limit('STRATEGY', 'momentum', 'position_size', 25000)

        result = limits.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': 60000})
        if not result.approved:
            for v in result.violations:
                print(f"BREACH: {v.message}")
    """

    def __init__(self, limits: Optional[Iterable[RiskLimit]] = None):
        self._write_lock = threading.Lock()
        self._snapshot: Mapping[LimitKey, RiskLimit] = MappingProxyType({})
        if limits:
            self.load_limits(limits)

    # =========================================================================
    # Writers
    # =========================================================================

    def set_limit(self, level: LevelInput, entity_id: str, metric: str, value: float) -> RiskLimit:
        """Create or overwrite the limit at (level, entity_id, metric)."""
        limit = RiskLimit(LimitLevel.parse(level), str(entity_id), str(metric), float(value))
        with self._write_lock:
            updated = dict(self._snapshot)
            updated[limit.key] = limit
            self._snapshot = MappingProxyType(updated)
        logger.info(f"Risk limit set: {limit.level.name}/{limit.entity_id}/{limit.metric} = {limit.threshold:,.2f}")
        return limit

    def remove_limit(self, level: LevelInput, entity_id: str, metric: str) -> bool:
        """Remove a limit. Returns False when nothing was registered."""
        key = (LimitLevel.parse(level), str(entity_id), str(metric))
        with self._write_lock:
            if key not in self._snapshot:
                return False
            updated = dict(self._snapshot)
            del updated[key]
            self._snapshot = MappingProxyType(updated)
        logger.info(f"Risk limit removed: {key[0].name}/{key[1]}/{key[2]}")
        return True

    def load_limits(self, limits: Iterable[Union[RiskLimit, Mapping[str, Any]]]) -> int:
        """
        Upsert a batch of limits as a single write.

        Readers see either none or all of the batch.
        """
        parsed = [l if isinstance(l, RiskLimit) else RiskLimit.from_dict(l) for l in limits]
        with self._write_lock:
            updated = dict(self._snapshot)
            for limit in parsed:
                updated[limit.key] = limit
            self._snapshot = MappingProxyType(updated)
        logger.info(f"Loaded {len(parsed)} risk limits")
        return len(parsed)

    # =========================================================================
    # Readers
    # =========================================================================

    def get_limit(self, level: LevelInput, entity_id: str, metric: str) -> Optional[RiskLimit]:
        return self._snapshot.get((LimitLevel.parse(level), str(entity_id), str(metric)))

    def get_limits(self, level: LevelInput, entity_id: str) -> Dict[str, float]:
        """metric -> threshold for one entity."""
        return self._limits_for(self._snapshot, LimitLevel.parse(level), str(entity_id))

    def all_limits(self) -> List[RiskLimit]:
        return list(self._snapshot.values())

    def check_limits(self, level: LevelInput, entity_id: str, metrics: Mapping[str, float]) -> LimitCheckResult:
        """
        Check supplied metric values against every limit registered for the entity.

        Metrics without a registered limit, and limits without a supplied
        metric, are skipped. Never mutates the registry.
        """
        snapshot = self._snapshot
        level = LimitLevel.parse(level)
        entity_id = str(entity_id)

        violations = []
        for key, limit in snapshot.items():
            if key[0] is not level or key[1] != entity_id:
                continue
            if limit.metric not in metrics:
                continue

            current = float(metrics[limit.metric])
            if limit.is_violated_by(current):
                bound = "below floor" if limit.is_lower_bound else "exceeds limit"
                violations.append(LimitViolation(
                    metric=limit.metric,
                    limit=limit.threshold,
                    current=current,
                    message=f"{level.name}/{entity_id} {limit.metric} {current:,.2f} {bound} {limit.threshold:,.2f}",
                ))

        result = LimitCheckResult(violations=violations)
        if not result.approved:
            logger.warning(f"Limit check failed for {level.name}/{entity_id}: {result.summary()}")
        return result

    def get_hierarchical_limits(self, strategy_id: str) -> Dict[str, Dict[str, float]]:
        """Strategy limits next to the GLOBAL portfolio limits, from one snapshot."""
        snapshot = self._snapshot
        return {
            'strategy': self._limits_for(snapshot, LimitLevel.STRATEGY, str(strategy_id)),
            'portfolio': self._limits_for(snapshot, LimitLevel.PORTFOLIO, GLOBAL_ENTITY),
        }

    @staticmethod
    def _limits_for(snapshot: Mapping[LimitKey, RiskLimit], level: LimitLevel, entity_id: str) -> Dict[str, float]:
        return {
            limit.metric: limit.threshold
            for key, limit in snapshot.items()
            if key[0] is level and key[1] == entity_id
        }
