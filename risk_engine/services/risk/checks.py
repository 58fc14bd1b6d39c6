"""
Pre-trade order checks.

A RiskCheck inspects one proposed order and reports a violation, or None
when the order passes.
"""

from typing import Optional, Protocol, runtime_checkable

from risk_engine.core.models.domain import LimitViolation, OrderRequest


@runtime_checkable
class RiskCheck(Protocol):
    name: str

    def check(self, order: OrderRequest) -> Optional[LimitViolation]: ...


class MaxOrderValueCheck:
    """Reject orders whose notional (|quantity * price|) exceeds a fixed limit."""

    name = "Max Order Value Check"

    def __init__(self, limit: float):
        self.limit = float(limit)

    def check(self, order: OrderRequest) -> Optional[LimitViolation]:
        value = order.notional
        if value > self.limit:
            return LimitViolation(
                metric="order_value",
                limit=self.limit,
                current=value,
                message=f"Order value {value:,.2f} exceeds limit {self.limit:,.2f}",
            )
        return None
