"""
app/domain/cost.py

Metered AI usage and daily cost ledger models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

DAILY_COST_LIMIT_EXCEEDED = "DAILY_COST_LIMIT_EXCEEDED"


class CallKind:
    SCREENSHOT = "screenshot"
    TEXT = "text"


class BudgetState:
    OPEN = "open"
    WARNED = "warned"
    STOPPED = "stopped"


@dataclass(frozen=True)
class TokenUsage:
    """
    Token usage for one metered AI call as reported by the provider.

    ``input_tokens`` already includes the tokens an attached image consumed.
    """

    input_tokens: int
    output_tokens: int
    has_image: bool = False
    kind: str = CallKind.TEXT


@dataclass(frozen=True)
class MeteredCall:
    """
    One completed AI call presented to the cost governor for billing.
    """

    extractor_name: str
    kind: str
    input_tokens: int
    output_tokens: int
    has_image: bool

    @classmethod
    def from_usage(cls, extractor_name: str, usage: TokenUsage) -> "MeteredCall":
        return cls(
            extractor_name=extractor_name,
            kind=usage.kind,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            has_image=usage.has_image,
        )


@dataclass(frozen=True)
class CostLedgerEntry:
    """
    Append-only ledger row for one billed AI call.
    """

    timestamp: datetime
    extractor_name: str
    kind: str
    input_tokens: int
    output_tokens: int
    has_image: bool
    cost_usd: Decimal
    daily_total_usd: Decimal


@dataclass(frozen=True)
class Allowed:
    state: str = BudgetState.OPEN

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: str = DAILY_COST_LIMIT_EXCEEDED
    state: str = BudgetState.STOPPED

    @property
    def allowed(self) -> bool:
        return False


@dataclass(frozen=True)
class CostLedgerSummary:
    """
    Read-only snapshot of the current day's AI spend.
    """

    day: date
    total_calls: int
    total_input_tokens: int
    total_output_tokens: int
    total_cost_usd: Decimal
    alert_threshold_usd: Decimal
    max_daily_cost_usd: Decimal

    @property
    def alert_triggered(self) -> bool:
        return self.total_cost_usd >= self.alert_threshold_usd

    @property
    def stopped(self) -> bool:
        return self.total_cost_usd >= self.max_daily_cost_usd

    @property
    def state(self) -> str:
        if self.stopped:
            return BudgetState.STOPPED
        if self.alert_triggered:
            return BudgetState.WARNED
        return BudgetState.OPEN

    @property
    def remaining_budget_usd(self) -> Decimal:
        return max(Decimal("0"), self.max_daily_cost_usd - self.total_cost_usd)

    @property
    def percent_used(self) -> float:
        if self.max_daily_cost_usd <= 0:
            return 100.0
        return float(self.total_cost_usd / self.max_daily_cost_usd * 100)

    @property
    def average_cost_per_call_usd(self) -> Decimal:
        if self.total_calls == 0:
            return Decimal("0")
        return self.total_cost_usd / self.total_calls

    @property
    def estimated_remaining_calls(self) -> int | None:
        average = self.average_cost_per_call_usd
        if average <= 0:
            return None
        return int(self.remaining_budget_usd // average)
