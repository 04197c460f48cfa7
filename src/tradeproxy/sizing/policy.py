"""Order size calculation against exchange minimums.

All calculations use Decimal arithmetic exclusively -- no float conversions.

Sizing flow:
1. Size-based orders start from the requested size (or the exchange minimum
   when nothing was requested); funds-based orders from the requested funds
2. Cap by the caller's account risk budget, if any
3. Round down to the instrument's base increment
4. Below the minimum: the policy decides (clamp up, or reject)
5. Futures with leverage: bounds-check leverage, then
   size = max(size, min_base_size * leverage)

The result never sits below the exchange minimum.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from tradeproxy.config import SizingSettings
from tradeproxy.exceptions import InvalidRequest, SizingRejected
from tradeproxy.logging import get_logger
from tradeproxy.models import MarketType, OrderRequest, SizingDecision, SymbolConstraints

logger = get_logger(__name__)


def round_to_step(value: Decimal, step: Decimal) -> Decimal:
    """Round a value down to the nearest step increment.

    Uses integer division to ensure we always round DOWN (never up).
    A zero or negative step leaves the value untouched.
    """
    if step <= 0:
        return value
    return (value // step) * step


def round_up_to_step(value: Decimal, step: Decimal) -> Decimal:
    """Round a positive value up to the nearest step increment."""
    if step <= 0:
        return value
    steps = value // step
    if steps * step < value:
        steps += 1
    return steps * step


def fallback_constraints(
    symbol: str, settings: SizingSettings | None = None
) -> SymbolConstraints:
    """Conservative constraints used when the exchange lookup failed."""
    settings = settings or SizingSettings()
    return SymbolConstraints(
        symbol=symbol,
        min_base_size=settings.fallback_min_size,
        min_funds=settings.fallback_min_size,
    )


class SizingPolicy(ABC):
    """Strategy interface for turning a request into a final order size.

    Subclasses only decide what happens when the amount falls below the
    exchange minimum.

    Args:
        max_leverage: Upper bound used when the exchange reports none.
    """

    name: str = "base"

    def __init__(self, max_leverage: int = 100) -> None:
        self._max_leverage = max_leverage

    @abstractmethod
    def below_minimum(
        self, amount: Decimal, minimum: Decimal, unit: str, decision: SizingDecision
    ) -> Decimal:
        """Return the amount to use instead, or raise SizingRejected."""
        ...

    def _check_leverage(
        self, leverage: Decimal, constraints: SymbolConstraints
    ) -> None:
        limit = constraints.max_leverage or self._max_leverage
        if leverage > limit:
            raise InvalidRequest(
                f"leverage {leverage} exceeds maximum {limit} for {constraints.symbol}"
            )

    def compute(
        self,
        request: OrderRequest,
        constraints: SymbolConstraints,
        account_risk_budget: Decimal | None = None,
        verified: bool = True,
    ) -> SizingDecision:
        """Compute the final size (or funds) for one order.

        Args:
            request: Validated order request.
            constraints: Live constraints, or fallback_constraints().
            account_risk_budget: Largest base size the caller will risk.
            verified: False when constraints are the fallback defaults.

        Returns:
            SizingDecision with exactly one of final_size / final_funds set.

        Raises:
            SizingRejected: Reject policy and an amount below the minimum.
            InvalidRequest: Leverage above the allowed maximum.
        """
        decision = SizingDecision(verified=verified)
        if not verified:
            decision.notes.append("unverified sizing: exchange minimum unavailable")

        if request.funds_based:
            funds = request.requested_funds
            assert funds is not None
            if funds < constraints.min_funds or funds <= 0:
                funds = self.below_minimum(funds, constraints.min_funds, "funds", decision)
            if funds <= 0:
                raise SizingRejected(f"funds {funds} is not a usable order amount")
            decision.final_funds = funds
            return decision

        minimum = constraints.min_base_size
        if request.requested_size is None:
            size = minimum
            decision.notes.append("no size requested: using exchange minimum")
        else:
            size = request.requested_size

        if account_risk_budget is not None and size > account_risk_budget:
            size = account_risk_budget
            decision.notes.append(f"capped to risk budget {account_risk_budget}")

        if constraints.base_increment:
            size = round_to_step(size, constraints.base_increment)

        if size < minimum or size <= 0:
            size = self.below_minimum(size, minimum, "size", decision)

        if request.market is MarketType.FUTURES and request.leverage is not None:
            self._check_leverage(request.leverage, constraints)
            leveraged_minimum = minimum * request.leverage
            if constraints.base_increment:
                leveraged_minimum = round_up_to_step(
                    leveraged_minimum, constraints.base_increment
                )
            if size < leveraged_minimum:
                size = leveraged_minimum
                decision.notes.append(f"raised to minimum x leverage ({leveraged_minimum})")

        if size <= 0:
            raise SizingRejected(f"size {size} is not a usable order amount")

        decision.final_size = size
        return decision


class ClampToMinimumPolicy(SizingPolicy):
    """Raise under-minimum amounts to the exchange minimum.

    Can increase exposure beyond what the caller asked for.
    """

    name = "clamp"

    def below_minimum(
        self, amount: Decimal, minimum: Decimal, unit: str, decision: SizingDecision
    ) -> Decimal:
        decision.notes.append(f"{unit} {amount} clamped to minimum {minimum}")
        logger.info("sizing_clamped", unit=unit, requested=str(amount), minimum=str(minimum))
        return minimum


class RejectBelowMinimumPolicy(SizingPolicy):
    """Refuse under-minimum amounts; the caller must retry with a valid size."""

    name = "reject"

    def below_minimum(
        self, amount: Decimal, minimum: Decimal, unit: str, decision: SizingDecision
    ) -> Decimal:
        raise SizingRejected(f"requested {unit} {amount} is below exchange minimum {minimum}")


def build_policy(settings: SizingSettings | None = None) -> SizingPolicy:
    """Instantiate the policy named by SIZING_POLICY."""
    settings = settings or SizingSettings()
    if settings.policy == "reject":
        return RejectBelowMinimumPolicy(max_leverage=settings.max_leverage)
    return ClampToMinimumPolicy(max_leverage=settings.max_leverage)


def compute_final_size(
    request: OrderRequest,
    constraints: SymbolConstraints,
    account_risk_budget: Decimal | None = None,
    policy: SizingPolicy | None = None,
    verified: bool = True,
) -> SizingDecision:
    """Convenience wrapper: size an order with the given (default: clamp) policy."""
    policy = policy or ClampToMinimumPolicy()
    return policy.compute(request, constraints, account_risk_budget, verified)
