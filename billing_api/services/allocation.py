"""
Spending allocation resolver.

Splits a budget (integer cents) across weighted spending categories so that
the allocated amounts add up to the budget exactly.

Algorithm (largest remainder):
1. raw share = budget * weight / total_weight (total_weight is 100 for a
   complete configuration)
2. floor every share to the cent
3. hand out the leftover cents one at a time, largest fractional part first,
   ties broken by configuration order
4. realized percent = allocated / budget * 100
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import List, Optional, Sequence

from billing_api.core.exceptions import ReconciliationError, ValidationError
from billing_api.models.property import SpendingCategory
from billing_api.models.report import SpendingAllocation

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)
PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class Allocation:
    category_id: Optional[str]
    category_title: str
    description: Optional[str]
    allocated_cents: int
    realized_percent: Decimal

    def to_spending_allocation(self) -> SpendingAllocation:
        return SpendingAllocation(
            category_id=self.category_id,
            category_title=self.category_title,
            description=self.description,
            allocated_amount_cents=self.allocated_cents,
            percentage=str(self.realized_percent)
        )


def realized_percent(allocated_cents: int, budget_cents: int) -> Decimal:
    if budget_cents <= 0:
        return Decimal("0.00")
    return (Decimal(allocated_cents) * HUNDRED / Decimal(budget_cents)).quantize(
        PERCENT_QUANTUM, rounding=ROUND_HALF_UP
    )


def _weights(categories: Sequence[SpendingCategory]) -> List[Decimal]:
    weights = []
    for category in categories:
        weight = Decimal(category.weight_percent)
        if not weight.is_finite() or weight < 0:
            raise ValidationError(
                f"Spending category '{category.title}' has invalid weight: {category.weight_percent}",
                {"category_id": category.id}
            )
        weights.append(weight)
    return weights


def allocate(budget_cents: int, categories: Sequence[SpendingCategory]) -> List[Allocation]:
    """
    Allocate budget_cents across categories.

    Returns one Allocation per category, in configuration order.
    Raises ValidationError for negative budgets or weights, and
    ReconciliationError if the allocation does not sum to the budget.
    """
    if budget_cents < 0:
        raise ValidationError(f"Budget must be non-negative, got {budget_cents} cents")
    if not categories:
        return []

    weights = _weights(categories)
    total_weight = sum(weights, Decimal(0))
    if total_weight == 0:
        # Nothing configured: split evenly
        weights = [Decimal(1)] * len(categories)
        total_weight = Decimal(len(categories))

    budget = Decimal(budget_cents)
    floors: List[int] = []
    fractions: List[Decimal] = []
    for weight in weights:
        raw = budget * weight / total_weight
        floor = int(raw.to_integral_value(rounding=ROUND_FLOOR))
        floors.append(floor)
        fractions.append(raw - floor)

    leftover = budget_cents - sum(floors)
    order = sorted(range(len(categories)), key=lambda i: (-fractions[i], i))
    # leftover < len(categories) whenever weights are normalized
    for step in range(leftover):
        floors[order[step % len(order)]] += 1

    if sum(floors) != budget_cents:
        logger.error(
            "Allocation of %s cents across %s categories summed to %s",
            budget_cents, len(categories), sum(floors)
        )
        raise ReconciliationError(
            "Allocated amounts do not sum to the budget",
            {"budget_cents": budget_cents, "allocated_cents": sum(floors)}
        )

    return [
        Allocation(
            category_id=category.id,
            category_title=category.title,
            description=category.description,
            allocated_cents=floors[i],
            realized_percent=realized_percent(floors[i], budget_cents)
        )
        for i, category in enumerate(categories)
    ]
