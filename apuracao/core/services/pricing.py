"""
Pricing margin policy.

Preço sugerido e classificação de margem a partir das margens
mínima / ideal / máxima configuradas.
"""

from dataclasses import dataclass
from enum import Enum


class MarginStatus(str, Enum):
    BELOW_MINIMUM = "below_minimum"
    WITHIN_RANGE = "within_range"
    ABOVE_MAXIMUM = "above_maximum"


@dataclass
class MarginAssessment:
    cost: float
    price: float
    margin_percent: float
    status: MarginStatus
    suggested_price: float


class MarginPolicy:
    """Margens em percentual sobre o custo."""

    def __init__(self, minimum: float, ideal: float, maximum: float):
        if not minimum <= ideal <= maximum:
            raise ValueError(f"Inconsistent margins: {minimum} <= {ideal} <= {maximum} does not hold")
        self.minimum = minimum
        self.ideal = ideal
        self.maximum = maximum

    def suggested_price(self, cost: float) -> float:
        return round(cost * (1 + self.ideal / 100), 2)

    def assess(self, cost: float, price: float) -> MarginAssessment:
        margin = ((price - cost) / cost * 100) if cost else 0.0
        if margin < self.minimum:
            status = MarginStatus.BELOW_MINIMUM
        elif margin > self.maximum:
            status = MarginStatus.ABOVE_MAXIMUM
        else:
            status = MarginStatus.WITHIN_RANGE
        return MarginAssessment(
            cost=cost,
            price=price,
            margin_percent=round(margin, 2),
            status=status,
            suggested_price=self.suggested_price(cost),
        )
