from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class TrafficLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TRAFFIC_ORDER: tuple[TrafficLevel, ...] = (TrafficLevel.LOW, TrafficLevel.MEDIUM, TrafficLevel.HIGH)


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


@dataclass(frozen=True)
class WeightPolicy:
    """Derives an edge's routing cost from its immutable base weight.

    Every call starts again from ``base_weight``; nothing here reads a previously
    computed cost, so repeated traffic or hazard updates cannot drift.
    """

    low: float = 1.0
    medium: float = 1.5
    high: float = 2.0
    hazard_multiplier: float = 2.0
    rounding: str = "integer"

    def __post_init__(self) -> None:
        if not (1.0 <= self.low <= self.medium <= self.high):
            raise ValueError("traffic multipliers must be >= 1 and non-decreasing")
        if self.hazard_multiplier < 1.0:
            raise ValueError("hazard multiplier must be >= 1")
        if self.rounding not in {"integer", "none"}:
            raise ValueError(f"unknown rounding mode: {self.rounding}")

    @classmethod
    def from_settings(cls) -> "WeightPolicy":
        from .settings import settings

        return cls(
            low=float(settings.traffic_multiplier_low),
            medium=float(settings.traffic_multiplier_medium),
            high=float(settings.traffic_multiplier_high),
            hazard_multiplier=float(settings.hazard_weight_multiplier),
            rounding=settings.weight_rounding,
        )

    def traffic_multiplier(self, level: TrafficLevel | str) -> float:
        level = TrafficLevel(level)
        if level is TrafficLevel.LOW:
            return self.low
        if level is TrafficLevel.MEDIUM:
            return self.medium
        return self.high

    def traffic_adjusted(self, base_weight: float, level: TrafficLevel | str) -> float:
        value = float(base_weight) * self.traffic_multiplier(level)
        if self.rounding == "integer":
            # Never let rounding collapse a positive weight to zero.
            return max(1.0, _round_half_up(value))
        return value

    def effective_weight(
        self,
        *,
        base_weight: float,
        traffic: TrafficLevel | str,
        blocked: bool,
        source_hazard: bool,
        target_hazard: bool,
    ) -> float | None:
        """Return the routing cost of an edge, or ``None`` when it is not traversable."""
        if blocked:
            return None
        weight = self.traffic_adjusted(base_weight, traffic)
        # Applied once per edge even when both endpoints are hazardous.
        if source_hazard or target_hazard:
            weight *= self.hazard_multiplier
        return weight


DEFAULT_POLICY = WeightPolicy()


def traffic_multiplier(level: TrafficLevel | str) -> float:
    return DEFAULT_POLICY.traffic_multiplier(level)


def effective_weight(
    *,
    base_weight: float,
    traffic: TrafficLevel | str,
    blocked: bool = False,
    source_hazard: bool = False,
    target_hazard: bool = False,
    policy: WeightPolicy | None = None,
) -> float | None:
    return (policy or DEFAULT_POLICY).effective_weight(
        base_weight=base_weight,
        traffic=traffic,
        blocked=blocked,
        source_hazard=source_hazard,
        target_hazard=target_hazard,
    )
