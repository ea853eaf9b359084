"""Thresholds and prices used by the waste classifiers."""
from __future__ import annotations

from dataclasses import dataclass, field

from .concurrency import DEFAULT_MAX_WORKERS


@dataclass(frozen=True)
class Pricing:
    """Monthly USD prices used to estimate savings.

    Prices left at ``0.0`` are not estimated yet and render as no saving.
    """

    snapshot_gib_month: float = 0.05
    hosted_zone_month: float = 0.50
    address_month: float = 0.0
    volume_gib_month: float = 0.0
    load_balancer_month: float = 0.0
    currency: str = "USD"


@dataclass(frozen=True)
class WasteConfig:
    """Settings for a waste workflow run."""

    stale_days: int = 90
    stopped_days: int = 30
    ri_window_days: int = 30
    max_workers: int = DEFAULT_MAX_WORKERS
    pricing: Pricing = field(default_factory=Pricing)

    def __post_init__(self) -> None:
        for name in ("stale_days", "stopped_days", "ri_window_days"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


__all__ = ["Pricing", "WasteConfig"]
