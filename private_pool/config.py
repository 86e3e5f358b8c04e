"""Workflow parameters and settlement tuning."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _is_minor_units(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ContributorPlan:
    """
    One contributor's part in a run.

    `contribution_amount` stays out of the repr: it is private to the
    contributor and only ever reaches the ledger inside a private note.
    A contributor without a contribution is funded but does not contribute.
    """
    name: str
    funding_amount: int
    contribution_amount: Optional[int] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("contributor name is required")
        if not _is_minor_units(self.funding_amount):
            raise ValueError(f"{self.name}: funding amount must be an integer number of minor units")
        if self.contribution_amount is not None and not _is_minor_units(self.contribution_amount):
            raise ValueError(f"{self.name}: contribution amount must be an integer number of minor units")
        if self.funding_amount <= 0:
            raise ValueError(f"{self.name}: funding amount must be positive")
        if self.contribution_amount is not None:
            if self.contribution_amount <= 0:
                raise ValueError(f"{self.name}: contribution amount must be positive")
            if self.contribution_amount > self.funding_amount:
                raise ValueError(f"{self.name}: contribution exceeds funding")

    @property
    def contributes(self) -> bool:
        return self.contribution_amount is not None


@dataclass(frozen=True)
class AssetSpec:
    """Fungible asset issued by the run's faucet (defaults: $ with cents)."""
    code: str = "TRV"
    decimals: int = 2
    max_supply: int = 1_000_000


@dataclass(frozen=True)
class SettlementPolicy:
    """
    Bounds for settlement polling.

    Polls start `interval` seconds apart and back off by `backoff` up to
    `max_interval`. No two polls are ever closer than `min_interval`, and the
    whole wait gives up after `timeout` seconds.
    """
    timeout: float = 60.0
    interval: float = 1.0
    min_interval: float = 0.25
    backoff: float = 1.5
    max_interval: float = 10.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.min_interval <= 0:
            raise ValueError("min_interval must be positive")
        if self.interval < self.min_interval:
            raise ValueError("interval may not be shorter than min_interval")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")
        if self.max_interval < self.interval:
            raise ValueError("max_interval may not be shorter than interval")

    @classmethod
    def from_env(cls) -> "SettlementPolicy":
        defaults = cls()
        interval = float(os.getenv("POOL_POLL_INTERVAL", defaults.interval))
        return cls(
            timeout=float(os.getenv("POOL_SETTLEMENT_TIMEOUT", defaults.timeout)),
            interval=interval,
            min_interval=float(os.getenv("POOL_POLL_MIN_INTERVAL", defaults.min_interval)),
            backoff=defaults.backoff,
            max_interval=max(defaults.max_interval, interval),
        )


@dataclass(frozen=True)
class WorkflowParams:
    contributors: tuple[ContributorPlan, ...]
    minimum_threshold: int = 100
    asset: AssetSpec = field(default_factory=AssetSpec)
    settlement: SettlementPolicy = field(default_factory=SettlementPolicy)
    expected_contributor_count: Optional[int] = None
    pool_name: str = "Travel Fund"
    issuer_name: str = "Token Faucet"
    # How often the pool may come up empty before the run gives up
    consume_attempts: int = 3

    def __post_init__(self) -> None:
        object.__setattr__(self, "contributors", tuple(self.contributors))
        if not self.contributors:
            raise ValueError("at least one contributor is required")
        names = [c.name for c in self.contributors]
        if len(set(names)) != len(names):
            raise ValueError("contributor names must be unique")
        if not _is_minor_units(self.minimum_threshold):
            raise ValueError("minimum threshold must be an integer number of minor units")
        if self.minimum_threshold < 0:
            raise ValueError("minimum threshold must not be negative")
        if self.expected_contributor_count is not None and self.expected_contributor_count <= 0:
            raise ValueError("expected contributor count must be positive")
        if self.consume_attempts < 1:
            raise ValueError("consume_attempts must be at least 1")
        total_funding = sum(c.funding_amount for c in self.contributors)
        if total_funding > self.asset.max_supply:
            raise ValueError("funding exceeds the asset's max supply")

    @property
    def expected_contributors(self) -> int:
        if self.expected_contributor_count is not None:
            return self.expected_contributor_count
        return len(self.contributors)

    @classmethod
    def default(cls, **overrides) -> "WorkflowParams":
        """Alice, Bob and Charlie splitting a travel fund."""
        contributors = (
            ContributorPlan("Alice", funding_amount=600, contribution_amount=300),
            ContributorPlan("Bob", funding_amount=400, contribution_amount=200),
            ContributorPlan("Charlie", funding_amount=500, contribution_amount=250),
        )
        overrides.setdefault("contributors", contributors)
        return cls(**overrides)
