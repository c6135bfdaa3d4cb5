"""
Per-run accounting of upstream calls and provider credits.

Every request that goes through the scheduler is tagged with the current
*main* context (the analysis run, e.g. ``"teamSupply"``) and an optional
*sub* context (the step inside it, e.g. ``"funding"``).  Tagging is purely
observational: it never influences scheduling or retries.

Usage
-----
    with call_context("teamSupply", "fresh"):
        await rpc.get_signatures_for_address(wallet)

    counter.report("teamSupply")
"""

from __future__ import annotations

import contextlib
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Iterator, Optional

# Provider credit cost per method (Helius bills heavy methods at 10 credits)
CREDIT_COSTS: dict[str, int] = {
    "getProgramAccounts": 10,
    "getTransaction": 10,
    "getBlock": 10,
    "getBlocks": 10,
    "getSignaturesForAddress": 10,
    "getBlockTime": 10,
    "getAsset": 10,
    "getAssetsByOwner": 10,
    "getAssetsByCreator": 10,
    "searchAssets": 10,
    "getTokenAccounts": 10,
}
DEFAULT_CREDIT_COST = 1

_context: ContextVar[tuple[str, Optional[str]]] = ContextVar(
    "call_context", default=("default", None)
)


@contextlib.contextmanager
def call_context(main: str, sub: Optional[str] = None) -> Iterator[None]:
    """Tag every call made inside the block with ``(main, sub)``.

    Passing ``main=""`` keeps the enclosing main context and only swaps the
    sub context.
    """
    current_main, _ = _context.get()
    token = _context.set((main or current_main, sub))
    try:
        yield
    finally:
        _context.reset(token)


def current_context() -> tuple[str, Optional[str]]:
    return _context.get()


@dataclass
class StepStats:
    calls: int = 0
    credits: int = 0


@dataclass
class ContextStats:
    total_calls: int = 0
    total_credits: int = 0
    calls_by_step: dict[str, StepStats] = field(default_factory=dict)
    sub_contexts: dict[str, "ContextStats"] = field(default_factory=dict)

    def _add(self, step: str, credits: int) -> None:
        self.total_calls += 1
        self.total_credits += credits
        stats = self.calls_by_step.setdefault(step, StepStats())
        stats.calls += 1
        stats.credits += credits

    def as_dict(self) -> dict:
        out: dict = {
            "total_calls": self.total_calls,
            "total_credits": self.total_credits,
            "calls_by_step": {
                step: {"calls": s.calls, "credits": s.credits}
                for step, s in sorted(self.calls_by_step.items())
            },
        }
        if self.sub_contexts:
            out["sub_contexts"] = {
                name: sub.as_dict() for name, sub in sorted(self.sub_contexts.items())
            }
        return out


class ApiCallCounter:
    """Counts calls and credits per main/sub context."""

    def __init__(self, credit_costs: Optional[dict[str, int]] = None) -> None:
        self._credit_costs = dict(CREDIT_COSTS if credit_costs is None else credit_costs)
        self._contexts: dict[str, ContextStats] = {}

    def credits_for(self, step: str) -> int:
        return self._credit_costs.get(step, DEFAULT_CREDIT_COST)

    def increment(self, step: str, main: Optional[str] = None, sub: Optional[str] = None) -> None:
        """Record one call of *step*.  Defaults to the ambient call context."""
        if main is None:
            main, ambient_sub = _context.get()
            sub = sub if sub is not None else ambient_sub
        credits = self.credits_for(step)
        stats = self._contexts.setdefault(main, ContextStats())
        # Main totals cover sub-context calls; the per-step breakdown lives
        # wherever the call was made.
        if sub:
            stats.total_calls += 1
            stats.total_credits += credits
            stats.sub_contexts.setdefault(sub, ContextStats())._add(step, credits)
        else:
            stats._add(step, credits)

    def reset(self, main: str = "default") -> None:
        self._contexts.pop(main, None)

    def stats(self, main: str = "default") -> Optional[ContextStats]:
        return self._contexts.get(main)

    def report(self, main: str = "default") -> dict:
        stats = self._contexts.get(main)
        if stats is None:
            return {"context": main, "total_calls": 0, "total_credits": 0, "calls_by_step": {}}
        return {"context": main, **stats.as_dict()}
