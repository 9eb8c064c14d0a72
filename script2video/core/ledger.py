"""
script2video Usage Ledger

Token usage accounting and per-phase request statistics.

Both structures only ever grow: usage is combined by pairwise addition and
counters are incremented, never reset or overwritten.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from .constants import StatsCategory


@dataclass(frozen=True)
class TokenUsage:
    """Token counters reported by one or more generation calls."""
    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: 'TokenUsage') -> 'TokenUsage':
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            response_tokens=self.response_tokens + other.response_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @property
    def is_empty(self) -> bool:
        return self.total_tokens == 0 and self.prompt_tokens == 0 and self.response_tokens == 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "response_tokens": self.response_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TokenUsage':
        """Build from snake_case or camelCase keys; missing data is zero usage."""
        if not data:
            return cls()
        return cls(
            prompt_tokens=int(data.get("prompt_tokens", data.get("promptTokens", 0)) or 0),
            response_tokens=int(data.get("response_tokens", data.get("responseTokens", 0)) or 0),
            total_tokens=int(data.get("total_tokens", data.get("totalTokens", 0)) or 0),
        )


ZERO_USAGE = TokenUsage()


def merge_usage(*usages: Optional[TokenUsage]) -> TokenUsage:
    """Sum any number of usages; None entries count as zero."""
    total = ZERO_USAGE
    for usage in usages:
        if usage is not None:
            total = total + usage
    return total


class UsageLedger:
    """
    Additive token-usage accumulator keyed by scope.

    A scope is a free-form name such as "context" or "phase1.char_list".
    Unknown scopes read as zero usage.
    """

    def __init__(self, totals: Optional[Dict[str, TokenUsage]] = None):
        self._totals: Dict[str, TokenUsage] = dict(totals or {})

    def add(self, usage: TokenUsage, *scopes: str) -> None:
        """Add one call's usage to every given scope."""
        for scope in scopes:
            self._totals[scope] = self.get(scope) + usage

    def get(self, scope: str) -> TokenUsage:
        return self._totals.get(scope, ZERO_USAGE)

    def merge(self, other: 'UsageLedger') -> 'UsageLedger':
        """Return a new ledger holding the scope-wise sum of both."""
        merged = UsageLedger(self._totals)
        for scope, usage in other._totals.items():
            merged.add(usage, scope)
        return merged

    @property
    def scopes(self) -> Iterable[str]:
        return list(self._totals.keys())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UsageLedger):
            return NotImplemented
        return self._totals == other._totals

    def __repr__(self) -> str:
        return f"UsageLedger({self._totals!r})"

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {scope: usage.to_dict() for scope, usage in self._totals.items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'UsageLedger':
        return cls({scope: TokenUsage.from_dict(usage) for scope, usage in (data or {}).items()})


@dataclass
class RequestStats:
    """Request counters for one category."""
    total: int = 0
    success: int = 0
    error: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "success": self.success, "error": self.error}


class StatsCounter:
    """Per-category {total, success, error} request counters."""

    def __init__(self, stats: Optional[Dict[StatsCategory, RequestStats]] = None):
        self._stats: Dict[StatsCategory, RequestStats] = {
            category: RequestStats() for category in StatsCategory
        }
        for category, value in (stats or {}).items():
            self._stats[category] = RequestStats(value.total, value.success, value.error)

    def record(self, category: Union[StatsCategory, str], success: bool) -> None:
        stats = self._stats[StatsCategory(category)]
        stats.total += 1
        if success:
            stats.success += 1
        else:
            stats.error += 1

    def get(self, category: Union[StatsCategory, str]) -> RequestStats:
        stats = self._stats[StatsCategory(category)]
        return RequestStats(stats.total, stats.success, stats.error)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatsCounter):
            return NotImplemented
        return self._stats == other._stats

    def __repr__(self) -> str:
        return f"StatsCounter({self.to_dict()!r})"

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {category.value: stats.to_dict() for category, stats in self._stats.items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'StatsCounter':
        aliases = {"shotGen": "shot_gen", "soraGen": "sora_gen"}
        stats = {}
        for key, value in (data or {}).items():
            category = StatsCategory(aliases.get(key, key))
            stats[category] = RequestStats(
                total=int(value.get("total", 0)),
                success=int(value.get("success", 0)),
                error=int(value.get("error", 0)),
            )
        return cls(stats)
