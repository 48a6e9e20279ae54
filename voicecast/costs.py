"""Character-quota cost estimates for synthesis runs."""

from dataclasses import dataclass

from voicecast.constants import COST_PER_CHARACTER

# (upper bound in USD, level); costs at or above the last bound are "critical"
WARNING_LEVELS = (
    (25, "low"),
    (100, "medium"),
    (250, "high"),
)


@dataclass
class CostEstimate:
    characters: int
    quota_remaining: int
    quota_characters: int
    overage_characters: int
    cost: float
    within_quota: bool
    warning: str


def warning_level(cost: float) -> str:
    if cost == 0:
        return "none"
    for bound, level in WARNING_LEVELS:
        if cost < bound:
            return level
    return "critical"


def calculate_cost(characters: int, used: int, quota: int, rate: float = COST_PER_CHARACTER) -> CostEstimate:
    """Split characters into in-quota and overage, and price the overage."""
    remaining = max(quota - used, 0)
    quota_chars = min(characters, remaining)
    overage = characters - quota_chars
    cost = round(overage * rate, 4)
    return CostEstimate(
        characters=characters,
        quota_remaining=remaining,
        quota_characters=quota_chars,
        overage_characters=overage,
        cost=cost,
        within_quota=overage == 0,
        warning=warning_level(cost),
    )
