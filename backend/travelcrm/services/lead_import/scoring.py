from __future__ import annotations

# (minimum budget, score); first matching threshold wins, so keep descending.
BUDGET_TIERS: tuple[tuple[float, int], ...] = (
    (10_000, 100),
    (7_500, 85),
    (5_000, 70),
    (2_500, 50),
    (1_000, 30),
    (0, 10),
)


def _budget_value(record: dict) -> float | None:
    travel = record.get("travelDetails")
    if not isinstance(travel, dict):
        return None
    budget = travel.get("budget")
    if not isinstance(budget, dict):
        return None
    value = budget.get("value")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def score_lead(record: dict) -> int:
    """
    Budget-slab score for a raw import row. Missing, zero or unparsable budgets get
    the lowest tier.
    """
    value = _budget_value(record)
    lowest = BUDGET_TIERS[-1][1]
    if not value:
        return lowest
    for threshold, score in BUDGET_TIERS:
        if value >= threshold:
            return score
    return lowest


def format_lead_number(agency_code: str, year: int, sequence: int, pad_length: int) -> str:
    return f"{agency_code}-{year}-{str(sequence).zfill(pad_length)}"
