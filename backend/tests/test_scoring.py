import pytest

from travelcrm.services.lead_import.scoring import format_lead_number, score_lead


def _with_budget(value):
    return {"fullName": "Jane", "travelDetails": {"budget": {"value": value, "currency": "USD"}}}


def test_lead_number_is_zero_padded():
    assert format_lead_number("ACME", 2024, 7, 5) == "ACME-2024-00007"


def test_lead_number_longer_than_pad_is_kept_whole():
    assert format_lead_number("ACME", 2024, 1234567, 5) == "ACME-2024-1234567"


@pytest.mark.parametrize(
    "budget,score",
    [
        (25_000, 100),
        (10_000, 100),
        (9_999, 85),
        (7_500, 85),
        (5_000, 70),
        (3_000, 50),
        (1_000, 30),
        (999, 10),
        ("6000", 70),
    ],
)
def test_score_follows_budget_tiers(budget, score):
    assert score_lead(_with_budget(budget)) == score


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"travelDetails": None},
        {"travelDetails": {"destination": "Lisbon"}},
        {"travelDetails": {"budget": "lots"}},
        _with_budget(None),
        _with_budget(0),
        _with_budget("not a number"),
    ],
)
def test_missing_or_unusable_budget_gets_lowest_tier(record):
    assert score_lead(record) == 10
