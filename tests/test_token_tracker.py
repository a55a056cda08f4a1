"""Tests for agent_testkit/token_tracker.py."""

from agent_testkit.models import LedgerEntry
from agent_testkit.token_tracker import BUDGET_LEVELS, TokenTracker, estimate_tokens


def test_can_proceed_matches_running_sum():
    budget = 1000
    costs = [300, 400, 200, 150, 50]
    tracker = TokenTracker(budget)
    spent = 0
    for cost in costs:
        assert tracker.can_proceed(cost) == (spent + cost <= budget)
        tracker.record(f"t{cost}", cost)
        spent += cost
    assert tracker.used == spent


def test_can_proceed_does_not_mutate():
    tracker = TokenTracker(100)
    tracker.can_proceed(90)
    tracker.can_proceed(90)
    assert tracker.used == 0
    assert tracker.entries == []


def test_record_prefers_actual():
    tracker = TokenTracker(1000)
    tracker.record("a", 500, actual=120)
    tracker.record("b", 200)
    assert tracker.used == 320
    assert tracker.entries == [LedgerEntry("a", 500, 120), LedgerEntry("b", 200, None)]


def test_over_budget_only_after_strictly_exceeding():
    tracker = TokenTracker(1000)
    tracker.record("a", 1000)
    assert not tracker.is_over_budget()
    assert tracker.remaining() == 0

    tracker.record("b", 1)
    assert tracker.is_over_budget()
    tracker.record("c", 0)
    assert tracker.is_over_budget()
    assert tracker.remaining() == 0


def test_test_started_under_budget_can_push_over():
    tracker = TokenTracker(1000)
    assert tracker.can_proceed(900)
    tracker.record("big", 900, actual=1200)
    assert tracker.is_over_budget()


def test_reset_keeps_budget():
    tracker = TokenTracker(500)
    tracker.record("a", 800)
    tracker.reset()
    assert tracker.used == 0
    assert tracker.entries == []
    assert tracker.budget == 500
    assert not tracker.is_over_budget()


def test_set_budget():
    tracker = TokenTracker(100)
    tracker.record("a", 150)
    assert tracker.is_over_budget()
    tracker.set_budget(200)
    assert not tracker.is_over_budget()
    assert tracker.remaining() == 50


def test_report_and_format():
    tracker = TokenTracker(BUDGET_LEVELS["minimal"])
    tracker.record("greeting", 300)
    tracker.record("plan", 400, actual=250)

    report = tracker.report()
    assert report.budget == 1000
    assert report.used == 550
    assert report.remaining == 450
    assert not report.over_budget
    assert len(report.tests) == 2

    text = tracker.format_report()
    assert "Used:      550 tokens (55.0%)" in text
    assert "• greeting: ~300" in text
    assert "• plan: ~400 (actual: 250)" in text


def test_budget_levels():
    assert BUDGET_LEVELS == {"minimal": 1000, "quick": 2500, "standard": 5000, "full": 10000}


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
