"""Tests for the pure threshold evaluator."""

from datetime import timedelta

import pytest

from shelfspot.alerts.evaluator import classify, evaluate_item, evaluate_rules, is_triggered
from shelfspot.alerts.schemas import RuleState

from tests.factories import COOLDOWN, NOW, make_snapshot


class TestIsTriggered:
    def test_below_threshold(self):
        assert is_triggered(3, 5) is True

    def test_boundary_triggers(self):
        assert is_triggered(5, 5) is True

    def test_zero_threshold_at_zero(self):
        assert is_triggered(0, 0) is True

    def test_above_threshold(self):
        assert is_triggered(6, 5) is False


class TestClassify:
    """The four states of one rule."""

    def test_quiet(self):
        snap = make_snapshot(quantity=10, threshold=5, last_sent=None)
        assert classify(snap, NOW, COOLDOWN) is RuleState.QUIET

    def test_recovered(self):
        snap = make_snapshot(quantity=10, threshold=5, last_sent=NOW - timedelta(hours=1))
        assert classify(snap, NOW, COOLDOWN) is RuleState.RECOVERED

    def test_due_never_sent(self):
        snap = make_snapshot(quantity=3, threshold=5, last_sent=None)
        assert classify(snap, NOW, COOLDOWN) is RuleState.DUE

    def test_due_after_cooldown(self):
        snap = make_snapshot(quantity=3, threshold=5, last_sent=NOW - timedelta(hours=25))
        assert classify(snap, NOW, COOLDOWN) is RuleState.DUE

    def test_due_exactly_at_cooldown(self):
        snap = make_snapshot(quantity=3, threshold=5, last_sent=NOW - COOLDOWN)
        assert classify(snap, NOW, COOLDOWN) is RuleState.DUE

    def test_suppressed_within_cooldown(self):
        snap = make_snapshot(quantity=3, threshold=5, last_sent=NOW - timedelta(hours=23))
        assert classify(snap, NOW, COOLDOWN) is RuleState.SUPPRESSED

    def test_injected_cooldown(self):
        snap = make_snapshot(quantity=3, threshold=5, last_sent=NOW - timedelta(minutes=30))
        assert classify(snap, NOW, timedelta(minutes=15)) is RuleState.DUE
        assert classify(snap, NOW, timedelta(hours=1)) is RuleState.SUPPRESSED


class TestEvaluateRules:
    def test_partitions_are_disjoint(self):
        snaps = [
            make_snapshot(rule_id=1, quantity=10, threshold=5),
            make_snapshot(rule_id=2, quantity=10, threshold=5, last_sent=NOW),
            make_snapshot(rule_id=3, quantity=2, threshold=5),
            make_snapshot(rule_id=4, quantity=2, threshold=5, last_sent=NOW),
        ]
        ev = evaluate_rules(snaps, NOW, COOLDOWN)

        assert [s.rule_id for s in ev.quiet] == [1]
        assert [s.rule_id for s in ev.recovered] == [2]
        assert [s.rule_id for s in ev.due] == [3]
        assert [s.rule_id for s in ev.suppressed] == [4]
        assert ev.checked == 4
        assert ev.triggered == 2

    def test_inactive_rules_ignored(self):
        snaps = [make_snapshot(quantity=0, threshold=5, is_active=False)]
        ev = evaluate_rules(snaps, NOW, COOLDOWN)
        assert ev.checked == 0
        assert ev.due == []

    def test_cooldown_is_per_rule(self):
        # Same item, two thresholds: one notified an hour ago, one never
        snaps = [
            make_snapshot(rule_id=1, item_id=7, threshold=5, quantity=2,
                          last_sent=NOW - timedelta(hours=1)),
            make_snapshot(rule_id=2, item_id=7, threshold=2, quantity=2),
        ]
        ev = evaluate_rules(snaps, NOW, COOLDOWN)
        assert [s.rule_id for s in ev.suppressed] == [1]
        assert [s.rule_id for s in ev.due] == [2]

    def test_pure(self):
        snaps = [make_snapshot(quantity=3, threshold=5)]
        first = evaluate_rules(snaps, NOW, COOLDOWN)
        second = evaluate_rules(snaps, NOW, COOLDOWN)
        assert first == second
        assert snaps[0].last_sent is None


class TestEvaluateItem:
    def test_uses_new_quantity(self):
        snaps = [make_snapshot(item_id=10, quantity=50, threshold=5)]
        ev = evaluate_item(snaps, 10, 4, NOW, COOLDOWN)
        assert len(ev.due) == 1
        assert ev.due[0].quantity == 4

    def test_filters_other_items(self):
        snaps = [
            make_snapshot(rule_id=1, item_id=10, threshold=5),
            make_snapshot(rule_id=2, item_id=11, threshold=5),
        ]
        ev = evaluate_item(snaps, 10, 1, NOW, COOLDOWN)
        assert [s.rule_id for s in ev.due] == [1]

    @pytest.mark.parametrize("quantity,expected", [
        (5, RuleState.DUE),
        (6, RuleState.RECOVERED),
    ])
    def test_boundary_on_item_check(self, quantity, expected):
        snaps = [make_snapshot(threshold=5, last_sent=NOW - timedelta(days=2))]
        ev = evaluate_item(snaps, 10, quantity, NOW, COOLDOWN)
        assert len(getattr(ev, expected.value)) == 1
