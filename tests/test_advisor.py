"""Tests for sage.query.advisor."""

from __future__ import annotations

from sage.query.advisor import suggest_enrichment, suggest_for


def test_policy_rule():
    assert "policy/procedure" in suggest_for("The travel POLICY for contractors")
    assert "policy/procedure" in suggest_for("escalation procedure")


def test_financial_rule():
    assert "quarterly financial reports" in suggest_for("Q3 revenue figures")


def test_contract_rule():
    assert "contract/SLA" in suggest_for("SLA response times")


def test_metric_rule():
    assert "KPI dashboards" in suggest_for("churn metric for 2023")


def test_first_matching_rule_wins():
    # Mentions both a policy and revenue; policy is checked first.
    assert "policy/procedure" in suggest_for("revenue recognition policy")


def test_generic_fallback_quotes_the_gap():
    s = suggest_for("Name of the CTO")
    assert s.startswith('Add a document that directly answers: "Name of the CTO"')


def test_empty_input():
    assert suggest_enrichment([]) == []


def test_duplicates_collapse_and_order_is_kept():
    out = suggest_enrichment(["refund policy", "Q2 revenue", "leave procedure", "Q2 revenue"])
    assert len(out) == 2
    assert "policy/procedure" in out[0]
    assert "financial" in out[1]


def test_at_most_one_suggestion_per_distinct_input():
    missing = ["a", "B", "a", "kpi", "KPI"]
    out = suggest_enrichment(missing)
    assert len(out) <= len({m.lower() for m in missing})
    assert len(out) == len(set(out))
