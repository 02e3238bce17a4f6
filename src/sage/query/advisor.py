"""Enrichment advisor — turns missing information into upload suggestions."""

from __future__ import annotations

# Checked in order; the first matching rule wins.
_RULES: list[tuple[tuple[str, ...], str]] = [
    (
        ("policy", "procedure"),
        "Upload the relevant internal policy/procedure document (PDF or DOCX) "
        "that governs this topic.",
    ),
    (
        ("financial", "quarter", "revenue"),
        "Upload quarterly financial reports or management accounts "
        "(e.g., Q1–Q4 PDF statements).",
    ),
    (
        ("contract", "sla"),
        "Upload the relevant contract/SLA or vendor agreement that defines "
        "obligations and timelines.",
    ),
    (
        ("metric", "kpi", "dashboard"),
        "Export and upload KPI dashboards or CSV extracts that contain the "
        "missing metrics.",
    ),
]


def suggest_for(missing: str) -> str:
    lc = missing.lower()
    for keywords, suggestion in _RULES:
        if any(k in lc for k in keywords):
            return suggestion
    return (
        f'Add a document that directly answers: "{missing}" '
        "(e.g., an internal doc, report, or dataset extract)."
    )


def suggest_enrichment(missing_info: list[str]) -> list[str]:
    """One suggestion per missing item, duplicates removed, order kept."""
    return list(dict.fromkeys(suggest_for(m) for m in missing_info))
