"""Deterministic score, action list, overview and conclusion for a verified report."""
from __future__ import annotations

import math

from siteaudit.agents.report_rules import (
    ACTION_TOPICS,
    NO_ISSUES_ACTION,
    OVERVIEW_TOPICS,
    SCORE_FLOOR,
    SEVERITY_PENALTIES,
)
from siteaudit.models.report import ReportSection, TranslationAnalysis


def score_sections(sections: list[ReportSection]) -> int:
    if not sections:
        return 100
    section_scores = []
    for section in sections:
        score = 100 - sum(SEVERITY_PENALTIES.get(f.severity, 0) for f in section.findings)
        section_scores.append(max(0, score))
    # Half-up rounding: 82.5 scores 83.
    average = sum(section_scores) / len(section_scores)
    return max(SCORE_FLOOR, math.floor(average + 0.5))


def findings_text(sections: list[ReportSection]) -> str:
    return " ".join(finding.text for section in sections for finding in section.findings)


def build_action_list(sections: list[ReportSection]) -> list[str]:
    text = findings_text(sections)
    actions = [action for _topic, keywords, action in ACTION_TOPICS if any(k in text for k in keywords)]
    return actions or [NO_ISSUES_ACTION]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def severity_counts(sections: list[ReportSection]) -> dict[str, int]:
    counts = {"high": 0, "medium": 0, "low": 0, "info": 0}
    for section in sections:
        for finding in section.findings:
            counts[finding.severity] = counts.get(finding.severity, 0) + 1
    return counts


def build_overview(sections: list[ReportSection], translation: TranslationAnalysis | None) -> str:
    total = sum(len(s.findings) for s in sections)
    text = findings_text(sections)
    if total == 0:
        overview = (
            "This website audit found no critical compliance issues. The site appears to meet German "
            "and EU legal requirements for e-commerce. Regular monitoring is recommended to maintain compliance."
        )
    else:
        counts = severity_counts(sections)
        if counts["high"]:
            severity_text = _plural(counts["high"], "high-severity issue")
        elif counts["medium"]:
            severity_text = _plural(counts["medium"], "medium-severity issue")
        else:
            severity_text = _plural(counts["low"], "minor issue")
        overview = f"This audit identified {_plural(total, 'finding')}, including {severity_text}. "
        areas = [label for keywords, label in OVERVIEW_TOPICS if any(k in text for k in keywords)]
        if areas:
            overview += f"Key areas requiring attention: {', '.join(areas)}. "
        overview += "Review the detailed findings below."

    if translation is not None and translation.status and translation.reasoning:
        overview += f"\n\nTranslation Analysis: {translation.status}. {translation.reasoning}"
    return overview


def build_conclusion(sections: list[ReportSection], score: int) -> str:
    total = sum(len(s.findings) for s in sections)
    high = severity_counts(sections)["high"]
    if total == 0:
        return (
            "This website demonstrates strong compliance with German and EU e-commerce regulations. "
            "No critical issues were identified during this audit. Continue maintaining current legal "
            "standards and perform periodic reviews to ensure ongoing compliance."
        )
    if score >= 80:
        verb = "were" if total != 1 else "was"
        return (
            "Overall, this website shows good compliance with most German and EU requirements. "
            f"{_plural(total, 'minor issue')} {verb} identified that should be addressed to improve compliance. "
            "The site is generally well-prepared for the German market."
        )
    if score >= 60:
        urgent = f"{_plural(high, 'high-priority issue')} should be addressed immediately. " if high else ""
        return (
            "This website has several compliance gaps that require attention. "
            f"{urgent}We recommend reviewing the findings and implementing the suggested actions "
            "to improve market readiness."
        )
    urgent = ""
    if high:
        urgent = f"{_plural(high, 'critical issue')} {'require' if high != 1 else 'requires'} immediate action. "
    return (
        "This audit identified significant compliance issues that need urgent attention before targeting "
        f"the German market. {urgent}We strongly recommend addressing all high and medium severity "
        "findings before launch."
    )
