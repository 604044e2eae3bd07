from __future__ import annotations

from siteaudit.agents.report_rules import (
    COMMON_ITEMS,
    IMPRESSUM_PATTERNS,
    MIN_PAGES_FOR_MISSING_CLAIMS,
    MISSING_INDICATORS,
    PRESENCE_TERMS,
    TRANSLATION_TERMS,
)
from siteaudit.audit_core.models.interfaces import Page
from siteaudit.models.report import Finding, ReportSection
from siteaudit.services.logger import logger


def _claim_text(finding: Finding) -> str:
    return f"{finding.problem} {finding.explanation}".lower()


def is_translation_finding(finding: Finding) -> bool:
    text = _claim_text(finding)
    return any(term in text for term in TRANSLATION_TERMS)


def is_missing_claim(text: str) -> bool:
    return any(pattern.search(text) for pattern in MISSING_INDICATORS)


def claimed_categories(text: str) -> list[str]:
    return [
        category
        for category, terms in PRESENCE_TERMS.items()
        if category in text or any(term in text for term in terms)
    ]


def build_corpus(pages: list[Page]) -> str:
    return "\n\n".join(f"{page.content} {page.title} {page.url}".lower() for page in pages)


def _contradicted_by_corpus(text: str, corpus: str) -> str | None:
    for category in claimed_categories(text):
        found = next((term for term in PRESENCE_TERMS[category] if term in corpus), None)
        if found:
            return f"{category} ('{found}')"
    if ("impressum" in text or "imprint" in text) and any(p.search(corpus) for p in IMPRESSUM_PATTERNS):
        return "impressum (imprint-like content)"
    return None


def keep_finding(finding: Finding, corpus: str, page_count: int) -> bool:
    text = _claim_text(finding)
    if is_translation_finding(finding):
        return True
    if not is_missing_claim(text):
        return True
    if page_count < MIN_PAGES_FOR_MISSING_CLAIMS and any(item in text for item in COMMON_ITEMS):
        logger.debug(f"Verification: only {page_count} pages crawled, dropping '{finding.problem[:60]}'")
        return False
    evidence = _contradicted_by_corpus(text, corpus)
    if evidence:
        logger.info(f"Verification: dropped '{finding.problem[:60]}', corpus contains {evidence}")
        return False
    return True


def verify_missing_findings(sections: list[ReportSection], pages: list[Page]) -> list[ReportSection]:
    """Drop "X is missing" findings that the crawled corpus contradicts."""
    corpus = build_corpus(pages)
    verified: list[ReportSection] = []
    for section in sections:
        kept = [f for f in section.findings if keep_finding(f, corpus, len(pages))]
        removed = len(section.findings) - len(kept)
        if removed:
            logger.info(f"Verification removed {removed} false positives from section '{section.title}'")
        verified.append(section.model_copy(update={"findings": kept}))
    return verified
