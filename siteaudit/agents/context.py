from __future__ import annotations

import json
from dataclasses import asdict

from siteaudit.audit_core.models.interfaces import CrawlResult
from siteaudit.config import settings
from siteaudit.services.prompt_store import render_prompt


def build_base_context(url: str, crawl: CrawlResult, char_limit: int | None = None) -> str:
    """Shared analysis context: crawl summary plus as many pages as fit, legal first."""
    char_limit = char_limit or settings.base_context_char_limit
    summary: dict = {
        "translationStructure": asdict(crawl.translation),
        "company": asdict(crawl.company),
        "contact": asdict(crawl.contact),
        "legalPagesFound": crawl.legal_pages_found,
        "totalPages": crawl.total_pages,
        "pages": [],
    }
    used = len(json.dumps(summary, ensure_ascii=False))
    ordered = [p for p in crawl.pages if p.page_type == "legal"] + [
        p for p in crawl.pages if p.page_type != "legal"
    ]
    for page in ordered:
        entry = page.to_dict()
        size = len(json.dumps(entry, ensure_ascii=False))
        if used + size > char_limit:
            break
        summary["pages"].append(entry)
        used += size

    return render_prompt(
        "agents.base_context",
        url=url,
        legal_pages=crawl.legal_pages_found,
        context=json.dumps(summary, ensure_ascii=False, indent=2),
    )
