from __future__ import annotations

import pytest

from siteaudit.audit_core.models.interfaces import CrawlResult, Page
from siteaudit.errors import JobStateError
from siteaudit.models.jobs import JobStatus, advance
from siteaudit.models.report import CompanyInfo, Finding


def test_job_status_only_moves_forward():
    assert advance("pending", "crawling") is JobStatus.CRAWLING
    assert advance(JobStatus.PENDING, JobStatus.PROCESSING) is JobStatus.PROCESSING
    assert advance("crawling", "failed") is JobStatus.FAILED
    with pytest.raises(JobStateError):
        advance("processing", "crawling")
    with pytest.raises(JobStateError):
        advance("completed", "failed")
    with pytest.raises(JobStateError):
        advance("failed", "processing")


def test_finding_normalizes_severity_and_confidence():
    finding = Finding.model_validate(
        {"problem": "x", "severity": "Critical", "confidence": "0.97", "sourceUrl": "https://a.example"}
    )
    assert finding.severity == "high"
    assert finding.confidence == pytest.approx(97.0)
    assert finding.source_url == "https://a.example"

    assert Finding(problem="x", severity="weird", confidence="").severity == "medium"
    assert Finding(problem="x", confidence=140).confidence == 100.0
    assert Finding(problem="x", confidence="85%").confidence == 85.0


def test_company_info_listifies_directors():
    assert CompanyInfo(managing_directors="Ada Lovelace, Charles Babbage").managing_directors == [
        "Ada Lovelace",
        "Charles Babbage",
    ]
    assert CompanyInfo(managing_directors=None).managing_directors == []


def test_crawl_result_round_trips_through_raw_data():
    crawl = CrawlResult(
        url="https://shop.example",
        pages=[Page(url="https://shop.example/agb", title="AGB", page_type="legal", content="AGB")],
        crawled_at="2026-01-01T00:00:00+00:00",
    )
    crawl.contact.email = "info@shop.example"

    data = crawl.to_dict()
    restored = CrawlResult.from_dict(data)

    assert data["legalPagesFound"] == 1
    assert data["pages"][0]["type"] == "legal"
    assert restored.pages == crawl.pages
    assert restored.contact.email == "info@shop.example"
    assert restored.crawled_at == crawl.crawled_at


def test_crawl_result_from_partial_dict():
    restored = CrawlResult.from_dict({"url": "https://a.example", "pages": [{"url": "u", "type": "weird"}, "junk"]})
    assert restored.pages[0].page_type == "general"
    assert restored.translation.analysis == ""
