from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal


PageType = Literal["legal", "contact", "general"]
CrawlState = Literal["scraping", "completed", "failed", "cancelled", "unknown"]


@dataclass(slots=True)
class RawPage:
    url: str
    markdown: str
    title: str = ""
    html: str = ""


@dataclass(slots=True)
class CrawlPoll:
    status: CrawlState
    pages: list[RawPage] = field(default_factory=list)
    completed: int = 0
    total: int = 0


@dataclass(slots=True)
class Page:
    url: str
    title: str
    page_type: PageType
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title, "type": self.page_type, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Page":
        page_type = data.get("type") or data.get("page_type") or "general"
        if page_type not in ("legal", "contact", "general"):
            page_type = "general"
        return cls(
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            page_type=page_type,
            content=str(data.get("content") or data.get("markdown") or ""),
        )


@dataclass(slots=True)
class ContactInfo:
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(slots=True)
class CompanyHints:
    name: str | None = None
    vat_id: str | None = None
    registration_number: str | None = None


@dataclass(slots=True)
class TranslationSignals:
    has_proper_localization: bool = False
    suspected_machine_translation: bool = False
    has_language_switcher: bool = False
    has_translation_widget: bool = False
    html_lang: str | None = None
    widget_signatures: list[str] = field(default_factory=list)
    analysis: str = ""


@dataclass(slots=True)
class CrawlResult:
    url: str
    pages: list[Page] = field(default_factory=list)
    contact: ContactInfo = field(default_factory=ContactInfo)
    company: CompanyHints = field(default_factory=CompanyHints)
    translation: TranslationSignals = field(default_factory=TranslationSignals)
    crawled_at: str = ""

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def legal_pages_found(self) -> int:
        return sum(1 for page in self.pages if page.page_type == "legal")

    @property
    def contact_pages_found(self) -> int:
        return sum(1 for page in self.pages if page.page_type == "contact")

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "pages": [page.to_dict() for page in self.pages],
            "contact": asdict(self.contact),
            "company": asdict(self.company),
            "translationStructure": asdict(self.translation),
            "totalPages": self.total_pages,
            "legalPagesFound": self.legal_pages_found,
            "contactPagesFound": self.contact_pages_found,
            "crawledAt": self.crawled_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawlResult":
        translation = data.get("translationStructure") or {}
        return cls(
            url=str(data.get("url") or ""),
            pages=[Page.from_dict(p) for p in data.get("pages") or [] if isinstance(p, dict)],
            contact=ContactInfo(**_known(ContactInfo, data.get("contact") or {})),
            company=CompanyHints(**_known(CompanyHints, data.get("company") or {})),
            translation=TranslationSignals(**_known(TranslationSignals, translation)),
            crawled_at=str(data.get("crawledAt") or ""),
        )


@dataclass(slots=True)
class DocumentChunk:
    url: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RetrievedChunk:
    url: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


def _known(kind: type, payload: dict[str, Any]) -> dict[str, Any]:
    names = set(kind.__dataclass_fields__)
    return {k: v for k, v in payload.items() if k in names}
