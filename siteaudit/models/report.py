from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["high", "medium", "low", "info"]

_SEVERITY_ALIASES = {
    "critical": "high",
    "severe": "high",
    "moderate": "medium",
    "minor": "low",
    "positive": "info",
    "informational": "info",
}


class _ReportModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Finding(_ReportModel):
    problem: str
    explanation: str = ""
    recommendation: str = ""
    severity: Severity = "medium"
    source_url: str | None = Field(default=None, alias="sourceUrl")
    source_section: str | None = Field(default=None, alias="sourceSection")
    source_snippet: str | None = Field(default=None, alias="sourceSnippet")
    confidence: float | None = None
    verification_note: str | None = Field(default=None, alias="verificationNote")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        lowered = str(value or "medium").strip().lower()
        lowered = _SEVERITY_ALIASES.get(lowered, lowered)
        return lowered if lowered in ("high", "medium", "low", "info") else "medium"

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> float | None:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            value = value.strip().rstrip("%")
        confidence = float(value)
        # Some answers use fractions instead of 0-100; exactly 1 stays 1%.
        if 0 < confidence < 1:
            confidence *= 100
        return max(0.0, min(confidence, 100.0))

    @property
    def text(self) -> str:
        return f"{self.problem} {self.explanation} {self.recommendation}".lower()


class ReportSection(_ReportModel):
    title: str
    findings: list[Finding] = Field(default_factory=list)


class Contact(_ReportModel):
    name: str | None = None
    title: str | None = None
    email: str | None = None
    linkedin: str | None = None


class CompanyInfo(_ReportModel):
    name: str | None = None
    industry: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    vat_id: str | None = None
    registration_number: str | None = None
    legal_form: str | None = None
    managing_directors: list[str] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)

    @field_validator("managing_directors", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(v) for v in value if v]


class TranslationAnalysis(_ReportModel):
    status: str = "Unknown"
    reasoning: str = ""
    evidence: str = ""


class ConsolidatedReport(_ReportModel):
    """Raw consolidation output; only ``sections`` is required."""

    overview: str = ""
    company_info: CompanyInfo | None = Field(default=None, alias="companyInfo")
    sections: list[ReportSection]
    translation_analysis: TranslationAnalysis | None = Field(default=None, alias="translationAnalysis")
    conclusion: str = ""
    action_list: list[str] = Field(default_factory=list, alias="actionList")


class AuditReport(_ReportModel):
    overview: str
    company_info: CompanyInfo = Field(default_factory=CompanyInfo, alias="companyInfo")
    sections: list[ReportSection] = Field(default_factory=list)
    translation_analysis: TranslationAnalysis | None = Field(default=None, alias="translationAnalysis")
    conclusion: str
    action_list: list[str] = Field(default_factory=list, alias="actionList")
    issues_count: int = Field(default=0, alias="issuesCount")
    score: int
    degraded: bool = False

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
