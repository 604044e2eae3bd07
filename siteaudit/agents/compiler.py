from __future__ import annotations

import json
import re
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from pydantic import ValidationError

from siteaudit.agents.coordinator import ANALYSIS_TASKS, AnalysisTask
from siteaudit.agents.report_rules import FALLBACK_SCORE
from siteaudit.agents.scoring import build_action_list, build_conclusion, build_overview, score_sections
from siteaudit.agents.verification import is_translation_finding, verify_missing_findings
from siteaudit.audit_core.models.interfaces import Page
from siteaudit.config import settings
from siteaudit.errors import CompletionError, ReportStructureError
from siteaudit.llm_client import CompletionClient
from siteaudit.models.report import (
    AuditReport,
    CompanyInfo,
    ConsolidatedReport,
    Finding,
    ReportSection,
)
from siteaudit.services.logger import logger
from siteaudit.services.prompt_store import render_prompt

StatusCallback = Callable[[str], Awaitable[None]]

_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "...[truncated]"


def _safe_output(value: Any) -> str:
    return value if isinstance(value, str) and value else "No analysis available."


def parse_report_json(raw: str) -> ConsolidatedReport:
    """Parse a consolidation answer; raises ReportStructureError when unusable."""
    first, last = raw.find("{"), raw.rfind("}")
    if first == -1 or last <= first:
        raise ReportStructureError("Consolidation output contains no JSON object")
    candidate = raw[first:last + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            payload = json.loads(_TRAILING_COMMA.sub(r"\1", candidate))
        except json.JSONDecodeError as exc:
            raise ReportStructureError(f"Consolidation output is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ReportStructureError("Consolidation output is not a JSON object")
    try:
        return ConsolidatedReport.model_validate(payload)
    except ValidationError as exc:
        raise ReportStructureError(f"Consolidation output does not match report schema: {exc}") from exc


def apply_confidence_filter(sections: list[ReportSection], threshold: float) -> list[ReportSection]:
    """Keep findings at or above ``threshold``; translation findings always pass."""
    filtered = []
    for section in sections:
        kept = [
            f
            for f in section.findings
            if is_translation_finding(f) or (f.confidence is not None and f.confidence >= threshold)
        ]
        filtered.append(section.model_copy(update={"findings": kept}))
    return filtered


def fallback_report(url: str, task_results: dict[str, str], reason: str = "") -> AuditReport:
    hostname = urlparse(url if "://" in url else f"https://{url}").hostname or url
    legal_raw = _safe_output(task_results.get("legal"))
    finding = Finding(
        problem="Fallback Report",
        explanation=_truncate(legal_raw, 500),
        recommendation="Retry audit",
        severity="medium",
        verificationNote=f"Fallback: {reason}" if reason else "Fallback",
    )
    return AuditReport(
        overview="Consolidation failed. Agent findings preserved below.",
        companyInfo=CompanyInfo(name=hostname),
        sections=[ReportSection(title="Raw Findings", findings=[finding])],
        conclusion="Partial audit completed.",
        actionList=["Review raw data", "Retry if needed"],
        issuesCount=1,
        score=FALLBACK_SCORE,
        degraded=True,
    )


class ReportCompiler:
    def __init__(
        self,
        completion: CompletionClient,
        *,
        tasks: tuple[AnalysisTask, ...] = ANALYSIS_TASKS,
        model: str | None = None,
        confidence_threshold: float | None = None,
    ):
        self.completion = completion
        self.tasks = tasks
        self.model = model or settings.compiler_model
        self.confidence_threshold = (
            settings.finding_confidence_threshold if confidence_threshold is None else confidence_threshold
        )

    def _messages(self, url: str, task_results: dict[str, str]) -> list[dict[str, str]]:
        messages = [{"role": "user", "content": render_prompt("compiler.user", url=url)}]
        for task in self.tasks:
            output = _truncate(_safe_output(task_results.get(task.key)), settings.agent_result_char_limit)
            messages.append({"role": "assistant", "content": f"{task.name}: {output}"})
        return messages

    async def compile(
        self,
        url: str,
        task_results: dict[str, str],
        pages: list[Page],
        on_status: StatusCallback | None = None,
    ) -> AuditReport:
        if on_status is not None:
            await on_status("Consolidating agent findings into final report...")
        try:
            raw = await self.completion.complete(
                render_prompt("compiler.system", threshold=int(self.confidence_threshold)),
                self._messages(url, task_results),
                model=self.model,
                response_format={"type": "json_object"},
                temperature=settings.compiler_temperature,
                max_tokens=settings.compiler_max_tokens,
                caller="report_compiler",
            )
        except CompletionError as exc:
            logger.error(f"Report consolidation call failed for {url}: {exc}")
            return fallback_report(url, task_results, reason=type(exc).__name__)

        if on_status is not None:
            await on_status("Finalizing report structure...")
        try:
            consolidated = parse_report_json(raw)
        except ReportStructureError as exc:
            logger.error(f"Report consolidation output rejected for {url}: {exc}")
            return fallback_report(url, task_results, reason="unparsable consolidation output")

        return self.finalize(consolidated, pages)

    def finalize(self, consolidated: ConsolidatedReport, pages: list[Page]) -> AuditReport:
        before = sum(len(s.findings) for s in consolidated.sections)
        sections = apply_confidence_filter(consolidated.sections, self.confidence_threshold)
        sections = verify_missing_findings(sections, pages)
        total = sum(len(s.findings) for s in sections)
        logger.info(f"Report findings: {before} proposed, {total} kept after confidence + verification")

        score = score_sections(sections)
        return AuditReport(
            overview=build_overview(sections, consolidated.translation_analysis),
            companyInfo=consolidated.company_info or CompanyInfo(),
            sections=sections,
            translationAnalysis=consolidated.translation_analysis,
            conclusion=build_conclusion(sections, score),
            actionList=build_action_list(sections),
            issuesCount=total,
            score=score,
        )
