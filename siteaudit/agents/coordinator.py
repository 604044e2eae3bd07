from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Awaitable, Callable

from siteaudit.audit_core.retrieval.service import Retriever, format_chunks
from siteaudit.config import settings
from siteaudit.llm_client import CompletionClient
from siteaudit.services.logger import logger
from siteaudit.services.prompt_store import render_prompt

StatusCallback = Callable[[str], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class AnalysisTask:
    key: str
    name: str
    retrieval_query: str

    @property
    def prompt_key(self) -> str:
        return f"agents.{self.key}"

    def unavailable(self) -> str:
        return f"Agent {self.name}: Analysis unavailable."

    def empty(self) -> str:
        return f"Agent {self.name}: No issues found."


ANALYSIS_TASKS: tuple[AnalysisTask, ...] = (
    AnalysisTask(
        "legal",
        "Legal",
        "impressum imprint legal notice terms conditions agb anbieterkennzeichnung verantwortlich nutzungsbedingungen",
    ),
    AnalysisTask(
        "consumer",
        "Consumer",
        "withdrawal return refund widerruf cancellation shipping rückgabe widerrufsrecht",
    ),
    AnalysisTask(
        "privacy",
        "Privacy",
        "privacy datenschutz cookie gdpr data protection datenschutzerklärung personenbezogene daten",
    ),
    AnalysisTask(
        "company",
        "Company",
        "contact address email vat id phone company number kontakt adresse ust-id handelsregister",
    ),
    AnalysisTask(
        "localization",
        "Localization",
        "language translation english german localization sprache übersetzung",
    ),
    AnalysisTask(
        "translationQuality",
        "Translation",
        "translation quality machine google translate text übersetzungsfehler",
    ),
)


class AnalysisCoordinator:
    """Runs every analysis task concurrently; one failure never sinks the others."""

    def __init__(
        self,
        completion: CompletionClient,
        retriever: Retriever | None,
        *,
        tasks: tuple[AnalysisTask, ...] = ANALYSIS_TASKS,
        model: str | None = None,
        progress_interval: float | None = None,
    ):
        self.completion = completion
        self.retriever = retriever
        self.tasks = tasks
        self.model = model or settings.default_model
        self.progress_interval = (
            settings.progress_interval_seconds if progress_interval is None else progress_interval
        )

    async def run_analysis(
        self,
        job_id: str,
        base_context: str,
        on_status: StatusCallback | None = None,
    ) -> dict[str, str]:
        finished = 0
        total = len(self.tasks)

        async def run(task: AnalysisTask) -> str:
            nonlocal finished
            try:
                return await self._run_task(task, job_id, base_context)
            finally:
                finished += 1

        async def report_progress() -> None:
            while finished < total:
                if on_status is not None:
                    await on_status(f"Audit Swarm Analyzing: {finished}/{total} agents complete...")
                await asyncio.sleep(self.progress_interval)

        if on_status is not None:
            await on_status(f"Deploying {total} AI auditor agents (RAG enhanced)...")
        reporter = asyncio.create_task(report_progress())
        try:
            outputs = await asyncio.gather(*(run(task) for task in self.tasks), return_exceptions=True)
        finally:
            reporter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reporter

        results: dict[str, str] = {}
        for task, output in zip(self.tasks, outputs):
            if isinstance(output, BaseException):
                logger.error(f"Agent {task.name} crashed outside its guard: {output}")
                output = task.unavailable()
            results[task.key] = output
        return results

    async def _run_task(self, task: AnalysisTask, job_id: str, base_context: str) -> str:
        user_content = base_context + await self._retrieved_block(task, job_id)
        try:
            text = await self.completion.complete(
                render_prompt(task.prompt_key),
                [{"role": "user", "content": user_content}],
                model=self.model,
                temperature=settings.agent_temperature,
                max_tokens=settings.agent_max_tokens,
                retries=0,
                caller=f"agent_{task.key}",
            )
        except Exception as exc:
            logger.warning(f"Agent {task.name} failed: {exc}")
            return task.unavailable()
        logger.info(f"Agent {task.name} done ({len(text)} chars)")
        return text or task.empty()

    async def _retrieved_block(self, task: AnalysisTask, job_id: str) -> str:
        if self.retriever is None or not job_id:
            return ""
        try:
            chunks = await self.retriever.retrieve(job_id, task.retrieval_query)
        except Exception as exc:
            logger.warning(f"Retrieval for agent {task.name} failed, continuing without it: {exc}")
            return ""
        if not chunks:
            return ""
        return render_prompt(
            "agents.retrieved_block",
            agent=task.name.upper(),
            chunks=format_chunks(chunks),
            citation=render_prompt("agents.citation_instruction"),
        )
