from __future__ import annotations

import asyncio
import re
from datetime import UTC, datetime
from typing import Any, Callable
from urllib.parse import urlparse

from siteaudit.agents.compiler import ReportCompiler
from siteaudit.agents.context import build_base_context
from siteaudit.agents.coordinator import AnalysisCoordinator
from siteaudit.audit_core.crawl.service import CrawlService
from siteaudit.audit_core.ingest.service import KnowledgeBase
from siteaudit.audit_core.models.interfaces import CrawlResult
from siteaudit.config import settings
from siteaudit.errors import AuditSetupError
from siteaudit.models.jobs import JobStatus, advance
from siteaudit.models.report import AuditReport
from siteaudit.services import streaming
from siteaudit.services.concurrency import AuditConcurrencyLimiter
from siteaudit.services.job_store import JobRepository
from siteaudit.services.logger import log_audit_step, log_event, logger
from siteaudit.services.status_channel import StatusBroadcaster

_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)


def extract_target_url(text: str) -> str | None:
    """First http(s) URL in ``text``; a bare domain gets ``https://`` prepended."""
    text = (text or "").strip()
    if not text:
        return None
    match = _URL_RE.search(text)
    if match:
        return match.group(0).rstrip(".,;)")
    candidate = text.split()[0]
    if "." not in candidate:
        return None
    return f"https://{candidate}"


class AuditJobManager:
    """Owns audit jobs from submission to a terminal status."""

    def __init__(
        self,
        *,
        jobs: JobRepository,
        crawler: CrawlService,
        knowledge_base: KnowledgeBase,
        coordinator: AnalysisCoordinator,
        compiler: ReportCompiler,
        broadcaster: StatusBroadcaster,
        limiter: AuditConcurrencyLimiter,
        preflight: Callable[[], list[str]] | None = None,
    ):
        self.jobs = jobs
        self.crawler = crawler
        self.knowledge_base = knowledge_base
        self.coordinator = coordinator
        self.compiler = compiler
        self.broadcaster = broadcaster
        self.limiter = limiter
        self._preflight = preflight or settings.missing_provider_keys
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._status: dict[str, JobStatus] = {}
        self._raw: dict[str, dict[str, Any]] = {}

    # --- submission ---

    async def start_audit(
        self,
        input_text: str,
        user_id: str,
        *,
        job_id: str | None = None,
        reject_when_busy: bool = False,
        force_recrawl: bool = False,
        creator_name: str | None = None,
        creator_email: str | None = None,
    ) -> str:
        """Validate, register the job and launch its pipeline in the background."""
        url = extract_target_url(input_text)
        if not url:
            raise AuditSetupError("No valid URL found in input")
        if not (user_id or "").strip():
            raise AuditSetupError("user_id is required")
        missing = self._preflight()
        if missing:
            raise AuditSetupError(f"Missing configuration: {', '.join(missing)}")

        slot_held = False
        if reject_when_busy:
            self.limiter.try_acquire()
            slot_held = True

        try:
            job = await self._register_job(url, user_id, job_id, creator_name, creator_email)
        except BaseException:
            if slot_held:
                self.limiter.release()
            raise

        job_id = str(job["id"])
        self._status[job_id] = JobStatus(job.get("status") or JobStatus.PENDING)
        raw = job.get("raw_data") if isinstance(job.get("raw_data"), dict) else {}
        self._raw[job_id] = dict(raw)

        task = asyncio.create_task(self._run(job_id, url, slot_held=slot_held, force_recrawl=force_recrawl))
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t, jid=job_id: self._tasks.pop(jid, None))
        log_event("audit_started", "Audit job launched", job_id=job_id, url=url, user_id=user_id)
        return job_id

    async def _register_job(
        self,
        url: str,
        user_id: str,
        job_id: str | None,
        creator_name: str | None,
        creator_email: str | None,
    ) -> dict[str, Any]:
        if job_id:
            job = await self.jobs.get_job(job_id)
            if job is None:
                raise AuditSetupError(f"Job {job_id} not found")
            if job.get("status") not in (None, JobStatus.PENDING.value):
                raise AuditSetupError(f"Job {job_id} is already {job.get('status')}")
            return job
        return await self.jobs.create_job(
            {
                "user_id": user_id,
                "url": url,
                "title": urlparse(url).hostname or url,
                "status": JobStatus.PENDING.value,
                "status_message": "Initializing...",
                "creator_name": creator_name,
                "creator_email": creator_email,
            }
        )

    async def wait(self, job_id: str) -> None:
        task = self._tasks.get(job_id)
        if task is not None:
            await task

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    # --- pipeline ---

    async def _run(self, job_id: str, url: str, *, slot_held: bool, force_recrawl: bool) -> None:
        if not slot_held:
            if self.limiter.saturated:
                await self._update_status(job_id, "Queued: waiting for a free audit slot...")
            await self.limiter.acquire()
        try:
            await self._pipeline(job_id, url, force_recrawl)
        except Exception as exc:
            await self._fail(job_id, exc)
        finally:
            self.limiter.release()
            self._status.pop(job_id, None)
            self._raw.pop(job_id, None)

    async def _pipeline(self, job_id: str, url: str, force_recrawl: bool) -> None:
        log_audit_step(job_id, "pipeline", "started", {"url": url})
        await self._update_status(job_id, "Initializing Audit Squad...")

        crawl = await self._gather_content(job_id, url, force_recrawl)

        await self._update_status(job_id, "Analyzing website content...", JobStatus.PROCESSING)
        cached_agents = self._raw[job_id].get("agents")
        if isinstance(cached_agents, dict) and cached_agents and not force_recrawl:
            await self._update_status(job_id, "Restoring previous agent findings...")
            task_results = {str(k): str(v) for k, v in cached_agents.items()}
        else:
            base_context = build_base_context(url, crawl)
            task_results = await self.coordinator.run_analysis(job_id, base_context, self._status_cb(job_id))
            await self._save_raw(job_id, agents=task_results)
        log_audit_step(job_id, "analysis", "completed", {"tasks": sorted(task_results)})

        report = await self.compiler.compile(url, task_results, crawl.pages, self._status_cb(job_id))
        await self._complete(job_id, report)
        log_audit_step(job_id, "pipeline", "completed", {"score": report.score, "degraded": report.degraded})

    async def _gather_content(self, job_id: str, url: str, force_recrawl: bool) -> CrawlResult:
        cached_crawl = self._raw[job_id].get("crawl")
        if isinstance(cached_crawl, dict) and cached_crawl and not force_recrawl:
            await self._update_status(job_id, "Using cached crawl data...")
            crawl = CrawlResult.from_dict(cached_crawl)
            if await self.knowledge_base.count(job_id) == 0:
                await self._update_status(job_id, "RAG: Building knowledge base...")
                await self.knowledge_base.ingest(job_id, crawl.pages, self._status_cb(job_id))
            return crawl

        if not force_recrawl:
            reused = await self._reuse_prior_crawl(job_id, url)
            if reused is not None:
                return reused

        await self._update_status(job_id, "Crawling website...", JobStatus.CRAWLING)
        crawl = await self.crawler.crawl(url, self._status_cb(job_id))
        log_audit_step(
            job_id,
            "crawl",
            "completed",
            {"pages": crawl.total_pages, "legal_pages": crawl.legal_pages_found},
        )
        await self._update_status(job_id, "RAG: Building knowledge base...")
        await self.knowledge_base.ingest(job_id, crawl.pages, self._status_cb(job_id))
        await self._save_raw(job_id, crawl=crawl)
        return crawl

    async def _reuse_prior_crawl(self, job_id: str, url: str) -> CrawlResult | None:
        prior = await self.jobs.find_reusable_job(url, exclude_id=job_id)
        if prior is None:
            return None
        prior_id = str(prior["id"])
        if await self.knowledge_base.count(prior_id) == 0:
            return None
        await self._update_status(job_id, "Reuse strategy: found previous crawl, copying knowledge base...")
        copied = await self.knowledge_base.copy_chunks(prior_id, job_id)
        crawl = CrawlResult.from_dict(prior["raw_data"]["crawl"])
        await self._save_raw(job_id, crawl=crawl)
        log_audit_step(job_id, "reuse", "completed", {"source_job": prior_id, "chunks": copied})
        return crawl

    # --- persistence + status ---

    def _status_cb(self, job_id: str) -> Callable[[str], Any]:
        async def _cb(message: str) -> None:
            await self._update_status(job_id, message)

        return _cb

    async def _update_status(self, job_id: str, message: str, status: JobStatus | None = None) -> None:
        fields: dict[str, Any] = {"status_message": message}
        if status is not None:
            fields["status"] = advance(self._status.get(job_id, JobStatus.PENDING), status).value
            self._status[job_id] = status
        try:
            await self.jobs.update_job(job_id, **fields)
        except Exception as exc:
            logger.warning(f"Could not persist status for job {job_id}: {exc}")
        self.broadcaster.publish(streaming.job_channel(job_id), streaming.status_update(message, job_id))

    async def _save_raw(
        self,
        job_id: str,
        *,
        crawl: CrawlResult | None = None,
        agents: dict[str, str] | None = None,
    ) -> None:
        raw = self._raw.setdefault(job_id, {})
        fields: dict[str, Any] = {}
        if crawl is not None:
            raw["crawl"] = crawl.to_dict()
            fields["crawl_status"] = "completed"
            fields["crawled_at"] = crawl.crawled_at or datetime.now(UTC).isoformat()
        if agents is not None:
            raw["agents"] = dict(agents)
        fields["raw_data"] = raw
        await self.jobs.update_job(job_id, **fields)

    async def _complete(self, job_id: str, report: AuditReport) -> None:
        status = advance(self._status.get(job_id, JobStatus.PENDING), JobStatus.COMPLETED)
        await self.jobs.update_job(
            job_id,
            status=status.value,
            status_message="Audit completed!",
            report=report.to_record(),
            score=report.score,
            completed_at=datetime.now(UTC).isoformat(),
        )
        self._status[job_id] = status
        self.broadcaster.publish(
            streaming.job_channel(job_id),
            streaming.audit_completed(job_id, report.score, report.degraded),
        )

    async def _fail(self, job_id: str, exc: BaseException) -> None:
        message = str(exc) or type(exc).__name__
        logger.opt(exception=exc).error(f"Audit job {job_id} failed: {message}")
        event = streaming.audit_failed(job_id, message)
        try:
            await self.jobs.update_job(job_id, status=JobStatus.FAILED.value, status_message=event.message)
        except Exception as persist_exc:
            logger.error(f"Could not persist failure for job {job_id}: {persist_exc}")
        self._status[job_id] = JobStatus.FAILED
        self.broadcaster.publish(streaming.job_channel(job_id), event)
        log_audit_step(job_id, "pipeline", "failed", {"error": message[:200]})
