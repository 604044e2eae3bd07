"""SiteAudit - Website Compliance Audits

Simple CLI for running an audit or a keyword discovery search.
"""

import argparse
import asyncio
import json
import uuid

from siteaudit.config import settings
from siteaudit.errors import AuditSetupError
from siteaudit.services import streaming
from siteaudit.services.audit_jobs import extract_target_url
from siteaudit.services.runtime import (
    get_audit_manager,
    get_broadcaster,
    get_job_repository,
    get_keyword_pipeline,
)


async def _print_events(subscription) -> None:
    async for event in subscription:
        marker = {"completed": "[*]", "failed": "[!]"}.get(event.status.value, "[~]")
        print(f"{marker} {event.message}")


async def run_audit(url: str, user_id: str, force_recrawl: bool = False) -> int:
    """Run one audit to completion and print the report."""
    print(f"Audit target: {url}")
    print("-" * 50)

    target = extract_target_url(url)
    if not target:
        print("[!] No valid URL found in input")
        return 2

    manager = get_audit_manager()
    job_id = str(uuid.uuid4())
    # Subscribe before launch so the first status events are not missed.
    subscription = get_broadcaster().subscribe(streaming.job_channel(job_id))
    printer = asyncio.create_task(_print_events(subscription))

    # The manager only attaches to existing pending jobs, so register one under our id first.
    await get_job_repository().create_job({"id": job_id, "user_id": user_id, "url": target})
    try:
        await manager.start_audit(target, user_id, job_id=job_id, force_recrawl=force_recrawl)
    except AuditSetupError as exc:
        printer.cancel()
        subscription.close()
        print(f"[!] {exc}")
        return 2
    await manager.wait(job_id)
    await printer

    job = await get_job_repository().get_job(job_id) or {}
    if job.get("status") != "completed":
        return 1

    report = job.get("report") or {}
    print(f"\n{'='*50}")
    print(f"SCORE: {job.get('score')}  ISSUES: {report.get('issuesCount', 0)}")
    print(f"{'='*50}")
    print(report.get("overview", ""))
    for action in report.get("actionList", []):
        print(f"  - {action}")
    print(f"\n{report.get('conclusion', '')}")
    return 0


async def run_keyword_search(query: str, user_id: str) -> int:
    print(f"Keyword search: {query}")
    print("-" * 50)
    rows = await get_keyword_pipeline().run(query, user_id)
    print(json.dumps(rows, indent=2, ensure_ascii=False))
    return 0


def main():
    parser = argparse.ArgumentParser(description="SiteAudit website compliance audits")
    subparsers = parser.add_subparsers(dest="command", required=True)

    audit = subparsers.add_parser("audit", help="Audit one website")
    audit.add_argument("url", help="Website URL or free text containing one")
    audit.add_argument("--user-id", "-u", default="cli", help="Owner recorded on the job")
    audit.add_argument("--force-recrawl", action="store_true", help="Ignore cached crawl data")

    keywords = subparsers.add_parser("keywords", help="Discover company websites for a keyword")
    keywords.add_argument("query", help="Search query")
    keywords.add_argument("--user-id", "-u", default="cli", help="Owner recorded on the results")

    args = parser.parse_args()

    if args.command == "audit":
        missing = settings.missing_provider_keys()
        if missing:
            parser.error(f"missing configuration: {', '.join(missing)}")
        raise SystemExit(asyncio.run(run_audit(args.url, args.user_id, args.force_recrawl)))
    raise SystemExit(asyncio.run(run_keyword_search(args.query, args.user_id)))


if __name__ == "__main__":
    main()
