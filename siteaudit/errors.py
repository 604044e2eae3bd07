"""Exception taxonomy shared across the audit pipeline."""
from __future__ import annotations


class SiteAuditError(Exception):
    """Base class for every error raised by this package."""


class CompletionError(SiteAuditError):
    """The completion/embedding provider failed."""

    transient = False


class CompletionRateLimited(CompletionError):
    transient = True


class CompletionTimeout(CompletionError):
    transient = True


class CompletionServerError(CompletionError):
    transient = True


class MalformedCompletion(CompletionError):
    """Provider answered, but with nothing usable."""


class CrawlProviderError(SiteAuditError):
    pass


class ReportStructureError(SiteAuditError):
    """Consolidated report could not be parsed into the report schema."""


class AuditSetupError(SiteAuditError):
    """Request or configuration problem detected before any background work."""


class ServerBusyError(SiteAuditError):
    def __init__(self, message: str = "Server busy. Please try again."):
        super().__init__(message)


class JobStateError(SiteAuditError):
    """Attempted a job status transition that would move backwards."""
