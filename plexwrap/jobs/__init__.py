"""Wrapped generation jobs: storage, dispatch, status queries and policy."""

from __future__ import annotations

from .dispatcher import GenerationLauncher, JobDispatcher
from .errors import (
    AccessDeniedError,
    DispatchFailedError,
    GenerationDisabledError,
    JobNotFoundError,
    JobStoreError,
    SubjectNotFoundError,
    WrappedError,
)
from .models import (
    CompletedJob,
    DispatchOutcome,
    DispatchResult,
    FailedJob,
    GeneratingJob,
    GenerationTicket,
    JobStatus,
    JobView,
    NotStartedJob,
    decode_job_view,
    public_fields,
)
from .observability import GenerationEventLogger, GenerationEventType
from .query import StatusQueryService
from .service import BulkDispatchSummary, WrappedService, WrappedServiceDependencies
from .storage import WrappedJob, init_job_storage
from .store import JobStore

__all__ = [
    "AccessDeniedError",
    "BulkDispatchSummary",
    "CompletedJob",
    "DispatchFailedError",
    "DispatchOutcome",
    "DispatchResult",
    "FailedJob",
    "GeneratingJob",
    "GenerationDisabledError",
    "GenerationEventLogger",
    "GenerationEventType",
    "GenerationLauncher",
    "GenerationTicket",
    "JobDispatcher",
    "JobNotFoundError",
    "JobStatus",
    "JobStore",
    "JobStoreError",
    "JobView",
    "NotStartedJob",
    "StatusQueryService",
    "SubjectNotFoundError",
    "WrappedError",
    "WrappedJob",
    "WrappedService",
    "WrappedServiceDependencies",
    "decode_job_view",
    "init_job_storage",
    "public_fields",
]
