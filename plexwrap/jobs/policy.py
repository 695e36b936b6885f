"""Who may start or read a Wrapped job.

Generation rules, keyed on the latest attempt's status:

- no attempt yet: the subject themself, or an administrator;
- ``generating`` or ``failed``: the subject (a retry), or an administrator;
  only a ``failed`` attempt is refused to others as a retry;
- ``completed``: administrators only, since it replaces a delivered report.

Status reads are allowed for the subject and for administrators.
"""

from __future__ import annotations

import typing as typ

from plexwrap.jobs.errors import AccessDeniedError
from plexwrap.jobs.models import JobStatus

if typ.TYPE_CHECKING:
    from plexwrap.accounts.models import CallerSession


def authorize_generation(
    caller: CallerSession,
    subject_id: str,
    latest_status: JobStatus | None,
) -> None:
    """Raise ``AccessDeniedError`` unless *caller* may generate for *subject_id*."""
    if caller.is_admin:
        return
    if latest_status is JobStatus.COMPLETED:
        raise AccessDeniedError.regenerate_requires_admin()
    if caller.subject_id == subject_id:
        return
    if latest_status is JobStatus.FAILED:
        raise AccessDeniedError.retry_for_other()
    raise AccessDeniedError.generate_for_other()


def authorize_status_read(caller: CallerSession, subject_id: str) -> None:
    """Raise ``AccessDeniedError`` unless *caller* may read *subject_id*'s job."""
    if not caller.may_act_for(subject_id):
        raise AccessDeniedError.read_for_other()


def require_admin(caller: CallerSession) -> None:
    """Raise ``AccessDeniedError`` unless *caller* is an administrator."""
    if not caller.is_admin:
        raise AccessDeniedError.admin_required()
