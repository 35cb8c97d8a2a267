"""Core functionality for work logging."""

from work_log.core.errors import (
    ChannelError,
    DuplicateDateError,
    NetworkFault,
    NotConfiguredError,
    RecordNotFoundError,
    RecordValidationError,
    SchemaMissingError,
    StorageFault,
    WorkLogError,
)
from work_log.core.models import ProjectEntry, Role, User, WorkRecord, build_record, resolve_user

__all__ = [
    "ProjectEntry",
    "WorkRecord",
    "User",
    "Role",
    "build_record",
    "resolve_user",
    "WorkLogError",
    "NotConfiguredError",
    "SchemaMissingError",
    "ChannelError",
    "StorageFault",
    "NetworkFault",
    "RecordNotFoundError",
    "RecordValidationError",
    "DuplicateDateError",
]
