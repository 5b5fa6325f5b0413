"""Common module: shared utilities for the ops portal."""

from ops_portal.common.audit import AuditTrail, create_audit_entry, jsonable
from ops_portal.common.constants import (
    ACTIVE_STATUSES,
    PENDING_STATUSES,
    ApprovalLevel,
    ApprovalMode,
    DecisionAction,
    HalfDay,
    InboxScope,
    LeaveTypeCode,
    RequestKind,
    RequestStatus,
    StepStatus,
    UserRole,
)
from ops_portal.common.exceptions import (
    AppException,
    ConflictError,
    DuplicateException,
    ForbiddenException,
    InvalidStateException,
    LockedException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from ops_portal.common.filters import apply_filters, apply_sorting
from ops_portal.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    count_rows,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "jsonable",
    # Constants / Enums
    "ACTIVE_STATUSES",
    "PENDING_STATUSES",
    "ApprovalLevel",
    "ApprovalMode",
    "DecisionAction",
    "HalfDay",
    "InboxScope",
    "LeaveTypeCode",
    "RequestKind",
    "RequestStatus",
    "StepStatus",
    "UserRole",
    # Exceptions
    "AppException",
    "ConflictError",
    "DuplicateException",
    "ForbiddenException",
    "InvalidStateException",
    "LockedException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "count_rows",
    "paginate",
]
