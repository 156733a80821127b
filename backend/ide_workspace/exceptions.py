"""
IDE Workspace — Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for tree, store, sync and execution errors.
How:   Each exception carries a user-facing message and an optional context dict.
       Global exception handlers (registered in main.py) map them to HTTP
       status codes and structured JSON error bodies.
Who:   Raised by services; caught by the global handlers or by callers that
       recover locally (the editor re-prompts on tree errors).

Exception Hierarchy:
    WorkspaceError (base)
    ├── ValidationError              → 400 Bad Request
    ├── NotFoundError                → 404 Not Found
    │   ├── ProjectNotFoundError
    │   └── EntryNotFoundError
    ├── TreeError                    → 409 Conflict (recovered at the TreeOps boundary)
    │   ├── NameConflictError
    │   ├── CyclicMoveError
    │   └── LastFileProtectedError
    ├── SyncInProgressError          → 409 Conflict
    ├── RemoteError                  → 502 Bad Gateway
    │   ├── RemoteAuthError          → 401 Unauthorized
    │   ├── RemoteNotFoundError      → 404 Not Found
    │   ├── RemotePartialFailureError → 502 (carries the per-file breakdown)
    │   └── TranslationError         → 502 (malformed remote tree)
    ├── ExecutionServiceError        → 503 Service Unavailable
    ├── CircuitBreakerOpenError      (internal: routes execution to the fallback)
    └── DatabaseError                → 500 Internal Server Error

Remediation differs per remote error class: a credential problem, a missing
repository/branch and a half-finished push each need a different action from
the user, so they are never collapsed into one type.
"""

from typing import Any, Dict, List, Optional


class WorkspaceError(Exception):
    """
    Base exception for all workspace errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, and returned as `details`
                  only by handlers that opt in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(WorkspaceError):
    """
    Raised when caller input fails validation.

    When:    Invalid file/folder name, missing repository binding, unknown
             language, a tree target that is a file rather than a folder.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(WorkspaceError):
    """
    Raised when a requested local resource does not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ProjectNotFoundError(NotFoundError):
    """ProjectStore lookup miss."""

    def __init__(self, project_id: str):
        super().__init__(resource="project", resource_id=project_id)
        self.project_id = project_id


class EntryNotFoundError(NotFoundError):
    """No file or folder with the given path exists in the PathTable."""

    def __init__(self, path: str):
        super().__init__(resource="entry", resource_id=path)
        self.path = path


# ══════════════════════════════════════════════════════════════════════════
# Structural (TreeOps) errors
# ══════════════════════════════════════════════════════════════════════════

class TreeError(WorkspaceError):
    """
    Base for structural invariant violations.

    The operation is rejected and the table is left unchanged; the editor
    re-prompts. These never propagate into the remote layer.
    """


class NameConflictError(TreeError):
    """Target path of a create/rename/move is already occupied."""

    def __init__(self, path: str):
        super().__init__(
            message=f"An entry named '{path}' already exists",
            context={"path": path},
        )
        self.path = path


class CyclicMoveError(TreeError):
    """Move target is the entry itself or one of its descendants."""

    def __init__(self, path: str, target: str):
        super().__init__(
            message=f"Cannot move '{path}' into itself or one of its subfolders ('{target}')",
            context={"path": path, "target": target},
        )
        self.path = path
        self.target = target


class LastFileProtectedError(TreeError):
    """Deletion would leave the project without any file."""

    def __init__(self, path: str):
        super().__init__(
            message="Cannot delete the last file in a project",
            context={"path": path},
        )
        self.path = path


class SyncInProgressError(WorkspaceError):
    """
    A push/pull/clone is already running for this project.

    HTTP:    409 Conflict
    """

    def __init__(self, project_id: str):
        super().__init__(
            message="A sync operation is already running for this project. Wait for it to finish.",
            context={"project_id": project_id},
        )
        self.project_id = project_id


# ══════════════════════════════════════════════════════════════════════════
# Remote (SyncEngine) errors
# ══════════════════════════════════════════════════════════════════════════

class RemoteError(WorkspaceError):
    """
    Raised when a remote object-store call fails.

    What:    Network failure, unexpected status, or rejected request.
    HTTP:    502 Bad Gateway
    Retry:   Never retried automatically; surfaced as terminal for the attempt.
    """

    def __init__(
        self,
        message: str = "The remote repository service returned an error",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class RemoteAuthError(RemoteError):
    """
    Missing, invalid or under-privileged credential.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = (
            "GitHub rejected the access token. Supply a personal access token "
            "with the 'repo' scope and try again."
        ),
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=status_code, context=context)


class RemoteNotFoundError(RemoteError):
    """
    Repository, branch, ref or object absent where a read expected it.

    For push this is the trigger for repository/branch creation rather than
    a fatal error.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        message: str = "The repository or branch was not found. Check the name and your access.",
        status_code: Optional[int] = 404,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=status_code, context=context)


class RemotePartialFailureError(RemoteError):
    """
    A push aborted partway through.

    Carries the PushResult so the caller can show which files were staged
    and which failed. Blobs created before a tree/commit/ref failure stay on
    the remote as unreferenced objects; nothing was committed.
    """

    def __init__(self, message: str, result: Any, stage: str):
        super().__init__(
            message=message,
            context={
                "stage": stage,
                "succeeded": getattr(result, "succeeded", None),
                "failed": getattr(result, "failed", None),
            },
        )
        self.result = result
        self.stage = stage


class TranslationError(RemoteError):
    """
    The remote tree could not be turned into a consistent PathTable.

    When:    Entry without a path, unexpected entry type, unsafe path segment,
             truncated listing, or a file/folder collision. The in-progress
             reconstruction is discarded; the live table is untouched.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Execution and persistence errors
# ══════════════════════════════════════════════════════════════════════════

class ExecutionServiceError(WorkspaceError):
    """
    Raised when every execution provider failed.

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The code execution service is temporarily unavailable",
        errors: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if errors:
            ctx["errors"] = errors
        super().__init__(message=message, context=ctx)
        self.errors = errors or []


class CircuitBreakerOpenError(WorkspaceError):
    """
    Raised by CircuitBreaker.can_execute() while the primary provider is
    cooling down. ExecutionService catches it and goes to the fallback.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Primary execution provider is paused after repeated failures. "
            f"It will be retried in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(WorkspaceError):
    """
    Raised when a local store operation fails unexpectedly.

    The message returned to the client is always generic; details are
    logged server-side only.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
