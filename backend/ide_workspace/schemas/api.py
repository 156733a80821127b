"""
IDE Workspace — Shared API Schemas
===================================

What:  Execution, error and health response models shared across routes.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    entry_point: Optional[str] = Field(
        default=None,
        description="Path of the file to run; defaults to the language entry point",
    )
    stdin: str = Field(default="", max_length=1_000_000)


class ExecutionResult(BaseModel):
    """
    Outcome of running a project on an execution provider.

    `output` is stdout followed by stderr, the way the editor console shows it.
    """

    success: bool
    stdout: str = ""
    stderr: str = ""
    output: str = ""
    provider: str = Field(description="Which provider produced this result")


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "name_conflict",
            "message": "An entry named 'src/main.py' already exists",
            "details": {"path": "src/main.py"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    execution: str = Field(description="Primary execution provider: available, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
