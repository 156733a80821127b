"""
IDE Workspace — Code Execution Service
=======================================

What:  Runs a project's files on a remote execution provider and normalizes
       the result.
How:   A primary provider (Piston) is tried once, guarded by a circuit
       breaker. On any failure, exactly one fallback attempt goes to Wandbox.
       If both fail the caller gets an ExecutionServiceError naming both errors.
Who:   Called by LanguageCapability.execute(), which the WorkspaceService
       reaches from POST /api/projects/{id}/run.
When:  Only on an explicit "Run" action from the editor.

Resilience Strategy:
    1. No automatic retries: one primary attempt, one fallback attempt
    2. Circuit breaker on the primary: while OPEN, the fallback is called directly
    3. httpx timeouts from settings.execution_timeout
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ide_workspace.config import settings
from ide_workspace.exceptions import CircuitBreakerOpenError, ExecutionServiceError
from ide_workspace.schemas.api import ExecutionResult
from ide_workspace.schemas.project import FileEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeSpec:
    """How one language is addressed on each provider."""

    piston_language: str
    wandbox_compiler: str
    piston_version: str = "*"
    wandbox_options: str = ""
    wandbox_compiler_options: str = ""
    args: List[str] = field(default_factory=list)


def _ordered(files: List[FileEntry], entry_point: FileEntry) -> List[FileEntry]:
    """Entry point first; providers treat the first file as the one to run."""
    return [entry_point] + [f for f in files if f.path != entry_point.path and not f.is_folder]


def _join_output(stdout: str, stderr: str) -> str:
    if stdout and stderr:
        return f"{stdout}\n{stderr}"
    return stdout or stderr


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker in front of the primary execution provider.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → can_execute() raises CircuitBreakerOpenError
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; a single uvicorn worker process shares one instance.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True if a request may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Providers
# ══════════════════════════════════════════════════════════════════════════

class ExecutionBackend(ABC):
    """
    Contract for a remote code runner.

    Implementations raise on transport failures and non-2xx responses; a
    program that compiles or runs unsuccessfully is a normal result with
    success=False.
    """

    name: str = "backend"

    @abstractmethod
    async def execute(
        self,
        runtime: RuntimeSpec,
        files: List[FileEntry],
        entry_point: FileEntry,
        stdin: str = "",
    ) -> ExecutionResult:
        ...


class PistonBackend(ExecutionBackend):
    """Piston (emkc.org) multi-file execution API."""

    name = "piston"

    def __init__(self, url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.url = url or settings.piston_url
        self._transport = transport

    async def execute(self, runtime, files, entry_point, stdin=""):
        payload = {
            "language": runtime.piston_language,
            "version": runtime.piston_version,
            "files": [
                {"name": f.path, "content": f.contents}
                for f in _ordered(files, entry_point)
            ],
            "stdin": stdin,
            "args": list(runtime.args),
            "compile_timeout": settings.compile_timeout_ms,
            "run_timeout": settings.run_timeout_ms,
        }
        async with httpx.AsyncClient(
            timeout=settings.execution_timeout, transport=self._transport
        ) as client:
            response = await client.post(self.url, json=payload)
        if response.status_code >= 400:
            raise RuntimeError(
                f"Piston API error: {response.status_code} {response.reason_phrase} - {response.text}"
            )
        result = response.json()

        compile_stage = result.get("compile") or {}
        if compile_stage and compile_stage.get("code") not in (0, None):
            stderr = compile_stage.get("stderr") or compile_stage.get("stdout") or "Unknown compilation error"
            return ExecutionResult(
                success=False,
                stderr=stderr,
                output=f"Compilation failed:\n{stderr}",
                provider=self.name,
            )

        run_stage = result.get("run") or {}
        stdout = run_stage.get("stdout") or ""
        stderr = run_stage.get("stderr") or ""
        return ExecutionResult(
            success=run_stage.get("code") == 0,
            stdout=stdout,
            stderr=stderr,
            output=_join_output(stdout, stderr),
            provider=self.name,
        )


class WandboxBackend(ExecutionBackend):
    """Wandbox compile API. Extra files go in `codes`; the entry file is `code`."""

    name = "wandbox"

    def __init__(self, url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.url = url or settings.wandbox_url
        self._transport = transport

    async def execute(self, runtime, files, entry_point, stdin=""):
        ordered = _ordered(files, entry_point)
        payload = {
            "compiler": runtime.wandbox_compiler,
            "code": ordered[0].contents,
            "codes": [{"file": f.path, "code": f.contents} for f in ordered[1:]],
            "options": runtime.wandbox_options,
            "compiler-option-raw": runtime.wandbox_compiler_options,
            "stdin": stdin,
            "save": False,
        }
        async with httpx.AsyncClient(
            timeout=settings.execution_timeout, transport=self._transport
        ) as client:
            response = await client.post(self.url, json=payload)
        if response.status_code >= 400:
            raise RuntimeError(
                f"Wandbox API error: {response.status_code} {response.reason_phrase} - {response.text}"
            )
        result = response.json()

        if str(result.get("status")) != "0":
            stderr = (
                result.get("compiler_error")
                or result.get("program_error")
                or "Unknown error"
            )
            stdout = result.get("program_output") or ""
            return ExecutionResult(
                success=False,
                stdout=stdout,
                stderr=stderr,
                output=_join_output(stdout, stderr),
                provider=self.name,
            )

        stdout = result.get("program_output") or ""
        stderr = result.get("program_error") or ""
        return ExecutionResult(
            success=True,
            stdout=stdout,
            stderr=stderr,
            output=_join_output(stdout, stderr),
            provider=self.name,
        )


# ══════════════════════════════════════════════════════════════════════════
# Execution Service
# ══════════════════════════════════════════════════════════════════════════

class ExecutionService:
    """Primary-then-fallback runner. One attempt each, never retried."""

    def __init__(
        self,
        primary: ExecutionBackend = None,
        fallback: ExecutionBackend = None,
        circuit_breaker: CircuitBreaker = None,
    ):
        self.primary = primary or PistonBackend()
        self.fallback = fallback or WandboxBackend()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    async def run(
        self,
        runtime: RuntimeSpec,
        files: List[FileEntry],
        entry_point: FileEntry,
        stdin: str = "",
    ) -> ExecutionResult:
        """
        Run `files` with `entry_point` as the program's main file.

        Raises:
            ExecutionServiceError: both providers failed.
        """
        start_time = time.perf_counter()
        try:
            self.circuit_breaker.can_execute()
            result = await self.primary.execute(runtime, files, entry_point, stdin)
        except CircuitBreakerOpenError as e:
            logger.info("Primary provider skipped: %s", e.message)
            primary_error = e.message
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.warning("Primary provider %s failed: %s", self.primary.name, e)
            primary_error = str(e)
        else:
            self.circuit_breaker.record_success()
            logger.info(
                "Executed %s on %s in %.0fms (success=%s)",
                entry_point.path,
                self.primary.name,
                (time.perf_counter() - start_time) * 1000,
                result.success,
            )
            return result

        try:
            result = await self.fallback.execute(runtime, files, entry_point, stdin)
        except Exception as e:
            logger.error("Fallback provider %s failed: %s", self.fallback.name, e)
            errors = [
                f"{self.primary.name.capitalize()}: {primary_error}",
                f"{self.fallback.name.capitalize()}: {e}",
            ]
            raise ExecutionServiceError(
                message="All execution services failed:\n"
                + "\n".join(f"{i}. {err}" for i, err in enumerate(errors, start=1)),
                errors=errors,
            )

        logger.info(
            "Executed %s on fallback %s in %.0fms (success=%s)",
            entry_point.path,
            self.fallback.name,
            (time.perf_counter() - start_time) * 1000,
            result.success,
        )
        return result


# Singleton instance — created once at module import
execution_service = ExecutionService()
