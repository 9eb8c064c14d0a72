"""
script2video Base Runner

Shared machinery for the phase runners: the execution lock that keeps a
single writer on the project record, progress reporting, and the wrapper
that turns a failed service call into recorded error state.
"""

from abc import ABC
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

from script2video.core.config import PipelineConfig, get_config
from script2video.core.constants import Phase
from script2video.core.exceptions import PipelineBusyError
from script2video.core.logging_config import get_logger
from script2video.core.models import ProjectData
from script2video.llm.generation_service import GenerationResult, GenerationService
from script2video.store.project_store import ProjectStore

logger = get_logger("pipelines.base")

ProgressCallback = Callable[[Dict[str, Any]], None]


class ExecutionLock:
    """
    Non-blocking ownership token shared by all runners of one project.

    Acquiring it while another operation holds it raises PipelineBusyError
    instead of waiting, so at most one generation call is ever in flight.
    """

    def __init__(self):
        self._owner: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._owner is not None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @contextmanager
    def hold(self, requested_by: str) -> Iterator[None]:
        if self._owner is not None:
            raise PipelineBusyError(self._owner, requested_by)
        self._owner = requested_by
        try:
            yield
        finally:
            self._owner = None


@dataclass
class CallOutcome:
    """Result of a guarded service call: either ``result`` or ``error`` is set."""
    result: Optional[GenerationResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class BaseRunner(ABC):
    """
    Base class for the phase runners.

    Features:
    - Shared execution lock
    - Progress callback
    - Failure capture for service calls
    """

    phase: Phase = Phase.IDLE

    def __init__(
        self,
        name: str,
        store: ProjectStore,
        service: GenerationService,
        lock: Optional[ExecutionLock] = None,
        config: Optional[PipelineConfig] = None
    ):
        """
        Initialize the runner.

        Args:
            name: Runner name used in logs and busy errors
            store: Project record store
            service: Generation service to call
            lock: Lock shared with the other runners of this project
            config: Pipeline settings (defaults to the global config)
        """
        self.name = name
        self.store = store
        self.service = service
        self.lock = lock or ExecutionLock()
        self.config = config or get_config().pipeline
        self._progress_callback: Optional[ProgressCallback] = None

    @property
    def busy(self) -> bool:
        return self.lock.busy

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Set a callback for progress updates."""
        self._progress_callback = callback

    def _report_progress(
        self,
        step: str,
        message: str,
        current: int = 0,
        total: int = 0
    ) -> None:
        """Report progress to callback."""
        logger.info(message)
        if self._progress_callback:
            self._progress_callback({
                'phase': self.phase.value,
                'step': step,
                'message': message,
                'current': current,
                'total': total,
            })

    def _operation(self, action: str):
        """Hold the execution lock for one public operation."""
        return self.lock.hold(f"{self.name}.{action}")

    def _snapshot(self) -> ProjectData:
        return self.store.snapshot()

    async def _guarded_call(
        self,
        label: str,
        call: Callable[[], Awaitable[GenerationResult]]
    ) -> CallOutcome:
        """
        Await one service call, capturing any failure as a message.

        Args:
            label: What is being generated, for logging
            call: Zero-argument factory returning the service coroutine
        """
        try:
            result = await call()
        except Exception as e:
            message = str(e) or "Unknown error"
            logger.error(f"{self.name}: {label} failed - {message}")
            return CallOutcome(error=message)

        logger.debug(f"{self.name}: {label} done ({result.usage.total_tokens} tokens)")
        return CallOutcome(result=result)
