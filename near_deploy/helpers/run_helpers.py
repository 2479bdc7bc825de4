import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.near_cli import CommandResult
from ..utils.async_retry import AsyncRetry
from ..utils.common import format_timestamp
from ..utils.exceptions import NearDeployError, StepFailedError

LOG = logging.getLogger(__name__)

StepFactory = Callable[[], Awaitable[Any]]


class StepResult:
    """Result of a single plan step"""

    def __init__(self, name: str, critical: bool = True):
        self.name = name
        self.critical = critical
        self.success = False
        self.skipped = False
        self.error = None
        self.start_time = None
        self.end_time = None
        self.command: Optional[CommandResult] = None
        self.details = {}

    def mark_success(self, **details):
        self.success = True
        if details:
            self.details.update(details)

    def mark_failure(self, error: str, **details):
        self.success = False
        self.error = error
        if details:
            self.details.update(details)

    def mark_skipped(self, reason: str):
        self.success = True
        self.skipped = True
        self.details["skip_reason"] = reason

    @property
    def duration(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self):
        return {
            "step": self.name,
            "success": self.success,
            "skipped": self.skipped,
            "critical": self.critical,
            "error": self.error,
            "duration": self.duration,
            "command": self.command.to_dict() if self.command else None,
            "details": self.details
        }


class DeploymentReport:
    """Collects step results for one plan execution"""

    def __init__(self, plan_name: str, network_id: str, dry_run: bool = False):
        self.plan_name = plan_name
        self.network_id = network_id
        self.dry_run = dry_run
        self.started_at = format_timestamp()
        self.finished_at = None
        self.steps: List[StepResult] = []
        self.error = None
        self.outputs: Dict[str, Any] = {}

    @property
    def success(self) -> bool:
        return self.error is None and all(s.success for s in self.steps)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if not s.success]

    def finish(self, error: Optional[str] = None):
        self.finished_at = format_timestamp()
        if error:
            self.error = error

    def summary(self) -> Dict[str, Any]:
        return {
            "total": len(self.steps),
            "passed": sum(1 for s in self.steps if s.success and not s.skipped),
            "skipped": sum(1 for s in self.steps if s.skipped),
            "failed": len(self.failed_steps),
        }

    def to_dict(self):
        return {
            "plan": self.plan_name,
            "network_id": self.network_id,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "success": self.success,
            "error": self.error,
            "summary": self.summary(),
            "outputs": self.outputs,
            "steps": [s.to_dict() for s in self.steps],
        }

    def save(self, file_path: str):
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)
        LOG.info(f"Deployment report saved to: {file_path}")


class PlanRunner:
    """Executes plan steps in order and records their results

    A step is an async callable returning a CommandResult (or any value).
    A failed CommandResult or a raised NearDeployError fails the step.
    Failure of a critical step raises StepFailedError unless keep_going is
    set, in which case the failure is recorded and the plan continues.
    Only steps marked retryable (read-only queries) go through the retry
    policy. Transactions run at most once, even when near times out.
    """

    def __init__(
        self,
        report: DeploymentReport,
        retry: Optional[AsyncRetry] = None,
        keep_going: bool = False
    ):
        self.report = report
        self.retry = retry
        self.keep_going = keep_going

    async def _attempt(self, factory: StepFactory) -> Any:
        value = await factory()
        if isinstance(value, CommandResult):
            value.check()
        return value

    async def run_step(
        self,
        name: str,
        factory: StepFactory,
        critical: bool = True,
        retryable: bool = False
    ) -> Any:
        step = StepResult(name, critical=critical)
        self.report.steps.append(step)
        loop = asyncio.get_event_loop()
        step.start_time = loop.time()
        LOG.info(f"==> {name}")

        try:
            if retryable and self.retry is not None:
                value = await self.retry.execute(self._attempt, factory, label=name)
            else:
                value = await self._attempt(factory)
        except NearDeployError as e:
            step.end_time = loop.time()
            step.mark_failure(str(e), error_code=e.code, **e.details)
            LOG.error(f"Step '{name}' failed: {e}")
            if critical and not self.keep_going:
                raise StepFailedError(f"Step '{name}' failed: {e.message}", step=name, cause=e)
            return None

        step.end_time = loop.time()
        if isinstance(value, CommandResult):
            step.command = value
            if value.parsed is not None:
                step.details["output"] = value.parsed
        step.mark_success()
        LOG.info(f"<== {name} ok ({step.duration:.2f}s)")
        return value

    def skip_step(self, name: str, reason: str):
        step = StepResult(name)
        step.mark_skipped(reason)
        self.report.steps.append(step)
        LOG.info(f"--- {name} skipped: {reason}")
