"""
Lifecycle orchestrator for a single egress test.

Drives one probe stack through create, wait-ready, invoke, validate and
retain-or-destroy, keeping an activity log of everything it did.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable

import structlog

from egressprobe.activity import ActivityLog
from egressprobe.config import Settings, get_settings
from egressprobe.core.errors import (
    ConfigurationError,
    EgressProbeError,
    InvocationError,
    ResponseDecodeError,
    ValidationError,
)
from egressprobe.invocation.base import ProbeInvoker
from egressprobe.models import (
    LifecyclePhase,
    Outcome,
    ProbeResult,
    ProbeTarget,
    ProvisioningRequest,
    freeze_targets,
)
from egressprobe.provisioning.base import ResourceProvisioner
from egressprobe.retry import Sleeper, retry_while
from egressprobe.validator import validate_results

logger = structlog.get_logger()


class EgressTester:
    """Test internet egress from a VPC subnet with a throwaway probe stack.

    Build it either with a ``ProvisioningRequest`` (a new stack is created on
    the first ``test()``) or with the ``stack_name`` of a retained stack to
    resume. One instance drives one stack; calling ``test()`` concurrently
    on the same instance is not supported.

    Usage:
        tester = EgressTester(
            CloudFormationProvisioner(),
            LambdaInvoker(),
            request=ProvisioningRequest(vpc_id="vpc-123", subnet_id="subnet-456"),
        )
        outcome = tester.test()
        print(outcome.log)
        outcome.raise_for_error()
    """

    def __init__(
        self,
        provisioner: ResourceProvisioner,
        invoker: ProbeInvoker,
        *,
        request: ProvisioningRequest | None = None,
        stack_name: str | None = None,
        targets: Iterable[ProbeTarget] | None = None,
        retain_stack: bool = False,
        context: str | None = None,
        initial_sleep_seconds: float | None = None,
        post_event_sleep_seconds: float | None = None,
        max_elapsed_seconds: float | None = None,
        settings: Settings | None = None,
        sleep: Sleeper = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._provisioner = provisioner
        self._invoker = invoker
        self._sleep = sleep

        self.context = context or self._settings.context
        self._log = ActivityLog(self.context, clock) if clock else ActivityLog(self.context)

        self.initial_sleep_seconds = _pick(
            initial_sleep_seconds, self._settings.initial_sleep_seconds
        )
        self.post_event_sleep_seconds = _pick(
            post_event_sleep_seconds, self._settings.post_event_sleep_seconds
        )
        self.max_elapsed_seconds = _pick(max_elapsed_seconds, self._settings.max_elapsed_seconds)
        self.retain_stack = retain_stack

        self._targets = freeze_targets(targets)
        self.results: list[ProbeResult] = []
        self.passed = False
        self.function_name: str | None = None

        if stack_name:
            self._request: ProvisioningRequest | None = None
            self.stack_name = stack_name
            self._stack_created = True
            self.phase = LifecyclePhase.CREATED
            self._log_message("using existing stack")
        else:
            self._request = self._checked_request(request)
            self.stack_name = ""
            self._stack_created = False
            self.phase = LifecyclePhase.NOT_CREATED

    def _checked_request(self, request: ProvisioningRequest | None) -> ProvisioningRequest:
        if request is None:
            raise ConfigurationError(
                "a provisioning request is required if stack_name is not supplied"
            )
        if not request.subnet_id:
            raise ConfigurationError("subnet_id is a required input field if stack_name is not supplied")
        if not request.vpc_id:
            raise ConfigurationError("vpc_id is a required input field if stack_name is not supplied")
        return replace(request, stack_prefix=request.stack_prefix or self._settings.stack_prefix)

    @property
    def targets(self) -> tuple[ProbeTarget, ...]:
        return self._targets

    @property
    def stack_created(self) -> bool:
        return self._stack_created

    def _log_message(self, message: str) -> None:
        self._log.append(message, stack_name=self.stack_name)

    def get_log(self) -> str:
        """Return the activity log as one newline-joined string."""
        return self._log.render()

    @property
    def log_messages(self) -> list[str]:
        return self._log.messages()

    def create_stack(self) -> str:
        """Create the probe stack and block until it is ready.

        Returns:
            The name of the created stack

        Raises:
            ConfigurationError: if this tester resumes an existing stack
            ProvisioningError: if creation fails or times out
        """
        if self._request is None:
            raise ConfigurationError("cannot create a stack when resuming an existing one")

        self.phase = LifecyclePhase.CREATING
        self._log_message("loading template and submitting stack")
        try:
            stack_id = self._provisioner.create(self._request)
            self.stack_name = stack_id
            self._log_message("stack submitted; awaiting completion")
            descriptor = self._provisioner.wait_until_ready(
                stack_id, self._settings.stack_create_max_attempts
            )
        except EgressProbeError as exc:
            self.phase = LifecyclePhase.NOT_CREATED
            self._log_message(f"stack creation failed: {exc.message}")
            raise

        self.stack_name = descriptor.stack_name or stack_id
        self._stack_created = True
        self.phase = LifecyclePhase.CREATED
        self._log_message("stack created")
        return self.stack_name

    def delete_stack(self) -> None:
        """Request deletion of the probe stack without waiting for it.

        Raises:
            ConfigurationError: if there is no stack to delete
            DeletionError: if the delete request is rejected
        """
        if not self.stack_name:
            raise ConfigurationError("no stack to delete")

        self._log_message("deleting stack")
        self._provisioner.delete(self.stack_name)
        self._stack_created = False
        self.phase = LifecyclePhase.DELETED

    def test(self) -> Outcome:
        """Run the full lifecycle and return what happened.

        The outcome always carries the results gathered so far and the log;
        ``outcome.error`` is the first error encountered.
        """
        self._log_message("starting test")
        self.results = []
        self.passed = False

        if not self._stack_created:
            self._log_message("stack doesn't exist yet, creating stack")
            try:
                self.create_stack()
            except EgressProbeError as exc:
                self._log_message(f"errors: {exc.message}")
                return self._outcome(exc)

        error: EgressProbeError | None = None
        try:
            self._run_probe()
            self.passed = True
            self._log_message("tests passed")
        except EgressProbeError as exc:
            error = exc

        if self.retain_stack:
            self._log_message("retaining stack")
            self.phase = LifecyclePhase.RETAINED
        else:
            try:
                self.delete_stack()
            except EgressProbeError as exc:
                self._log_message(f"stack deletion failed: {exc.message}")
                if error is None:
                    error = exc

        if error is not None:
            self._log_message(f"errors: {error.message}")
        else:
            self._log_message("tests complete")
        return self._outcome(error)

    def _outcome(self, error: EgressProbeError | None) -> Outcome:
        logger.info(
            "egress_test_finished",
            context=self.context,
            stack_name=self.stack_name,
            passed=self.passed,
            error=error.message if error else None,
        )
        return Outcome(
            passed=self.passed,
            results=list(self.results),
            error=error,
            log=self.get_log(),
        )

    def _run_probe(self) -> None:
        self._log_message(
            f"sleeping {self.initial_sleep_seconds} seconds before calling lambda"
        )
        self._sleep(self.initial_sleep_seconds)

        self.phase = LifecyclePhase.INVOKING
        self._log_message("calling lambda")
        retrying = retry_while(
            self._is_transient,
            max_attempts=self._settings.invoke_max_retries + 1,
            delay=self._settings.invoke_retry_delay_seconds,
            sleep=self._sleep,
            before_retry=self._log_retry,
        )
        try:
            self.results = retrying(self._call_lambda)
        except EgressProbeError as exc:
            self._log_message(f"lambda call failed: {exc.message}")
            raise

        self._log_message("checking results for timing")
        self.phase = LifecyclePhase.VALIDATED
        try:
            validate_results(self.results, self.max_elapsed_seconds)
        except ValidationError as exc:
            self._log_message(exc.message)
            raise

    def _call_lambda(self) -> list[ProbeResult]:
        descriptor = self._provisioner.describe(self.stack_name)
        self.function_name = descriptor.function_name

        self._log_message(
            f"sleeping {self.post_event_sleep_seconds}s before invoking lambda"
        )
        self._sleep(self.post_event_sleep_seconds)
        self._log_message("invoking lambda")
        return self._invoker.invoke(self.function_name, self._targets)

    def _is_transient(self, error: BaseException) -> bool:
        if not isinstance(error, InvocationError) or isinstance(error, ResponseDecodeError):
            return False
        return self._settings.transient_error_signature in error.message

    def _log_retry(self, attempt: int, error: BaseException) -> None:
        self._log_message(
            f"service exception on attempt {attempt}, sleeping and retrying lambda: {error}"
        )


def _pick(value: float | None, default: float) -> float:
    return default if value is None else value
