"""CloudFormation-backed provisioner for the probe stack."""

from __future__ import annotations

import time
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from egressprobe.config import Settings, get_settings
from egressprobe.core.errors import (
    DeletionError,
    ProvisioningError,
    StackCreateTimeout,
    StackExistenceTimeout,
    StackFailedError,
    StackNotFoundError,
)
from egressprobe.models import ProvisioningRequest, ResourceState, StackDescriptor
from egressprobe.provisioning.base import (
    CREATE_COMPLETE,
    TERMINAL_STATUSES,
    SuffixFactory,
    random_suffix,
    resource_state_for,
)
from egressprobe.retry import Sleeper, poll_until, retry_while
from egressprobe.templates import load_template

logger = structlog.get_logger()

CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]


def _is_missing_stack(error: ClientError) -> bool:
    message = error.response.get("Error", {}).get("Message", "")
    return "does not exist" in message


def _to_descriptor(stack: dict[str, Any]) -> StackDescriptor:
    outputs = {
        output["OutputKey"]: output.get("OutputValue", "")
        for output in stack.get("Outputs") or []
    }
    return StackDescriptor(
        stack_id=stack.get("StackId", ""),
        stack_name=stack.get("StackName", ""),
        status=stack.get("StackStatus", ""),
        outputs=outputs,
        status_reason=stack.get("StackStatusReason"),
    )


class CloudFormationProvisioner:
    """Create, watch and delete the probe stack through CloudFormation."""

    def __init__(
        self,
        client: Any = None,
        *,
        session: boto3.Session | None = None,
        settings: Settings | None = None,
        suffix_factory: SuffixFactory = random_suffix,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._client = client
        self._session = session
        self._settings = settings or get_settings()
        self._suffix_factory = suffix_factory
        self._sleep = sleep
        self._states: dict[str, ResourceState] = {}

    def _get_client(self):
        if self._client is not None:
            return self._client

        session = self._session or boto3.Session(
            profile_name=self._settings.aws_profile,
            region_name=self._settings.aws_region,
        )
        self._client = session.client("cloudformation")
        return self._client

    def state(self, stack_id: str) -> ResourceState:
        return self._states.get(stack_id, ResourceState.NOT_CREATED)

    def create(self, request: ProvisioningRequest) -> str:
        template_body = load_template(request.template)
        prefix = request.stack_prefix or self._settings.stack_prefix
        stack_name = f"{prefix}{self._suffix_factory()}"

        try:
            response = self._get_client().create_stack(
                StackName=stack_name,
                TemplateBody=template_body,
                TimeoutInMinutes=self._settings.stack_timeout_minutes,
                OnFailure="DO_NOTHING",
                Capabilities=CAPABILITIES,
                Parameters=[
                    {"ParameterKey": "SubnetId", "ParameterValue": request.subnet_id},
                    {"ParameterKey": "VpcId", "ParameterValue": request.vpc_id},
                ],
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("stack_create_failed", stack_name=stack_name, error=str(exc))
            raise ProvisioningError(
                f"could not create stack '{stack_name}': {exc}",
                details={"stack_name": stack_name},
            ) from exc

        stack_id = response["StackId"]
        self._states[stack_id] = ResourceState.CREATING
        logger.info("stack_create_submitted", stack_name=stack_name, stack_id=stack_id)
        return stack_id

    def _describe_stack(self, stack_id: str) -> dict[str, Any]:
        try:
            response = self._get_client().describe_stacks(StackName=stack_id)
        except ClientError as exc:
            if _is_missing_stack(exc):
                raise StackNotFoundError(
                    "could not find stack with provided StackName",
                    details={"stack_name": stack_id},
                ) from exc
            raise ProvisioningError(f"could not describe stack: {exc}") from exc
        except BotoCoreError as exc:
            raise ProvisioningError(f"could not describe stack: {exc}") from exc

        stacks = response.get("Stacks") or []
        if not stacks:
            raise StackNotFoundError(
                "could not find stack with provided StackName",
                details={"stack_name": stack_id},
            )
        stack = stacks[0]
        self._states[stack_id] = resource_state_for(stack.get("StackStatus", ""))
        return stack

    def wait_until_exists(self, stack_id: str) -> StackDescriptor:
        """Wait until the stack can be described at all."""
        retrying = retry_while(
            lambda exc: isinstance(exc, StackNotFoundError),
            max_attempts=self._settings.stack_exists_max_attempts,
            delay=self._settings.stack_exists_delay_seconds,
            sleep=self._sleep,
        )
        try:
            stack = retrying(self._describe_stack, stack_id)
        except StackNotFoundError as exc:
            raise StackExistenceTimeout(
                "stack did not appear after creation was submitted",
                details={
                    "stack_name": stack_id,
                    "attempts": self._settings.stack_exists_max_attempts,
                },
            ) from exc
        logger.info("stack_found", stack_id=stack_id)
        return _to_descriptor(stack)

    def wait_until_complete(self, stack_id: str, max_attempts: int | None = None) -> StackDescriptor:
        """Poll the stack status until it reaches a terminal state."""
        attempts = (
            self._settings.stack_create_max_attempts if max_attempts is None else max_attempts
        )

        def _timeout(last: dict[str, Any] | None) -> dict[str, Any]:
            status = (last or {}).get("StackStatus", "UNKNOWN")
            self._states[stack_id] = ResourceState.FAILED
            raise StackCreateTimeout(
                "stack did not finish creating",
                details={"stack_name": stack_id, "attempts": attempts, "status": status},
            )

        stack = poll_until(
            lambda: self._describe_stack(stack_id),
            lambda current: current.get("StackStatus") in TERMINAL_STATUSES,
            max_attempts=attempts,
            delay=self._settings.stack_create_delay_seconds,
            on_timeout=_timeout,
            sleep=self._sleep,
        )
        descriptor = _to_descriptor(stack)

        if descriptor.status != CREATE_COMPLETE:
            self._states[stack_id] = ResourceState.FAILED
            logger.error(
                "stack_create_failed",
                stack_id=stack_id,
                status=descriptor.status,
                reason=descriptor.status_reason,
            )
            raise StackFailedError(
                f"stack entered failure state {descriptor.status}",
                status=descriptor.status,
                details={"stack_name": descriptor.stack_name or stack_id},
            )

        logger.info("stack_create_complete", stack_id=stack_id)
        return descriptor

    def wait_until_ready(self, stack_id: str, max_attempts: int | None = None) -> StackDescriptor:
        self.wait_until_exists(stack_id)
        return self.wait_until_complete(stack_id, max_attempts)

    def describe(self, stack_id: str) -> StackDescriptor:
        descriptor = _to_descriptor(self._describe_stack(stack_id))
        # Raises DescriptorError when the output is missing.
        _ = descriptor.function_name
        return descriptor

    def delete(self, stack_id: str) -> None:
        try:
            self._get_client().delete_stack(StackName=stack_id)
        except (ClientError, BotoCoreError) as exc:
            logger.error("stack_delete_failed", stack_id=stack_id, error=str(exc))
            raise DeletionError(
                f"could not delete stack: {exc}", details={"stack_name": stack_id}
            ) from exc
        self._states[stack_id] = ResourceState.DELETING
        logger.info("stack_delete_requested", stack_id=stack_id)
