"""Data model shared by the provisioner, invoker and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from egressprobe.core.errors import DescriptorError, EgressProbeError, ResponseDecodeError

FUNCTION_NAME_OUTPUT = "FunctionName"


@dataclass(frozen=True, slots=True)
class ProbeTarget:
    """A labelled URL the probe function will GET."""

    name: str
    url: str

    def to_payload(self) -> dict[str, str]:
        return {"Name": self.name, "Url": self.url}


DEFAULT_TARGETS: tuple[ProbeTarget, ...] = (
    ProbeTarget(name="gopkg.in", url="https://gopkg.in"),
    ProbeTarget(name="google", url="https://www.google.com"),
    ProbeTarget(name="time", url="https://www.nist.gov"),
)


def freeze_targets(targets: Iterable[ProbeTarget] | None) -> tuple[ProbeTarget, ...]:
    """Return an immutable target list, substituting the defaults when empty."""
    frozen = tuple(targets or ())
    return frozen or DEFAULT_TARGETS


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """One check as reported by the probe function."""

    name: str
    url: str
    elapsed_seconds: float
    success: bool
    message: str
    response_code: int

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ProbeResult":
        """Build a result from the probe's wire representation.

        ``Name`` and ``Url`` must be strings and ``Success`` a JSON boolean;
        anything else is a decode error rather than a coerced value.
        """
        if not isinstance(data, Mapping):
            raise ResponseDecodeError(
                "probe result is not an object", details={"type": type(data).__name__}
            )
        for key, expected in (("Name", str), ("Url", str), ("Success", bool)):
            if key not in data:
                raise ResponseDecodeError(f"malformed probe result: missing '{key}'")
            if not isinstance(data[key], expected):
                raise ResponseDecodeError(
                    f"malformed probe result: '{key}' must be {expected.__name__}",
                    details={"type": type(data[key]).__name__},
                )
        try:
            return cls(
                name=data["Name"],
                url=data["Url"],
                elapsed_seconds=float(data["ElapsedTimeS"]),
                success=data["Success"],
                message=str(data.get("Message", "")),
                response_code=int(data.get("ResponseCode") or 0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ResponseDecodeError(f"malformed probe result: {exc}") from exc

    def to_payload(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "ElapsedTimeS": self.elapsed_seconds,
            "Message": self.message,
            "Success": self.success,
            "Url": self.url,
            "ResponseCode": self.response_code,
        }


@dataclass(frozen=True, slots=True)
class ProvisioningRequest:
    """Inputs needed to launch a fresh probe stack.

    ``template`` is ``None`` for the built-in template, a built-in name such
    as ``"builtin:ignore-ssl"``, or a path to a template file.
    """

    vpc_id: str
    subnet_id: str
    stack_prefix: str | None = None
    template: str | None = None


class ResourceState(str, Enum):
    """Lifecycle of the stack as seen by a provisioner."""

    NOT_CREATED = "not_created"
    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"
    DELETING = "deleting"
    DELETED = "deleted"


class LifecyclePhase(str, Enum):
    """Where the orchestrator is in a single test run."""

    NOT_CREATED = "not_created"
    CREATING = "creating"
    CREATED = "created"
    INVOKING = "invoking"
    VALIDATED = "validated"
    RETAINED = "retained"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class StackDescriptor:
    """Metadata of a provisioned stack."""

    stack_id: str
    stack_name: str
    status: str
    outputs: dict[str, str] = field(default_factory=dict)
    status_reason: str | None = None

    @property
    def function_name(self) -> str:
        """The probe function created by the stack.

        Raises:
            DescriptorError: if the stack has no outputs or no FunctionName output
        """
        if not self.outputs:
            raise DescriptorError(
                "no outputs detected on provided StackName",
                details={"stack_name": self.stack_name},
            )
        try:
            return self.outputs[FUNCTION_NAME_OUTPUT]
        except KeyError:
            raise DescriptorError(
                "error getting FunctionName output from existing stack",
                details={"stack_name": self.stack_name, "outputs": sorted(self.outputs)},
            ) from None


@dataclass
class Outcome:
    """What a single EgressTester.test() call produced."""

    passed: bool
    results: list[ProbeResult] = field(default_factory=list)
    error: EgressProbeError | None = None
    log: str = ""

    def raise_for_error(self) -> None:
        """Re-raise the first error captured during the run, if any."""
        if self.error is not None:
            raise self.error
