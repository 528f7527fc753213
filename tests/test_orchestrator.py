"""Tests for orchestrator.py.

Tests for the EgressTester lifecycle: provisioning, resume, invocation
retries, validation and teardown, driven through the in-memory fakes.
"""

from datetime import datetime, timezone

import pytest
from egressprobe.config import Settings
from egressprobe.core.errors import (
    ConfigurationError,
    DeletionError,
    DescriptorError,
    InvocationError,
    ProvisioningError,
    ResponseDecodeError,
    StackFailedError,
    ValidationError,
)
from egressprobe.invocation import InMemoryInvoker
from egressprobe.models import (
    DEFAULT_TARGETS,
    LifecyclePhase,
    ProbeTarget,
    ProvisioningRequest,
    ResourceState,
)
from egressprobe.orchestrator import EgressTester
from egressprobe.provisioning import InMemoryProvisioner

REQUEST = ProvisioningRequest(vpc_id="vpc-c8a6c3ae", subnet_id="subnet-d3297188")


def transient_error():
    return InvocationError(
        "An error occurred (ServiceException) when calling the Invoke operation: "
        "Lambda was unable to start"
    )


def retry_entries(tester):
    return [message for message in tester.log_messages if "retry" in message]


@pytest.fixture
def provisioner():
    return InMemoryProvisioner(suffix_factory=lambda: "00000042")


@pytest.fixture
def invoker():
    return InMemoryInvoker()


@pytest.fixture
def make_tester(provisioner, invoker, fast_settings, sleeper):
    def _make(**kwargs):
        kwargs.setdefault("settings", fast_settings)
        kwargs.setdefault("sleep", sleeper)
        if "stack_name" not in kwargs:
            kwargs.setdefault("request", REQUEST)
        return EgressTester(provisioner, invoker, **kwargs)

    return _make


class TestConstruction:
    """Tests for construction-time validation."""

    def test_missing_vpc_fails_before_any_call(self, provisioner, invoker, fast_settings):
        with pytest.raises(ConfigurationError, match="vpc_id"):
            EgressTester(
                provisioner,
                invoker,
                request=ProvisioningRequest(vpc_id="", subnet_id="subnet-1"),
                settings=fast_settings,
            )

        assert provisioner.calls == []
        assert invoker.calls == []

    def test_missing_subnet(self, provisioner, invoker, fast_settings):
        with pytest.raises(ConfigurationError, match="subnet_id"):
            EgressTester(
                provisioner,
                invoker,
                request=ProvisioningRequest(vpc_id="vpc-1", subnet_id=""),
                settings=fast_settings,
            )

    def test_missing_request(self, provisioner, invoker, fast_settings):
        with pytest.raises(ConfigurationError):
            EgressTester(provisioner, invoker, settings=fast_settings)

    def test_resume_does_not_require_network_fields(self, make_tester):
        tester = make_tester(stack_name="egress-tester-00714632")

        assert tester.stack_created is True
        assert tester.phase == LifecyclePhase.CREATED
        assert tester.log_messages == ["using existing stack"]

    def test_defaults(self, make_tester):
        tester = make_tester(settings=Settings(_env_file=None))

        assert tester.targets == DEFAULT_TARGETS
        assert tester.context == "Default"
        assert tester.initial_sleep_seconds == 40
        assert tester.post_event_sleep_seconds == 20
        assert tester.retain_stack is False
        assert tester.stack_created is False
        assert tester.phase == LifecyclePhase.NOT_CREATED

    def test_explicit_zero_sleep_is_kept(self, make_tester):
        tester = make_tester(settings=Settings(_env_file=None), initial_sleep_seconds=0)

        assert tester.initial_sleep_seconds == 0


class TestFreshStack:
    """Tests for the create -> test -> delete path."""

    def test_end_to_end_example(self, make_tester, invoker, result_factory):
        """A single gopkg.in check that succeeds quickly passes."""
        invoker.script([result_factory()])
        tester = make_tester(targets=[ProbeTarget(name="gopkg.in", url="https://gopkg.in")])

        outcome = tester.test()

        assert outcome.error is None
        assert outcome.passed is True
        assert [r.url for r in outcome.results] == ["https://gopkg.in"]
        assert invoker.calls == [
            ("egress-probe-function", (ProbeTarget(name="gopkg.in", url="https://gopkg.in"),))
        ]

    def test_lifecycle_calls(self, make_tester, provisioner):
        tester = make_tester()

        outcome = tester.test()

        assert outcome.passed is True
        assert provisioner.operations() == ["create", "wait_until_ready", "describe", "delete"]
        assert tester.stack_name == "egress-tester-00000042"
        assert tester.stack_created is False
        assert tester.phase == LifecyclePhase.DELETED
        assert provisioner.state("egress-tester-00000042") == ResourceState.DELETING

    def test_default_targets_sent(self, make_tester, invoker):
        make_tester().test()

        assert invoker.calls[0][1] == DEFAULT_TARGETS

    def test_prefix_from_request(self, make_tester, provisioner):
        tester = make_tester(
            request=ProvisioningRequest(vpc_id="vpc-1", subnet_id="subnet-1", stack_prefix="ISS-")
        )

        tester.test()

        assert tester.stack_name == "ISS-00000042"

    def test_retained_stack_is_not_deleted(self, make_tester, provisioner):
        tester = make_tester(retain_stack=True)

        outcome = tester.test()

        assert outcome.passed is True
        assert "delete" not in provisioner.operations()
        assert tester.stack_created is True
        assert tester.phase == LifecyclePhase.RETAINED
        assert "retaining stack" in tester.log_messages

    def test_retained_stack_can_be_tested_again(self, make_tester, provisioner):
        tester = make_tester(retain_stack=True)

        tester.test()
        tester.test()

        assert provisioner.operations().count("create") == 1
        assert provisioner.operations().count("describe") == 2

    def test_grace_periods(self, make_tester, sleeper):
        tester = make_tester(initial_sleep_seconds=40, post_event_sleep_seconds=20)

        tester.test()

        assert sleeper.calls == [40, 20]

    def test_create_stack_only(self, make_tester, provisioner, invoker):
        tester = make_tester(retain_stack=True)

        stack_name = tester.create_stack()

        assert stack_name == "egress-tester-00000042"
        assert tester.stack_created is True
        assert provisioner.operations() == ["create", "wait_until_ready"]
        assert invoker.calls == []

    def test_ignore_ssl_template(self, make_tester, provisioner):
        tester = make_tester(
            request=ProvisioningRequest(
                vpc_id="vpc-1", subnet_id="subnet-1", template="builtin:ignore-ssl"
            )
        )

        tester.create_stack()

        [body] = provisioner.templates.values()
        assert "CERT_NONE" in body


class TestProvisioningFailure:
    """Provisioning errors abort the run without teardown."""

    def test_wait_failure(self, make_tester, provisioner, invoker):
        provisioner.failures["wait_until_ready"] = StackFailedError(
            "stack entered failure state ROLLBACK_COMPLETE", status="ROLLBACK_COMPLETE"
        )
        tester = make_tester()

        outcome = tester.test()

        assert isinstance(outcome.error, StackFailedError)
        assert outcome.passed is False
        assert outcome.results == []
        assert "delete" not in provisioner.operations()
        assert invoker.calls == []
        assert tester.stack_created is False
        assert tester.phase == LifecyclePhase.NOT_CREATED
        assert "errors: stack entered failure state ROLLBACK_COMPLETE" in outcome.log

    def test_create_failure(self, make_tester, provisioner):
        provisioner.failures["create"] = ProvisioningError("could not create stack")

        outcome = make_tester().test()

        assert isinstance(outcome.error, ProvisioningError)
        assert provisioner.operations() == ["create"]

    def test_create_stack_raises_directly(self, make_tester, provisioner):
        provisioner.failures["create"] = ProvisioningError("could not create stack")
        tester = make_tester()

        with pytest.raises(ProvisioningError):
            tester.create_stack()

    def test_create_stack_rejected_when_resuming(self, make_tester):
        tester = make_tester(stack_name="egress-tester-00714632")

        with pytest.raises(ConfigurationError):
            tester.create_stack()


class TestResume:
    """Resuming an existing stack never provisions."""

    def test_resume_never_creates(self, make_tester, provisioner, invoker):
        provisioner.add_stack("egress-tester-00714632")
        tester = make_tester(stack_name="egress-tester-00714632")

        outcome = tester.test()

        assert outcome.passed is True
        assert provisioner.operations() == ["describe", "delete"]
        assert provisioner.calls[0] == ("describe", "egress-tester-00714632")
        assert tester.stack_created is False

    def test_resume_unknown_stack(self, make_tester, provisioner, invoker):
        tester = make_tester(stack_name="egress-tester-gone")

        outcome = tester.test()

        assert outcome.error is not None
        assert "could not find stack" in outcome.error.message
        assert invoker.calls == []

    def test_stack_without_function_output(self, make_tester, provisioner, invoker):
        provisioner.add_stack("egress-tester-1", outputs={})
        tester = make_tester(stack_name="egress-tester-1")

        outcome = tester.test()

        assert isinstance(outcome.error, DescriptorError)
        assert provisioner.operations() == ["describe", "delete"]
        assert invoker.calls == []


class TestInvocationRetry:
    """Transient invocation failures are retried with a bounded budget."""

    def test_two_transient_failures_then_success(self, make_tester, invoker, provisioner):
        invoker.script(transient_error(), transient_error())
        tester = make_tester()

        outcome = tester.test()

        assert outcome.error is None
        assert outcome.passed is True
        assert len(invoker.calls) == 3
        assert len(retry_entries(tester)) == 2
        assert provisioner.operations().count("describe") == 3

    def test_retry_delay(self, make_tester, invoker, sleeper, fast_settings):
        settings = fast_settings.model_copy(update={"invoke_retry_delay_seconds": 10})
        invoker.script(transient_error())

        make_tester(settings=settings).test()

        assert 10 in sleeper.calls

    def test_non_transient_error_is_fatal(self, make_tester, invoker, provisioner):
        invoker.script(InvocationError("AccessDeniedException: not authorized"))

        tester = make_tester()

        outcome = tester.test()

        assert isinstance(outcome.error, InvocationError)
        assert len(invoker.calls) == 1
        assert retry_entries(tester) == []
        assert provisioner.operations()[-1] == "delete"

    def test_stops_when_later_error_is_not_transient(self, make_tester, invoker):
        invoker.script(transient_error(), InvocationError("AccessDeniedException"))
        tester = make_tester()

        outcome = tester.test()

        assert outcome.error.message == "AccessDeniedException"
        assert len(invoker.calls) == 2
        assert len(retry_entries(tester)) == 1

    def test_retry_budget_exhausted(self, make_tester, invoker):
        errors = [transient_error() for _ in range(10)]
        invoker.script(*errors)
        tester = make_tester()

        outcome = tester.test()

        assert outcome.error is errors[5]
        assert len(invoker.calls) == 6
        assert len(retry_entries(tester)) == 5

    def test_decode_error_never_retried(self, make_tester, invoker):
        invoker.script(ResponseDecodeError("could not decode probe response: Service unavailable"))

        outcome = make_tester().test()

        assert isinstance(outcome.error, ResponseDecodeError)
        assert len(invoker.calls) == 1

    def test_custom_signature(self, make_tester, invoker, fast_settings):
        settings = fast_settings.model_copy(update={"transient_error_signature": "TooManyRequests"})
        invoker.script(InvocationError("TooManyRequestsException: rate exceeded"))

        outcome = make_tester(settings=settings).test()

        assert outcome.passed is True
        assert len(invoker.calls) == 2


class TestValidationAndTeardown:
    """Validation failures still tear the stack down."""

    def test_failed_check_still_deletes(self, make_tester, invoker, provisioner, result_factory):
        invoker.script(
            [result_factory(), result_factory(url="https://blocked.example", success=False)]
        )
        tester = make_tester()

        outcome = tester.test()

        assert isinstance(outcome.error, ValidationError)
        assert outcome.error.message == "test failed: https://blocked.example"
        assert outcome.passed is False
        assert len(outcome.results) == 2
        assert provisioner.operations()[-1] == "delete"
        assert tester.stack_created is False

    def test_slow_check(self, make_tester, invoker, result_factory):
        invoker.script([result_factory(url="https://slow.example", elapsed=7.0)])

        outcome = make_tester().test()

        assert outcome.error.message == "test took too long: https://slow.example"

    def test_custom_threshold(self, make_tester, invoker, result_factory):
        invoker.script([result_factory(elapsed=4.5)])

        outcome = make_tester(max_elapsed_seconds=4.0).test()

        assert isinstance(outcome.error, ValidationError)

    def test_empty_results(self, make_tester, invoker):
        invoker.script([])

        outcome = make_tester().test()

        assert outcome.error.message == "tests failed; no test results to check"

    def test_deletion_error_does_not_mask_validation_error(
        self, make_tester, invoker, provisioner, result_factory
    ):
        invoker.script([result_factory(success=False)])
        provisioner.failures["delete"] = DeletionError("could not delete stack: AccessDenied")
        tester = make_tester()

        outcome = tester.test()

        assert isinstance(outcome.error, ValidationError)
        assert "stack deletion failed: could not delete stack: AccessDenied" in outcome.log
        assert tester.stack_created is True

    def test_deletion_error_reported_on_passing_run(self, make_tester, provisioner):
        provisioner.failures["delete"] = DeletionError("could not delete stack")

        outcome = make_tester().test()

        assert outcome.passed is True
        assert isinstance(outcome.error, DeletionError)


class TestManualTeardownAndLog:
    def test_delete_stack(self, make_tester, provisioner):
        tester = make_tester(stack_name="egress-tester-00714632")

        tester.delete_stack()

        assert provisioner.calls == [("delete", "egress-tester-00714632")]
        assert tester.stack_created is False

    def test_delete_without_stack(self, make_tester):
        with pytest.raises(ConfigurationError):
            make_tester().delete_stack()

    def test_log_lines_carry_context_and_stack(self, make_tester):
        tester = make_tester(
            context="account1",
            clock=lambda: datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )

        outcome = tester.test()
        lines = outcome.log.splitlines()

        assert outcome.log == tester.get_log()
        assert lines[0] == (
            "2024-01-02T03:04:05+00:00: Context: 'account1', StackName: '', "
            "Message: 'starting test'"
        )
        assert "StackName: 'egress-tester-00000042'" in lines[-1]
        assert lines[-1].endswith("Message: 'tests complete'")
