from __future__ import annotations

from typing import Sequence

from egressprobe.core.errors import ValidationError
from egressprobe.models import ProbeResult

DEFAULT_MAX_ELAPSED_SECONDS = 6.0
NO_RESULTS_MESSAGE = "tests failed; no test results to check"


def validate_results(
    results: Sequence[ProbeResult],
    max_elapsed_seconds: float = DEFAULT_MAX_ELAPSED_SECONDS,
) -> None:
    """Apply the egress pass/fail policy to probe results.

    Results are checked in order and the first violation is raised; later
    results are not inspected. A single failing or slow check fails the
    whole run.

    Raises:
        ValidationError: if there are no results, a check failed, or a
            check took longer than ``max_elapsed_seconds``
    """
    if not results:
        raise ValidationError(NO_RESULTS_MESSAGE)

    for result in results:
        if not result.success:
            raise ValidationError(
                f"test failed: {result.url}",
                details={"name": result.name, "probe_message": result.message},
            )
        if result.elapsed_seconds > max_elapsed_seconds:
            raise ValidationError(
                f"test took too long: {result.url}",
                details={"name": result.name, "elapsed_seconds": result.elapsed_seconds},
            )
