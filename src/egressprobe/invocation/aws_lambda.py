"""Synchronous Lambda invocation of the probe function."""

from __future__ import annotations

from typing import Any, Sequence

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from egressprobe.config import Settings, get_settings
from egressprobe.core.errors import InvocationError
from egressprobe.invocation.base import build_payload, decode_results
from egressprobe.models import ProbeResult, ProbeTarget

logger = structlog.get_logger()


class LambdaInvoker:
    """Invoke the probe function with a RequestResponse call."""

    def __init__(
        self,
        client: Any = None,
        *,
        session: boto3.Session | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._client = client
        self._session = session
        self._settings = settings or get_settings()

    def _get_client(self):
        if self._client is not None:
            return self._client

        session = self._session or boto3.Session(
            profile_name=self._settings.aws_profile,
            region_name=self._settings.aws_region,
        )
        self._client = session.client("lambda")
        return self._client

    def invoke(self, function_name: str, targets: Sequence[ProbeTarget]) -> list[ProbeResult]:
        payload = build_payload(targets)
        try:
            response = self._get_client().invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=payload,
            )
            # The body streams after the call returns; read errors surface here.
            body = response["Payload"].read()
        except (ClientError, BotoCoreError) as exc:
            logger.warning("lambda_invoke_failed", function_name=function_name, error=str(exc))
            raise InvocationError(str(exc), details={"function_name": function_name}) from exc

        function_error = response.get("FunctionError")
        if function_error:
            logger.error(
                "lambda_function_error", function_name=function_name, kind=function_error
            )
            raise InvocationError(
                f"probe function raised {function_error}: {body.decode('utf-8', 'replace')}",
                details={"function_name": function_name},
            )

        results = decode_results(body)
        logger.info("lambda_invoked", function_name=function_name, results=len(results))
        return results
