"""HTTP execution of synthesized requests with timeout and retry.

Network failures (timeouts, DNS, connection resets) and 5xx responses are
retried up to ``retry_count`` additional times. 4xx responses are never
retried, and neither is a request the client refuses to send. The reported
``response_time`` covers the final attempt only.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from .errors import HttpError, InvalidRequestError, NetworkError, RequestTimeoutError
from .models import ExecutionPolicy, InvocationResult, SynthesizedRequest


def is_transient_status(status: int, policy: ExecutionPolicy) -> bool:
    if 400 <= status < 500:
        return False
    return 500 <= status < 600 or status in policy.retry_on_codes


class ActionExecutor:
    """Issues synthesized requests under an ExecutionPolicy

    Args:
        session: Optional shared aiohttp session; when omitted a session is
            opened and closed around every call to ``execute``
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.session = session

    async def execute(self, request: SynthesizedRequest, policy: ExecutionPolicy) -> InvocationResult:
        """Run ``request`` and classify the outcome

        Args:
            request: Request produced by the synthesizer
            policy: Timeout, retry, redirect and TLS behavior

        Returns:
            InvocationResult of the final attempt
        """
        if self.session is not None:
            return await self._execute_with(self.session, request, policy)
        async with aiohttp.ClientSession() as session:
            return await self._execute_with(session, request, policy)

    async def _execute_with(
        self,
        session: aiohttp.ClientSession,
        request: SynthesizedRequest,
        policy: ExecutionPolicy,
    ) -> InvocationResult:
        max_attempts = policy.retry_count + 1
        result = None
        for attempt in range(1, max_attempts + 1):
            if attempt > 1 and policy.backoff_seconds > 0:
                await asyncio.sleep(policy.backoff_seconds * 2 ** (attempt - 2))

            result, transient = await self._attempt(session, request, policy)
            result.attempts = attempt

            if not transient or attempt == max_attempts:
                break
            logging.warning(
                f"[ActionExecutor] Attempt {attempt}/{max_attempts} for "
                f"{request.method.value} {request.url} failed ({result.error}), retrying"
            )

        if result.success:
            logging.info(
                f"[ActionExecutor] {request.method.value} {request.url} returned "
                f"{result.status_code} in {result.response_time}ms"
            )
        else:
            logging.warning(
                f"[ActionExecutor] {request.method.value} {request.url} failed "
                f"after {result.attempts} attempt(s): {result.error}"
            )
        return result

    async def _attempt(self, session, request, policy):
        """Issue one attempt; returns (result, whether the failure is transient)"""
        timeout = aiohttp.ClientTimeout(total=policy.timeout_seconds)
        started = time.monotonic()
        try:
            async with session.request(
                request.method.value,
                request.url,
                headers=request.headers,
                json=request.body,
                allow_redirects=policy.follow_redirects,
                ssl=policy.verify_ssl,
                timeout=timeout,
            ) as response:
                body = await response.text(errors="replace")
                status = response.status
        except asyncio.TimeoutError:
            error = RequestTimeoutError(policy.timeout_seconds)
            return self._failure(request, error, started), True
        except aiohttp.ClientError as exc:
            error = NetworkError(f"Error calling API: {exc}")
            return self._failure(request, error, started), True
        except ValueError as exc:
            # rejected before sending, e.g. control characters in a header value
            error = InvalidRequestError(f"Invalid request: {exc}")
            return self._failure(request, error, started), False

        elapsed = _elapsed_ms(started)
        if status in policy.success_codes:
            return InvocationResult(
                success=True,
                status_code=status,
                response_body=body,
                response_time=elapsed,
                request_url=request.url,
            ), False

        return InvocationResult(
            success=False,
            status_code=status,
            response_body=body,
            response_time=elapsed,
            error=str(HttpError(status)),
            request_url=request.url,
        ), is_transient_status(status, policy)

    @staticmethod
    def _failure(request, error, started) -> InvocationResult:
        return InvocationResult(
            success=False,
            response_time=_elapsed_ms(started),
            error=str(error),
            request_url=request.url,
        )


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


__all__ = [
    "ActionExecutor",
    "is_transient_status",
]
