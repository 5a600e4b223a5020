"""The synthesize -> execute -> extract pipeline.

``ActionRunner.invoke`` serves the chatbot runtime, ``ActionRunner.test``
serves the builder. Both run the same pipeline; only the handling of
missing required values differs (see ``synthesizer``).

``ActionTestSession`` tracks the single in-flight test of one
action-editing session. Starting a new test cancels the previous one and
any result belonging to a superseded test is discarded.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from .errors import ActionError, ExtractionError
from .executor import ActionExecutor
from .extractor import extract_strict
from .models import ActionDefinition, ExecutionPolicy, InvocationResult
from .synthesizer import synthesize


class ActionRunner:
    """Runs custom actions end to end

    Args:
        executor: ActionExecutor used for the HTTP call
        backoff_seconds: Base delay between retries (0 retries immediately)
    """

    def __init__(self, executor: Optional[ActionExecutor] = None, backoff_seconds: float = 0.0):
        self.executor = executor or ActionExecutor()
        self.backoff_seconds = backoff_seconds

    async def invoke(self, action: ActionDefinition, arguments: Mapping[str, Any]) -> InvocationResult:
        """Live invocation on behalf of the chatbot runtime"""
        return await self._run(action, arguments, test_mode=False)

    async def test(self, action: ActionDefinition, test_arguments: Mapping[str, Any]) -> InvocationResult:
        """Builder test run; missing values fall back to a labelled placeholder"""
        return await self._run(action, test_arguments, test_mode=True)

    async def _run(self, action, arguments, test_mode: bool) -> InvocationResult:
        try:
            request = synthesize(action, arguments, test_mode=test_mode)
        except ActionError as exc:
            logging.warning(f"[ActionRunner] Could not build request for '{action.name}': {exc}")
            return InvocationResult(success=False, error=str(exc))

        policy = ExecutionPolicy.from_api_config(action.api_config)
        policy.backoff_seconds = self.backoff_seconds
        result = await self.executor.execute(request, policy)
        result.used_placeholders = list(request.used_placeholders)

        mapping = action.api_config.response_mapping
        if mapping and result.response_body is not None:
            try:
                result.extracted_data = extract_strict(result.response_body, mapping)
            except ExtractionError as exc:
                logging.info(f"[ActionRunner] No data extracted for '{action.name}' with '{mapping}': {exc}")
        return result


class ActionTestSession:
    """One action-editing session; at most one test is in flight at a time

    Args:
        runner: ActionRunner used to execute tests
    """

    def __init__(self, runner: Optional[ActionRunner] = None):
        self.runner = runner or ActionRunner()
        self.latest_result: Optional[InvocationResult] = None
        self._sequence = 0
        self._inflight: Optional[asyncio.Task] = None

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def idle(self) -> bool:
        """True when no test is in flight"""
        return self._inflight is None or self._inflight.done()

    def cancel(self) -> None:
        """Supersede the in-flight test without starting a new one"""
        self._sequence += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    async def run_test(self, action: ActionDefinition, test_arguments: Mapping[str, Any]) -> Optional[InvocationResult]:
        """Test ``action``; returns None when a newer test superseded this one

        Only a completed, non-superseded test updates ``action.test_status``
        and ``action.last_tested_at``.
        """
        self.cancel()
        token = self._sequence
        task = asyncio.ensure_future(self.runner.test(action, test_arguments))
        self._inflight = task

        try:
            result = await task
        except asyncio.CancelledError:
            if token != self._sequence:
                logging.info(f"[ActionTestSession] Test #{token} of '{action.name}' superseded")
                return None
            raise

        if token != self._sequence:
            logging.info(f"[ActionTestSession] Discarding stale result of test #{token} for '{action.name}'")
            return None

        self._inflight = None
        self.latest_result = result
        action.record_test(result)
        return result


__all__ = [
    "ActionRunner",
    "ActionTestSession",
]
