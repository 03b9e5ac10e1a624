"""Bounded polling for submit-then-poll external operations."""

import asyncio
from typing import Any, Awaitable, Callable

from shared.errors import OperationError, OperationTimeoutError
from shared.logging import get_logger
from shared.models import AsyncOperation, OperationState, OperationStatus

logger = get_logger(__name__)

Submit = Callable[[Any], Awaitable[str]]
PollStatus = Callable[[str], Awaitable[OperationStatus]]


class AsyncOperationPoller:
    """
    Drives a long-running operation to completion.

    Polls are spaced by a fixed interval, so the longest wait after
    submission is ``interval * max_attempts``.
    """

    def __init__(
        self,
        interval: float = 1.0,
        max_attempts: int = 30,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(
        self,
        submit: Submit,
        poll_status: PollStatus,
        payload: Any
    ) -> Any:
        """
        Submit ``payload`` and poll until the operation finishes.

        Args:
            submit: Coroutine function returning the provider's operation handle
            poll_status: Coroutine function returning the current status for a handle
            payload: Input passed to ``submit``

        Returns:
            The provider result of a succeeded operation

        Raises:
            OperationError: If the provider reports the operation failed
            OperationTimeoutError: If the operation is still pending after
                ``max_attempts`` polls
        """
        handle = await submit(payload)
        operation = AsyncOperation(handle=handle)
        logger.debug("Operation submitted", handle=handle)

        while operation.attempts < self.max_attempts:
            await self._sleep(self.interval)
            status = await poll_status(handle)
            operation.attempts += 1

            if not operation.advance(status.state) and status.state != operation.state:
                logger.warning(
                    "Ignoring backward status transition",
                    handle=handle,
                    current=operation.state.value,
                    reported=status.state.value
                )

            if operation.state == OperationState.SUCCEEDED:
                operation.result = status.result
                logger.debug("Operation succeeded", handle=handle, attempts=operation.attempts)
                return operation.result

            if operation.state == OperationState.FAILED:
                logger.warning("Operation failed", handle=handle, attempts=operation.attempts)
                raise OperationError(f"Analysis failed: {status.error}", detail=status.error)

        operation.advance(OperationState.TIMED_OUT)
        logger.warning("Operation timed out", handle=handle, attempts=operation.attempts)
        raise OperationTimeoutError(
            f"Analysis timed out after {operation.attempts} attempts",
            attempts=operation.attempts,
        )
