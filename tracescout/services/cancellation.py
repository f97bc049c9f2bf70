"""Cooperative cancellation for pipeline runs."""

import asyncio


class PipelineCancelled(Exception):
    """Raised inside a run once its CancellationToken has fired.

    Never escapes ``TracePipeline.run``; the run returns an aborted
    RunResult instead.
    """


class CancellationToken:
    """
    One-shot cancellation signal shared between a run and its caller.

    Usage:
        token = CancellationToken()
        run = asyncio.create_task(pipeline.run(cancel=token))
        ...
        token.cancel()  # e.g. the client disconnected
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self._reason)
