"""One-shot readiness gate awaited by every storage operation."""
import asyncio


class ReadinessGate:
    """
    A barrier that is released exactly once.

    Schema initialization releases the gate when it succeeds or when it gives
    up after its final retry. Waiters are never left hanging: a failed
    initialization still releases, but records schema_ready=False so callers
    can treat later storage errors as fatal.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._schema_ready = False
        self._error: BaseException | None = None

    @property
    def is_released(self) -> bool:
        """Whether the gate has been released."""
        return self._event.is_set()

    @property
    def schema_ready(self) -> bool:
        """Whether the schema was verified before release."""
        return self._schema_ready

    @property
    def error(self) -> BaseException | None:
        """The last initialization error, if the gate was released degraded."""
        return self._error

    def release(self, schema_ready: bool, error: BaseException | None = None) -> bool:
        """
        Release the gate.

        Returns:
            True if this call released the gate, False if it was already released.
        """
        if self._event.is_set():
            return False
        self._schema_ready = schema_ready
        self._error = error
        self._event.set()
        return True

    async def wait(self) -> None:
        """Suspend until the gate is released."""
        if self._event.is_set():
            return
        await self._event.wait()
