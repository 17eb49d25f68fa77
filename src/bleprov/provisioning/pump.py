"""
Single-consumer event channel in front of the provisioning state machine.

BLE stacks deliver callbacks from their own threads. The pump accepts
events from any thread, queues them on the asyncio loop and hands them to
the state machine one at a time on a dedicated worker thread, so blocking
calls (the stop grace delay) never stall the loop and the machine never
sees concurrent calls.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from bleprov.provisioning.service import ProvisioningStateMachine
from bleprov.provisioning.transport import TransportEvent

logger = logging.getLogger(__name__)


@dataclass
class _Command:
    fn: Callable[..., Any]
    args: Tuple[Any, ...]
    future: "asyncio.Future[Any]"


_SHUTDOWN = object()


class EventPump:
    """
    Serializes transport events and control calls into the state machine.
    """

    def __init__(self, machine: ProvisioningStateMachine):
        self._machine = machine
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        # guards _running against post() calls from producer threads
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def machine(self) -> ProvisioningStateMachine:
        return self._machine

    async def start(self) -> None:
        """Start consuming on the running loop."""
        if self._running:
            logger.warning("Event pump already running")
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bleprov-events")
        self._running = True
        self._task = asyncio.create_task(self._consume())
        logger.debug("Event pump started")

    async def stop(self) -> None:
        """Process everything already queued, then stop consuming."""
        if not self._running:
            return

        with self._lock:
            self._running = False
            # behind any put_nowait already scheduled from other threads
            self._loop.call_soon(self._queue.put_nowait, _SHUTDOWN)
        if self._task:
            await self._task
            self._task = None
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.debug("Event pump stopped")

    def post(self, event: TransportEvent) -> bool:
        """
        Queue a transport event. Safe to call from any thread.

        Returns:
            False if the pump is not running and the event was dropped.
        """
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        with self._lock:
            if not self._running or self._loop is None:
                logger.warning(f"Event pump not running, dropping {event!r}")
                return False

            try:
                if running_loop is self._loop:
                    self._queue.put_nowait(event)
                else:
                    self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
            except RuntimeError as e:
                logger.warning(f"Event loop closed, dropping {event!r}: {e}")
                return False
        return True

    async def start_session(self, name: Optional[str] = None) -> bool:
        """Run ``machine.start(name)`` on the consumer."""
        return await self._submit(self._machine.start, name)

    async def stop_session(self) -> None:
        """Run ``machine.stop()`` on the consumer."""
        await self._submit(self._machine.stop)

    async def drain(self) -> None:
        """Wait until every queued item has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _submit(self, fn: Callable[..., Any], *args: Any) -> Any:
        if not self._running:
            raise RuntimeError("Event pump is not running")

        future = self._loop.create_future()
        await self._queue.put(_Command(fn=fn, args=args, future=future))
        return await future

    async def _consume(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _SHUTDOWN:
                    break
                if isinstance(item, _Command):
                    await self._run_command(item)
                else:
                    await self._loop.run_in_executor(self._executor, self._dispatch, item)
            finally:
                self._queue.task_done()

    async def _run_command(self, command: _Command) -> None:
        try:
            result = await self._loop.run_in_executor(
                self._executor, command.fn, *command.args
            )
        except Exception as e:
            if not command.future.done():
                command.future.set_exception(e)
        else:
            if not command.future.done():
                command.future.set_result(result)

    def _dispatch(self, event: TransportEvent) -> None:
        logger.debug(f"Dispatching {event!r}")
        try:
            event.dispatch(self._machine)
        except Exception as e:
            logger.error(f"Error handling {type(event).__name__}: {e}")
