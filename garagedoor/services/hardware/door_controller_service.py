# garagedoor/services/hardware/door_controller_service.py
"""
Door Controller Service
=======================
The single authority over the door's hardware adapter.

Features:
- Bounded FIFO command queue (toggle / state) drained by one worker thread
- Independent sensor polling thread that re-derives the door state
- State-change fan-out to any number of registered listeners
- Restartable lifecycle: start() -> stop() -> start() ...

Only the polling thread writes the cached state. The command worker never
assumes the outcome of a toggle; the next poll observes it.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from typing import Any, Callable, Union

from garagedoor.domain.exceptions import AdapterError, ControllerNotRunningError
from garagedoor.enums.door import DoorCommand, DoorState
from garagedoor.hardware.adapters.door.base_adapter import IDoorAdapter
from garagedoor.utils.time import iso_now

logger = logging.getLogger(__name__)

StateCallback = Callable[[str], None]
# A listener is either a callback or a queue-like object receiving the state string.
StateListener = Union[StateCallback, "queue.Queue[str]"]

DEFAULT_POLL_INTERVAL_S = 0.25
DEFAULT_SETTLE_S = 0.25
DEFAULT_QUEUE_SIZE = 10

# Upper bound on how long a worker or a blocked producer goes without
# re-checking the stop signal.
_STOP_CHECK_S = 0.1


class _RunContext:
    """Per-run resources. Each start() gets a fresh queue and stop signal."""

    def __init__(self, queue_size: int):
        self.commands: queue.Queue[DoorCommand] = queue.Queue(maxsize=queue_size)
        self.stop_event = threading.Event()
        self.threads: list[threading.Thread] = []


class DoorControllerService:
    """
    Owns the door adapter, serializes commands against it and publishes state.

    Args:
        adapter: Door adapter, exclusively owned by this controller.
        poll_interval_s: Delay between two sensor samples.
        settle_s: Hold time after each edge of a toggle pulse.
        queue_size: Capacity of the command queue. Producers block when full.
    """

    def __init__(
        self,
        adapter: IDoorAdapter,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        settle_s: float = DEFAULT_SETTLE_S,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.adapter = adapter
        self.poll_interval_s = poll_interval_s
        self.settle_s = settle_s
        self.queue_size = queue_size

        self._state = DoorState.UNKNOWN
        self._state_lock = threading.Lock()
        self._ready = threading.Event()

        self._listeners: dict[str, StateListener] = {}
        self._listeners_lock = threading.RLock()

        # Serializes adapter access between the command worker and the poller.
        self._io_lock = threading.Lock()

        self._lifecycle_lock = threading.Lock()
        self._run: _RunContext | None = None

        self._consecutive_poll_failures = 0
        self._last_change_at: str | None = None

        logger.info(
            "DoorControllerService initialized (adapter=%s, poll=%.3fs, settle=%.3fs, queue=%d)",
            adapter.get_adapter_name(),
            poll_interval_s,
            settle_s,
            queue_size,
        )

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        run = self._run
        return run is not None and not run.stop_event.is_set()

    def start(self) -> bool:
        """Start the command worker and the sensor poller. Returns False if already running."""
        with self._lifecycle_lock:
            if self._run is not None:
                return False

            run = _RunContext(self.queue_size)
            self._ready.clear()
            self._consecutive_poll_failures = 0
            run.threads = [
                threading.Thread(target=self._command_loop, args=(run,), name="DoorCommandWorker", daemon=True),
                threading.Thread(target=self._poll_loop, args=(run,), name="DoorStatePoller", daemon=True),
            ]
            self._run = run
            for thread in run.threads:
                thread.start()

        logger.info("Door controller started")
        return True

    def stop(self) -> None:
        """Stop both threads and wait for them to exit. Safe to call when not running."""
        with self._lifecycle_lock:
            run = self._run
            if run is None:
                return
            if threading.current_thread() in run.threads:
                raise RuntimeError("stop() cannot be called from a door controller thread")

            logger.info("Stopping door controller...")
            run.stop_event.set()
            for thread in run.threads:
                thread.join()

            dropped = 0
            while True:
                try:
                    run.commands.get_nowait()
                except queue.Empty:
                    break
                dropped += 1
            if dropped:
                logger.warning("Discarded %d pending door command(s) on stop", dropped)

            self._run = None

        logger.info("Door controller stopped")

    def reset(self) -> None:
        """
        Reset the adapter to its canonical state and forget the cached state.

        Meant to be called while stopped. When running, the next poll
        re-derives the state from the sensors.

        Raises:
            UnsupportedOperationError: If the adapter drives real hardware
        """
        with self._io_lock:
            self.adapter.reset()
        with self._state_lock:
            self._state = DoorState.UNKNOWN
        self._ready.clear()
        logger.info("Door controller reset; state is unknown until the next poll")

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def request_toggle(self) -> None:
        """Queue a relay pulse. Blocks only while the queue is full."""
        self._enqueue(DoorCommand.TOGGLE)

    def request_state(self) -> None:
        """Queue a broadcast of the cached state to every listener."""
        self._enqueue(DoorCommand.STATE)

    def _enqueue(self, command: DoorCommand) -> None:
        run = self._run
        if run is None:
            raise ControllerNotRunningError("Door controller is not running")

        # Full queue: wait for room, but give up as soon as the run is stopped.
        while not run.stop_event.is_set():
            try:
                run.commands.put(command, timeout=_STOP_CHECK_S)
            except queue.Full:
                continue
            # A put that races stop() lands in a queue no worker reads.
            if run.stop_event.is_set():
                break
            return
        raise ControllerNotRunningError("Door controller is not running")

    def _command_loop(self, run: _RunContext) -> None:
        """Executes queued commands one at a time until the run is stopped."""
        while not run.stop_event.is_set():
            try:
                command = run.commands.get(timeout=_STOP_CHECK_S)
            except queue.Empty:
                continue
            if run.stop_event.is_set():
                break

            try:
                if command is DoorCommand.TOGGLE:
                    self._pulse_toggle(run)
                elif command is DoorCommand.STATE:
                    self._broadcast(self.get_state())
            except AdapterError as exc:
                logger.error("Door command '%s' failed: %s", command.value, exc)
            except Exception as exc:
                logger.exception("Unexpected error executing door command '%s': %s", command.value, exc)

        logger.debug("Door command worker exited")

    def _pulse_toggle(self, run: _RunContext) -> None:
        logger.info("Pulsing door toggle relay")
        self._write_toggle(True)
        try:
            time.sleep(self.settle_s)
        finally:
            # Never leave the relay energized.
            self._write_toggle(False)
        run.stop_event.wait(self.settle_s)

    def _write_toggle(self, value: bool) -> None:
        with self._io_lock:
            self.adapter.set_toggle(value)

    # -------------------------------------------------------------------------
    # State polling
    # -------------------------------------------------------------------------

    def _poll_loop(self, run: _RunContext) -> None:
        """Samples the sensors every poll interval until the run is stopped."""
        while not run.stop_event.is_set():
            t_start = time.perf_counter()
            try:
                self._poll_once()
            except Exception as exc:
                logger.exception("Door poll loop encountered an unexpected error: %s", exc)

            elapsed = time.perf_counter() - t_start
            run.stop_event.wait(max(0.0, self.poll_interval_s - elapsed))

        logger.debug("Door state poller exited")

    def _poll_once(self) -> None:
        try:
            with self._io_lock:
                open_asserted = self.adapter.read_open_sensor()
                closed_asserted = self.adapter.read_closed_sensor()
        except AdapterError as exc:
            self._handle_poll_failure(exc)
            return

        if self._consecutive_poll_failures:
            logger.info("Door sensors readable again after %d failed poll(s)", self._consecutive_poll_failures)
            self._consecutive_poll_failures = 0

        candidate = DoorState.from_sensors(open_asserted, closed_asserted)
        with self._state_lock:
            changed = candidate is not self._state
            if changed:
                self._state = candidate
                self._last_change_at = iso_now()
        self._ready.set()

        if changed:
            logger.info("Door state changed to '%s'", candidate.value)
            self._broadcast(candidate)

    def _handle_poll_failure(self, exc: Exception) -> None:
        """Keeps the cached state and logs on the first and every 10th failure."""
        self._consecutive_poll_failures += 1
        count = self._consecutive_poll_failures
        if count == 1 or count % 10 == 0:
            logger.warning("Door sensor read failed (%d consecutive failures): %s", count, exc)

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    def get_state(self) -> DoorState:
        with self._state_lock:
            return self._state

    def get_state_str(self) -> str:
        """Returns "open", "closed" or "unknown"."""
        return self.get_state().value

    def is_ready(self) -> bool:
        """True once the current run has completed a successful poll."""
        return self._ready.is_set()

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        return self._ready.wait(timeout)

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_state_listener(self, listener: StateListener) -> str:
        """
        Register a state listener and return its id.

        A listener is either a callable taking the state string or a
        queue-like object with ``put_nowait``. No value is delivered on
        registration; follow with request_state() for a snapshot.
        """
        if not callable(listener) and not hasattr(listener, "put_nowait"):
            raise TypeError("listener must be callable or provide put_nowait()")
        listener_id = str(uuid.uuid4())
        with self._listeners_lock:
            self._listeners[listener_id] = listener
        logger.debug("Added door state listener %s", listener_id)
        return listener_id

    def remove_state_listener(self, listener_id: str) -> None:
        """Unregister a listener. Unknown ids are ignored."""
        with self._listeners_lock:
            removed = self._listeners.pop(listener_id, None)
        if removed is not None:
            logger.debug("Removed door state listener %s", listener_id)

    @property
    def listener_count(self) -> int:
        with self._listeners_lock:
            return len(self._listeners)

    def _broadcast(self, state: DoorState) -> None:
        state_str = state.value
        with self._listeners_lock:
            for listener_id, listener in list(self._listeners.items()):
                try:
                    if callable(listener):
                        listener(state_str)
                    else:
                        listener.put_nowait(state_str)
                except queue.Full:
                    logger.warning("Door state listener %s queue is full; dropped '%s'", listener_id, state_str)
                except Exception as exc:
                    logger.exception("Door state listener %s raised: %s", listener_id, exc)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        run = self._run
        return {
            "is_running": self.is_running,
            "ready": self.is_ready(),
            "state": self.get_state_str(),
            "adapter": self.adapter.get_adapter_name(),
            "queue_depth": run.commands.qsize() if run else 0,
            "queue_size": self.queue_size,
            "listener_count": self.listener_count,
            "consecutive_poll_failures": self._consecutive_poll_failures,
            "last_change_at": self._last_change_at,
            "poll_interval": self.poll_interval_s,
        }


__all__ = ["DoorControllerService", "StateCallback", "StateListener"]
