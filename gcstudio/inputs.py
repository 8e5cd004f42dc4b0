"""Latest raw controller readings shared between the sampling and UI threads."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .coercion import STICK_CENTER

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0 / 120.0


@dataclass(frozen=True)
class InputSnapshot:
    main_stick: Tuple[int, int] = (STICK_CENTER, STICK_CENTER)
    c_stick: Tuple[int, int] = (STICK_CENTER, STICK_CENTER)
    l_trigger: int = 0
    r_trigger: int = 0
    confirm_pressed: bool = False


class LatestInputs:
    """Single most recent snapshot, replaced whole by the producer."""

    def __init__(self, initial: Optional[InputSnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial or InputSnapshot()

    def publish(self, snapshot: InputSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def snapshot(self) -> InputSnapshot:
        with self._lock:
            return self._snapshot


class ReloadFlag:
    """Tells the feeder that the persisted configuration changed."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def request(self) -> None:
        self._event.set()

    def is_requested(self) -> bool:
        return self._event.is_set()

    def take(self) -> bool:
        if not self._event.is_set():
            return False
        self._event.clear()
        return True


class InputPoller(threading.Thread):
    """Calls ``source`` every ``interval`` seconds and publishes the result."""

    def __init__(
        self,
        source: Callable[[], InputSnapshot],
        latest: LatestInputs,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(name="gcstudio-input-poller", daemon=True)
        self.source = source
        self.latest = latest
        self.interval = interval
        self.samples = 0
        self._stopping = threading.Event()

    def run(self) -> None:
        while not self._stopping.is_set():
            try:
                self.latest.publish(self.source())
                self.samples += 1
            except Exception:
                logger.exception("Reading controller input failed")
            self._stopping.wait(self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopping.set()
        if self.is_alive():
            self.join(timeout)
