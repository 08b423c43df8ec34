"""
Real-Time Runner

Drives SimulationEngine.tick() at a fixed real-time cadence from a
daemon thread. Pausing stops tick emission after the in-flight tick;
resuming continues from the paused simulated instant without replaying
the ticks missed while paused.
"""

from typing import Iterable, Optional, Union
import logging
import threading

from ..config.simulation import SimulationConfig
from ..core.entities import FlowRule
from ..core.exceptions import SimulationStateError
from .engine import SimulationEngine

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Periodic driver around one engine."""

    def __init__(
        self,
        engine: SimulationEngine,
        interval_seconds: Optional[float] = None,
        stop_when_finished: bool = True
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds or engine.settings.tick_interval_seconds
        self.stop_when_finished = stop_when_finished

        self._thread: Optional[threading.Thread] = None
        self._stop: Optional[threading.Event] = None
        self._control_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, config: SimulationConfig, rules: Iterable[Union[FlowRule, dict]]) -> None:
        """Start a fresh run and begin ticking."""
        self.pause()
        self.engine.start(config, rules)
        self.resume()

    def resume(self) -> None:
        with self._control_lock:
            if not self.engine.is_started:
                raise SimulationStateError("Cannot resume a simulation that was never started")
            if self.is_running:
                return

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="flowsim-ticker",
                daemon=True
            )
            self._stop = stop_event
            self._thread = thread
            thread.start()
            logger.info("Ticking every %.2fs from %s", self.interval_seconds, self.engine.now)

    def pause(self) -> None:
        with self._control_lock:
            stop_event, thread = self._stop, self._thread
            if stop_event is not None:
                stop_event.set()
            if thread is not None and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=max(2.0, self.interval_seconds * 2))
                if thread.is_alive():
                    logger.warning("Tick thread did not exit within timeout")
            if thread is not None:
                logger.info("Paused at %s", self.engine.now)
            self._thread = None
            self._stop = None

    def stop(self) -> None:
        """Stop ticking and clear the engine."""
        self.pause()
        self.engine.reset()

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_seconds):
            try:
                self.engine.tick()
            except SimulationStateError:
                logger.warning("Engine was reset while ticking; stopping")
                break
            if self.stop_when_finished and self.engine.is_finished:
                logger.info("All instances finished at %s", self.engine.now)
                break
