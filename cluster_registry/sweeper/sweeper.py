# cluster_registry/sweeper/sweeper.py
"""
Dead Node Sweeper - Demotes nodes that stopped sending heartbeats.

Runs as a background thread of the API process, sharing its registry
(and so its lock) with the request handlers. Sweeps every
`interval_seconds`.
"""

import logging
import signal
import threading
from typing import List, Optional

from cluster_registry.registry.service import ClusterRegistry

logger = logging.getLogger(__name__)


class DeadNodeSweeper:
    """
    Background service that marks silent nodes offline.

    Architecture:
    - One sweep per interval
    - Only `online` nodes are demoted; maintenance and draining are left alone
    - A failing cycle is logged and the loop carries on
    """

    def __init__(
        self,
        registry: ClusterRegistry,
        timeout_seconds: int = 60,
        interval_seconds: int = 15,
    ):
        """
        Initialize sweeper.

        Args:
            registry: Registry to sweep
            timeout_seconds: Silence after which an online node is dead
            interval_seconds: How often to sweep
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self.interval_seconds = interval_seconds
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None

        logger.info("Dead Node Sweeper initialized")
        logger.info(f"Dead node timeout: {timeout_seconds}s")
        logger.info(f"Sweep interval: {interval_seconds}s")

    def start(self, install_signal_handlers: bool = True):
        """Start the sweep loop. Blocks until stop() or a signal."""
        logger.info("=" * 80)
        logger.info("DEAD NODE SWEEPER STARTED")
        logger.info("=" * 80)

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        while not self._stop_requested.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in sweep cycle: {e}", exc_info=True)

            self._stop_requested.wait(self.interval_seconds)

        logger.info("Dead Node Sweeper stopped")

    def start_in_background(self) -> threading.Thread:
        """Run the loop on a daemon thread. Signals stay with the host process."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._stop_requested.clear()
        self._thread = threading.Thread(
            target=self.start,
            kwargs={"install_signal_handlers": False},
            name="dead-node-sweeper",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None):
        """Request exit and wait for the background thread, if any."""
        self._stop_requested.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, stopping...")
        self._stop_requested.set()

    def run_once(self) -> List[str]:
        """
        Single sweep.

        Returns the ids demoted to offline. Nodes that could not be
        demoted are reported as a warning; nodes that sent a heartbeat
        before demotion are only noted at debug level.
        """
        result = self.registry.sweep_dead_nodes(self.timeout_seconds)

        if result.failed:
            logger.warning(
                f"{len(result.failed)} dead node(s) not demoted this cycle: "
                f"{', '.join(sorted(result.failed))}"
            )
        if result.revived:
            logger.debug(f"Revived before demotion: {', '.join(sorted(result.revived))}")
        if result.marked:
            logger.info(f"Marked {len(result.marked)} node(s) offline: {', '.join(result.marked)}")
        elif not result.failed:
            logger.debug("No dead nodes")

        return result.marked
