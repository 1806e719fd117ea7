"""
Sibling worker processes.

With ``workers.count > 1`` the entrypoint starts N copies of itself with
multiprocessing. Each child performs the same one-shot setup (logging,
loader extensions, application) on its own; the parent only forwards
shutdown signals and waits. Restart policy belongs to the process
supervisor that started the parent.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import signal
import sys
from multiprocessing.connection import wait as wait_for_sentinels
from multiprocessing.process import BaseProcess
from typing import Any

from stampede.config.app import EntrypointConfig

logger = logging.getLogger(__name__)

WORKER_ID_ENV = "STAMPEDE_WORKER_ID"
WORKER_COUNT_ENV = "STAMPEDE_WORKER_COUNT"


def get_worker_id() -> int | None:
    """Index of this worker process, or None when not running as a worker."""
    value = os.environ.get(WORKER_ID_ENV)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def exit_status(exitcode: int | None) -> int:
    """Map a multiprocessing exit code to a shell-style status (signal N -> 128+N)."""
    if exitcode is None:
        return 0
    if exitcode < 0:
        return 128 - exitcode
    return exitcode


def _reset_inherited_logging() -> None:
    """Drop console handlers and stream wrappers a forked child inherits from the parent."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    sys.stdout, sys.stderr = sys.__stdout__, sys.__stderr__


def _worker_main(worker_id: int, count: int, config_data: dict[str, Any], verbose: bool) -> None:
    """Child process body: run the entrypoint as worker ``worker_id``."""
    os.environ[WORKER_ID_ENV] = str(worker_id)
    os.environ[WORKER_COUNT_ENV] = str(count)

    _reset_inherited_logging()

    from stampede.runner import run_entrypoint

    config = EntrypointConfig.model_validate(config_data)
    sys.exit(run_entrypoint(config=config, verbose=verbose))


class WorkerPool:
    """
    Fan-out of the entrypoint into sibling worker processes.

    Features:
    - One child per configured worker, started with the configured start method
    - SIGTERM forwarded to every child; SIGINT reaches them through the process group
    - First non-zero child exit stops the rest and becomes the pool's status
    """

    def __init__(self, config: EntrypointConfig, verbose: bool = False):
        self.config = config
        self.workers_config = config.workers
        self.verbose = verbose
        self.processes: list[BaseProcess] = []
        self.running = True
        self.shutdown_requested = False
        self._mp_context = multiprocessing.get_context(self.workers_config.start_method)

    def _handle_shutdown(self, signum: int, frame: object) -> None:
        """Handle shutdown signals by passing them on to the workers."""
        logger.info(f"Received signal {signum}, stopping workers")
        self.running = False
        self.shutdown_requested = True
        # A terminal Ctrl-C already reached the whole process group; any
        # worker it missed is terminated by stop()
        if signum != signal.SIGINT:
            self._signal_workers(signum)

    def _signal_workers(self, signum: int) -> None:
        for process in self.processes:
            if process.pid is None or not process.is_alive():
                continue
            try:
                os.kill(process.pid, signum)
            except ProcessLookupError:
                pass

    def alive(self) -> list[BaseProcess]:
        return [p for p in self.processes if p.is_alive()]

    def start(self) -> None:
        """Start every worker process."""
        count = self.workers_config.count
        config_data = self.config.model_dump(mode="python")
        for worker_id in range(count):
            process = self._mp_context.Process(
                target=_worker_main,
                args=(worker_id, count, config_data, self.verbose),
                name=f"stampede-worker-{worker_id}",
            )
            process.start()
            self.processes.append(process)
            logger.info(f"Started worker {worker_id} (pid {process.pid})")

    def stop(self) -> None:
        """Terminate remaining workers, escalating to SIGKILL after the shutdown timeout."""
        timeout = self.workers_config.shutdown_timeout
        for process in self.alive():
            process.terminate()
        for process in self.processes:
            process.join(timeout)

        for process in self.alive():
            logger.warning(f"Worker {process.name} (pid {process.pid}) did not exit, killing it")
            process.kill()
            process.join(1.0)

    def wait(self) -> int:
        """
        Block until every worker has exited or one has failed.

        Returns:
            0 if all workers exited cleanly or shutdown was requested,
            otherwise the status of the first failed worker.
        """
        status = 0
        while self.running:
            failed = [p for p in self.processes if p.exitcode not in (None, 0)]
            if failed:
                process = failed[0]
                status = exit_status(process.exitcode)
                logger.error(f"Worker {process.name} (pid {process.pid}) exited with status {status}")
                break

            alive = self.alive()
            if not alive:
                break

            # Wake on any worker exit, or once a second to notice signals
            wait_for_sentinels([p.sentinel for p in alive], timeout=1.0)

        self.stop()
        if self.shutdown_requested:
            return 0
        return status

    def run(self) -> int:
        """Start the workers, forward shutdown signals, and wait for them."""
        previous = {
            sig: signal.signal(sig, self._handle_shutdown) for sig in (signal.SIGTERM, signal.SIGINT)
        }
        logger.info(
            f"Starting {self.workers_config.count} workers for {self.config.app} "
            f"(start method: {self.workers_config.start_method})"
        )
        try:
            self.start()
            return self.wait()
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)
            logger.info("All workers stopped")
