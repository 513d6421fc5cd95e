"""Supervised daemon processes.

A SupervisedProcess wraps one long-running external daemon:
- Spawns it with stdout/stderr captured
- Copies every output line to a per-daemon log file
- Waits for a readiness marker on stdout, bounded by a timeout
- Stops it with SIGTERM, escalating to SIGKILL after a grace period
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from enum import Enum
from pathlib import Path
from typing import IO

from .errors import (
    ConfigWriteFailure,
    ProcessSpawnFailure,
    ReadinessStreamClosed,
    ReadinessTimeout,
    StopFailure,
)

logger = logging.getLogger(__name__)

# Recent stderr lines kept for error reports
STDERR_TAIL_LINES = 50

# Upper bound on a single output line (daemons log long debug lines)
READ_LIMIT = 1024 * 1024

# How long to wait for output pumps to reach end of stream after exit
PUMP_DRAIN_TIMEOUT = 1.0


class ProcessState(Enum):
    """Lifecycle of a supervised process."""

    STARTING = "starting"  # Spawned, readiness not yet seen
    READY = "ready"  # Readiness marker seen
    RUNNING = "running"  # Adopted by the orchestrator
    STOPPING = "stopping"  # Termination requested
    STOPPED = "stopped"  # Exited and released
    FAILED = "failed"  # Startup or shutdown failed


async def _readline(stream: asyncio.StreamReader) -> bytes:
    while True:
        try:
            return await stream.readline()
        except ValueError:
            # Line longer than READ_LIMIT; the reader already dropped it
            continue


class SupervisedProcess:
    """A spawned daemon with captured output."""

    def __init__(
        self,
        name: str,
        process: asyncio.subprocess.Process,
        args: list[str],
        log_file: IO[str],
        log_path: Path,
    ):
        self.name = name
        self.args = args
        self.log_path = log_path
        self.state = ProcessState.STARTING
        self._process = process
        self._log = log_file
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stdout_task: asyncio.Task | None = None
        self._stderr_task: asyncio.Task | None = None

    @classmethod
    async def start(
        cls,
        name: str,
        executable: str | Path,
        args: list[str],
        log_dir: Path,
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> SupervisedProcess:
        """Spawn a daemon.

        Args:
            name: Short name, also used for the log file name
            executable: Program to run
            args: Arguments (without the program itself)
            log_dir: Directory for ``{name}.log``
            env: Variables added to the current environment
            cwd: Working directory

        Returns:
            SupervisedProcess in STARTING state.

        Raises:
            ProcessSpawnFailure: If the program cannot be started.
            ConfigWriteFailure: If the log file cannot be opened.
        """
        log_path = log_dir / f"{name}.log"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = open(log_path, "a")
        except OSError as e:
            raise ConfigWriteFailure(log_path, e) from e

        argv = [str(executable), *args]
        logger.debug("Spawning %s: %s", name, " ".join(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env={**os.environ, **env} if env else None,
                limit=READ_LIMIT,
            )
        except OSError as e:
            log_file.close()
            raise ProcessSpawnFailure(str(executable), e) from e

        supervised = cls(name, process, argv, log_file, log_path)
        supervised._stderr_task = asyncio.create_task(
            supervised._pump(process.stderr, supervised._stderr_tail)
        )
        logger.debug("%s spawned with PID %s", name, process.pid)
        return supervised

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def is_alive(self) -> bool:
        return self._process.returncode is None

    def stderr_tail(self) -> str:
        """Most recent stderr lines, for diagnostics."""
        return "\n".join(self._stderr_tail)

    def _write_log(self, line: bytes) -> str:
        text = line.decode(errors="replace").rstrip("\r\n")
        if not self._log.closed:
            self._log.write(text + "\n")
            self._log.flush()
        return text

    async def _pump(self, stream: asyncio.StreamReader, tail: deque[str] | None = None) -> None:
        """Copy a stream to the log file until end of stream."""
        while True:
            line = await _readline(stream)
            if not line:
                return
            text = self._write_log(line)
            if tail is not None:
                tail.append(text)

    async def _scan_for(self, marker: str) -> bool:
        stream = self._process.stdout
        while True:
            line = await _readline(stream)
            if not line:
                return False
            if marker in self._write_log(line):
                return True

    async def wait_ready(self, marker: str, timeout: float) -> None:
        """Block until a stdout line contains ``marker``.

        Output keeps being copied to the log file after the marker is found.

        Args:
            marker: Substring that signals readiness
            timeout: Seconds to wait before giving up

        Raises:
            ReadinessStreamClosed: stdout ended before the marker appeared.
            ReadinessTimeout: Neither happened within ``timeout``.
        """
        logger.debug("Waiting for %s to print %r", self.name, marker)
        try:
            found = await asyncio.wait_for(self._scan_for(marker), timeout)
        except asyncio.TimeoutError:
            await self._abort()
            raise ReadinessTimeout(self.name, marker, timeout, self.stderr_tail()) from None

        if not found:
            await self._abort()
            raise ReadinessStreamClosed(self.name, marker, self.returncode, self.stderr_tail())

        self.state = ProcessState.READY
        self._stdout_task = asyncio.create_task(self._pump(self._process.stdout))
        logger.debug("%s is ready", self.name)

    def mark_running(self) -> None:
        """Record that the process has been handed over to the orchestrator."""
        if self.state == ProcessState.READY:
            self.state = ProcessState.RUNNING

    async def stop(self, grace_period: float, kill_timeout: float = 5.0) -> None:
        """Stop the process.

        Sends SIGTERM and waits ``grace_period`` seconds; a process still alive
        after that is sent SIGKILL.

        Raises:
            StopFailure: If the process survives SIGKILL for ``kill_timeout``.
                Output capture is released; a later call signals it again.
        """
        if self.state == ProcessState.STOPPED:
            return
        if self.state == ProcessState.FAILED and not self.is_alive:
            return

        self.state = ProcessState.STOPPING
        logger.debug("Stopping %s (PID %s)", self.name, self.pid)

        if self.is_alive:
            self._signal(terminate=True)
            try:
                await asyncio.wait_for(self._process.wait(), grace_period)
            except asyncio.TimeoutError:
                logger.warning(
                    "%s did not exit within %ss, sending SIGKILL", self.name, grace_period
                )
                self._signal(terminate=False)
                try:
                    await asyncio.wait_for(self._process.wait(), kill_timeout)
                except asyncio.TimeoutError:
                    await self._release()
                    self.state = ProcessState.FAILED
                    raise StopFailure(self.name, grace_period) from None

        await self._release()
        self.state = ProcessState.STOPPED
        logger.debug("%s stopped (exit code %s)", self.name, self.returncode)

    def _signal(self, terminate: bool) -> None:
        try:
            if terminate:
                self._process.terminate()
            else:
                self._process.kill()
        except ProcessLookupError:
            pass  # Already exited

    async def _abort(self) -> None:
        """Kill the process after a failed startup."""
        if self.is_alive:
            self._signal(terminate=False)
            await self._process.wait()
        await self._release()
        self.state = ProcessState.FAILED

    async def _release(self) -> None:
        """Finish output pumps and close the log file."""
        tasks = [t for t in (self._stdout_task, self._stderr_task) if t is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=PUMP_DRAIN_TIMEOUT)
            # Pipes inherited by grandchildren may never reach end of stream
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        self._log.close()
