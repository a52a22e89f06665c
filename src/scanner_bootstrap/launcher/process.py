"""
Process Launcher - Run a child process while draining its streams.

stdout and stderr are read concurrently with feeding stdin, each in its own
asyncio task. A child blocked on a full output pipe would otherwise never
exit, and a child that never reads stdin would block the writer.

Output is line-oriented: each stdout line is handed to a sink as soon as it
arrives, each stderr line is logged at error level.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

import structlog

from ..errors import ScannerBootstrapError

# Maximum length of a single output line, longer lines are dropped with a warning
STREAM_LIMIT = 16 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024

UNSUPPORTED_CLASS_VERSION_ERROR = "UnsupportedClassVersionError"

JRE_VERSION_ERROR = (
    "The version of the custom JRE provided to the SonarScanner using the 'sonar.scanner.javaExePath' "
    "parameter is incompatible with your SonarQube target. You may need to upgrade the version of Java "
    "that executes the scanner. Refer to https://docs.sonarsource.com/sonarqube-community-build/"
    "analyzing-source-code/scanners/scanner-environment/general-requirements/ for more details."
)

StdoutSink = Callable[[str], None]


class ProcessState(Enum):
    """Lifecycle of a launched process"""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED_TO_START = "failed_to_start"
    KILLED = "killed"


@dataclass
class LaunchResult:
    """Outcome of a finished (or never started) process"""
    exit_code: Optional[int]
    succeeded: bool
    state: ProcessState


class ProcessLaunchError(ScannerBootstrapError):
    """Raised when the child process cannot be spawned"""
    pass


class ProcessLauncher:
    """
    Spawn a process, stream its output and report how it ended.

    A non-zero exit code is a result, not an error: only a spawn failure
    raises. A launcher can be reused; ``state`` reflects its most recent run,
    each LaunchResult keeps the final state of its own run.

    Example:
        >>> launcher = ProcessLauncher()
        >>> ok = await launcher.execute("java", ["--version"], stdout_sink=print)
    """

    def __init__(self, logger: Optional[Any] = None):
        """
        Initialize launcher

        Args:
            logger: structlog logger (module logger if None)
        """
        self.logger = logger or structlog.get_logger(__name__)
        self.state = ProcessState.NOT_STARTED

    async def execute(
        self,
        executable: Union[str, Path],
        args: Sequence[str],
        stdin_payload: Optional[str] = None,
        stdout_sink: Optional[StdoutSink] = None,
    ) -> bool:
        """Run the process and return True only on exit code 0"""
        result = await self.run(executable, args, stdin_payload, stdout_sink)
        return result.succeeded

    async def run(
        self,
        executable: Union[str, Path],
        args: Sequence[str],
        stdin_payload: Optional[str] = None,
        stdout_sink: Optional[StdoutSink] = None,
    ) -> LaunchResult:
        """
        Run the process to completion.

        Args:
            executable: Program to run
            args: Program arguments
            stdin_payload: Text written to stdin, which is then closed
                (stdin is not connected if None)
            stdout_sink: Receives every stdout line (debug log if None)

        Returns:
            LaunchResult once the process exited and both streams are drained

        Raises:
            ProcessLaunchError: If the process cannot be started
        """
        command: List[str] = [str(executable)] + [str(arg) for arg in args]
        self.logger.debug("process_executing", command=" ".join(command))
        sink = stdout_sink or self._log_stdout

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE if stdin_payload is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.state = ProcessState.FAILED_TO_START
            raise ProcessLaunchError(f"Failed to run the command: {command[0]}") from e

        self.state = ProcessState.RUNNING
        stderr_reader = _StderrReader(self.logger)
        tasks = [
            asyncio.create_task(self._drain(process.stdout, sink)),
            asyncio.create_task(self._drain(process.stderr, stderr_reader.accept)),
        ]
        if stdin_payload is not None:
            tasks.append(asyncio.create_task(self._feed_stdin(process, stdin_payload)))

        try:
            await asyncio.gather(*tasks)
            exit_code = await process.wait()
        except BaseException:
            await self._abort(process, tasks)
            raise

        self.state = ProcessState.COMPLETED
        if stderr_reader.unsupported_class_version:
            self.logger.error("jre_version_error", message=JRE_VERSION_ERROR)

        if exit_code != 0:
            self.logger.debug("process_exit_code", exit_code=exit_code)
            return LaunchResult(exit_code=exit_code, succeeded=False, state=self.state)
        return LaunchResult(exit_code=exit_code, succeeded=True, state=self.state)

    async def _drain(self, stream: asyncio.StreamReader, consumer: StdoutSink):
        pending = bytearray()
        # set while skipping the rest of a line already reported as too long
        oversized = False
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            start = len(pending)
            pending.extend(chunk)
            newline = pending.find(b"\n", start)
            while newline >= 0:
                line = bytes(pending[:newline])
                del pending[:newline + 1]
                if not oversized and len(line) > STREAM_LIMIT:
                    self._warn_line_too_long()
                elif not oversized:
                    self._deliver(line, consumer)
                oversized = False
                newline = pending.find(b"\n")
            if len(pending) > STREAM_LIMIT:
                if not oversized:
                    self._warn_line_too_long()
                oversized = True
                pending.clear()
        if pending and not oversized:
            self._deliver(bytes(pending), consumer)

    def _warn_line_too_long(self):
        self.logger.warning("output_line_too_long", limit=STREAM_LIMIT)

    async def _abort(self, process: asyncio.subprocess.Process, tasks: List[asyncio.Task]):
        """Stop the streaming tasks and kill the child when the run is interrupted"""
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                self.logger.debug("process_already_exited", pid=process.pid)
            await process.wait()
        self.state = ProcessState.KILLED

    def _deliver(self, line: bytes, consumer: StdoutSink):
        text = line.decode("utf-8", errors="replace").rstrip("\r")
        try:
            consumer(text)
        except Exception as e:
            # Keep draining, a stalled pipe would block the child
            self.logger.error("output_consumer_failed", error=str(e), exc_info=True)

    async def _feed_stdin(self, process: asyncio.subprocess.Process, payload: str):
        try:
            process.stdin.write(payload.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            self.logger.debug("process_stdin_closed", error=str(e))
        finally:
            try:
                process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                pass

    def _log_stdout(self, line: str):
        self.logger.debug(line)


class _StderrReader:
    """Logs stderr lines and watches for a Java class version mismatch"""

    def __init__(self, logger: Any):
        self.logger = logger
        self.unsupported_class_version = False

    def accept(self, line: str):
        if UNSUPPORTED_CLASS_VERSION_ERROR in line:
            self.unsupported_class_version = True
        self.logger.error(f"[stderr] {line}")
