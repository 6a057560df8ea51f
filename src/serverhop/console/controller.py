"""Game process controller.

This module provides the ProcessController class, which owns the external
game process inside a pseudo-terminal, types connect commands into its
console and interprets the console output to decide whether a connection
succeeded.
"""

from typing import TypeAlias
import asyncio
import contextlib
import logging
import os
import re
import signal
from collections import deque
from collections.abc import Callable, Iterable
from types import TracebackType

import pexpect

from serverhop.console.attempt import AttemptPhase, ConnectionAttempt
from serverhop.console.command import build_connect_command
from serverhop.console.options import ControllerOptions
from serverhop.console.patterns import ConsoleEvent, ConsoleEventKind, classify_line
from serverhop.errors import CommandRejectedError, ErrorKind, ProcessSpawnError
from serverhop.history import IdentityCache
from serverhop.models import ServerRecord
from serverhop.utils.text import strip_ansi

logger = logging.getLogger(__name__)

SpawnFunc: TypeAlias = Callable[[ControllerOptions], pexpect.spawn]

LINE_BREAK = re.compile(r"\r?\n")

NO_PROMPT_REASON = "no prompt detected"
TIMEOUT_REASON = "timeout"
EXITED_REASON = "process exited"


class ChildExitedError(Exception):
    """The game process closed its console."""


def spawn_game(options: ControllerOptions) -> pexpect.spawn:
    """Start the game attached to a new pseudo-terminal.

    Raises:
        ProcessSpawnError: If the executable cannot be started

    """
    try:
        child = pexpect.spawn(
            options.executable,
            list(options.args),
            cwd=options.cwd,
            env=options.env,
            encoding=options.encoding,
            codec_errors="replace",
            timeout=None,
            echo=False,
            dimensions=options.dimensions,
        )
    except (pexpect.ExceptionPexpect, OSError) as e:
        msg = f"Failed to start {options.executable}: {e}"
        raise ProcessSpawnError(msg) from e

    # close() sleeps on the event loop thread between signals
    child.ptyproc.delayafterclose = options.close_delay
    child.ptyproc.delayafterterminate = options.close_delay
    return child


class ProcessController:
    """Drives the game console to join servers.

    A single reader task drains the pseudo-terminal for as long as the game
    runs, keeping a bounded console history. While an attempt is active, the
    lines it reads are also queued for that attempt's state machine.
    """

    def __init__(
        self,
        options: ControllerOptions,
        cache: IdentityCache,
        *,
        spawn: SpawnFunc = spawn_game,
    ) -> None:
        """Initialize process controller.

        Args:
            options: Game process options
            cache: History cache updated after successful connections
            spawn: Factory starting the game in a pseudo-terminal

        """
        self._options = options
        self._cache = cache
        self._spawn_func = spawn

        self._child: pexpect.spawn | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._prompt_ready = False

        self._attempt: ConnectionAttempt | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._console_history: deque[str] = deque(maxlen=options.console_history_size)

    @property
    def is_running(self) -> bool:
        """Check if the game process is alive."""
        return self._child is not None and self._child.isalive()

    @property
    def pid(self) -> int | None:
        """Get process id of the game, if running."""
        return self._child.pid if self._child is not None else None

    @property
    def current_attempt(self) -> ConnectionAttempt | None:
        """Get the most recent connection attempt."""
        return self._attempt

    def console_history(self) -> list[str]:
        """Get recent console lines, oldest first."""
        return list(self._console_history)

    async def connect(
        self,
        record: ServerRecord,
        password: str | None = None,
        *,
        retry_count: int = 0,
    ) -> ConnectionAttempt:
        """Join a server through the game console.

        Args:
            record: Server to join
            password: Optional server password
            retry_count: Number of earlier attempts in the same ranked run

        Returns:
            The resolved connection attempt

        Raises:
            RuntimeError: If another attempt is still in progress

        """
        if self._attempt is not None and not self._attempt.is_resolved:
            msg = "Connection attempt already in progress"
            raise RuntimeError(msg)

        attempt = ConnectionAttempt(target=record, retry_count=retry_count)
        self._attempt = attempt

        try:
            attempt.command = build_connect_command(
                record.host, record.port, password, self._options.command
            )
        except CommandRejectedError as e:
            attempt.fail(e.reason, e.kind, self._options.retry.rejected_class)
            return attempt

        self._attempt_task = asyncio.create_task(self._run_attempt(attempt))
        try:
            await self._attempt_task
        except asyncio.CancelledError:
            attempt.abort()
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        finally:
            self._attempt_task = None

        return attempt

    async def connect_ranked(
        self,
        records: Iterable[ServerRecord],
        password: str | None = None,
    ) -> list[ConnectionAttempt]:
        """Join the best server, moving down the ranking on retryable failures.

        Args:
            records: Ranked servers, best first
            password: Optional server password

        Returns:
            Every attempt made, the last one holds the final outcome

        """
        policy = self._options.retry
        attempts: list[ConnectionAttempt] = []
        retries = 0

        for record in records:
            attempt = await self.connect(record, password, retry_count=retries)
            attempts.append(attempt)

            if attempt.phase is not AttemptPhase.FAILED:
                break
            if not policy.allows(attempt.failure_class, retries):
                break

            retries += 1
            logger.info(
                "Retrying with next candidate (%d/%d) after %s failure",
                retries,
                policy.max_retries,
                attempt.failure_class,
            )

        return attempts

    async def reconnect_last(self, password: str | None = None) -> ConnectionAttempt | None:
        """Join the most recently joined server, if any."""
        entry = self._cache.last()
        if entry is None:
            logger.info("No previously joined server to reconnect to")
            return None

        logger.info("Reconnecting to %s (%s:%d)", entry.name or "last server", entry.host, entry.port)
        return await self.connect(entry.to_record(), password)

    async def abort(self) -> None:
        """Cancel the attempt in progress, killing the game process."""
        task = self._attempt_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def close(self) -> None:
        """Abort any attempt and stop the game process."""
        await self.abort()
        reader = self._reader_task
        self._terminate()
        if reader is not None and not reader.done():
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def __aenter__(self) -> "ProcessController":
        """Enter async context."""
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: TracebackType | None,
    ) -> None:
        """Stop the game process on exit."""
        await self.close()

    async def _run_attempt(self, attempt: ConnectionAttempt) -> None:
        """Run the connection state machine for one attempt."""
        try:
            if self.is_running:
                logger.debug("Reusing running game process %s", self.pid)
                self._drain_lines()
            else:
                self._start()
            attempt.pid = self.pid

            attempt.advance(AttemptPhase.AWAITING_PROMPT)
            if not self._prompt_ready and not await self._await_prompt(attempt):
                return

            attempt.advance(AttemptPhase.SENDING_COMMAND)
            self._send(attempt.command)

            attempt.advance(AttemptPhase.CONNECTING)
            if await self._await_connection(attempt):
                attempt.advance(AttemptPhase.CONNECTED)
                logger.info("Connected to %s", attempt.address)
                self._cache.record(attempt.target)

        except ProcessSpawnError as e:
            attempt.fail(e.reason, e.kind)
        except ChildExitedError:
            attempt.fail(EXITED_REASON, ErrorKind.PROCESS_EXITED)
        except (pexpect.ExceptionPexpect, OSError) as e:
            attempt.fail(f"console error: {e}", ErrorKind.PROCESS_EXITED)
        except asyncio.CancelledError:
            attempt.abort()
            raise
        finally:
            if not attempt.is_resolved:
                attempt.abort("controller error")
            if not attempt.succeeded:
                self._terminate()

    async def _await_prompt(self, attempt: ConnectionAttempt) -> bool:
        """Wait for the console prompt, failing the attempt on timeout."""
        deadline = asyncio.get_running_loop().time() + self._options.prompt_timeout
        while True:
            event = await self._next_event(deadline)
            if event is None:
                attempt.fail(
                    NO_PROMPT_REASON,
                    ErrorKind.PROTOCOL_MISMATCH,
                    self._options.retry.no_prompt_class,
                )
                return False
            if event.kind is ConsoleEventKind.PROMPT_READY:
                logger.debug("Console prompt detected: %r", event.line)
                self._prompt_ready = True
                return True

    async def _await_connection(self, attempt: ConnectionAttempt) -> bool:
        """Wait for a success or failure line after sending the command."""
        deadline = asyncio.get_running_loop().time() + self._options.connect_timeout
        while True:
            event = await self._next_event(deadline)
            if event is None:
                attempt.fail(
                    TIMEOUT_REASON,
                    ErrorKind.PROTOCOL_MISMATCH,
                    self._options.retry.timeout_class,
                )
                return False
            if event.kind is ConsoleEventKind.CONNECT_ACKNOWLEDGED:
                return True
            if event.kind is ConsoleEventKind.CONNECTION_ERROR:
                attempt.fail(
                    event.line.strip(),
                    ErrorKind.CONNECTION_REJECTED,
                    event.failure_class or self._options.retry.timeout_class,
                )
                return False

    async def _next_event(self, deadline: float) -> ConsoleEvent | None:
        """Get the next classified console line, or None once the deadline passes.

        Raises:
            ChildExitedError: If the game closed its console

        """
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            return None
        try:
            line = await asyncio.wait_for(self._lines.get(), timeout=remaining)
        except TimeoutError:
            return None
        if line is None:
            raise ChildExitedError
        return classify_line(line, self._options.patterns)

    def _start(self) -> None:
        """Spawn the game and its reader task."""
        self._terminate()
        child = self._spawn_func(self._options)
        self._child = child
        self._lines = asyncio.Queue()
        self._prompt_ready = False
        self._reader_task = asyncio.create_task(self._read_loop(child, self._lines))
        logger.info("Started %s (pid %s)", self._options.executable, child.pid)

    async def _read_loop(self, child: pexpect.spawn, lines: asyncio.Queue[str | None]) -> None:
        """Read console lines until the game exits."""
        try:
            while True:
                index = await child.expect([LINE_BREAK, pexpect.EOF], timeout=None, async_=True)
                if index == 1:
                    if child.before:
                        self._dispatch(child.before, lines)
                    logger.info("Game console closed")
                    break
                self._dispatch(child.before, lines)
        except (pexpect.ExceptionPexpect, OSError) as e:
            logger.debug("Console reader stopped: %s", e)
        finally:
            lines.put_nowait(None)

    def _dispatch(self, raw: str, lines: asyncio.Queue[str | None]) -> None:
        text = strip_ansi(raw).strip("\r\n")
        self._console_history.append(text)
        logger.debug("console: %s", text)
        if self._attempt is not None and not self._attempt.is_resolved:
            lines.put_nowait(text)

    def _drain_lines(self) -> None:
        """Drop lines queued before the current attempt, keeping an EOF marker."""
        while not self._lines.empty():
            if self._lines.get_nowait() is None:
                self._lines.put_nowait(None)
                break

    def _send(self, command: str) -> None:
        if self._child is None:
            raise ChildExitedError
        logger.info("Sending console command: %s", command)
        self._child.sendline(command)

    def _terminate(self) -> None:
        """Kill the game process and release the pseudo-terminal."""
        child, self._child = self._child, None
        reader, self._reader_task = self._reader_task, None
        self._prompt_ready = False

        if reader is not None and not reader.done():
            reader.cancel()
        if child is None:
            return

        # pexpect keeps the asyncio read transport on the spawn object
        transport_pair = getattr(child, "async_pw_transport", None)
        if transport_pair is not None:
            transport_pair[1].close()

        pid = child.pid
        try:
            child.close(force=True)
        except pexpect.ExceptionPexpect:
            logger.warning("Game process %s ignored termination, killing it", pid)
            with contextlib.suppress(ProcessLookupError, ChildProcessError):
                os.kill(pid, signal.SIGKILL)
                os.waitpid(pid, 0)
        else:
            logger.info("Stopped game process %s", pid)

    def __repr__(self) -> str:
        """Return string representation."""
        phase = self._attempt.phase if self._attempt else None
        return (
            f"ProcessController("
            f"executable='{self._options.executable}', "
            f"running={self.is_running}, "
            f"phase={phase})"
        )
