"""
Runs external codec executables as asyncio subprocesses.

Cancellation is cooperative: callers pass an ``asyncio.Event`` that is checked
before a tool starts and raced against the running child. When it fires, the
child is killed and reaped before ``ConversionCancelledError`` is raised.
Cancelling the awaiting task kills the child the same way and lets
``asyncio.CancelledError`` propagate.
"""

import asyncio
import logging
import os
from collections.abc import Sequence
from contextlib import suppress

from penaudio.exceptions import (
    ConversionCancelledError,
    ToolFailedError,
    ToolNotFoundError,
    ToolTimeoutError,
)

log = logging.getLogger(__name__)

ToolArgs = Sequence[str | None]


def clean_args(args: ToolArgs) -> list[str]:
    """Drops absent or empty arguments so optional flags can be written inline."""
    return [str(arg) for arg in args if arg]


class SubprocessRunner:
    """Invokes codec tools, enforcing a zero exit code."""

    def __init__(self, timeout: float | None = None):
        """
        Args:
            timeout: Seconds a single tool may run before it is killed.
                None disables the limit.
        """
        self.timeout = timeout

    async def run(
        self,
        executable: str,
        args: ToolArgs,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Runs a tool, discarding its standard output. Returns the exit code."""
        returncode, _ = await self._execute(
            executable, clean_args(args), cancel_event, capture=False
        )
        return returncode

    async def run_capturing(
        self,
        executable: str,
        args: ToolArgs,
        cancel_event: asyncio.Event | None = None,
    ) -> tuple[int, str]:
        """
        Runs a tool and returns its exit code together with everything it
        printed (stderr is merged into stdout).
        """
        return await self._execute(
            executable, clean_args(args), cancel_event, capture=True
        )

    async def _execute(
        self,
        executable: str,
        argv: list[str],
        cancel_event: asyncio.Event | None,
        capture: bool,
    ) -> tuple[int, str]:
        if cancel_event is not None and cancel_event.is_set():
            raise ConversionCancelledError(
                f"Cancelled before starting '{os.path.basename(executable)}'."
            )

        log.debug(f"Running: {executable} {' '.join(argv)}")
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE
                if capture
                else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.STDOUT
                if capture
                else asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(executable, argv) from e
        except PermissionError as e:
            raise ToolFailedError(
                executable, argv, None, message=f"Cannot execute '{executable}': {e}"
            ) from e

        communicate = asyncio.ensure_future(process.communicate())
        waiters: set[asyncio.Future] = {communicate}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self._terminate(process, communicate)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if communicate not in done:
            await self._terminate(process, communicate)
            if cancel_waiter is not None and cancel_waiter in done:
                log.debug(f"Killed '{executable}' (pid {process.pid}) on cancellation.")
                raise ConversionCancelledError(
                    f"Cancelled while running '{os.path.basename(executable)}'."
                )
            raise ToolTimeoutError(executable, argv, self.timeout)

        stdout, stderr = communicate.result()
        output = (stdout if capture else stderr) or b""
        text = output.decode("utf-8", errors="replace")
        returncode = process.returncode

        if returncode != 0:
            log.debug(f"'{executable}' failed with code {returncode}: {text.strip()}")
            raise ToolFailedError(executable, argv, returncode, text)
        return returncode, text

    @staticmethod
    async def _terminate(
        process: asyncio.subprocess.Process, communicate: asyncio.Future
    ) -> None:
        """Kills the child process and waits until it has been reaped."""
        if process.returncode is None:
            with suppress(ProcessLookupError):
                process.kill()
        communicate.cancel()
        with suppress(asyncio.CancelledError):
            await communicate
        await process.wait()
