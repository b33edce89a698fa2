"""
Log Pattern Watcher

Waits for a value to show up in the combined output of an external process.
"""

import re
from typing import Optional, Pattern, Protocol, Union

import structlog

from ..errors import InvalidInput, ReadinessTimeout
from .retry import poll_until

logger = structlog.get_logger(__name__)

LOG_TAIL_LIMIT = 512


class ProcessOutput(Protocol):
    """Non-destructive view of a launched process's output streams."""

    async def read_stdout(self) -> bytes: ...

    async def read_stderr(self) -> bytes: ...


async def read_combined_output(process: ProcessOutput) -> str:
    """Read everything the process wrote so far, stdout then stderr."""
    stdout = await process.read_stdout()
    stderr = await process.read_stderr()
    return stdout.decode("utf-8", errors="replace") + stderr.decode("utf-8", errors="replace")


class LogPatternWatcher:
    """
    Polls a process's accumulated output for the first capture group of a pattern.

    Every attempt re-reads the whole output; the streams are never consumed,
    so repeated reads are safe.
    """

    def __init__(
        self,
        pattern: Union[str, Pattern[str]],
        attempts: int = 60,
        interval: float = 0.5,
        label: str = "process",
    ):
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        if self.pattern.groups < 1:
            raise InvalidInput(
                f"Output pattern for {label} needs a capture group: {self.pattern.pattern}"
            )
        self.attempts = attempts
        self.interval = interval
        self.label = label

    async def wait_for_match(self, process: ProcessOutput) -> str:
        """
        Return the first match of the pattern's first group.

        Raises:
            ReadinessTimeout: no match within the attempt budget; carries the
                last 512 characters of output
        """
        last_logged_size: Optional[int] = None
        attempt = 0

        async def probe() -> Optional[str]:
            nonlocal last_logged_size, attempt
            attempt += 1
            combined = await read_combined_output(process)

            match = self.pattern.search(combined)
            if match:
                value = match.group(1)
                logger.info("Found pattern in output", process=self.label, attempt=attempt)
                return value

            if last_logged_size is None or len(combined) != last_logged_size:
                logger.info(
                    "Waiting for pattern in output",
                    process=self.label,
                    attempt=attempt,
                    output_bytes=len(combined),
                )
                last_logged_size = len(combined)
            return None

        value = await poll_until(
            probe,
            attempts=self.attempts,
            interval=self.interval,
            label=f"{self.label}_output",
        )
        if value is not None:
            return value

        combined = await read_combined_output(process)
        tail = combined[-LOG_TAIL_LIMIT:]
        raise ReadinessTimeout(
            f"Timed out waiting for {self.label} output to match. Latest logs:\n{tail}",
            log_tail=tail,
        )
