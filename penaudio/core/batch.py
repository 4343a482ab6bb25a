"""
Converts many source files concurrently through one MediaFileConverter.
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable, Iterable

from rich.markup import escape

from penaudio.exceptions import ConversionCancelledError, PenAudioError
from penaudio.models.source import SourceReference
from penaudio.models.stats import ConversionOutcome, ConversionState, ConversionStats
from penaudio.utils.structured_logger import SessionLogger

from .converter import MediaFileConverter

log = logging.getLogger(__name__)

OutcomeCallback = Callable[[ConversionOutcome], None]


class BatchConverter:
    """Orchestrates a session of conversion requests."""

    def __init__(
        self,
        converter: MediaFileConverter,
        max_workers: int = 4,
        session_events: SessionLogger | None = None,
    ):
        self.converter = converter
        self.max_workers = max_workers
        self.stats = ConversionStats()
        self.session_events = session_events
        self.semaphore = asyncio.Semaphore(max_workers)
        self.duration_s = 0.0

    @staticmethod
    def unique_sources(sources: Iterable[str | os.PathLike]) -> list[str]:
        """Normalizes sources to absolute paths and drops case-insensitive duplicates."""
        seen: dict[str, str] = {}
        for source in sources:
            path = SourceReference.from_path(source).path
            seen.setdefault(path.casefold(), path)
        return list(seen.values())

    async def convert_all(
        self,
        sources: Iterable[str | os.PathLike],
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> list[ConversionOutcome]:
        """
        Provides artifacts for all sources. Individual failures are recorded
        and do not stop the other conversions.

        Returns:
            One outcome per unique source, in input order.
        """
        sources = list(sources)
        unique = self.unique_sources(sources)
        self.stats.duplicates_skipped = len(sources) - len(unique)
        if self.stats.duplicates_skipped:
            log.info(f"Removed {self.stats.duplicates_skipped} duplicate sources.")

        if self.session_events:
            self.session_events.session_started(len(unique), self.max_workers, force)

        start = time.monotonic()
        tasks = [
            self._convert_one(source, force, cancel_event, on_outcome)
            for source in unique
        ]
        outcomes = await asyncio.gather(*tasks)
        self.duration_s = time.monotonic() - start

        if self.session_events:
            self.session_events.session_completed(
                self.duration_s,
                self.stats.converted,
                self.stats.cached,
                self.stats.failed,
                self.stats.cancelled,
            )
        return list(outcomes)

    async def _convert_one(
        self,
        source: str,
        force: bool,
        cancel_event: asyncio.Event | None,
        on_outcome: OutcomeCallback | None,
    ) -> ConversionOutcome:
        async with self.semaphore:
            outcome = await self._attempt(source, force, cancel_event)
        self.stats.record(outcome)
        if on_outcome:
            on_outcome(outcome)
        return outcome

    async def _attempt(
        self, source: str, force: bool, cancel_event: asyncio.Event | None
    ) -> ConversionOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return ConversionOutcome(source, ConversionState.CANCELLED)

        existed = False
        try:
            if not force:
                existed = (await self.converter.get_artifact_path(source)).is_file()
            artifact = await self.converter.provide_audio_file(
                source, cancel_event=cancel_event, force=force
            )
        except ConversionCancelledError as e:
            return ConversionOutcome(source, ConversionState.CANCELLED, error=e)
        except (PenAudioError, OSError) as e:
            log.error(
                f"  [red]✗ Failed:[/] {escape(os.path.basename(source))} ({escape(str(e))})",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return ConversionOutcome(source, ConversionState.FAILED, error=e)

        state = ConversionState.CACHED if existed else ConversionState.DONE
        return ConversionOutcome(source, state, artifact=artifact)
