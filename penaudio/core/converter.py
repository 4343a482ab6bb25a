"""
Provides pen-ready audio files for arbitrary sources, converting and caching
them as needed.
"""

import asyncio
import logging
import os
import time
from collections import OrderedDict
from collections.abc import Callable
from pathlib import Path

from rich.markup import escape

from penaudio.exceptions import (
    ArtifactIntegrityError,
    CacheIOError,
    ConversionCancelledError,
    PenAudioError,
    ToolOutputMissingError,
)
from penaudio.media.integrity import FileIntegrityChecker
from penaudio.media.stages import ConversionPlan, Stage, plan_stages
from penaudio.media.subprocess_runner import SubprocessRunner
from penaudio.media.tools import ToolPaths
from penaudio.models.config import ConverterConfig
from penaudio.models.source import SourceReference
from penaudio.storage.cache import ArtifactCache, CacheKeyDeriver
from penaudio.storage.transaction import FileTransaction, remove_quietly
from penaudio.utils.structured_logger import ConversionLogger

log = logging.getLogger(__name__)

Verifier = Callable[[Path], bool]


class MediaFileConverter:
    """
    Converts source audio into cached Ogg Vorbis artifacts.

    Each request derives its cache key, returns an existing artifact when
    there is one, and otherwise runs the planned tool stages inside a file
    transaction on the artifact path. Requests for the same key are
    serialized so concurrent callers share one conversion.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        tools: ToolPaths,
        runner: SubprocessRunner | None = None,
        always_convert: bool = False,
        verifier: Verifier | None = None,
        events: ConversionLogger | None = None,
    ):
        self.cache = cache
        self.tools = tools
        self.runner = runner or SubprocessRunner()
        self.always_convert = always_convert
        self.verifier = verifier
        self.events = events
        self._key_locks: OrderedDict[str, asyncio.Lock] = OrderedDict()
        # Requests holding or waiting on each key lock
        # (locks with users are never evicted)
        self._key_lock_users: dict[str, int] = {}
        self._max_locks = 1000
        self._key_lock_main = asyncio.Lock()

    @classmethod
    def from_config(
        cls, config: ConverterConfig, events: ConversionLogger | None = None
    ) -> "MediaFileConverter":
        """Wires a converter from a validated configuration."""
        cache = ArtifactCache(config.cache_path, CacheKeyDeriver(config.cache_key_mode))
        return cls(
            cache,
            ToolPaths.from_config(config),
            runner=SubprocessRunner(timeout=config.timeout_or_none),
            always_convert=config.always_convert,
            verifier=FileIntegrityChecker.check_ogg_vorbis
            if config.verify_output
            else None,
            events=events,
        )

    @property
    def output_directory(self) -> Path:
        return self.cache.cache_dir

    async def _get_key_lock(self, key: str) -> asyncio.Lock:
        """
        Gets or creates the lock serializing conversions of one cache key and
        registers the caller as a user. Pair with ``_release_key_lock``.
        """
        async with self._key_lock_main:
            self._key_lock_users[key] = self._key_lock_users.get(key, 0) + 1
            if key in self._key_locks:
                self._key_locks.move_to_end(key)
                return self._key_locks[key]

            lock = asyncio.Lock()
            self._key_locks[key] = lock

            # Evict the oldest idle locks if over limit
            if len(self._key_locks) > self._max_locks:
                for old_key in list(self._key_locks):
                    if len(self._key_locks) <= self._max_locks:
                        break
                    if old_key != key and not self._key_lock_users.get(old_key):
                        del self._key_locks[old_key]

            return lock

    def _release_key_lock(self, key: str) -> None:
        remaining = self._key_lock_users.get(key, 0) - 1
        if remaining > 0:
            self._key_lock_users[key] = remaining
        else:
            self._key_lock_users.pop(key, None)

    async def _derive_key(self, source: SourceReference) -> str:
        if self.cache.key_deriver.mode == "content":
            return await asyncio.to_thread(self.cache.derive_key, source)
        return self.cache.derive_key(source)

    async def get_artifact_path(self, source: str | os.PathLike) -> Path:
        """Returns where the artifact for a source lives, without converting."""
        ref = SourceReference.from_path(source)
        return self.cache.artifact_path(await self._derive_key(ref))

    async def provide_audio_file(
        self,
        source: str | os.PathLike,
        cancel_event: asyncio.Event | None = None,
        force: bool | None = None,
    ) -> Path:
        """
        Returns the path of a valid converted artifact for ``source``,
        converting and caching it first if necessary.

        Args:
            source: Path of an mp3, ogg or wav file.
            cancel_event: Setting this event aborts the conversion.
            force: Reconvert even if an artifact exists. Defaults to the
                converter's ``always_convert`` setting.

        Raises:
            UnsupportedFormatError: The extension has no conversion plan.
            ToolFailedError: A codec tool failed.
            ConversionCancelledError: ``cancel_event`` fired.
            CacheIOError: The cache directory is not writable, or the
                source cannot be read for a content-mode key.
        """
        force = self.always_convert if force is None else force
        ref = SourceReference.from_path(source)
        key = await self._derive_key(ref)
        artifact = self.cache.artifact_path(key)

        if not force and artifact.is_file():
            log.debug(f"Cache hit for {ref.name}: {artifact.name}")
            if self.events:
                self.events.cache_hit(ref.path, str(artifact))
            return artifact

        plan = plan_stages(ref.format)

        key_lock = await self._get_key_lock(key)
        try:
            async with key_lock:
                # Another request may have committed while we waited
                if not force and artifact.is_file():
                    log.debug(f"Artifact for {ref.name} appeared while waiting.")
                    if self.events:
                        self.events.cache_hit(ref.path, str(artifact))
                    return artifact

                try:
                    self.cache.ensure_directory()
                except CacheIOError as e:
                    self._report_failure(ref, e)
                    raise
                if self.events:
                    self.events.conversion_started(ref.path, key, ref.format)
                await self._convert(ref, plan, artifact, cancel_event)
                return artifact
        finally:
            self._release_key_lock(key)

    async def convert_file(
        self,
        source: str | os.PathLike,
        destination: str | os.PathLike,
        cancel_event: asyncio.Event | None = None,
    ) -> Path:
        """
        Converts ``source`` into ``destination`` without consulting the cache.
        The destination is replaced atomically, or left untouched on failure.
        """
        ref = SourceReference.from_path(source)
        destination = Path(destination)
        plan = plan_stages(ref.format)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(
                f"Cannot create output directory '{destination.parent}': {e}"
            ) from e
        await self._convert(ref, plan, destination, cancel_event)
        return destination

    async def _convert(
        self,
        ref: SourceReference,
        plan: ConversionPlan,
        destination: Path,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Runs the plan under a transaction on ``destination``."""
        log.info(f"Converting [dim]{escape(ref.name)}[/dim] ({ref.format} → ogg)")
        start = time.monotonic()
        try:
            with FileTransaction(destination) as txn:
                wav_path = txn.temp_path.with_name(txn.temp_path.name + ".wav")
                try:
                    await self._run_stages(ref, plan, wav_path, txn.temp_path, cancel_event)
                finally:
                    remove_quietly(wav_path)

                if self.verifier is not None and not await asyncio.to_thread(
                    self.verifier, txn.temp_path
                ):
                    raise ArtifactIntegrityError(
                        f"Converted file for '{ref.name}' failed the integrity check."
                    )
                txn.commit()
        except ConversionCancelledError:
            log.info(f"[yellow]Conversion of {escape(ref.name)} cancelled.[/yellow]")
            if self.events:
                self.events.conversion_cancelled(ref.path)
            raise
        except asyncio.CancelledError:
            if self.events:
                self.events.conversion_cancelled(ref.path)
            raise
        except PenAudioError as e:
            self._report_failure(ref, e)
            raise
        except OSError as e:
            self._report_failure(ref, e)
            raise CacheIOError(f"Could not write '{destination}': {e}") from e

        duration = time.monotonic() - start
        log.debug(f"Converted {ref.name} in {duration:.2f}s → {destination.name}")
        if self.events:
            self.events.conversion_completed(
                ref.path, str(destination), destination.stat().st_size, duration
            )

    async def _run_stages(
        self,
        ref: SourceReference,
        plan: ConversionPlan,
        wav_path: Path,
        output: Path,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Runs decode (if any) then encode, strictly in order."""
        encoder_input: str | Path = ref.path
        decoder_output = None

        if plan.needs_decode:
            stage = plan.decode_stage(self.tools, ref.path, wav_path)
            decoder_output = await self._run_stage(ref, stage, cancel_event)
            encoder_input = wav_path

        downmix = plan.resolve_downmix(decoder_output)
        stage = plan.encode_stage(self.tools, encoder_input, output, downmix)
        await self._run_stage(ref, stage, cancel_event)

    async def _run_stage(
        self, ref: SourceReference, stage: Stage, cancel_event: asyncio.Event | None
    ) -> str | None:
        """Runs one stage and checks that it produced its output file."""
        start = time.monotonic()
        output = None
        if stage.capture_output:
            _, output = await self.runner.run_capturing(
                stage.executable, stage.args, cancel_event
            )
        else:
            await self.runner.run(stage.executable, stage.args, cancel_event)

        if not stage.produces.is_file():
            raise ToolOutputMissingError(
                stage.executable, stage.argv, str(stage.produces)
            )
        if self.events:
            self.events.stage_completed(
                ref.path, os.path.basename(stage.executable), time.monotonic() - start
            )
        return output

    def _report_failure(self, ref: SourceReference, error: Exception) -> None:
        log.debug(f"Conversion of {ref.path} failed: {error}")
        if self.events:
            self.events.conversion_failed(ref.path, str(error), type(error).__name__)
