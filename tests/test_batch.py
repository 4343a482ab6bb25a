"""Tests for BatchConverter sessions."""

import asyncio
from unittest.mock import MagicMock

import pytest

from penaudio.core import BatchConverter, MediaFileConverter
from penaudio.exceptions import CacheIOError
from penaudio.models.stats import ConversionOutcome, ConversionState, ConversionStats
from penaudio.storage.cache import ArtifactCache, CacheKeyDeriver


def test_unique_sources_drops_case_duplicates(tmp_path):
    a = str(tmp_path / "A.mp3")

    unique = BatchConverter.unique_sources([a, a.lower(), a, str(tmp_path / "b.wav")])

    assert unique == [a, str(tmp_path / "b.wav")]


class TestConvertAll:
    @pytest.mark.asyncio
    async def test_outcomes_in_input_order(self, converter, make_source):
        sources = [make_source("one.mp3"), make_source("two.ogg"), make_source("three.wav")]
        batch = BatchConverter(converter, max_workers=2)

        outcomes = await batch.convert_all(sources)

        assert [o.source for o in outcomes] == [str(s) for s in sources]
        assert all(o.state is ConversionState.DONE for o in outcomes)
        assert all(o.artifact.is_file() for o in outcomes)
        assert batch.stats.converted == 3
        assert batch.stats.total_size_written > 0

    @pytest.mark.asyncio
    async def test_second_session_reports_cached(self, converter, make_source):
        sources = [make_source("one.mp3"), make_source("two.wav")]
        await BatchConverter(converter).convert_all(sources)

        batch = BatchConverter(converter)
        outcomes = await batch.convert_all(sources)

        assert {o.state for o in outcomes} == {ConversionState.CACHED}
        assert batch.stats.cached == 2
        assert batch.stats.converted == 0

    @pytest.mark.asyncio
    async def test_force_converts_again(self, converter, make_source, invocations):
        source = make_source("two.wav")
        await BatchConverter(converter).convert_all([source])

        outcomes = await BatchConverter(converter).convert_all([source], force=True)

        assert outcomes[0].state is ConversionState.DONE
        assert len(invocations()) == 2

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_other_sources(self, converter, make_source):
        good = make_source("good.wav")
        bad = make_source("bad.xyz")
        batch = BatchConverter(converter)

        outcomes = await batch.convert_all([bad, good])

        assert outcomes[0].state is ConversionState.FAILED
        assert outcomes[1].state is ConversionState.DONE
        assert batch.stats.failed == 1
        assert str(bad) in batch.stats.errors

    @pytest.mark.asyncio
    async def test_unreadable_source_in_content_mode_fails_alone(
        self, cache_dir, fake_tools, make_source, tmp_path
    ):
        converter = MediaFileConverter(
            ArtifactCache(cache_dir, CacheKeyDeriver("content")), fake_tools
        )
        good = make_source("good.wav")
        gone = tmp_path / "sources" / "gone.mp3"
        batch = BatchConverter(converter)

        outcomes = await asyncio.wait_for(batch.convert_all([gone, good]), timeout=30)

        assert outcomes[0].state is ConversionState.FAILED
        assert isinstance(outcomes[0].error, CacheIOError)
        assert outcomes[1].state is ConversionState.DONE
        assert outcomes[1].artifact.is_file()
        assert batch.stats.failed == 1
        assert batch.stats.converted == 1

    @pytest.mark.asyncio
    async def test_duplicates_are_counted(self, converter, make_source, invocations):
        source = make_source("one.wav")
        batch = BatchConverter(converter)

        outcomes = await batch.convert_all([source, str(source).upper(), source])

        assert len(outcomes) == 1
        assert batch.stats.duplicates_skipped == 2
        assert len(invocations()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_session(self, converter, make_source, invocations):
        cancel = asyncio.Event()
        cancel.set()
        batch = BatchConverter(converter)

        outcomes = await batch.convert_all(
            [make_source("one.wav"), make_source("two.wav")], cancel_event=cancel
        )

        assert {o.state for o in outcomes} == {ConversionState.CANCELLED}
        assert batch.stats.cancelled == 2
        assert invocations() == []

    @pytest.mark.asyncio
    async def test_callbacks_and_session_events(self, converter, make_source):
        seen: list[ConversionOutcome] = []
        session_events = MagicMock()
        batch = BatchConverter(converter, session_events=session_events)

        await batch.convert_all([make_source("one.wav")], on_outcome=seen.append)

        assert len(seen) == 1
        session_events.session_started.assert_called_once_with(1, 4, False)
        session_events.session_completed.assert_called_once()
        assert batch.duration_s >= 0


def test_stats_record_buckets(tmp_path):
    artifact = tmp_path / "x.ogg"
    artifact.write_bytes(b"12345")
    stats = ConversionStats()

    stats.record(ConversionOutcome("a", ConversionState.DONE, artifact=artifact))
    stats.record(ConversionOutcome("b", ConversionState.CACHED, artifact=artifact))
    stats.record(ConversionOutcome("c", ConversionState.FAILED, error=ValueError("boom")))
    stats.record(ConversionOutcome("d", ConversionState.CANCELLED))

    assert (stats.converted, stats.cached, stats.failed, stats.cancelled) == (1, 1, 1, 1)
    assert stats.total == 4
    assert stats.total_size_written == 5
    assert stats.errors == {"c": "boom"}

