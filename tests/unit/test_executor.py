"""Tests for the chunked batch executor."""

import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest

from docport.config.settings import BatchConfig
from docport.core.discovery import discover_files
from docport.core.executor import CANCELLED, ChunkedBatchExecutor, chunked
from docport.core.planner import MirrorStrategy, OutputPathPlanner
from docport.core.progress import CancellationToken, ProgressChannel, ProgressPhase
from docport.core.result import ResultAggregator
from docport.core.state import BatchJob, TaskStatus
from docport.services.image_resolver import ImageAssetResolver
from docport.services.output_manager import OutputManager
from docport.services.protocols import ConversionMetadata


def _build(input_root: Path, output_root: Path, converter, sleep=None, token=None, **options):
    config = BatchConfig(**{"chunk_delay": 0, "heartbeat_interval": 1.0, **options})
    job = BatchJob(input_root, output_root, config)
    output_root.mkdir(parents=True, exist_ok=True)
    candidates = discover_files(input_root, config)
    planner = OutputPathPlanner(
        MirrorStrategy(input_root, output_root, config), input_root, output_root, config
    )
    channel = ProgressChannel(token)
    aggregator = ResultAggregator(total_files=len(candidates))
    resolver = ImageAssetResolver(job)
    executor = ChunkedBatchExecutor(
        job=job,
        converter=converter,
        planner=planner,
        resolver=resolver,
        outputs=OutputManager(job),
        aggregator=aggregator,
        channel=channel,
        token=token,
        sleep=sleep or asyncio.sleep,
    )
    return SimpleNamespace(
        executor=executor,
        candidates=candidates,
        aggregator=aggregator,
        channel=channel,
        planner=planner,
        resolver=resolver,
        job=job,
    )


class TestChunked:
    def test_sizes(self):
        assert [len(c) for c in chunked(list(range(120)), 50)] == [50, 50, 20]

    def test_empty(self):
        assert chunked([], 50) == []

    def test_preserves_order(self):
        assert sum(chunked(list(range(7)), 3), []) == list(range(7))


class TestRun:
    """Tests for task execution."""

    async def test_converts_and_writes_outputs(self, flat_topics, output_dir, fake_converter):
        root = flat_topics(3)
        run = _build(root, output_dir, fake_converter)

        tasks = await run.executor.run(run.candidates)

        assert [t.status for t in tasks] == [TaskStatus.SUCCEEDED] * 3
        assert [t.index for t in tasks] == [1, 2, 3]
        assert (output_dir / "topic001.adoc").read_text(encoding="utf-8") == "converted:topic001.htm\n"

    async def test_chunk_delay_between_chunks_only(self, flat_topics, output_dir, converter_factory):
        converter = converter_factory()
        seen = []

        async def sleep(seconds):
            seen.append((seconds, len(converter.calls)))

        root = flat_topics(120)
        run = _build(root, output_dir, converter, sleep=sleep, chunk_size=50, chunk_delay=1.0)

        await run.executor.run(run.candidates)

        assert seen == [(1.0, 50), (1.0, 100)]
        assert len(converter.calls) == 120

    async def test_group_concurrency_is_bounded(self, flat_topics, output_dir, converter_factory):
        root = flat_topics(8)
        converter = converter_factory(delay={f"topic{i:03d}.htm": 0.05 for i in range(1, 9)})
        run = _build(root, output_dir, converter, group_size=4)

        await run.executor.run(run.candidates)

        assert converter.max_active == 4

    async def test_failure_is_isolated(self, flat_topics, output_dir, converter_factory):
        root = flat_topics(10)
        converter = converter_factory(fail_on={"topic005.htm"})
        run = _build(root, output_dir, converter, group_size=3)

        tasks = await run.executor.run(run.candidates)
        result = run.aggregator.finalize()

        assert result.converted == 9
        assert len(result.errors) == 1
        assert "cannot convert topic005.htm" in result.errors[0].error
        assert result.errors[0].index == 5
        assert tasks[4].status is TaskStatus.FAILED
        assert run.resolver.calls == 10
        assert not (output_dir / "topic005.adoc").exists()

    async def test_timeout(self, flat_topics, output_dir, converter_factory):
        root = flat_topics(3)
        converter = converter_factory(delay={"topic002.htm": 5.0})
        run = _build(root, output_dir, converter, per_file_timeout=0.2)

        await run.executor.run(run.candidates)
        result = run.aggregator.finalize()

        assert result.converted == 2
        assert "Conversion timeout after 0.2s" in result.errors[0].error

    async def test_heartbeat_while_converting(self, flat_topics, output_dir, converter_factory):
        root = flat_topics(1)
        converter = converter_factory(delay={"topic001.htm": 0.35})
        run = _build(root, output_dir, converter, heartbeat_interval=0.1)
        subscription = run.channel.subscribe()

        await run.executor.run(run.candidates)
        run.channel.close()
        events = [event async for event in subscription]

        beats = [e for e in events if e.heartbeat]
        assert len(beats) >= 2
        assert all(e.phase is ProgressPhase.CONVERTING for e in events)
        assert beats[0].current_file == "topic001.htm"
        assert events[0].percentage == 100

    async def test_cancellation_skips_remaining_groups(self, flat_topics, output_dir, converter_factory):
        token = CancellationToken()
        converter = converter_factory()
        original = converter.convert

        async def cancel_then_convert(input_path, output_path, options):
            token.cancel("test")
            return await original(input_path, output_path, options)

        converter.convert = cancel_then_convert
        sleeps = []

        async def sleep(seconds):
            sleeps.append(seconds)

        root = flat_topics(5)
        run = _build(root, output_dir, converter, sleep=sleep, token=token, group_size=1, chunk_size=2)

        tasks = await run.executor.run(run.candidates)
        result = run.aggregator.finalize()

        assert tasks[0].status is TaskStatus.SUCCEEDED
        assert [t.skip_reason for t in tasks[1:]] == [CANCELLED] * 4
        assert result.total_files == result.converted + result.skipped + len(result.errors)
        assert sleeps == []

    async def test_skip_reasons(self, temp_dir, output_dir, fake_converter, topic_writer):
        root = temp_dir / "docs"
        topic_writer(root / "a.htm", "A")
        topic_writer(root / "b.htm", "B", conditions="Default.Internal")
        (root / "c.docx").write_bytes(b"PK\x03\x04")
        (root / "d.htm").write_bytes(b"<html>\x00\x00\x00</html>")
        run = _build(root, output_dir, fake_converter)

        tasks = await run.executor.run(run.candidates)

        assert [t.status for t in tasks] == [
            TaskStatus.SUCCEEDED,
            TaskStatus.SKIPPED,
            TaskStatus.SKIPPED,
            TaskStatus.SKIPPED,
        ]
        assert tasks[1].skip_reason == "condition exclusion: internal"
        assert tasks[2].skip_reason == "no converter for .docx"
        assert tasks[3].skip_reason == "binary content: NUL bytes"
        assert run.resolver.calls == 1

    async def test_oversize_file_skipped(self, temp_dir, output_dir, fake_converter):
        root = temp_dir / "docs"
        root.mkdir()
        (root / "huge.htm").write_bytes(b"<p>" + b"a" * (6 * 1024 * 1024) + b"</p>")
        run = _build(root, output_dir, fake_converter)

        tasks = await run.executor.run(run.candidates)

        assert tasks[0].skip_reason.startswith("file too large")
        assert fake_converter.calls == []

    async def test_converter_variables_and_stylesheet(self, temp_dir, output_dir, converter_factory, topic_writer):
        root = temp_dir / "docs"
        topic_writer(root / "a.htm", "A")
        topic_writer(root / "b.htm", "B")
        metadata = ConversionMetadata(stylesheet="body { margin: 0 }")
        converter = converter_factory(metadata={"a.htm": metadata, "b.htm": metadata})
        run = _build(
            root, output_dir, converter, target_format="zendesk", generate_stylesheet=True
        )

        await run.executor.run(run.candidates)

        assert run.job.state.stylesheet_written
        assert (output_dir / "zendesk-styles.css").read_text(encoding="utf-8") == "body { margin: 0 }"


class TestChunkingEquivalence:
    """Results do not depend on chunk or group sizes."""

    @pytest.mark.parametrize(("chunk_size", "group_size"), [(1, 1), (2, 1), (3, 2), (50, 10)])
    async def test_same_outcome(self, temp_dir, converter_factory, topic_writer, chunk_size, group_size):
        root = temp_dir / "docs"
        for i, title in enumerate(["Overview", "Setup", "Overview", "Overview", "Setup", "FAQ"]):
            topic_writer(root / f"t{i}.htm", title)

        def snapshot(name, **options):
            run = _build(
                root,
                temp_dir / name,
                converter_factory(),
                rename_files_from_heading=True,
                **options,
            )
            return run

        baseline = snapshot("base", chunk_size=100, group_size=100)
        await baseline.executor.run(baseline.candidates)
        variant = snapshot("variant", chunk_size=chunk_size, group_size=group_size)
        await variant.executor.run(variant.candidates)

        assert variant.planner.filename_mapping == baseline.planner.filename_mapping
        base_outputs = [r.output_path.name for r in baseline.aggregator.finalize().results]
        variant_outputs = [r.output_path.name for r in variant.aggregator.finalize().results]
        assert variant_outputs == base_outputs
        assert base_outputs == [
            "overview.adoc",
            "setup.adoc",
            "overview-2.adoc",
            "overview-3.adoc",
            "setup-2.adoc",
            "faq.adoc",
        ]
