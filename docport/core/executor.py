"""Chunked, time-bounded execution of conversion tasks."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from pathlib import Path

import anyio

from docport.config.constants import BINARY_DOCUMENT_EXTENSIONS
from docport.core.binary import check_binary
from docport.core.filter import PathFilter
from docport.core.planner import OutputPathPlanner, PathProposal
from docport.core.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressEvent,
    ProgressPhase,
    percentage,
)
from docport.core.result import ResultAggregator
from docport.core.state import BatchJob, CandidateFile, ConversionTask, TaskStatus
from docport.exceptions import ConversionError, ConversionTimeoutError
from docport.services.image_resolver import ImageAssetResolver
from docport.services.output_manager import OutputManager
from docport.services.protocols import ConversionOutput, DocumentConverter
from docport.utils.fs import atomic_write, get_relative_path, read_text, to_posix
from docport.utils.logging import get_logger, task_context

log = get_logger(__name__)

CANCELLED = "cancelled"

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class _Prepared:
    proposal: PathProposal | None = None
    skip_reason: str | None = None
    error: Exception | None = None


@dataclass
class _Outcome:
    output: ConversionOutput | None = None
    error: Exception | None = None


def chunked(items: list, size: int) -> list[list]:
    """Split ``items`` into consecutive slices of at most ``size``."""
    return [items[i : i + size] for i in range(0, len(items), size)]


def _write_output(path: Path, content: str) -> None:
    with atomic_write(path) as f:
        f.write(content)


class ChunkedBatchExecutor:
    """Runs every task of a job through prepare, convert and post steps.

    Tasks are processed in chunks of ``chunk_size`` with ``chunk_delay``
    awaited between chunks. Inside a chunk, sub-groups of ``group_size`` are
    prepared and converted concurrently; path claims, status transitions,
    image resolution and result recording happen sequentially in discovery
    order, so results do not depend on how the run was chunked.
    """

    def __init__(
        self,
        job: BatchJob,
        converter: DocumentConverter,
        planner: OutputPathPlanner,
        resolver: ImageAssetResolver,
        outputs: OutputManager,
        aggregator: ResultAggregator,
        channel: ProgressChannel,
        path_filter: PathFilter | None = None,
        token: CancellationToken | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.job = job
        self.config = job.config
        self.converter = converter
        self.planner = planner
        self.resolver = resolver
        self.outputs = outputs
        self.aggregator = aggregator
        self.channel = channel
        self.filter = path_filter or PathFilter(job.config)
        self.token = token or channel.token
        self.sleep = sleep

    def _display_name(self, candidate: CandidateFile) -> str:
        return to_posix(get_relative_path(candidate.path, self.job.input_root))

    def _event(self, task: ConversionTask) -> ProgressEvent:
        name = self._display_name(task.input)
        return ProgressEvent(
            phase=ProgressPhase.CONVERTING,
            current_file=name,
            index=task.index,
            total=task.total,
            percentage=percentage(task.index, task.total),
            message=f"Converting {name}",
        )

    async def run(self, candidates: list[CandidateFile]) -> list[ConversionTask]:
        total = len(candidates)
        tasks = [ConversionTask(input=c, index=i, total=total) for i, c in enumerate(candidates, 1)]
        chunks = chunked(tasks, self.config.chunk_size)

        for number, chunk in enumerate(chunks, 1):
            if number > 1 and not self.token.cancelled:
                await self.sleep(self.config.chunk_delay)
            log.info("Processing chunk", chunk=number, chunks=len(chunks), size=len(chunk))
            for group in chunked(chunk, self.config.group_size):
                if self.token.cancelled:
                    self._cancel(group)
                else:
                    await self._run_group(group)

        return tasks

    def _cancel(self, group: list[ConversionTask]) -> None:
        for task in group:
            task.skip(CANCELLED)
            self.aggregator.record(task)

    # -- prepare ----------------------------------------------------------

    def _supports(self, extension: str) -> bool:
        supports = getattr(self.converter, "supports", None)
        return supports is None or supports(extension)

    def _inspect(self, task: ConversionTask) -> _Prepared:
        candidate = task.input
        decision = self.filter.accept_file(candidate.path)
        if not decision:
            return _Prepared(skip_reason=decision.reason)
        if not self._supports(candidate.extension):
            return _Prepared(skip_reason=f"no converter for {candidate.extension}")

        try:
            check = check_binary(candidate.path, candidate.size_bytes, self.config.max_file_size)
            if check.is_binary:
                return _Prepared(skip_reason=check.reason)

            content = None
            if candidate.extension not in BINARY_DOCUMENT_EXTENSIONS:
                content = read_text(candidate.path)
                condition = self.filter.check_conditions(content)
                if not condition:
                    return _Prepared(skip_reason=condition.reason)
        except OSError as e:
            return _Prepared(error=ConversionError(candidate.path, "cannot read input", e))

        proposal = self.planner.propose(candidate, content)
        if proposal.skip_reason:
            return _Prepared(skip_reason=proposal.skip_reason)
        return _Prepared(proposal=proposal)

    async def _prepare(self, task: ConversionTask) -> _Prepared:
        return await anyio.to_thread.run_sync(self._inspect, task)

    # -- convert ----------------------------------------------------------

    async def _heartbeat(self, event: ProgressEvent) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            self.channel.publish(replace(event, heartbeat=True, timestamp=time.time()))

    async def _convert(self, task: ConversionTask, event: ProgressEvent) -> _Outcome:
        path = task.input.path
        with task_context(file_path=event.current_file):
            heartbeat = asyncio.create_task(self._heartbeat(event))
            started = time.perf_counter()
            try:
                output = await asyncio.wait_for(
                    self.converter.convert(path, task.planned_output, self.config),
                    timeout=self.config.per_file_timeout,
                )
                await anyio.to_thread.run_sync(_write_output, task.planned_output, output.content)
            except TimeoutError:
                return _Outcome(error=ConversionTimeoutError(path, self.config.per_file_timeout))
            except ConversionError as e:
                return _Outcome(error=e)
            except Exception as e:
                return _Outcome(error=ConversionError(path, str(e) or type(e).__name__, e))
            finally:
                heartbeat.cancel()
            log.debug(
                "Converted",
                output=str(task.planned_output),
                duration=round(time.perf_counter() - started, 3),
            )
            return _Outcome(output=output)

    # -- group ------------------------------------------------------------

    async def _run_group(self, group: list[ConversionTask]) -> None:
        events = {}
        for task in group:
            events[task.index] = self._event(task)
            self.channel.publish(events[task.index])

        prepared = await asyncio.gather(*(self._prepare(t) for t in group))

        for task, prep in zip(group, prepared, strict=True):
            if prep.skip_reason:
                task.skip(prep.skip_reason)
            elif prep.error is not None:
                task.fail(prep.error)
            else:
                task.planned_output = self.planner.claim(task.input, prep.proposal)

        runnable = [t for t in group if t.status is TaskStatus.PENDING]
        outcomes = await asyncio.gather(*(self._convert(t, events[t.index]) for t in runnable))
        by_index = {t.index: o for t, o in zip(runnable, outcomes, strict=True)}

        for task in group:
            await self._finish(task, by_index.get(task.index))

    async def _finish(self, task: ConversionTask, outcome: _Outcome | None) -> None:
        """Sequential post step for one task, in discovery order."""
        if outcome is not None and outcome.output is not None:
            metadata = outcome.output.metadata
            assets = await anyio.to_thread.run_sync(
                self.resolver.resolve, task.input.path, task.planned_output, list(metadata.images)
            )
            task.succeed(task.planned_output, assets, outcome.output)
            if metadata.stylesheet:
                await anyio.to_thread.run_sync(
                    self.outputs.run_step,
                    "stylesheet",
                    self.outputs.write_stylesheet,
                    metadata.stylesheet,
                )
            self.outputs.run_step("variables", self.outputs.add_variables, metadata.variables)
        elif outcome is not None:
            await anyio.to_thread.run_sync(self.resolver.resolve, task.input.path, None, [])
            task.fail(outcome.error)
        elif task.status is TaskStatus.FAILED:
            await anyio.to_thread.run_sync(self.resolver.resolve, task.input.path, None, [])

        if task.status is TaskStatus.FAILED:
            log.error(
                "Conversion failed",
                file=str(task.input.path),
                index=task.index,
                total=task.total,
                error=str(task.error),
            )
        elif task.status is TaskStatus.SKIPPED:
            log.info("Skipped", file=str(task.input.path), reason=task.skip_reason)

        self.aggregator.record(task)
