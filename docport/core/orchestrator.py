"""Batch orchestrator: discovery, planning, execution, rewriting, aggregation."""

import asyncio
from pathlib import Path

import anyio

from docport.config.constants import CONTENT_ROOT_CANDIDATES
from docport.config.settings import BatchConfig
from docport.converters.passthrough import PassthroughConverter
from docport.core.discovery import FileDiscoverer
from docport.core.executor import ChunkedBatchExecutor, Sleep
from docport.core.filter import PathFilter
from docport.core.planner import MirrorStrategy, OutputPathPlanner, PathStrategy, PlanStrategy
from docport.core.progress import CancellationToken, ProgressChannel, ProgressEvent, ProgressPhase
from docport.core.result import BatchResult, ResultAggregator
from docport.core.state import BatchJob, TaskStatus
from docport.services.image_resolver import ImageAssetResolver
from docport.services.output_manager import OutputManager
from docport.services.protocols import (
    DocumentConverter,
    GlossaryGenerator,
    TocPlanner,
    VariableExtractor,
)
from docport.services.rewriter import CrossReferenceRewriter
from docport.utils.fs import ensure_output_root
from docport.utils.logging import get_logger, task_context

log = get_logger(__name__)


def find_content_root(input_root: Path) -> tuple[Path | None, Path]:
    """Locate the project's content directory and project root.

    Returns ``(content_root, project_root)``. When the input root is itself a
    ``Content`` directory its parent is the project root.
    """
    if input_root.name.lower() == "content":
        return input_root, input_root.parent
    for rel in CONTENT_ROOT_CANDIDATES:
        candidate = input_root / rel
        if candidate.is_dir():
            return candidate, candidate.parent
    return None, input_root


class BatchOrchestrator:
    """Runs one batch job end to end.

    Collaborators are injected so alternative converters, TOC planners and
    test doubles can be used. Observers call ``subscribe()`` before
    ``run_batch`` to receive progress events; closing every subscription
    cancels the run.

    Example:
        >>> orchestrator = BatchOrchestrator(converter=PassthroughConverter())
        >>> result = await orchestrator.run_batch(Path("flare"), Path("out"), BatchConfig())
    """

    def __init__(
        self,
        converter: DocumentConverter,
        toc_planner: TocPlanner | None = None,
        variable_extractor: VariableExtractor | None = None,
        glossary_generator: GlossaryGenerator | None = None,
        token: CancellationToken | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.converter = converter
        self.toc_planner = toc_planner
        self.variable_extractor = variable_extractor
        self.glossary_generator = glossary_generator
        self.token = token or CancellationToken()
        self.channel = ProgressChannel(self.token)
        self.sleep = sleep
        self.resolver: ImageAssetResolver | None = None

    def subscribe(self):
        """Open a progress subscription (an async iterator of ProgressEvents)."""
        return self.channel.subscribe()

    def _strategy(self, job: BatchJob, outputs: OutputManager) -> PathStrategy:
        mirror = MirrorStrategy(job.input_root, job.output_root, job.config)
        if not job.config.use_toc_plan:
            return mirror
        if self.toc_planner is None:
            log.warning("TOC plan requested but no planner configured, mirroring input")
            return mirror

        project_root = job.state.project_root or job.input_root
        structures = self.toc_planner.discover(project_root)
        if not structures:
            log.warning("No TOC structures found, mirroring input", project_root=str(project_root))
            return mirror

        plan = self.toc_planner.create_plan(structures, job.config.target_format)
        folders = outputs.run_step("folders", outputs.create_folders, plan)
        log.info("Using TOC plan", files=len(plan.file_mapping), folders=folders)
        return PlanStrategy(
            plan, job.input_root, job.output_root, job.config, content_root=job.state.content_root
        )

    async def run_batch(
        self,
        input_root: Path,
        output_root: Path,
        config: BatchConfig | None = None,
    ) -> BatchResult:
        """Convert every accepted document under ``input_root``.

        Raises:
            OutputRootError: If the output root cannot be created
            ConfigurationError: If the TOC plan cannot be loaded
        """
        config = config or BatchConfig()
        job = BatchJob(input_root=input_root.resolve(), output_root=output_root.resolve(), config=config)

        with task_context() as run_id:
            log.info(
                "Batch started",
                run_id=run_id,
                input_root=str(job.input_root),
                output_root=str(job.output_root),
                format=config.target_format,
            )
            try:
                return await self._run(job)
            finally:
                self.channel.close()

    async def _run(self, job: BatchJob) -> BatchResult:
        config = job.config
        ensure_output_root(job.output_root)

        content_root, project_root = find_content_root(job.input_root)
        job.state.content_root = content_root
        job.state.project_root = project_root

        self.channel.publish(
            ProgressEvent(phase=ProgressPhase.DISCOVERY, message=f"Scanning {job.input_root}")
        )
        path_filter = PathFilter(config)
        discoverer = FileDiscoverer(config, path_filter, skip_dirs=[job.output_root])
        candidates = await anyio.to_thread.run_sync(discoverer.discover, job.input_root)

        outputs = OutputManager(job, self.variable_extractor, self.glossary_generator)
        strategy = await anyio.to_thread.run_sync(self._strategy, job, outputs)
        planner = OutputPathPlanner(strategy, job.input_root, job.output_root, config)

        if config.extract_variables:
            await anyio.to_thread.run_sync(
                outputs.run_step, "variables", outputs.extract_project_variables
            )

        aggregator = ResultAggregator(total_files=len(candidates))
        aggregator.result.discovery_errors = [str(e) for e in discoverer.errors]
        self.resolver = ImageAssetResolver(job, path_filter)

        executor = ChunkedBatchExecutor(
            job=job,
            converter=self.converter,
            planner=planner,
            resolver=self.resolver,
            outputs=outputs,
            aggregator=aggregator,
            channel=self.channel,
            path_filter=path_filter,
            token=self.token,
            sleep=self.sleep,
        )
        tasks = await executor.run(candidates)

        succeeded = [t for t in tasks if t.status is TaskStatus.SUCCEEDED]
        if planner.filename_mapping:
            rewriter = CrossReferenceRewriter(
                planner.filename_mapping,
                job.input_root,
                job.output_root,
                config.target_format,
                sources={t.output_path: t.input.path for t in succeeded},
            )
            await anyio.to_thread.run_sync(rewriter.rewrite_all, [t.output_path for t in succeeded])

        await anyio.to_thread.run_sync(outputs.run_step, "variables", outputs.write_variables)
        glossary = await anyio.to_thread.run_sync(
            outputs.run_step, "glossary", outputs.write_glossary
        )
        if glossary is not None:
            aggregator.record_extra(glossary, glossary)

        result = aggregator.finalize()
        result.filename_mapping = (
            dict(planner.filename_mapping) if config.rename_files_from_heading else None
        )
        result.cancelled = self.token.cancelled
        if isinstance(strategy, PlanStrategy):
            result.toc_structure = strategy.plan
        result.master_document = await anyio.to_thread.run_sync(
            outputs.run_step,
            "master document",
            outputs.write_master_document,
            [r.output_path for r in result.results],
        )
        result.supplementary_errors = list(outputs.errors)

        self.channel.publish(
            ProgressEvent(
                phase=ProgressPhase.COMPLETED,
                index=len(tasks),
                total=len(tasks),
                percentage=100,
                message=(
                    f"Converted {result.converted}, skipped {result.skipped}, "
                    f"failed {len(result.errors)}"
                ),
            )
        )
        log.info(
            "Batch completed",
            total=result.total_files,
            converted=result.converted,
            skipped=result.skipped,
            failed=len(result.errors),
            renamed=len(planner.filename_mapping),
            supplementary_failed=len(result.supplementary_errors),
            cancelled=result.cancelled,
        )
        return result


async def run_batch(
    input_root: Path,
    output_root: Path,
    config: BatchConfig | None = None,
    converter: DocumentConverter | None = None,
    **collaborators,
) -> BatchResult:
    """Run a batch with a fresh orchestrator.

    Falls back to the passthrough converter when none is given.
    """
    if converter is None:
        converter = PassthroughConverter()
    orchestrator = BatchOrchestrator(converter=converter, **collaborators)
    return await orchestrator.run_batch(input_root, output_root, config)
