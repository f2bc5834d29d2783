"""End-to-end documentation pipeline: units -> chunks -> generation -> patches."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .chunker import chunk_units, validate_budget
from .config import DredgerConfig
from .dispatcher import ChunkGenerator, Dispatcher
from .llm.client import InferenceClient
from .llm.retry import RetryPolicy
from .logging import get_logger
from .models import GenerationResult, PatchEntry, RunReport, SourceFile
from .patching.assembler import PatchAssembler
from .patching.styles import merge_styles
from .prompting.builder import PromptBuilder
from .repo_scanner import RepoScanner
from .tokens import ModelProfile, ModelRegistry, load_registry
from .units import extract_units


@dataclass
class PipelineOutcome:
    """Patches ready for submission plus the run summary."""

    patches: List[PatchEntry]
    report: RunReport
    results: List[GenerationResult] = field(default_factory=list)


class Pipeline:
    """Coordinates one documentation run over a set of repository files."""

    def __init__(
        self,
        config: DredgerConfig,
        registry: ModelRegistry | None = None,
        *,
        client: ChunkGenerator | None = None,
        scanner: RepoScanner | None = None,
        assembler: PatchAssembler | None = None,
    ) -> None:
        self.config = config
        self.logger = get_logger("pipeline")
        self._registry = registry
        self._client = client
        self.scanner = scanner or RepoScanner()
        self.assembler = assembler or PatchAssembler(merge_styles(config.comment_styles))

    def run_repository(
        self,
        path: str | Path | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> PipelineOutcome:
        """Scan a local checkout and run the pipeline on it."""
        root = Path(path) if path is not None else self.config.root
        # Configuration problems surface before touching the filesystem.
        self._prepare()
        files = self.scanner.load(root)
        return self.run(files, cancel_event=cancel_event)

    def run(
        self,
        files: Sequence[SourceFile],
        *,
        cancel_event: threading.Event | None = None,
    ) -> PipelineOutcome:
        profile, builder, dispatcher = self._prepare()
        budget = self.config.chunking.budget
        report = RunReport(model=profile.name, budget=budget)

        units = extract_units(files)
        chunks = chunk_units(units, budget, profile)
        report.total_units = len(units)
        report.total_chunks = len(chunks)
        report.oversized_chunks = sum(1 for chunk in chunks if chunk.oversized)
        report.total_tokens = sum(chunk.token_count for chunk in chunks)
        self.logger.info(
            "Documenting %d units from %d files in %d chunks (%d tokens)",
            len(units),
            len(files),
            len(chunks),
            report.total_tokens,
        )

        results = dispatcher.run(chunks, builder, cancel_event=cancel_event)
        report.record_results(results)

        patches = self.assembler.assemble(results, units, files)
        report.files_changed = len(patches)
        report.finalize()
        self.logger.info(
            "Run finished: %d succeeded, %d failed, %d cancelled; %d files changed",
            report.succeeded,
            report.failed,
            report.cancelled,
            report.files_changed,
        )
        return PipelineOutcome(patches=patches, report=report, results=results)

    def _prepare(self) -> tuple[ModelProfile, PromptBuilder, Dispatcher]:
        """Validate every configuration input; raises ConfigError subclasses."""
        profile = self.registry.get(self.config.profile_name)
        validate_budget(self.config.chunking.budget)
        builder = PromptBuilder(self.config.prompt_template())
        builder.check()
        client = self._client or self._build_client(builder)
        dispatcher = Dispatcher(
            client,
            self.config.dispatch.concurrency,
            grace_period=self.config.dispatch.grace_period,
        )
        if profile.name != self.config.model:
            self.logger.debug(
                "Counting tokens with profile %s for model %s", profile.name, self.config.model
            )
        return profile, builder, dispatcher

    @property
    def registry(self) -> ModelRegistry:
        if self._registry is None:
            self._registry = load_registry(self.config.tokenizers)
        return self._registry

    def _build_client(self, builder: PromptBuilder) -> InferenceClient:
        inference = self.config.inference
        policy = RetryPolicy(
            max_retries=inference.max_retries,
            base_delay=inference.backoff_base,
            factor=inference.backoff_factor,
            max_delay=inference.backoff_max,
        )
        kwargs: Dict[str, Any] = {}
        if inference.base_url:
            kwargs["base_url"] = inference.base_url
        client = InferenceClient(
            model=self.config.model,
            request_timeout=inference.request_timeout,
            retry_policy=policy,
            prompt_builder=builder,
            **kwargs,
        )
        self._client = client
        return client


def summarize(outcome: PipelineOutcome) -> Optional[str]:
    """One-line human summary, or None when nothing was generated."""
    report = outcome.report
    if not report.total_chunks:
        return None
    return (
        f"{report.documented_units} units documented in {report.files_changed} files; "
        f"{report.failed} chunk(s) failed, {report.cancelled} cancelled"
    )


__all__ = ["Pipeline", "PipelineOutcome", "summarize"]
