"""Core data models shared across dredger components."""

from __future__ import annotations

import difflib
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


@dataclass(frozen=True)
class SourceFile:
    """A repository file handed to the pipeline by the ingestion collaborator."""

    path: str
    text: str
    language: Optional[str] = None


@dataclass(frozen=True)
class SourceUnit:
    """Contiguous, independently documentable slice of a file."""

    unit_id: str
    path: str
    name: str
    kind: str
    start_line: int
    end_line: int
    start_offset: int
    end_offset: int
    text: str
    language: Optional[str] = None


@dataclass(frozen=True)
class Chunk:
    """Ordered group of units sent to the model in one request."""

    index: int
    units: Tuple[SourceUnit, ...]
    token_count: int
    model: str
    oversized: bool = False

    @property
    def unit_ids(self) -> Tuple[str, ...]:
        return tuple(unit.unit_id for unit in self.units)


@dataclass
class GenerationResult:
    """Outcome of one inference call for a chunk."""

    chunk_index: int
    unit_ids: Tuple[str, ...]
    status: str
    segments: Dict[str, str] = field(default_factory=dict)
    retry_count: int = 0
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED

    @classmethod
    def cancelled(cls, chunk: Chunk, *, retry_count: int = 0) -> "GenerationResult":
        return cls(
            chunk_index=chunk.index,
            unit_ids=chunk.unit_ids,
            status=STATUS_CANCELLED,
            retry_count=retry_count,
            error_kind="cancelled",
        )


@dataclass(frozen=True)
class Insertion:
    """A documentation comment inserted into a file."""

    offset: int
    text: str
    unit_id: str


@dataclass
class PatchEntry:
    """Before/after view of one file touched by generated documentation."""

    path: str
    original_text: str
    modified_text: str
    insertions: List[Insertion] = field(default_factory=list)

    def strip(self) -> str:
        """Return the modified text with every inserted comment removed."""
        text = self.modified_text
        # Offsets refer to the modified text, so remove from the end first.
        for insertion in sorted(self.insertions, key=lambda item: item.offset, reverse=True):
            end = insertion.offset + len(insertion.text)
            text = text[: insertion.offset] + text[end:]
        return text

    def diff(self) -> str:
        lines = difflib.unified_diff(
            self.original_text.splitlines(keepends=True),
            self.modified_text.splitlines(keepends=True),
            fromfile=f"a/{self.path}",
            tofile=f"b/{self.path}",
        )
        return "".join(lines)


@dataclass
class ChunkFailure:
    """A chunk that did not produce documentation, with the units it covered."""

    chunk_index: int
    error_kind: str
    unit_ids: List[str]
    message: Optional[str] = None
    retry_count: int = 0


@dataclass
class RunReport:
    """Aggregate summary of one pipeline execution."""

    model: str
    budget: int
    total_units: int = 0
    total_chunks: int = 0
    oversized_chunks: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    total_tokens: int = 0
    documented_units: int = 0
    files_changed: int = 0
    failures: List[ChunkFailure] = field(default_factory=list)
    cancelled_chunks: List[int] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: _utc_now())
    finished_at: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.cancelled == 0

    def record_results(self, results: List[GenerationResult]) -> None:
        for result in results:
            if result.status == STATUS_SUCCEEDED:
                self.succeeded += 1
                self.documented_units += sum(1 for text in result.segments.values() if text.strip())
            elif result.status == STATUS_CANCELLED:
                self.cancelled += 1
                self.cancelled_chunks.append(result.chunk_index)
            else:
                self.failed += 1
                self.failures.append(
                    ChunkFailure(
                        chunk_index=result.chunk_index,
                        error_kind=result.error_kind or "unknown",
                        unit_ids=list(result.unit_ids),
                        message=result.error_message,
                        retry_count=result.retry_count,
                    )
                )

    def finalize(self) -> "RunReport":
        self.finished_at = _utc_now()
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["ok"] = self.ok
        return payload

    def render_markdown(self) -> str:
        lines = [
            "## Generated documentation",
            "",
            f"- Model: `{self.model}` (budget {self.budget} tokens per chunk)",
            f"- Units: {self.total_units} in {self.total_chunks} chunks"
            f" ({self.oversized_chunks} oversized, {self.total_tokens} tokens)",
            f"- Chunks: {self.succeeded} succeeded, {self.failed} failed, {self.cancelled} cancelled",
            f"- Documented units: {self.documented_units} across {self.files_changed} files",
        ]
        if self.failures:
            lines.extend(["", "### Failed chunks", ""])
            for failure in self.failures:
                units = ", ".join(f"`{unit_id}`" for unit_id in failure.unit_ids)
                lines.append(f"- chunk {failure.chunk_index}: {failure.error_kind} ({units})")
        if self.cancelled_chunks:
            indices = ", ".join(str(index) for index in self.cancelled_chunks)
            lines.extend(["", f"Cancelled chunks: {indices}"])
        return "\n".join(lines) + "\n"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def unit_index(units: List[SourceUnit]) -> Mapping[str, SourceUnit]:
    """Map unit ids to units, rejecting duplicate identifiers."""
    index: Dict[str, SourceUnit] = {}
    for unit in units:
        if unit.unit_id in index:
            raise ValueError(f"Duplicate unit id: {unit.unit_id}")
        index[unit.unit_id] = unit
    return index
