"""
Chunking run orchestration.

One run scans a target tree, lets the dispatcher assign every file to a
single framework pattern, parses the claimed files and streams the chunks to
a sink in bounded batches. Claims are decided serially before any parsing
starts, so the outcome never depends on worker scheduling.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..chunking.knowledge import split_knowledge
from ..chunking.models import Chunk, ChunkFactory, FileChunks
from ..ingestion.dispatcher import DispatchMatch, Dispatcher, PatternRegistry, Registration
from ..ingestion.manager import relative_posix, scan_directory
from ..logger import bind_file_context, get_logger
from ..settings import AppSettings, ChunkingContext
from ..storage.base import ChunkSink

log = get_logger(__name__)

KNOWLEDGE_SEMANTIC = "documentation"


@dataclass
class IndexingCallbacks:
    stage: Optional[Callable[[str], None]] = None
    scanned: Optional[Callable[[int], None]] = None
    file: Optional[Callable[[str], None]] = None
    upsert_progress: Optional[Callable[[int], None]] = None


@dataclass
class IndexingResult:
    root: Path
    files_scanned: int = 0
    files_claimed: int = 0
    unclaimed: List[str] = field(default_factory=list)
    chunk_count: int = 0
    knowledge_chunks: int = 0
    chunks_by_framework: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    cancelled: bool = False


class ChunkEmitter:
    """
    Buffers chunks and hands them to the sink ``batch_size`` at a time.

    Consecutive batches are separated by ``pause_seconds`` so rate limited
    backends (embedding APIs behind the sink) are not flooded.
    """

    def __init__(
        self,
        sink: ChunkSink,
        batch_size: int = 2000,
        pause_seconds: float = 1.0,
        progress: Optional[Callable[[int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sink = sink
        self.batch_size = max(1, batch_size)
        self.pause_seconds = pause_seconds
        self.progress = progress
        self._sleep = sleep
        self._buffer: List[Chunk] = []
        self.batches_sent = 0
        self.emitted = 0

    def emit(self, chunks: Sequence[Chunk]) -> None:
        self._buffer.extend(chunks)
        while len(self._buffer) >= self.batch_size:
            batch, self._buffer = self._buffer[: self.batch_size], self._buffer[self.batch_size :]
            self._send(batch)

    def flush(self) -> None:
        if self._buffer:
            batch, self._buffer = self._buffer, []
            self._send(batch)

    def _send(self, batch: List[Chunk]) -> None:
        if self.batches_sent and self.pause_seconds > 0:
            self._sleep(self.pause_seconds)
        self.sink.upsert_chunks(batch)
        self.batches_sent += 1
        self.emitted += len(batch)
        log.debug("chunk_batch_emitted", batch=self.batches_sent, size=len(batch), total=self.emitted)
        if self.progress:
            self.progress(self.emitted)


class IndexerService:
    """Chains scanning, dispatch, chunking and storage for one target."""

    def __init__(
        self,
        registry: PatternRegistry,
        sink: ChunkSink,
        app_settings: Optional[AppSettings] = None,
        context: Optional[ChunkingContext] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.sink = sink
        self.settings = app_settings or AppSettings()
        self.context = context or ChunkingContext.from_settings(self.settings)
        self._sleep = sleep

    def index_directory(
        self,
        target: Path,
        callbacks: Optional[IndexingCallbacks] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> IndexingResult:
        """Run the full chunking workflow for ``target``."""
        cb = callbacks or IndexingCallbacks()
        target = Path(target)
        root = target.parent if target.is_file() else target
        result = IndexingResult(root=root)

        if not len(self.registry):
            log.warning("registry_empty", target=str(target))
            result.warnings.append("No framework patterns are registered; nothing was chunked.")
            return result

        report = scan_directory(target, self.context.supported_extensions, self.settings.ignore_patterns)
        result.files_scanned = len(report.files)
        if cb.scanned:
            cb.scanned(result.files_scanned)
        self._stage(cb, "scan_completed")

        claimed = self._dispatch(report.files, root, result)
        self._stage(cb, "dispatch_completed")

        emitter = ChunkEmitter(
            self.sink,
            batch_size=self.settings.upsert_batch_size,
            pause_seconds=self.settings.upsert_pause_seconds,
            progress=cb.upsert_progress,
            sleep=self._sleep,
        )
        processed = 0
        for match, outcome in self._parse_all(claimed, stop_event):
            processed += 1
            self._collect(match.framework, outcome, result, emitter)
            if cb.file:
                cb.file(match.relative_path)
        result.cancelled = processed < len(claimed)
        self._stage(cb, "chunk_completed")

        if not result.cancelled:
            for registration in self.registry.registrations:
                for document in registration.knowledge:
                    with bind_file_context(file=document.as_posix(), framework=registration.framework):
                        outcome = self._chunk_knowledge(document, root, registration)
                    result.knowledge_chunks += len(outcome.chunks)
                    self._collect(registration.framework, outcome, result, emitter)
            self._stage(cb, "knowledge_completed")

        emitter.flush()
        self._stage(cb, "upsert_completed")
        log.info(
            "indexing_completed",
            root=str(root),
            files=result.files_scanned,
            claimed=result.files_claimed,
            chunks=result.chunk_count,
            warnings=len(result.warnings),
            cancelled=result.cancelled,
        )
        return result

    @staticmethod
    def _stage(cb: IndexingCallbacks, name: str) -> None:
        if cb.stage:
            cb.stage(name)

    def _dispatch(self, files: Sequence[Path], root: Path, result: IndexingResult) -> List[Tuple[Path, DispatchMatch]]:
        dispatcher = Dispatcher(self.registry)
        claimed: List[Tuple[Path, DispatchMatch]] = []
        for path in files:
            relative_path = relative_posix(path, root)
            match = dispatcher.dispatch(relative_path)
            if match is None:
                log.debug("file_unclaimed", path=relative_path)
                result.unclaimed.append(relative_path)
                continue
            claimed.append((path, match))
        result.files_claimed = len(claimed)
        return claimed

    def _parse_all(
        self,
        claimed: Sequence[Tuple[Path, DispatchMatch]],
        stop_event: Optional[threading.Event],
    ):
        """Yield ``(match, outcome)`` in scan order, stopping early when asked."""
        if self.settings.max_workers <= 1:
            for index, (path, match) in enumerate(claimed):
                if stop_event and stop_event.is_set():
                    log.info("indexing_cancelled", remaining=len(claimed) - index)
                    return
                yield match, self._parse_one(path, match)
            return

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
            futures: List[Tuple[DispatchMatch, Future]] = [
                (match, pool.submit(self._parse_one, path, match)) for path, match in claimed
            ]
            for index, (match, future) in enumerate(futures):
                if stop_event and stop_event.is_set():
                    for _, pending in futures[index:]:
                        pending.cancel()
                    log.info("indexing_cancelled", remaining=len(futures) - index)
                    return
                yield match, future.result()

    def _parse_one(self, path: Path, match: DispatchMatch) -> FileChunks:
        with bind_file_context(file=match.relative_path, framework=match.framework):
            return self._parse_guarded(path, match)

    def _parse_guarded(self, path: Path, match: DispatchMatch) -> FileChunks:
        try:
            return match.parser.parse_file(path, match.relative_path, match.pattern, self.context)
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("file_read_failed", path=match.relative_path, error=str(exc))
            return FileChunks(warnings=[f"{match.relative_path}: could not be read ({exc})"])
        except Exception as exc:
            log.error("file_parse_failed", path=match.relative_path, framework=match.framework, error=str(exc))
            return self._whole_file(path, match, exc)

    def _whole_file(self, path: Path, match: DispatchMatch, exc: Exception) -> FileChunks:
        warning = f"{match.relative_path}: parser failed, kept as one chunk ({exc})"
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as read_exc:
            log.warning("file_read_failed", path=match.relative_path, error=str(read_exc))
            return FileChunks(warnings=[warning])
        factory = ChunkFactory(
            match.relative_path,
            match.framework,
            match.pattern.semantic,
            match.pattern.chunk_metadata(match.relative_path),
        )
        return FileChunks(chunks=[factory.whole_file(text, reason="parser_error")], warnings=[warning])

    def _chunk_knowledge(self, document: Path, root: Path, registration: Registration) -> FileChunks:
        path = document if document.is_absolute() else root / document
        label = document.as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("knowledge_read_failed", path=label, error=str(exc))
            return FileChunks(warnings=[f"{label}: knowledge document could not be read ({exc})"])

        factory = ChunkFactory(
            label,
            registration.framework,
            KNOWLEDGE_SEMANTIC,
            {"filePath": label, "source": "knowledge"},
        )
        sections = split_knowledge(text, self.context.knowledge_budget)
        chunks = [factory.build(section, "section", part=index + 1) for index, section in enumerate(sections)]
        log.debug("knowledge_chunked", path=label, sections=len(chunks))
        return FileChunks(chunks=chunks)

    @staticmethod
    def _collect(framework: str, outcome: FileChunks, result: IndexingResult, emitter: ChunkEmitter) -> None:
        result.warnings.extend(outcome.warnings)
        if not outcome.chunks:
            return
        result.chunk_count += len(outcome.chunks)
        result.chunks_by_framework[framework] = result.chunks_by_framework.get(framework, 0) + len(outcome.chunks)
        emitter.emit(outcome.chunks)
