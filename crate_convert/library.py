"""
Builds the intermediary ``TrackMap`` from playlists.

Keys are assigned in first-seen order (playlist order, then track order).
Per-track extraction may run on a worker pool; results are gathered back into
candidate order before any key is assigned, so concurrency never changes keys.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import ConversionError
from .fs_utils import is_supported, path_exists, resolve_track_path
from .models import Playlist, TrackMap, TrackRecord
from .track import SUPPORTED_FILE_TYPES, TrackConverter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
TrackPipeline = Callable[[Path], TrackRecord]


def no_progress(_percent: float, _message: str) -> None:
    return None


@dataclass(frozen=True)
class TrackCandidate:
    track_path: str
    absolute_path: Path
    label: str = ""


class LibraryModelBuilder:
    def __init__(
        self,
        library_root: Path,
        *,
        converter: Optional[TrackPipeline] = None,
        include_extensions: Sequence[str] = SUPPORTED_FILE_TYPES,
        worker_concurrency: int = 1,
        file_timeout_seconds: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.library_root = Path(library_root)
        self.include_extensions = tuple(include_extensions)
        self.converter = converter or TrackConverter(include_extensions=self.include_extensions)
        self.worker_concurrency = max(1, worker_concurrency)
        self.file_timeout_seconds = file_timeout_seconds
        self.progress = progress or no_progress

    def build(self, playlists: Sequence[Playlist]) -> TrackMap:
        candidates = self.collect_candidates(playlists)
        track_map = self.build_from_candidates(candidates)
        self.progress(100.0, "Finished converting tracks")
        return track_map

    def collect_candidates(self, playlists: Sequence[Playlist]) -> list[TrackCandidate]:
        seen: set[str] = set()
        candidates: list[TrackCandidate] = []
        for playlist in playlists:
            for track_path in playlist.tracks:
                if track_path in seen:
                    continue
                seen.add(track_path)
                absolute_path = resolve_track_path(self.library_root, track_path)
                if not self.accepts(absolute_path):
                    continue
                candidates.append(TrackCandidate(track_path, absolute_path, playlist.name))
        return candidates

    def accepts(self, path: Path) -> bool:
        if not path_exists(path):
            logger.debug("Skipping missing track %s", path)
            return False
        if not is_supported(path, self.include_extensions):
            logger.debug("Skipping unsupported track %s", path)
            return False
        return True

    def build_from_candidates(self, candidates: Sequence[TrackCandidate]) -> TrackMap:
        if self.worker_concurrency > 1 or self.file_timeout_seconds:
            results = asyncio.run(self._convert_concurrently(candidates))
        else:
            results = []
            for index, candidate in enumerate(candidates):
                results.append(self._convert_one(candidate))
                self._report(index + 1, len(candidates), candidate)
        records = [
            (candidate.track_path, candidate.absolute_path, record)
            for candidate, record in zip(candidates, results)
            if record is not None
        ]
        skipped = len(candidates) - len(records)
        if skipped:
            logger.info("Skipped %d track(s) that could not be converted", skipped)
        return TrackMap.from_records(records)

    def _convert_one(self, candidate: TrackCandidate) -> Optional[TrackRecord]:
        try:
            return self.converter(candidate.absolute_path)
        except (ConversionError, OSError) as exc:
            logger.warning("Skipping %s: %s", candidate.absolute_path, exc)
            return None

    async def _convert_concurrently(
        self, candidates: Sequence[TrackCandidate]
    ) -> list[Optional[TrackRecord]]:
        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.worker_concurrency)
        executor = ThreadPoolExecutor(max_workers=self.worker_concurrency)
        completed = 0

        async def run(candidate: TrackCandidate) -> Optional[TrackRecord]:
            nonlocal completed
            async with semaphore:
                started = asyncio.Event()

                def job() -> Optional[TrackRecord]:
                    loop.call_soon_threadsafe(started.set)
                    return self._convert_one(candidate)

                future = loop.run_in_executor(executor, job)
                # The timeout covers the read itself, not the wait for a thread
                # still held by an abandoned read.
                await started.wait()
                try:
                    record = await asyncio.wait_for(future, timeout=self.file_timeout_seconds)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Timed out reading %s after %.1fs; skipping",
                        candidate.absolute_path,
                        self.file_timeout_seconds,
                    )
                    record = None
            completed += 1
            self._report(completed, len(candidates), candidate)
            return record

        try:
            return list(await asyncio.gather(*(run(candidate) for candidate in candidates)))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _report(self, done: int, total: int, candidate: TrackCandidate) -> None:
        percent = (done / total) * 100 if total else 100.0
        label = f" from '{candidate.label}'" if candidate.label else ""
        self.progress(percent, f"Converted track {done} of {total}{label}")
