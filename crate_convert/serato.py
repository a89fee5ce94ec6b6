from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .crate import CRATE_EXTENSION, crate_to_playlist
from .errors import MissingSubcrateDirectory
from .library import LibraryModelBuilder, ProgressCallback, no_progress
from .models import LibraryData, Playlist

logger = logging.getLogger(__name__)

SERATO_DIR = "_Serato_"
SUBCRATES_DIR = "Subcrates"


def subcrate_directory(serato_root: Path) -> Path:
    return Path(serato_root).expanduser().resolve() / SERATO_DIR / SUBCRATES_DIR


def find_crates(serato_root: Path, crate_names: Optional[Iterable[str]] = None) -> list[Path]:
    """Crate files under ``_Serato_/Subcrates``, optionally limited to ``crate_names``."""
    directory = subcrate_directory(serato_root)
    if not directory.is_dir():
        raise MissingSubcrateDirectory(f"Could not find subcrates in {directory}")
    wanted = set(crate_names) if crate_names else None
    crates = sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and path.suffix == CRATE_EXTENSION
    )
    if wanted is not None:
        crates = [path for path in crates if path.stem in wanted]
        missing = wanted - {path.stem for path in crates}
        for name in sorted(missing):
            logger.warning("Crate '%s' not found in %s", name, directory)
    return crates


def read_playlists(crate_paths: list[Path], progress: ProgressCallback = no_progress) -> list[Playlist]:
    playlists: list[Playlist] = []
    for index, path in enumerate(crate_paths):
        playlist = crate_to_playlist(path)
        playlists.append(playlist)
        progress(
            (index / len(crate_paths)) * 100,
            f"Analysing crate '{playlist.name}' ({index + 1} of {len(crate_paths)})",
        )
    progress(100.0, "Finished analysing crates")
    return playlists


def convert_from_serato(
    serato_root: Path,
    crate_names: Optional[Iterable[str]] = None,
    *,
    builder: Optional[LibraryModelBuilder] = None,
    progress: Optional[ProgressCallback] = None,
) -> LibraryData:
    """Decode the selected crates and build the track map for their tracks.

    Track paths in crates are relative to the drive holding the Serato folder,
    so they are resolved against ``serato_root``.
    """
    serato_root = Path(serato_root).expanduser().resolve()
    progress = progress or (builder.progress if builder else no_progress)
    crate_paths = find_crates(serato_root, crate_names)
    logger.info("Found %d crate(s) in %s", len(crate_paths), subcrate_directory(serato_root))
    playlists = read_playlists(crate_paths, progress)
    if builder is None:
        builder = LibraryModelBuilder(serato_root, progress=progress)
    track_map = builder.build(playlists)
    logger.info("Converted %d playlist(s) with %d unique track(s)", len(playlists), len(track_map))
    return LibraryData(playlists=tuple(playlists), track_map=track_map)
