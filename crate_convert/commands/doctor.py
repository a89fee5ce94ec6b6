from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..crate import read_crate
from ..errors import ConversionError
from ..serato import find_crates, subcrate_directory
from ..traktor import load_nml, parse_collection, parse_playlists


@dataclass(frozen=True, slots=True)
class CheckLine:
    label: str
    status: str
    detail: Optional[str] = None

    def render(self) -> str:
        if self.detail:
            return f"{self.label}: {self.status} ({self.detail})"
        return f"{self.label}: {self.status}"


def ok(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "OK", detail).render()


def warning(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "WARNING", detail).render()


def error(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "ERROR", detail).render()


def skipped(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "SKIPPED", detail).render()


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks: list[str]


def _check_serato(settings: Settings, checks: list[str]) -> bool:
    root = settings.source.serato_root
    if root is None:
        checks.append(skipped("Serato", "source.serato_root not set"))
        return True
    if not root.exists():
        checks.append(error("Serato root", f"missing: {root}"))
        return False
    checks.append(ok("Serato root", str(root)))
    try:
        crates = find_crates(root, settings.source.crates)
    except ConversionError as exc:
        checks.append(error("Subcrates", str(exc)))
        return False
    checks.append(ok("Subcrates", f"{len(crates)} crate(s) in {subcrate_directory(root)}"))
    if settings.source.crates:
        found = {path.stem for path in crates}
        missing = sorted(set(settings.source.crates) - found)
        if missing:
            checks.append(warning("Crate filter", f"not found: {', '.join(missing)}"))
    broken: list[str] = []
    for path in crates:
        try:
            read_crate(path)
        except (ConversionError, OSError) as exc:
            broken.append(f"{path.name}: {exc}")
    if broken:
        checks.append(error("Crate decoding", "; ".join(broken)))
        return False
    checks.append(ok("Crate decoding", f"{len(crates)} decoded"))
    return True


def _check_traktor(settings: Settings, checks: list[str]) -> bool:
    nml = settings.source.traktor_nml
    if nml is None:
        checks.append(skipped("Traktor", "source.traktor_nml not set"))
        return True
    if not nml.is_file():
        checks.append(error("Traktor NML", f"missing: {nml}"))
        return False
    try:
        root = load_nml(nml)
    except ConversionError as exc:
        checks.append(error("Traktor NML", str(exc)))
        return False
    checks.append(
        ok(
            "Traktor NML",
            f"{len(parse_playlists(root))} playlist(s), {len(parse_collection(root))} entries",
        )
    )
    return True


def _check_output(settings: Settings, checks: list[str]) -> bool:
    target = Path(settings.output.path).expanduser().resolve()
    parent = target.parent
    if not parent.exists():
        checks.append(warning("Output", f"{parent} will be created"))
        return True
    if not os.access(parent, os.W_OK):
        checks.append(error("Output", f"not writable: {parent}"))
        return False
    checks.append(ok("Output", str(target)))
    return True


def run(settings: Settings) -> DoctorReport:
    checks: list[str] = []
    ok_serato = _check_serato(settings, checks)
    ok_traktor = _check_traktor(settings, checks)
    ok_output = _check_output(settings, checks)
    conversion = settings.conversion
    checks.append(
        ok(
            "Conversion",
            f"workers={conversion.worker_concurrency}, "
            f"timeout={conversion.file_timeout_seconds or 'none'}, "
            f"extensions={','.join(conversion.include_extensions)}",
        )
    )
    return DoctorReport(ok=ok_serato and ok_traktor and ok_output, checks=checks)
