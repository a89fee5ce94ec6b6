from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


def _expand(value: Optional[str | Path]) -> Optional[Path]:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


class SourceSettings(BaseModel):
    serato_root: Optional[Path] = None
    crates: Optional[List[str]] = None
    traktor_nml: Optional[Path] = None

    @field_validator("serato_root", "traktor_nml", mode="before")
    @classmethod
    def _expand_paths(cls, value: Optional[str | Path]) -> Optional[Path]:
        return _expand(value)


class ConversionSettings(BaseModel):
    include_extensions: List[str] = Field(default_factory=lambda: [".mp3", ".wav", ".flac"])
    worker_concurrency: int = Field(default=1, ge=1)
    file_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, values: List[str]) -> List[str]:
        return [v.lower() if v.startswith(".") else f".{v.lower()}" for v in values]


class OutputSettings(BaseModel):
    path: Path = Path("./rekordbox.xml")
    hot_cues: bool = False

    @field_validator("path", mode="before")
    @classmethod
    def _expand_output(cls, value: str | Path) -> Path:
        return Path(value).expanduser().resolve()


class Settings(BaseModel):
    source: SourceSettings = SourceSettings()
    conversion: ConversionSettings = ConversionSettings()
    output: OutputSettings = OutputSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        return cls.model_validate(raw)


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None
