from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from .commands import doctor as cmd_doctor
from .config import Settings, find_config
from .errors import ConversionError
from .library import LibraryModelBuilder
from .rekordbox import write_rekordbox_xml
from .serato import convert_from_serato
from .track import TrackConverter
from .traktor import convert_from_traktor

logger = logging.getLogger("crate_convert")

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"
WARN_LOG_PATH = Path("crate-convert-warnings.log")

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ShortPathFormatter(logging.Formatter):
    def __init__(self, fmt: str, roots: list[Path]) -> None:
        super().__init__(fmt)
        self.roots = [str(root) for root in roots if root]

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not message:
                break
            message = message.replace(f"{root}/", "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self._shorten(message)


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def log_progress(percent: float, message: str) -> None:
    logger.info("[%3d%%] %s", int(percent), message)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert Serato crates or Traktor NML collections to Rekordbox XML")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    serato_parser = subparsers.add_parser("serato", help="Convert Serato crates")
    serato_parser.add_argument(
        "root",
        nargs="?",
        type=Path,
        help="Directory containing the _Serato_ folder (usually the drive or music root)",
    )
    serato_parser.add_argument(
        "--crate",
        dest="crates",
        action="append",
        help="Only convert this crate (name without .crate); repeatable",
    )
    traktor_parser = subparsers.add_parser("traktor", help="Convert a Traktor NML collection")
    traktor_parser.add_argument("nml", nargs="?", type=Path, help="Path to collection.nml")
    for sub in (serato_parser, traktor_parser):
        sub.add_argument("--output", type=Path, help="Where to write the Rekordbox XML")
        sub.add_argument(
            "--hot-cues",
            action="store_true",
            default=None,
            help="Also export cue points as coloured hot cues",
        )
        sub.add_argument(
            "--workers",
            type=positive_int,
            default=None,
            help="Number of tracks to read concurrently",
        )
    subparsers.add_parser("doctor", help="Check configured paths and crates")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    source = settings.source.model_dump()
    if getattr(args, "root", None):
        source["serato_root"] = args.root
    if getattr(args, "crates", None):
        source["crates"] = args.crates
    if getattr(args, "nml", None):
        source["traktor_nml"] = args.nml
    output = settings.output.model_dump()
    if getattr(args, "output", None):
        output["path"] = args.output
    if getattr(args, "hot_cues", None):
        output["hot_cues"] = True
    conversion = settings.conversion.model_dump()
    if getattr(args, "workers", None) is not None:
        conversion["worker_concurrency"] = args.workers
    return Settings.model_validate({"source": source, "conversion": conversion, "output": output})


def configure_logging(level_name: str, settings: Settings) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    display_roots = [root for root in (settings.source.serato_root,) if root]

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, display_roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, display_roots))
    root_logger.addHandler(warn_buffer)

    file_handler = logging.FileHandler(WARN_LOG_PATH, mode="w", encoding="utf-8", delay=True)
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ShortPathFormatter(LOG_FORMAT, display_roots))
    root_logger.addHandler(file_handler)
    return warn_buffer


def run_serato(settings: Settings) -> Path:
    root = settings.source.serato_root
    if root is None:
        raise SystemExit("No Serato root given (argument or source.serato_root)")
    conversion = settings.conversion
    builder = LibraryModelBuilder(
        root,
        converter=TrackConverter(include_extensions=tuple(conversion.include_extensions)),
        include_extensions=conversion.include_extensions,
        worker_concurrency=conversion.worker_concurrency,
        file_timeout_seconds=conversion.file_timeout_seconds,
        progress=log_progress,
    )
    data = convert_from_serato(root, settings.source.crates, builder=builder)
    return write_rekordbox_xml(data, settings.output.path, hot_cues=settings.output.hot_cues)


def run_traktor(settings: Settings) -> Path:
    nml = settings.source.traktor_nml
    if nml is None:
        raise SystemExit("No NML file given (argument or source.traktor_nml)")
    data = convert_from_traktor(
        nml,
        include_extensions=settings.conversion.include_extensions,
        worker_concurrency=settings.conversion.worker_concurrency,
        file_timeout_seconds=settings.conversion.file_timeout_seconds,
        progress=log_progress,
    )
    return write_rekordbox_xml(data, settings.output.path, hot_cues=settings.output.hot_cues)


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    config_path = find_config(args.config)
    settings = Settings.load(config_path) if config_path else Settings()
    settings = apply_overrides(settings, args)
    warn_buffer = configure_logging(args.log_level, settings)
    if config_path:
        logger.debug("Loaded config from %s", config_path)

    try:
        match args.command:
            case "serato":
                output = run_serato(settings)
                print(f"Rekordbox collection XML saved to: {output}")
            case "traktor":
                output = run_traktor(settings)
                print(f"Rekordbox collection XML saved to: {output}")
            case "doctor":
                report = cmd_doctor.run(settings)
                for line in report.checks:
                    print(line)
                if not report.ok:
                    raise SystemExit(1)
            case _:
                parser.error("Unknown command")
    except ConversionError as exc:
        logger.error("Conversion failed: %s", exc)
        raise SystemExit(1) from exc
    finally:
        if warn_buffer.records:
            print("\n\033[33mWarnings/Errors summary:\033[0m")
            for line in warn_buffer.records:
                print(f" - {line}")
            print(f"\nFull warning log: {WARN_LOG_PATH.resolve()}")


if __name__ == "__main__":
    main()
