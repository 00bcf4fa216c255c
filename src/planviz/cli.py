"""Command-line interface for turning DataFusion plans into Excalidraw files."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .config import DiagramConfig
from .errors import ConfigError, PlanParseError, StructuralError
from .parser import extract_physical_plan
from .planviz import convert, dumps
from .resources import load_example
from .strategies import REGISTRY

SUBCOMMANDS = "convert, extract, operators, example"


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="planviz",
        description="Draw DataFusion physical plans as Excalidraw diagrams.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Convert a plan to .excalidraw JSON")
    convert_parser.add_argument("input", nargs="?", help="Plan or EXPLAIN output file")
    convert_parser.add_argument("--text", help="Raw plan text")
    convert_parser.add_argument("--stdout", action="store_true", help="Write JSON to stdout")
    convert_parser.add_argument("-o", "--output", help="Output .excalidraw path")
    convert_parser.add_argument("--node-width", type=float)
    convert_parser.add_argument("--node-height", type=float)
    convert_parser.add_argument("--vertical-spacing", type=float)
    convert_parser.add_argument("--horizontal-spacing", type=float)
    convert_parser.add_argument("--font-size", type=float)
    convert_parser.add_argument("--label-font", help="TrueType font used to measure column labels")
    convert_parser.add_argument("--seed", type=int, help="Fix element seeds for reproducible output")

    extract_parser = subparsers.add_parser(
        "extract", help="Print the physical plan from EXPLAIN output"
    )
    extract_parser.add_argument("input", nargs="?", help="EXPLAIN output file")
    extract_parser.add_argument("--text", help="Raw EXPLAIN output")

    subparsers.add_parser("operators", help="List operators with a dedicated layout")
    subparsers.add_parser("example", help="Print an example EXPLAIN output")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> tuple[str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(), input_path
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Pass FILE, --text, or pipe the plan into stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe a physical plan or EXPLAIN output into stdin.",
            exit_code=2,
        )
    return data, None


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content)
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, PlanParseError):
        return CliError(
            exc.code,
            str(exc),
            hint="Pass an indented physical plan or the output of EXPLAIN.",
            exit_code=2,
        )
    if isinstance(exc, ConfigError):
        return CliError(
            exc.code,
            str(exc),
            hint="Sizes must be positive and spacings must not be negative.",
            exit_code=2,
        )
    if isinstance(exc, StructuralError):
        return CliError(
            exc.code,
            str(exc),
            hint="Check the children under the operator named in the message.",
            exit_code=3,
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _config_from_args(args: argparse.Namespace) -> DiagramConfig:
    return DiagramConfig().with_overrides(
        node_width=args.node_width,
        node_height=args.node_height,
        vertical_spacing=args.vertical_spacing,
        horizontal_spacing=args.horizontal_spacing,
        font_size=args.font_size,
        label_font=args.label_font,
    )


def _handle_convert(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )

    source, source_path = _read_input(args.input, args.text)
    config = _config_from_args(args)
    document = convert(source, config, seed=args.seed)
    payload = dumps(document)

    if args.stdout or (source_path is None and not args.output):
        sys.stdout.write(payload + "\n")
        return 0

    output_path = Path(args.output) if args.output else source_path.with_suffix(".excalidraw")
    _write_text(output_path, payload)
    print(f"Wrote {output_path}")
    return 0


def _handle_extract(args: argparse.Namespace) -> int:
    source, _source_path = _read_input(args.input, args.text)
    plan = extract_physical_plan(source).rstrip("\n")
    if not plan.strip():
        raise PlanParseError("no physical_plan rows found in EXPLAIN output")
    print(plan)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError(
            "E_ARGS",
            "missing subcommand",
            hint=f"Use one of: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or os.getenv("PLANVIZ_DEBUG") == "1"
    if debug_enabled:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format

        if args.command == "convert":
            return _handle_convert(args)
        if args.command == "extract":
            return _handle_extract(args)
        if args.command == "operators":
            print("\n".join(REGISTRY.operators()))
            return 0
        if args.command == "example":
            print(load_example(), end="")
            return 0

        raise CliError(
            "E_ARGS",
            "missing subcommand",
            hint=f"Use one of: {SUBCOMMANDS}.",
            exit_code=2,
        )
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint=f"Use subcommands: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in acceptance tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
