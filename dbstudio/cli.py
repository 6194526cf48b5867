import argparse
import logging
import sys
from typing import Optional

from .generator import generate_dbml
from .models import Severity
from .parser import parse_dbml

logger = logging.getLogger(__name__)


def read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def print_diagnostics(path: str, diagnostics, stream=None) -> None:
    stream = stream or sys.stdout
    for d in diagnostics:
        print(f"{path}:{d.line}:{d.column}: {d.severity.value}: {d.message}", file=stream)


def cmd_check(args: argparse.Namespace) -> int:
    failed = False
    for path in args.files:
        _, diagnostics = parse_dbml(read_source(path))
        print_diagnostics(path, diagnostics)
        if any(d.severity == Severity.ERROR for d in diagnostics):
            failed = True
    return 1 if failed else 0


def cmd_format(args: argparse.Namespace) -> int:
    schema, diagnostics = parse_dbml(read_source(args.file))
    if schema is None:
        print_diagnostics(args.file, diagnostics, stream=sys.stderr)
        return 1

    # Recovered problems are reported but do not stop formatting
    print_diagnostics(args.file, diagnostics, stream=sys.stderr)
    text = generate_dbml(schema) + "\n"

    if args.write and args.file != "-":
        with open(args.file, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Rewrote %s", args.file)
    else:
        sys.stdout.write(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbstudio", description="DBML schema tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="Report diagnostics for DBML files")
    check.add_argument("files", nargs="+", help="DBML files ('-' for stdin)")
    check.set_defaults(func=cmd_check)

    fmt = commands.add_parser("format", help="Print a DBML file in canonical form")
    fmt.add_argument("file", help="DBML file ('-' for stdin)")
    fmt.add_argument("--write", action="store_true", help="Rewrite the file in place")
    fmt.set_defaults(func=cmd_format)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except OSError as exc:
        print(f"dbstudio: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
