"""Command-line interface for lspcheck."""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import Config, load_config
from .errors import InvalidPathError, LspcheckError
from .report import format_text_report, report_to_dict
from .runner import Runner

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_USAGE = 2

USAGE = """Usage: lspcheck check <directory|file>... [--config FILE] [--json] [--quiet]
  --config FILE         JSON config (default: ./.lspcheck.json if present)
  --json                Print the report as JSON on stdout
  --quiet               Only print the report (no progress on stderr)
  --max-call-depth N    Longest call chain followed by exception analysis"""


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route log records to stderr."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def build_config(args: argparse.Namespace) -> Config:
    """
    Merge the config file, positional paths and flags.

    Raises:
        InvalidPathError: If a positional path is neither a directory nor a file.
    """
    config = load_config(Path(args.config) if args.config else None)
    for raw in args.paths:
        path = Path(raw)
        if path.is_dir():
            config.add_directory(path)
        elif path.is_file():
            config.add_file(path)
        else:
            raise InvalidPathError(raw, "not a valid directory or file")
    if getattr(args, "max_call_depth", None) is not None:
        config.max_call_depth = args.max_call_depth
    return config


def cmd_check(args: argparse.Namespace) -> int:
    """Check every class found in the given paths."""
    try:
        config = build_config(args)
        if config.is_empty:
            print(USAGE, file=sys.stderr)
            return EXIT_USAGE

        runner = Runner(config)
        class_names = runner.discover()
        if not class_names:
            print("No Python classes found.", file=sys.stderr)
            if args.json:
                print(json.dumps(report_to_dict(runner.run([])), indent=2))
            return EXIT_CLEAN

        if not args.quiet:
            print(f"Checking {len(class_names)} class(es)...", file=sys.stderr)

        report = runner.run(class_names)

        if args.json:
            print(json.dumps(report_to_dict(report), indent=2))
        else:
            print(format_text_report(report))

        if not args.quiet:
            status = "clean" if report.is_clean else "violations found"
            print(f"Done: {status}.", file=sys.stderr)

        return EXIT_CLEAN if report.is_clean else EXIT_VIOLATIONS

    except LspcheckError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


def cmd_classes(args: argparse.Namespace) -> int:
    """List the classes that would be checked."""
    try:
        config = build_config(args)
        if config.is_empty:
            print(USAGE, file=sys.stderr)
            return EXIT_USAGE

        runner = Runner(config)
        class_names = runner.discover()

        if args.json:
            data = []
            for name in class_names:
                construct = runner.registry.get_class(name)
                data.append({
                    "qualname": construct.qualname,
                    "kind": construct.kind,
                    "path": construct.path,
                    "start_line": construct.start_line,
                    "end_line": construct.end_line,
                })
            print(json.dumps(data, indent=2))
        else:
            if not class_names:
                print("No Python classes found.")
                return EXIT_CLEAN
            print(f"Classes ({len(class_names)}):")
            print()
            for name in class_names:
                construct = runner.registry.get_class(name)
                print(f"  {construct.kind:<10} {construct.qualname}")
                print(f"             {construct.path}:{construct.start_line}")

        return EXIT_CLEAN

    except LspcheckError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        print("Starting lspcheck API server...")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "lspcheck.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,
        )
        return EXIT_CLEAN

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_VIOLATIONS


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths", nargs="*", help="Directories or files to analyze"
    )
    parser.add_argument(
        "--config", "-c", help="Path to a JSON config file (default: ./.lspcheck.json)"
    )
    parser.add_argument(
        "--json", action="store_true", help="Output as JSON"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lspcheck",
        description="Check Python classes for Liskov substitution violations.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # check
    check_parser = subparsers.add_parser(
        "check", help="Check classes against their interfaces and parent classes"
    )
    _add_source_arguments(check_parser)
    check_parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress progress output on stderr"
    )
    check_parser.add_argument(
        "--max-call-depth", type=_positive_int,
        help="Longest call chain followed when collecting raised exceptions",
    )

    # classes
    classes_parser = subparsers.add_parser(
        "classes", help="List the classes found in the given paths"
    )
    _add_source_arguments(classes_parser)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_CLEAN

    configure_logging(verbose=args.verbose, quiet=getattr(args, "quiet", False))

    commands = {
        "check": cmd_check,
        "classes": cmd_classes,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return EXIT_CLEAN


if __name__ == "__main__":
    sys.exit(main())
