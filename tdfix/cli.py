"""
Command-line interface for the tdfix tool.

This module orchestrates all other components and provides
the user-facing CLI commands:
- fix
- check
- explain
- convert
- help
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import preconditions, procedures, rules
from .config import (
    DEFAULT_DESCRIPTION_PATH,
    DEFAULT_ROOT,
    TOOL_VERSION,
    EngineConfig,
    configure_logging,
    load_worker_count,
)
from .errors import ConfigurationError, FatalError
from .manifest import TransformationSet, convert_description, is_remote
from .runner import check_transformation, fix

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_FATAL = 2
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str) -> str:
    """Return colored text when writing to a terminal."""
    if not sys.stdout.isatty():
        return text
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    print(colored(f"✓ {msg}", Colors.GREEN))


def print_warning(msg: str) -> None:
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW))


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(
        self,
        description_path: str,
        verbosity: int,
        quiet: bool,
        dry_run: bool,
        workers: Optional[int] = None,
        strict: bool = False,
    ):
        self.description_path = description_path
        self.verbosity = verbosity
        self.quiet = quiet
        self.dry_run = dry_run
        self.workers = workers
        self.strict = strict

        # Lazy-loaded
        self._transformation_set: Optional[TransformationSet] = None

    @property
    def verbose(self) -> bool:
        return self.verbosity > 0

    @property
    def transformation_set(self) -> TransformationSet:
        """Load the description lazily. Raises DescriptionError."""
        if self._transformation_set is None:
            self._transformation_set = TransformationSet.load(self.description_path)
        return self._transformation_set

    @property
    def resolved_description_path(self) -> Optional[Path]:
        if is_remote(self.description_path):
            return None
        return Path(self.description_path).resolve()

    def log(self, msg: str) -> None:
        """Log message if not quiet."""
        if not self.quiet:
            print(msg)

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose and not self.quiet:
            print(colored(f"  → {msg}", Colors.BLUE))


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_fix(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Apply the transformations to every file under a directory.
    """
    transformation_set = ctx.transformation_set

    ctx.log_verbose(f"Apply transformations from: {ctx.description_path}")

    root = Path(args.directory or DEFAULT_ROOT).resolve()
    config = EngineConfig(
        root=root,
        description_path=ctx.resolved_description_path,
        exclude=transformation_set.exclude,
        max_workers=load_worker_count(ctx.workers),
        dry_run=ctx.dry_run,
        strict=ctx.strict,
    )

    ctx.log_verbose(f"Scanning directory: {root} ({config.max_workers} workers)")

    if ctx.dry_run:
        ctx.log(colored("[DRY RUN] Preview of changes:", Colors.YELLOW))

    summary = fix(transformation_set, config, report=ctx.log)

    ctx.log("")
    ctx.log(summary.summary_line())

    if ctx.dry_run:
        ctx.log(colored("[DRY RUN] No files were modified", Colors.YELLOW))

    # Each error was already logged by the engine
    if summary.config_errors:
        print_warning(f"{len(summary.config_errors)} transformation error(s), affected transformations were skipped")
    if summary.failed:
        print_warning(f"{len(summary.failed)} path(s) could not be processed")

    return EXIT_OK if summary.ok else EXIT_FAILURE


def cmd_check(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Validate the description and list its transformations.
    """
    transformation_set = ctx.transformation_set

    ctx.log(colored(f"Transformations in: {ctx.description_path}", Colors.BOLD))
    if transformation_set.exclude:
        ctx.log(f"  Walk exclude: {transformation_set.exclude}")
    ctx.log("")

    error_count = 0
    for idx, transformation in enumerate(transformation_set.transformations):
        ctx.log(colored(f"Transformation {idx}:", Colors.CYAN))
        ctx.log(f"  Filter:        {transformation.filter or '(all files)'}")
        ctx.log(f"  Preconditions: {', '.join(transformation.preconditions) or '(none)'}")
        for procedure in transformation.procedures:
            ctx.log(f"  Procedure:     {procedure.name}{list(procedure.params)}")

        for err in check_transformation(transformation, idx):
            print_error(str(err))
            error_count += 1
        ctx.log("")

    if error_count:
        print_warning(f"{error_count} configuration error(s) found")
        return EXIT_FAILURE

    print_success(f"{len(transformation_set.transformations)} transformation(s) valid")
    return EXIT_OK


def cmd_explain(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Explain which transformations apply to a file.
    """
    transformation_set = ctx.transformation_set
    file_path = Path(args.path)

    ctx.log(f"{colored('File:', Colors.BOLD)} {file_path}")
    if rules.is_excluded(file_path, transformation_set.exclude):
        ctx.log(colored(f"  Skipped by walk exclude: {transformation_set.exclude}", Colors.YELLOW))
        return EXIT_OK

    content: Optional[bytes] = None
    try:
        content = file_path.read_bytes()
    except OSError as e:
        ctx.log_verbose(f"Cannot read {file_path}: {e.strerror or e}")

    for idx, transformation in enumerate(transformation_set.transformations):
        try:
            rule = rules.parse_filter(transformation.filter)
        except ConfigurationError as e:
            print_error(str(e.with_index(idx)))
            continue

        if not rule.matches(file_path):
            excluded = rule.excluded_by(file_path)
            reason = f"excluded by {', '.join(excluded)}" if excluded else "no include pattern matched"
            ctx.log(f"  #{idx}: {colored('✗ not matched', Colors.RED)} ({reason})")
            continue

        if content is None:
            ctx.log(f"  #{idx}: {colored('✓ matched', Colors.GREEN)} (file not readable, preconditions not evaluated)")
            continue

        if preconditions.satisfies(file_path, content, transformation):
            ctx.log(f"  #{idx}: {colored('✓ matched, preconditions hold', Colors.GREEN)}")
            try:
                content = procedures.apply_all(content, transformation.procedures)
            except ConfigurationError as e:
                print_error(str(e.with_index(idx)))
        else:
            ctx.log(f"  #{idx}: {colored('✓ matched, preconditions not met', Colors.YELLOW)}")

    return EXIT_OK


def cmd_convert(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Rewrite a description file in another format.
    """
    source = args.path or ctx.description_path

    ctx.log_verbose(f"Converting {source} to {args.format}")

    target = convert_description(source, args.format, args.output)

    if not ctx.quiet:
        print_success(f"Wrote {target}")
    return EXIT_OK


def cmd_help(ctx: Optional[CLIContext], args: argparse.Namespace) -> int:
    """
    Show help message.
    """
    if getattr(args, "topic", None) == "fix":
        print(FIX_HELP)
        return EXIT_OK

    help_text = f"""
{colored('tdfix', Colors.BOLD)} — apply source transformations to a directory tree

{colored('USAGE:', Colors.CYAN)}
  tdfix [options] <command> [args]

{colored('COMMANDS:', Colors.CYAN)}
  fix [DIRECTORY]   Apply the transformations (default: current directory)
  check             Validate the description file and list its transformations
  explain PATH      Show which transformations apply to a file
  convert [PATH] [FORMAT]
                    Rewrite a description file as FORMAT (default: toml)
  help [fix]        Show this help, or the description file format

{colored('GLOBAL OPTIONS:', Colors.CYAN)}
  -t, --tdf PATH            Transformation description file or http(s) URL
                            (default: {DEFAULT_DESCRIPTION_PATH})
  -n, --dry-run             Report changes without writing files
  -w, --workers N           Number of files processed concurrently
  --strict                  Abort if any transformation is invalid
  -v, --verbose             Verbose output (-vv for debug logging)
  -q, --quiet               Suppress non-error output

{colored('ENVIRONMENT:', Colors.CYAN)}
  TDFIX_WORKERS             Default worker count
  TDFIX_LOG_LEVEL           Logging level (DEBUG, INFO, WARNING, ERROR)

{colored('VERSION:', Colors.CYAN)}
  {TOOL_VERSION}
"""
    print(help_text)
    return EXIT_OK


FIX_HELP = f"""Fix the files in a given directory based on a transformation description file.
If no directory is passed, the transformations are applied to the current directory.

Usage:
  tdfix [-t file/path.yml] fix [directory/to/transform]

Description file format (YAML or TOML):

  exclude: ".git|node_modules"
  transformations:
    - filter: "*.go|*.yml|!*.out"
      pre:
        - AlwaysTrue
        - "Contains:old"
      proc:
        - name: Replace
          params: ["old", "new"]

Filters are '|'-separated globs matched against file base names; a
leading '!' excludes. 'exclude' at the top level prunes the walk.

Preconditions: {', '.join(preconditions.available())}
Procedures:    {', '.join(procedures.available())}
"""


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tdfix",
        description="Apply source transformations to a directory tree",
        add_help=False,
    )

    # Global options
    parser.add_argument(
        "-t", "--tdf",
        default=DEFAULT_DESCRIPTION_PATH,
        help="Path or URL of the transformation description file",
    )
    parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        help="Report changes without writing files",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        help="Number of files processed concurrently",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort if any transformation is invalid",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )
    parser.add_argument(
        "-h", "--help",
        action="store_true",
        help="Show help message",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    fix_parser = subparsers.add_parser("fix", help="Apply transformations")
    fix_parser.add_argument("directory", nargs="?", help="Directory to transform")

    subparsers.add_parser("check", help="Validate the description file")

    explain_parser = subparsers.add_parser("explain", help="Explain transformation matching")
    explain_parser.add_argument("path", help="File path to explain")

    convert_parser = subparsers.add_parser("convert", help="Convert a description file")
    convert_parser.add_argument("path", nargs="?", help="Description file (default: --tdf)")
    convert_parser.add_argument("format", nargs="?", default="toml", help="Target format (toml, yml)")
    convert_parser.add_argument("-o", "--output", help="Output path (default: PATH with the new extension)")

    help_parser = subparsers.add_parser("help", help="Show help message")
    help_parser.add_argument("topic", nargs="?", help="Help topic (fix)")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help or not args.command:
        return cmd_help(None, args)

    if args.workers is not None and args.workers < 1:
        print_error("--workers must be a positive integer")
        return EXIT_FATAL

    configure_logging(args.verbose)

    ctx = CLIContext(
        description_path=args.tdf,
        verbosity=args.verbose,
        quiet=args.quiet,
        dry_run=args.dry_run,
        workers=args.workers,
        strict=args.strict,
    )

    commands = {
        "fix": cmd_fix,
        "check": cmd_check,
        "explain": cmd_explain,
        "convert": cmd_convert,
        "help": cmd_help,
    }

    cmd_func = commands.get(args.command)
    if not cmd_func:
        print_error(f"Unknown command: {args.command}")
        return EXIT_FAILURE

    try:
        return cmd_func(ctx, args)
    except KeyboardInterrupt:
        print_error("Interrupted")
        return EXIT_INTERRUPTED
    except FatalError as e:
        print_error(str(e))
        return EXIT_FATAL
    except ConfigurationError as e:
        print_error(str(e))
        return EXIT_FAILURE
    except RuntimeError as e:
        print_error(str(e))
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
