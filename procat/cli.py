import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .errors import ProcatError
from .rules import TOOL_IGNORE_FILENAME, TraversalMode
from .sinks import select_sink
from .walker import ExtensionFilter, ProjectWalker

log = logging.getLogger(__name__)
# Diagnostics go to stderr; stdout is reserved for the output itself
console = Console(stderr=True)


@dataclass
class RunConfig:
    project_dir: Path
    output_file: Optional[Path] = None
    extension_filter: Optional[ExtensionFilter] = None
    include_file: Optional[Path] = None
    force: bool = False
    clipboard: bool = False
    verbose: bool = False

    def __post_init__(self):
        if self.extension_filter is None:
            self.extension_filter = ExtensionFilter()


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(console=console, rich_tracebacks=True, show_path=False)
        ],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    description = """
    Concatenate the text files of a project into a single document.

    Each file is wrapped in "// Start <path>" and "// End <path>" markers.
    Files ignored by .gitignore or {tool_ignore} are left out, as are binary
    files (listed with a marker instead of their content).
    """.format(tool_ignore=TOOL_IGNORE_FILENAME)
    epilog = """
    Example: copy a Go project without its markdown files
    $ procat -c -x md ./myproject

    Example: only the files listed in a whitelist, even if git-ignored
    $ procat --include wanted.txt --force ./myproject out.txt
    """

    parser = argparse.ArgumentParser(
        prog="procat",
        description=description,
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # --- Input/Output ---
    parser.add_argument(
        "project_dir",
        type=Path,
        help="Project directory to concatenate.",
        metavar="PROJECT_DIRECTORY",
    )
    parser.add_argument(
        "output_file",
        nargs="?",
        type=Path,
        default=None,
        help="Write the result to this file instead of stdout.",
        metavar="OUTPUT_FILE",
    )
    parser.add_argument(
        "-c",
        "--clipboard",
        action="store_true",
        help="Copy the result to the system clipboard.",
    )

    # --- Filtering ---
    filter_group = parser.add_argument_group("Filtering")
    filter_group.add_argument(
        "-x",
        "--exclude",
        default="",
        help="Comma-separated file extensions to leave out (e.g. 'md,.log').",
        metavar="EXTS",
    )
    filter_group.add_argument(
        "-i",
        "--include",
        type=Path,
        default=None,
        help="Only output files matching the gitignore-style patterns in FILE.",
        metavar="FILE",
    )
    filter_group.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="With --include, also output included files that .gitignore ignores.",
    )

    # --- Behavior Options ---
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging for detailed execution information.",
    )
    return parser


def parse_config(argv: Optional[List[str]] = None) -> RunConfig:
    args = build_parser().parse_args(argv)
    return RunConfig(
        project_dir=args.project_dir,
        output_file=args.output_file,
        extension_filter=ExtensionFilter.parse(args.exclude),
        include_file=args.include,
        force=args.force,
        clipboard=args.clipboard,
        verbose=args.verbose,
    )


def run(config: RunConfig) -> int:
    """Run one concatenation; returns the process exit status."""
    if config.clipboard and config.output_file is not None:
        log.warning("--clipboard flag is set; output file argument will be ignored.")
        config.output_file = None
    if config.force and config.include_file is None:
        log.warning("--force has no effect without --include.")

    try:
        walker = ProjectWalker(
            config.project_dir,
            extension_filter=config.extension_filter,
            output_file=config.output_file,
            include_file=config.include_file,
            force=config.force,
        )
        if walker.resolver.mode is TraversalMode.INCLUDE_ONLY:
            log.debug(f"Include-only mode using {config.include_file}")
        if config.extension_filter:
            log.debug(
                f"Excluding extensions: {', '.join(sorted(config.extension_filter.extensions))}"
            )
        output = walker.render()
        log.debug(
            "Honored .gitignore files: "
            f"{[str(path) for path in walker.resolver.vcs_ignore.loaded_files]}"
        )
        select_sink(config.output_file, config.clipboard).write(output)
    except ProcatError as e:
        log.error(f"Error processing project: {e}")
        return 1

    stats = walker.stats
    if config.clipboard:
        console.print("[bold green]✓[/] Project content copied to clipboard!")
    elif config.output_file is not None:
        console.print(
            f"[bold green]✓[/] Project content written to [blue]{escape(str(config.output_file))}[/]"
        )
    if config.clipboard or config.output_file is not None or config.verbose:
        console.print(
            f"{stats.emitted} files written, {stats.binary} binary files, "
            f"{stats.skipped} entries skipped."
        )
    return 0


def main(argv: Optional[List[str]] = None):
    """Command-line entry point."""
    config = parse_config(argv)
    setup_logging(config.verbose)
    sys.exit(run(config))


if __name__ == "__main__":
    main()
