"""
Depth-first walk of a project tree that turns files into output records.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from .errors import TraversalError
from .rules import Decision, RuleResolver

log = logging.getLogger(__name__)


def file_extension(filename: str) -> str:
    """Suffix from the last dot of ``filename``, dot included ("" if none)."""
    index = filename.rfind(".")
    return filename[index:] if index >= 0 else ""


def normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = "." + extension
    return extension


def check_project_root(root: Path):
    if not root.exists():
        raise TraversalError(root, "no such file or directory")
    if not root.is_dir():
        raise TraversalError(root, "not a directory")


class ExtensionFilter:
    """Case-insensitive file extension denial list."""

    def __init__(self, extensions: Iterable[str] = ()):
        self.extensions = frozenset(
            ext for ext in (normalize_extension(e) for e in extensions) if ext
        )

    @classmethod
    def parse(cls, value: Optional[str]) -> "ExtensionFilter":
        """Build a filter from a comma-separated list such as ``"md,.LOG"``."""
        if not value:
            return cls()
        return cls(value.split(","))

    def excludes(self, filename: str) -> bool:
        if not self.extensions:
            return False
        return file_extension(filename).lower() in self.extensions

    def __bool__(self) -> bool:
        return bool(self.extensions)


@dataclass(frozen=True)
class OutputRecord:
    """One emitted file: its content, or a marker that it was binary."""

    relative_path: str
    content: Optional[bytes] = None

    @property
    def is_binary(self) -> bool:
        return self.content is None

    def render(self) -> str:
        if self.is_binary:
            return f"// Skipping binary file: {self.relative_path}\n\n"
        # surrogateescape keeps non UTF-8 bytes intact for byte-exact sinks
        body = self.content.decode("utf-8", errors="surrogateescape")
        return (
            f"// Start {self.relative_path}\n"
            f"{body}\n"
            f"// End {self.relative_path}\n\n"
        )


@dataclass
class WalkStats:
    emitted: int = 0
    binary: int = 0
    skipped: int = 0
    unreadable: int = 0


class ProjectWalker:
    """
    Walk a project root in lexical depth-first order.

    Every entry below the root is classified by the resolver; pruned
    directories are never listed, so nothing beneath them is evaluated.

    Args:
        root: Project root directory
        resolver: Rule resolver for the root; built from ``include_file``
            and ``force`` if omitted
        extension_filter: Extensions to drop from emitted files
        output_file: Output path of the run, never included in the output
        include_file: Whitelist file for a resolver built here
        force: Let the whitelist override VCS-ignore matches
    """

    def __init__(
        self,
        root: Union[str, Path],
        resolver: Optional[RuleResolver] = None,
        extension_filter: Optional[ExtensionFilter] = None,
        output_file: Optional[Union[str, Path]] = None,
        include_file: Optional[Union[str, Path]] = None,
        force: bool = False,
    ):
        check_project_root(Path(root))
        self.root = Path(root).resolve()
        self.resolver = resolver or RuleResolver(
            self.root, include_file=include_file, force=force
        )
        self.extension_filter = extension_filter or ExtensionFilter()
        self.stats = WalkStats()

        self._output_name: Optional[str] = None
        self._output_path: Optional[Path] = None
        if output_file:
            self._output_name = Path(output_file).as_posix()
            self._output_path = Path(output_file).resolve()

    def _is_output_file(self, path: Path, relative_path: str) -> bool:
        return relative_path == self._output_name or path == self._output_path

    def records(self) -> Iterator[OutputRecord]:
        """Yield output records in visitation order."""
        self.stats = WalkStats()
        yield from self._walk_directory(self.root)

    def _list_directory(self, directory: Path) -> List[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise TraversalError(directory, e.strerror or str(e)) from e

    def _walk_directory(self, directory: Path) -> Iterator[OutputRecord]:
        for entry in self._list_directory(directory):
            path = directory / entry.name
            relative_path = path.relative_to(self.root).as_posix()
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if self._output_name is not None and self._is_output_file(
                path, relative_path
            ):
                log.debug(f"Skipping output file: {relative_path}")
                self.stats.skipped += 1
                continue

            decision = self.resolver.classify(path, is_dir)
            if decision is Decision.RECURSE:
                yield from self._walk_directory(path)
            elif decision in (Decision.SKIP_SUBTREE, Decision.SKIP_FILE):
                self.stats.skipped += 1
            elif self.extension_filter.excludes(entry.name):
                log.debug(f"Excluding by extension: {relative_path}")
                self.stats.skipped += 1
            else:
                record = self._read_file(path, relative_path)
                if record is not None:
                    yield record

    def _read_file(self, path: Path, relative_path: str) -> Optional[OutputRecord]:
        try:
            with open(path, "rb") as in_f:
                content = in_f.read()
        except OSError as e:
            log.warning(f"Skipping unreadable file {relative_path}: {e}")
            self.stats.unreadable += 1
            self.stats.skipped += 1
            return None

        if b"\0" in content:
            log.debug(f"Skipping binary file: {relative_path}")
            self.stats.binary += 1
            return OutputRecord(relative_path)

        log.debug(f"Including file: {relative_path}")
        self.stats.emitted += 1
        return OutputRecord(relative_path, content)

    def render(self) -> str:
        """Walk the whole tree and return the concatenated output."""
        return "".join(record.render() for record in self.records())


def process_project(
    project_dir: Union[str, Path],
    output_file: Optional[Union[str, Path]] = None,
    exclude_extensions: Optional[Iterable[str]] = None,
    include_file: Optional[Union[str, Path]] = None,
    force: bool = False,
) -> str:
    """
    Concatenate the files of ``project_dir`` into one string.

    Raises ``TraversalError`` or ``RuleSourceError`` on fatal problems, in
    which case no output is produced.
    """
    walker = ProjectWalker(
        project_dir,
        extension_filter=ExtensionFilter(exclude_extensions or ()),
        output_file=output_file,
        include_file=include_file,
        force=force,
    )
    return walker.render()
