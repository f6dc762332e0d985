"""
Rule sources and the per-entry classification decision.

Three gitignore-style sources can apply to a run:

* VCS-ignore: ``.gitignore`` at the project root plus any nested
  ``.gitignore`` files, each relative to its own directory.
* Tool-ignore: ``.procatignore`` at the project root (standard mode only).
* Include-whitelist: a caller supplied file, relative to its own directory.
  When given, the run switches to include-only mode and the tool-ignore file
  is never loaded.

Precedence is fixed and expressed as an ordered chain of rules, see
:meth:`RuleResolver.classify`.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Union

import pathspec

from .errors import RuleSourceError

log = logging.getLogger(__name__)

VCS_DIR_NAME = ".git"
GITIGNORE_FILENAME = ".gitignore"
TOOL_IGNORE_FILENAME = ".procatignore"


class Decision(Enum):
    RECURSE = "recurse"
    SKIP_SUBTREE = "skip-subtree"
    SKIP_FILE = "skip-file"
    EMIT = "emit"


class TraversalMode(Enum):
    STANDARD = "standard"
    INCLUDE_ONLY = "include-only"


def load_pattern_file(path: Path) -> Optional[pathspec.GitIgnoreSpec]:
    """
    Read and compile a gitignore-style pattern file.

    Returns None when the file does not exist. Any other read or parse
    problem propagates as ``OSError`` or ``ValueError``.
    """
    if not path.exists():
        log.debug(f"No pattern file at {path}")
        return None
    with open(path, "r", encoding="utf-8") as pattern_file:
        lines = pattern_file.read().splitlines()
    return pathspec.GitIgnoreSpec.from_lines(lines)


class PatternSource:
    """A compiled pattern file evaluated against paths relative to ``base``."""

    def __init__(self, name: str, base: Path, spec: pathspec.GitIgnoreSpec):
        self.name = name
        self.base = base
        self.spec = spec

    @classmethod
    def from_file(cls, name: str, path: Path) -> Optional["PatternSource"]:
        spec = load_pattern_file(path)
        if spec is None:
            return None
        log.debug(f"Loaded {len(spec.patterns)} {name} patterns from {path}")
        return cls(name, path.parent, spec)

    def check(self, path: Path, is_dir: bool) -> Optional[bool]:
        """
        Tri-state match for an absolute path.

        True if the last matching pattern ignores the path, False if it is a
        negation, None if no pattern matches or the path lies outside ``base``.
        """
        try:
            relative = path.relative_to(self.base)
        except ValueError:
            return None
        candidate = relative.as_posix()
        if is_dir:
            # Directory-only patterns such as "build/" need the trailing slash
            candidate += "/"
        return self.spec.check_file(candidate).include

    def matches(self, path: Path, is_dir: bool) -> bool:
        return self.check(path, is_dir) is True


class VcsIgnoreRules:
    """
    All ``.gitignore`` files of a project tree.

    The root file is loaded eagerly. Nested files are loaded the first time a
    path below their directory is checked; the deepest file with an opinion
    on a path wins.
    """

    def __init__(self, root: Path):
        self.root = root
        self._sources: Dict[Path, Optional[PatternSource]] = {}
        self._load(root)

    def _load(self, directory: Path) -> Optional[PatternSource]:
        if directory in self._sources:
            return self._sources[directory]
        gitignore_path = directory / GITIGNORE_FILENAME
        try:
            source = PatternSource.from_file("vcs-ignore", gitignore_path)
        except (OSError, ValueError) as e:
            raise RuleSourceError(gitignore_path, f"error reading .gitignore: {e}") from e
        self._sources[directory] = source
        return source

    @property
    def loaded_files(self) -> List[Path]:
        return sorted(
            directory / GITIGNORE_FILENAME
            for directory, source in self._sources.items()
            if source is not None
        )

    def _check_entry(self, path: Path, is_dir: bool, directories: List[Path]) -> bool:
        result = None
        for directory in directories:
            source = self._load(directory)
            if source is None:
                continue
            verdict = source.check(path, is_dir)
            if verdict is not None:
                result = verdict
        return result is True

    def is_ignored(self, path: Path, is_dir: bool) -> bool:
        """
        Whether git would ignore ``path``.

        A path below an ignored directory stays ignored whatever its own
        patterns say, since git cannot re-include it.
        """
        relative = path.relative_to(self.root)
        directories = [self.root]
        for part in relative.parts[:-1]:
            parent = directories[-1] / part
            if self._check_entry(parent, True, directories):
                return True
            directories.append(parent)
        return self._check_entry(path, is_dir, directories)


class Rule(NamedTuple):
    name: str
    apply: Callable[[Path, bool], Optional[Decision]]


def _skip(is_dir: bool) -> Decision:
    return Decision.SKIP_SUBTREE if is_dir else Decision.SKIP_FILE


class RuleResolver:
    """
    Holds the rule sources of one run and classifies every visited entry.

    Args:
        root: Project root directory
        include_file: Optional whitelist file; switches to include-only mode
        force: Let the whitelist override VCS-ignore matches
    """

    def __init__(
        self,
        root: Union[str, Path],
        include_file: Optional[Union[str, Path]] = None,
        force: bool = False,
    ):
        self.root = Path(root).resolve()
        self.force = force
        self.vcs_ignore = VcsIgnoreRules(self.root)
        self.tool_ignore: Optional[PatternSource] = None
        self.whitelist: Optional[PatternSource] = None

        if include_file is not None:
            self.mode = TraversalMode.INCLUDE_ONLY
            self.whitelist = self._load_whitelist(Path(include_file))
            self.chain = [
                Rule("vcs-metadata", self._vcs_metadata_rule),
                Rule("include-whitelist", self._whitelist_rule),
            ]
        else:
            self.mode = TraversalMode.STANDARD
            self.tool_ignore = self._load_tool_ignore()
            self.chain = [
                Rule("vcs-metadata", self._vcs_metadata_rule),
                Rule("vcs-ignore", self._vcs_ignore_rule),
                Rule("tool-ignore", self._tool_ignore_rule),
            ]
        log.debug(
            f"Resolver for {self.root}: mode={self.mode.value}, "
            f"rules={[rule.name for rule in self.chain]}"
        )

    @staticmethod
    def _load_whitelist(include_file: Path) -> PatternSource:
        path = include_file.resolve()
        if not path.is_file():
            raise RuleSourceError(path, "include file does not exist or is not a file")
        try:
            source = PatternSource.from_file("include-whitelist", path)
        except (OSError, ValueError) as e:
            raise RuleSourceError(path, f"error reading include file: {e}") from e
        return source

    def _load_tool_ignore(self) -> Optional[PatternSource]:
        path = self.root / TOOL_IGNORE_FILENAME
        try:
            return PatternSource.from_file("tool-ignore", path)
        except (OSError, ValueError) as e:
            log.warning(f"Ignoring unusable {TOOL_IGNORE_FILENAME} {path}: {e}")
            return None

    def _vcs_metadata_rule(self, path: Path, is_dir: bool) -> Optional[Decision]:
        if is_dir and path.name == VCS_DIR_NAME:
            return Decision.SKIP_SUBTREE
        return None

    def _vcs_ignore_rule(self, path: Path, is_dir: bool) -> Optional[Decision]:
        if self.vcs_ignore.is_ignored(path, is_dir):
            return _skip(is_dir)
        return None

    def _tool_ignore_rule(self, path: Path, is_dir: bool) -> Optional[Decision]:
        if self.tool_ignore is not None and self.tool_ignore.matches(path, is_dir):
            return _skip(is_dir)
        return None

    def _whitelist_rule(self, path: Path, is_dir: bool) -> Optional[Decision]:
        # A whitelisted file may sit below a directory no pattern names
        if is_dir:
            return Decision.RECURSE
        if not self.whitelist.matches(path, is_dir):
            return Decision.SKIP_FILE
        if not self.force and self.vcs_ignore.is_ignored(path, is_dir):
            log.warning(
                f"Skipping {path.relative_to(self.root).as_posix()}: "
                "included but ignored by .gitignore (use --force to override)"
            )
            return Decision.SKIP_FILE
        return Decision.EMIT

    def classify(self, path: Union[str, Path], is_dir: bool) -> Decision:
        """
        Decide what to do with one entry below the project root.

        ``path`` may be absolute or relative to the root. The first rule in
        the chain with an opinion decides; an entry no rule claims is
        descended into (directory) or emitted (file).
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        for rule in self.chain:
            decision = rule.apply(path, is_dir)
            if decision is not None:
                log.debug(f"{rule.name}: {decision.value} {path}")
                return decision
        return Decision.RECURSE if is_dir else Decision.EMIT
