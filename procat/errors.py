from pathlib import Path


class ProcatError(Exception):
    """Base class for errors that abort a run."""


class RuleSourceError(ProcatError):
    """An ignore or whitelist file could not be loaded."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"{path}: {reason}")


class TraversalError(ProcatError):
    """The project tree could not be walked."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"error walking path '{path}': {reason}")


class SinkError(ProcatError):
    def __init__(self, target: str, reason: str):
        super().__init__(f"failed to write to {target}: {reason}")
