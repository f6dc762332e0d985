"""Concatenate the text files of a project tree into a single annotated blob."""

from .errors import ProcatError, RuleSourceError, SinkError, TraversalError
from .rules import Decision, RuleResolver, TraversalMode
from .walker import ExtensionFilter, ProjectWalker, process_project

__version__ = "0.1.0"

__all__ = [
    "Decision",
    "ExtensionFilter",
    "ProcatError",
    "ProjectWalker",
    "RuleResolver",
    "RuleSourceError",
    "SinkError",
    "TraversalError",
    "TraversalMode",
    "process_project",
]
