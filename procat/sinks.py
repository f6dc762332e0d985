"""Destinations for the concatenated output."""

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional

import pyperclip

from .errors import SinkError

log = logging.getLogger(__name__)


def _to_bytes(output: str) -> bytes:
    return output.encode("utf-8", errors="surrogateescape")


class StdoutSink:
    def __init__(self, stream: Optional[BinaryIO] = None):
        self.stream = stream

    def write(self, output: str):
        stream = self.stream if self.stream is not None else sys.stdout.buffer
        stream.write(_to_bytes(output))
        stream.flush()


class FileSink:
    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, output: str):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "wb") as out_f:
                out_f.write(_to_bytes(output))
        except OSError as e:
            raise SinkError(f"output file {self.path}", str(e)) from e
        log.debug(f"Wrote {len(output)} characters to {self.path}")


class ClipboardSink:
    def write(self, output: str):
        # The clipboard only takes valid text; undecodable bytes become U+FFFD
        text = _to_bytes(output).decode("utf-8", errors="replace")
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise SinkError("clipboard", str(e)) from e
        log.debug(f"Copied {len(text)} characters to clipboard")


def select_sink(output_file: Optional[Path] = None, clipboard: bool = False):
    if clipboard:
        return ClipboardSink()
    if output_file is not None:
        return FileSink(output_file)
    return StdoutSink()
