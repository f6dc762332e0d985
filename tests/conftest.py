from pathlib import Path
from typing import Dict, Union

import pytest


def build_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    """Create ``files`` (relative path -> content) below ``root``."""
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path):
    """Build a project tree under a fresh directory and return its root."""

    def _make(files: Dict[str, Union[str, bytes]], name: str = "project") -> Path:
        root = tmp_path / name
        root.mkdir(exist_ok=True)
        return build_tree(root, files)

    return _make
