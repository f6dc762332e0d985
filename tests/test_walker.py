"""
Tests for the project walk and the concatenated output
"""

import logging
import os

import pytest

from procat.errors import RuleSourceError, TraversalError
from procat.rules import RuleResolver
from procat.walker import (
    ExtensionFilter,
    OutputRecord,
    ProjectWalker,
    file_extension,
    process_project,
)


class RecordingResolver(RuleResolver):
    """Resolver that remembers every path it was asked about"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.seen = []

    def classify(self, path, is_dir):
        self.seen.append(path.relative_to(self.root).as_posix())
        return super().classify(path, is_dir)


def test_text_and_binary_files(make_tree):
    root = make_tree({"a.txt": "hello", "b.png": b"\x89PNG\x00\x01"})

    output = process_project(root)

    assert output == (
        "// Start a.txt\nhello\n// End a.txt\n\n"
        "// Skipping binary file: b.png\n\n"
    )


def test_gitignored_file_not_emitted(make_tree):
    root = make_tree({".gitignore": "*.log\n", "x.go": "package x", "y.log": "noise"})

    output = process_project(root)

    assert "// Start x.go\npackage x\n// End x.go\n\n" in output
    assert "y.log" not in output


def test_include_only_with_gitignore_conflict(make_tree, caplog):
    root = make_tree(
        {
            ".gitignore": "src/\n",
            "include.txt": "src/*.go\n",
            "src/main.go": "package main",
            "README.md": "readme",
        }
    )

    with caplog.at_level(logging.WARNING):
        output = process_project(root, include_file=root / "include.txt")
    assert output == ""
    assert "src/main.go" in caplog.text

    forced = process_project(root, include_file=root / "include.txt", force=True)
    assert forced == "// Start src/main.go\npackage main\n// End src/main.go\n\n"


def test_extension_exclusion_is_case_insensitive(make_tree):
    root = make_tree({"readme.md": "lower", "README.MD": "upper", "main.go": "go"})

    output = process_project(root, exclude_extensions=[".md"])

    assert "readme.md" not in output
    assert "README.MD" not in output
    assert "// Start main.go" in output


def test_extension_exclusion_never_skips_directories(make_tree):
    root = make_tree({"docs.md/inner.txt": "kept"})

    output = process_project(root, exclude_extensions=["md"])

    assert "// Start docs.md/inner.txt\nkept\n" in output


def test_git_dir_never_emitted(make_tree):
    root = make_tree(
        {
            ".git/config": "[core]",
            ".git/HEAD": "ref: refs/heads/main",
            "include.txt": "*\n",
            "a.txt": "a",
        }
    )

    standard = process_project(root)
    include_only = process_project(root, include_file=root / "include.txt", force=True)

    for output in (standard, include_only):
        assert ".git/" not in output
        assert "// Start a.txt" in output


def test_ignored_directory_is_never_visited(make_tree):
    root = make_tree(
        {
            ".gitignore": "build/\n",
            "build/secret.txt": "secret",
            "build/deep/more.txt": "more",
            "main.go": "go",
        }
    )
    resolver = RecordingResolver(root)

    ProjectWalker(root, resolver=resolver).render()

    assert "build" in resolver.seen
    assert not [path for path in resolver.seen if path.startswith("build/")]


def test_pruned_subtree_gitignore_is_not_read(make_tree):
    """A broken .gitignore inside an ignored directory cannot abort the run"""
    root = make_tree({".gitignore": "vendor/\n", "vendor/.gitignore": b"\xff\xff", "a.txt": "a"})

    output = process_project(root)

    assert "// Start a.txt\na\n// End a.txt\n\n" in output
    assert "vendor/.gitignore" not in output


def test_nested_gitignore_applies_below_its_directory(make_tree):
    root = make_tree(
        {
            "pkg/.gitignore": "*.gen.go\n",
            "pkg/api.gen.go": "generated",
            "pkg/api.go": "handwritten",
            "top.gen.go": "top level",
        }
    )

    output = process_project(root)

    assert "pkg/api.gen.go" not in output
    assert "// Start pkg/api.go" in output
    assert "// Start top.gen.go" in output


def test_lexical_depth_first_order(make_tree):
    root = make_tree({"c.txt": "c", "b/z.txt": "z", "b/a/y.txt": "y", "a.txt": "a"})

    walker = ProjectWalker(root)
    paths = [record.relative_path for record in walker.records()]

    assert paths == ["a.txt", "b/a/y.txt", "b/z.txt", "c.txt"]


def test_output_is_stable_across_runs(make_tree):
    root = make_tree(
        {".gitignore": "*.tmp\n", "a.txt": "a\n", "sub/b.txt": "b", "x.tmp": "t", "bin": b"\x00"}
    )

    assert process_project(root) == process_project(root)


def test_output_file_is_not_included(make_tree):
    root = make_tree({"a.txt": "a", "out.txt": "previous run", "sub/out.txt": "nested"})

    by_name = process_project(root, output_file="out.txt")
    by_path = ProjectWalker(root, output_file=root / "out.txt").render()

    for output in (by_name, by_path):
        assert "previous run" not in output
        assert "// Start a.txt" in output
        assert "// Start sub/out.txt" in output


def test_null_byte_anywhere_marks_binary(make_tree):
    root = make_tree({"late.dat": b"text" * 1000 + b"\x00" + b"more"})

    assert process_project(root) == "// Skipping binary file: late.dat\n\n"


def test_binary_marker_regardless_of_whitelist(make_tree):
    root = make_tree({"include.txt": "*.bin\n", "blob.bin": b"\x00\x01"})

    output = process_project(root, include_file=root / "include.txt")

    assert output == "// Skipping binary file: blob.bin\n\n"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
def test_unreadable_file_is_skipped_with_warning(make_tree, caplog):
    root = make_tree({"a.txt": "a", "z.txt": "z"})
    os.symlink(root / "missing-target", root / "m.txt")

    with caplog.at_level(logging.WARNING):
        walker = ProjectWalker(root)
        output = walker.render()

    assert output == "// Start a.txt\na\n// End a.txt\n\n// Start z.txt\nz\n// End z.txt\n\n"
    assert "m.txt" in caplog.text
    assert walker.stats.unreadable == 1


def test_non_utf8_content_kept_verbatim(make_tree):
    root = make_tree({"latin1.txt": b"caf\xe9"})

    output = process_project(root)

    assert output.encode("utf-8", errors="surrogateescape") == (
        b"// Start latin1.txt\ncaf\xe9\n// End latin1.txt\n\n"
    )


def test_missing_root_is_fatal(tmp_path):
    with pytest.raises(TraversalError):
        process_project(tmp_path / "nope")
    with pytest.raises(TraversalError):
        ProjectWalker(tmp_path / "nope", include_file=tmp_path / "missing.txt")


def test_root_must_be_directory(tmp_path):
    target = tmp_path / "file.txt"
    target.write_text("x")

    with pytest.raises(TraversalError):
        process_project(target)


def test_stats(make_tree):
    root = make_tree(
        {".gitignore": "*.log\n", "a.txt": "a", "b.bin": b"\x00", "c.log": "c", "d.md": "d"}
    )
    walker = ProjectWalker(
        root, resolver=RuleResolver(root), extension_filter=ExtensionFilter(["md"])
    )

    walker.render()

    # .gitignore and a.txt are emitted
    assert walker.stats.emitted == 2
    assert walker.stats.binary == 1
    assert walker.stats.skipped == 2


def test_extension_filter_parsing():
    extension_filter = ExtensionFilter.parse(" md, .LOG,,Txt ")

    assert extension_filter.extensions == frozenset({".md", ".log", ".txt"})
    assert extension_filter.excludes("notes.TXT")
    assert not extension_filter.excludes("notes.txt.bak")
    assert not ExtensionFilter.parse("")
    assert not ExtensionFilter.parse(None).excludes("a.md")


def test_file_extension():
    assert file_extension("main.go") == ".go"
    assert file_extension("archive.tar.gz") == ".gz"
    assert file_extension(".gitignore") == ".gitignore"
    assert file_extension("Makefile") == ""


def test_record_rendering():
    assert OutputRecord("a/b.txt", b"x").render() == "// Start a/b.txt\nx\n// End a/b.txt\n\n"
    assert OutputRecord("c.bin").render() == "// Skipping binary file: c.bin\n\n"
    assert OutputRecord("c.bin").is_binary


def test_broken_nested_gitignore_aborts_walk(make_tree):
    root = make_tree({"a.txt": "a", "pkg/.gitignore": b"\xff\xff", "pkg/b.txt": "b"})

    with pytest.raises(RuleSourceError):
        process_project(root)


def test_reincluded_file_below_ignored_dir_not_emitted(make_tree):
    root = make_tree(
        {
            ".gitignore": "build/\n!build/keep.txt\n",
            "include.txt": "*.txt\n",
            "build/keep.txt": "secret",
        }
    )

    standard = process_project(root)
    include_only = process_project(root, include_file=root / "include.txt")
    forced = process_project(root, include_file=root / "include.txt", force=True)

    assert "build/keep.txt" not in standard
    assert "build/keep.txt" not in include_only
    assert "// Start build/keep.txt\nsecret\n" in forced
