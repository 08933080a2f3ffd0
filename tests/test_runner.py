"""Tests for the concurrent driver and the end-to-end fix run."""

from __future__ import annotations

import logging
import re
import stat
from pathlib import Path
from typing import List

import pytest

from tdfix.config import EngineConfig
from tdfix.errors import UnknownProcedureError
from tdfix.manifest import Procedure, Transformation, TransformationSet
from tdfix.runner import CHANGE_HEADER, Runner, check_transformation, fix, run, split_valid


def _replace(filter: str, old: str, new: str, *pre: str) -> Transformation:
    return Transformation(
        filter=filter,
        preconditions=pre,
        procedures=(Procedure("Replace", (old, new)),),
    )


class Collector:
    def __init__(self) -> None:
        self.lines: List[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)


def test_end_to_end(make_tree) -> None:
    root = make_tree({"a.txt": "foo", "b.txt": "bar"})
    ts = TransformationSet(transformations=(_replace("*.txt", "foo", "baz"),))
    report = Collector()

    summary = fix(ts, EngineConfig(root=root), report=report)

    assert (root / "a.txt").read_text() == "baz"
    assert (root / "b.txt").read_text() == "bar"
    assert summary.changed_count == 1
    assert summary.total == 2
    assert summary.changed == (root / "a.txt",)
    assert report.lines == [CHANGE_HEADER, str(root / "a.txt")]


def test_same_length_change_is_written(make_tree) -> None:
    root = make_tree({"f.txt": "ab"})
    summary = run([root / "f.txt"], [_replace("*", "ab", "cd")], EngineConfig(root=root), report=Collector())
    assert (root / "f.txt").read_text() == "cd"
    assert summary.changed_count == 1


def test_unchanged_file_is_not_rewritten(make_tree) -> None:
    root = make_tree({"f.txt": "nothing to see"})
    path = root / "f.txt"
    before = path.stat().st_ino
    summary = run([path], [_replace("*", "foo", "bar")], EngineConfig(root=root), report=Collector())
    assert summary.changed_count == 0
    assert path.stat().st_ino == before


def test_rewrite_back_to_original_is_not_a_change(make_tree) -> None:
    root = make_tree({"f.txt": "foo"})
    ts = [_replace("*", "foo", "tmp"), _replace("*", "tmp", "foo")]
    summary = run([root / "f.txt"], ts, EngineConfig(root=root), report=Collector())
    assert summary.changed_count == 0


def test_file_mode_preserved(make_tree) -> None:
    root = make_tree({"run.sh": "echo foo"})
    path = root / "run.sh"
    path.chmod(0o750)
    run([path], [_replace("*.sh", "foo", "bar")], EngineConfig(root=root), report=Collector())
    assert path.read_text() == "echo bar"
    assert stat.S_IMODE(path.stat().st_mode) == 0o750


def test_no_temporary_files_left(make_tree) -> None:
    root = make_tree({"a.txt": "foo"})
    run([root / "a.txt"], [_replace("*", "foo", "bar")], EngineConfig(root=root), report=Collector())
    assert sorted(p.name for p in root.iterdir()) == ["a.txt"]


def test_dry_run_writes_nothing(make_tree) -> None:
    root = make_tree({"a.txt": "foo"})
    report = Collector()
    summary = run([root / "a.txt"], [_replace("*", "foo", "bar")], EngineConfig(root=root, dry_run=True), report)
    assert (root / "a.txt").read_text() == "foo"
    assert summary.changed == (root / "a.txt",)
    assert summary.dry_run
    assert report.lines == [CHANGE_HEADER, str(root / "a.txt")]


@pytest.mark.parametrize("workers", [1, 2, 16])
def test_header_printed_once(make_tree, workers: int) -> None:
    files = {f"f{i:02d}.txt": "foo" for i in range(20)}
    root = make_tree(files)
    report = Collector()
    summary = run(
        sorted(root.iterdir()),
        [_replace("*", "foo", "bar")],
        EngineConfig(root=root, max_workers=workers),
        report,
    )
    assert summary.changed_count == 20
    assert report.lines[0] == CHANGE_HEADER
    assert report.lines.count(CHANGE_HEADER) == 1
    assert sorted(report.lines[1:]) == sorted(str(root / name) for name in files)


def test_read_error_does_not_abort(make_tree, caplog: pytest.LogCaptureFixture) -> None:
    root = make_tree({"a.txt": "foo"})
    missing = root / "missing.txt"
    with caplog.at_level(logging.ERROR):
        summary = run([missing, root / "a.txt"], [_replace("*", "foo", "bar")], EngineConfig(root=root), Collector())

    assert summary.changed == (root / "a.txt",)
    assert [p for p, _ in summary.failed] == [missing]
    assert summary.total == 2
    assert not summary.ok
    assert str(missing) in caplog.text


def test_invalid_transformation_is_disabled(make_tree, caplog: pytest.LogCaptureFixture) -> None:
    root = make_tree({"a.txt": "foo"})
    broken = Transformation(filter="*", procedures=(Procedure("Frobnicate"),))
    with caplog.at_level(logging.ERROR):
        summary = run([root / "a.txt"], [broken, _replace("*", "foo", "bar")], EngineConfig(root=root), Collector())

    assert (root / "a.txt").read_text() == "bar"
    assert len(summary.config_errors) == 1
    assert summary.config_errors[0].index == 0
    assert "transformation #0: unknown procedure 'Frobnicate'" in caplog.text


def test_strict_mode_aborts_before_processing(make_tree) -> None:
    root = make_tree({"a.txt": "foo"})
    broken = Transformation(filter="*", procedures=(Procedure("Frobnicate"),))
    runner = Runner([broken, _replace("*", "foo", "bar")], EngineConfig(root=root, strict=True), Collector())
    with pytest.raises(UnknownProcedureError):
        runner.run([root / "a.txt"])
    assert (root / "a.txt").read_text() == "foo"


def test_check_transformation_collects_every_error() -> None:
    t = Transformation(
        filter="*.go||x",
        preconditions=("Bogus", "AlwaysTrue"),
        procedures=(Procedure("Replace", ("a",)), Procedure("Nope")),
    )
    errors = check_transformation(t, 3)
    assert len(errors) == 4
    assert all(e.index == 3 for e in errors)


def test_split_valid_keeps_order() -> None:
    good1 = _replace("*.a", "x", "y")
    good2 = _replace("*.b", "x", "y")
    bad = Transformation(preconditions=("Nope",))
    valid, errors = split_valid([good1, bad, good2])
    assert valid == (good1, good2)
    assert [e.index for e in errors] == [1]


@pytest.mark.parametrize(
    "pattern, replacement",
    [
        ("a", r"\9"),
        (r"(?P<word>a)", r"\g<other>"),
        ("(a)", r"\g<2>"),
        ("a", r"\g"),
        ("a", r"\q"),
    ],
)
def test_check_transformation_rejects_bad_regex_template(pattern: str, replacement: str) -> None:
    t = Transformation(filter="*", procedures=(Procedure("ReplaceRegex", (pattern, replacement)),))
    errors = check_transformation(t, 0)
    assert len(errors) == 1
    assert "invalid replacement" in str(errors[0])


@pytest.mark.parametrize("replacement", [r"\1-\g<word>", r"\g<0>\n", r"\\9", "plain"])
def test_check_transformation_accepts_valid_regex_template(replacement: str) -> None:
    t = Transformation(filter="*", procedures=(Procedure("ReplaceRegex", (r"(?P<word>a)", replacement)),))
    assert check_transformation(t, 0) == []


def test_bad_regex_template_disables_before_any_file(make_tree) -> None:
    root = make_tree({"a.txt": "abc", "b.txt": "abc"})
    broken = Transformation(filter="*", procedures=(Procedure("ReplaceRegex", ("a", r"\9")),))
    summary = run(sorted(root.iterdir()), [broken], EngineConfig(root=root), report=Collector())
    assert summary.failed == ()
    assert len(summary.config_errors) == 1
    assert not summary.ok
    assert (root / "a.txt").read_text() == "abc"


def test_header_printed_on_every_run(make_tree) -> None:
    root = make_tree({"a.txt": "foo"})
    path = root / "a.txt"
    report = Collector()
    runner = Runner([_replace("*", "foo", "bar")], EngineConfig(root=root), report)

    runner.run([path])
    path.write_text("foo")
    runner.run([path])

    assert report.lines == [CHANGE_HEADER, str(path), CHANGE_HEADER, str(path)]


def test_summary_line(make_tree) -> None:
    root = make_tree({"a.txt": "foo", "b.txt": "foo", "c.md": "foo"})
    ts = TransformationSet(transformations=(_replace("*.txt", "foo", "bar"),))
    summary = fix(ts, EngineConfig(root=root), report=Collector())
    assert re.fullmatch(r"root fixed 2/3 files in \S+", summary.summary_line())


def test_fix_skips_description_and_excluded(make_tree) -> None:
    root = make_tree({"a.txt": "foo", "tdf.yml": "foo", "vendor/v.txt": "foo"})
    ts = TransformationSet(exclude="vendor", transformations=(_replace("*", "foo", "bar"),))
    summary = fix(ts, EngineConfig(root=root, description_path=root / "tdf.yml"), report=Collector())

    assert summary.total == 1
    assert (root / "a.txt").read_text() == "bar"
    assert (root / "tdf.yml").read_text() == "foo"
    assert (root / "vendor" / "v.txt").read_text() == "foo"


def test_no_files(make_tree) -> None:
    root = make_tree({})
    summary = fix(TransformationSet(), EngineConfig(root=root), report=Collector())
    assert summary.total == 0
    assert summary.changed_count == 0
    assert summary.ok


def test_engine_config_rejects_zero_workers(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        EngineConfig(root=tmp_path, max_workers=0)
