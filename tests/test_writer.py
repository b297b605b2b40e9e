"""
tests/test_writer.py
Unit tests for crudgen.writer (idempotent, atomic artifact writer).
"""

from __future__ import annotations

import pathlib

import pytest

from crudgen.errors import ArtifactWriteError
from crudgen.models import ArtifactFile, ArtifactKind
from crudgen.utils import sha256_hex
from crudgen.writer import IdempotentWriter, WriteOutcome


def _generated(path: str, content: str) -> ArtifactFile:
    return ArtifactFile(path=path, kind=ArtifactKind.GENERATED, content=content)


def _derived(path: str, content: str) -> ArtifactFile:
    return ArtifactFile(path=path, kind=ArtifactKind.DERIVED, content=content)


class TestGeneratedArtifacts:
    def test_creates_parent_directories(self, tmp_path: pathlib.Path) -> None:
        writer = IdempotentWriter(tmp_path)
        record = writer.write(_generated("app/models/post.rb", "class Post\nend\n"))
        target = tmp_path / "app" / "models" / "post.rb"
        assert target.read_text(encoding="utf-8") == "class Post\nend\n"
        assert record.outcome == WriteOutcome.WRITTEN
        assert record.written
        assert record.line_count == 2
        assert record.sha256 == sha256_hex("class Post\nend\n")
        assert record.absolute_path == str(target.resolve())

    def test_overwrites_every_time(self, tmp_path: pathlib.Path) -> None:
        IdempotentWriter(tmp_path).write(_generated("config/routes.rb", "old"))
        record = IdempotentWriter(tmp_path).write(_generated("config/routes.rb", "new"))
        assert (tmp_path / "config" / "routes.rb").read_text(encoding="utf-8") == "new"
        assert record.outcome == WriteOutcome.WRITTEN

    def test_leaves_no_temp_files(self, tmp_path: pathlib.Path) -> None:
        IdempotentWriter(tmp_path).write(_generated("a/b.txt", "x"))
        assert [p.name for p in (tmp_path / "a").iterdir()] == ["b.txt"]


class TestDerivedArtifacts:
    def test_written_when_missing(self, tmp_path: pathlib.Path) -> None:
        record = IdempotentWriter(tmp_path).write(_derived("app/controllers/posts_controller.rb", "v1"))
        assert record.outcome == WriteOutcome.WRITTEN

    def test_existing_file_is_never_touched(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "app" / "controllers" / "posts_controller.rb"
        target.parent.mkdir(parents=True)
        target.write_text("# my edits\n", encoding="utf-8")
        mtime = target.stat().st_mtime_ns

        record = IdempotentWriter(tmp_path).write(
            _derived("app/controllers/posts_controller.rb", "regenerated")
        )
        assert record.outcome == WriteOutcome.SKIPPED
        assert not record.written
        assert target.read_text(encoding="utf-8") == "# my edits\n"
        assert target.stat().st_mtime_ns == mtime

    def test_skip_record_describes_kept_file(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "posts_controller.rb"
        target.write_text("# my edits\n# more\n", encoding="utf-8")

        record = IdempotentWriter(tmp_path).write(_derived("posts_controller.rb", "regenerated"))
        assert record.outcome == WriteOutcome.SKIPPED
        assert record.size_bytes == len("# my edits\n# more\n")
        assert record.line_count == 2
        assert record.sha256 == sha256_hex("# my edits\n# more\n")


class TestDryRun:
    def test_nothing_touches_the_disk(self, tmp_path: pathlib.Path) -> None:
        root = tmp_path / "out"
        writer = IdempotentWriter(root, dry_run=True)
        records = writer.write_all([_generated("a.txt", "a"), _derived("b.txt", "b")])
        assert [r.outcome for r in records] == [WriteOutcome.WRITTEN, WriteOutcome.WRITTEN]
        assert not root.exists()

    def test_still_reports_skips(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "b.txt").write_text("mine", encoding="utf-8")
        record = IdempotentWriter(tmp_path, dry_run=True).write(_derived("b.txt", "theirs"))
        assert record.outcome == WriteOutcome.SKIPPED


class TestRecords:
    def test_records_in_write_order(self, tmp_path: pathlib.Path) -> None:
        writer = IdempotentWriter(tmp_path)
        writer.write_all([_generated("one.txt", "1"), _generated("two.txt", "2")])
        assert [r.relative_path for r in writer.records] == ["one.txt", "two.txt"]
        assert writer.find("two.txt").size_bytes == 1
        assert writer.find("three.txt") is None

    def test_records_is_a_copy(self, tmp_path: pathlib.Path) -> None:
        writer = IdempotentWriter(tmp_path)
        writer.write(_generated("one.txt", "1"))
        writer.records.clear()
        assert len(writer.records) == 1


class TestFailures:
    def test_file_in_place_of_directory(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "app").write_text("not a directory", encoding="utf-8")
        writer = IdempotentWriter(tmp_path)
        with pytest.raises(ArtifactWriteError) as info:
            writer.write(_generated("app/models/post.rb", "x"))
        assert info.value.path == "app/models/post.rb"
        assert writer.records == []

    def test_batch_stops_at_first_failure(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "blocked").write_text("", encoding="utf-8")
        writer = IdempotentWriter(tmp_path)
        with pytest.raises(ArtifactWriteError):
            writer.write_all([
                _generated("ok.txt", "ok"),
                _generated("blocked/x.txt", "x"),
                _generated("never.txt", "n"),
            ])
        assert (tmp_path / "ok.txt").exists()
        assert not (tmp_path / "never.txt").exists()
        assert [r.relative_path for r in writer.records] == ["ok.txt"]
