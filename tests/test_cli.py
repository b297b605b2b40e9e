"""
tests/test_cli.py
Tests for the crudgen command-line interface (crudgen.cli).
"""

from __future__ import annotations

import logging
import pathlib
from typing import Any, Dict, Iterator, List

import pytest
import yaml

from crudgen.cli import (
    EXIT_GENERATION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    EXIT_WRITE_ERROR,
    _exit_code_for,
    cli_main,
)
from crudgen.errors import ArtifactWriteError, HookError, SchemaError

from conftest import has_many


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    yield
    logging.disable(logging.NOTSET)
    crudgen_logger = logging.getLogger("crudgen")
    crudgen_logger.handlers.clear()
    crudgen_logger.setLevel(logging.NOTSET)
    crudgen_logger.propagate = True


def _exit_code(argv: List[str]) -> int:
    with pytest.raises(SystemExit) as info:
        cli_main(argv)
    return info.value.code


def _write_yaml(path: pathlib.Path, data: Dict[str, Any]) -> pathlib.Path:
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, sort_keys=False)
    return path


class TestArguments:
    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        assert _exit_code(["--version"]) == 0
        assert "crudgen v" in capsys.readouterr().out

    def test_schema_is_required(self) -> None:
        assert _exit_code([]) == 2

    def test_unknown_framework_rejected_by_parser(self, minimal_schema_yaml_path: pathlib.Path) -> None:
        assert _exit_code(["-s", str(minimal_schema_yaml_path), "--framework", "django"]) == 2

    def test_missing_schema_file(self, tmp_path: pathlib.Path) -> None:
        assert _exit_code(["-s", str(tmp_path / "missing.yaml")]) == EXIT_INPUT_ERROR

    def test_schema_path_is_a_directory(self, tmp_path: pathlib.Path) -> None:
        assert _exit_code(["-s", str(tmp_path)]) == EXIT_INPUT_ERROR


class TestValidateOnly:
    def test_valid_schema(self, schema_yaml_path: pathlib.Path, capsys: pytest.CaptureFixture) -> None:
        assert _exit_code(["-s", str(schema_yaml_path), "--validate-only", "-q"]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Schema Validation Report" in out
        assert "Entities: 8" in out
        assert "All validations passed!" in out

    def test_invalid_association(self, minimal_schema_dict: Dict[str, Any], tmp_path: pathlib.Path,
                                 capsys: pytest.CaptureFixture) -> None:
        minimal_schema_dict["entities"]["post"]["associations"].append(has_many("tags", source="tag"))
        path = _write_yaml(tmp_path / "bad.yaml", minimal_schema_dict)
        assert _exit_code(["-s", str(path), "--validate-only", "-q"]) == EXIT_VALIDATION_ERROR
        assert "INVALID_ASSOCIATION" in capsys.readouterr().out

    def test_unparseable_schema(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("entities: [unclosed\n", encoding="utf-8")
        assert _exit_code(["-s", str(path), "--validate-only", "-q"]) == EXIT_VALIDATION_ERROR


class TestGeneration:
    def test_generates_scaffold(self, schema_yaml_path: pathlib.Path, output_dir: pathlib.Path,
                                capsys: pytest.CaptureFixture) -> None:
        assert _exit_code(["-s", str(schema_yaml_path), "-o", str(output_dir), "-q"]) == EXIT_SUCCESS
        assert (output_dir / "config" / "routes.rb").is_file()
        assert "SUCCESS" in capsys.readouterr().out

    def test_target_overrides(self, schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        argv = [
            "-s", str(schema_yaml_path), "-o", str(output_dir), "-q",
            "--framework", "fastapi", "--backend", "mongodb",
            "--no-controller-inheritance", "--api-prefix", "/v1",
        ]
        assert _exit_code(argv) == EXIT_SUCCESS
        assert (output_dir / "app" / "models" / "post.py").is_file()
        assert not (output_dir / "app" / "routers" / "generated").exists()
        assert '"/v1/users"' in (output_dir / "app" / "routes.py").read_text(encoding="utf-8")

    def test_dry_run(self, schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        assert _exit_code(["-s", str(schema_yaml_path), "-o", str(output_dir), "--dry-run", "-q"]) == 0
        assert not output_dir.exists()

    def test_incompatible_target(self, schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        argv = ["-s", str(schema_yaml_path), "-o", str(output_dir), "-q",
                "--framework", "rails", "--backend", "mongoose"]
        assert _exit_code(argv) == EXIT_VALIDATION_ERROR
        assert not output_dir.exists()

    def test_invalid_association(self, minimal_schema_dict: Dict[str, Any], tmp_path: pathlib.Path,
                                 output_dir: pathlib.Path) -> None:
        minimal_schema_dict["entities"]["comment"]["associations"].append(has_many("likes", optional=True))
        path = _write_yaml(tmp_path / "bad.yaml", minimal_schema_dict)
        assert _exit_code(["-s", str(path), "-o", str(output_dir), "-q"]) == EXIT_VALIDATION_ERROR

    def test_write_error(self, minimal_schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        output_dir.mkdir()
        (output_dir / "app").write_text("in the way", encoding="utf-8")
        argv = ["-s", str(minimal_schema_yaml_path), "-o", str(output_dir), "-q"]
        assert _exit_code(argv) == EXIT_WRITE_ERROR

    def test_verbose_logging(self, minimal_schema_yaml_path: pathlib.Path, output_dir: pathlib.Path,
                             capsys: pytest.CaptureFixture) -> None:
        assert _exit_code(["-s", str(minimal_schema_yaml_path), "-o", str(output_dir), "-v"]) == 0
        assert "Generation complete" in capsys.readouterr().err


class TestExitCodeMapping:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (None, EXIT_SUCCESS),
            (SchemaError("bad"), EXIT_VALIDATION_ERROR),
            (ArtifactWriteError("a.txt", "disk full"), EXIT_WRITE_ERROR),
            (HookError("after_generate", "notify", "boom"), EXIT_GENERATION_ERROR),
        ],
    )
    def test_mapping(self, exc: Any, code: int) -> None:
        assert _exit_code_for(exc) == code
