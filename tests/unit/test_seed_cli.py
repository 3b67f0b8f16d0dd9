"""Unit tests for the seed CLI driver."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

import scripts.seed as seed
from core.errors import ConfigurationError
from core.seeder import FileFailure
from scripts.seed import ParsedArgs, SeedingStatistics, format_errors, format_statistics, parse_args
from tests.fakes import FakeEmbedder, FakeScriptStore

ENV = {
    "DATABASE_URL": "postgresql://indexer@localhost/scripts",
    "DATABASE_AUTH_TOKEN": "db-token",
    "OPENAI_API_KEY": "sk-test",
    "EMBEDDING_DIMENSIONS": "8",
}


class TestParseArgs:
    def test_directory_and_force(self) -> None:
        assert parse_args(["--directory=./scripts/audio", "--force"]) == ParsedArgs(
            directory="./scripts/audio", force=True, show_help=False
        )

    def test_defaults(self) -> None:
        assert parse_args([]) == ParsedArgs(directory="./scripts", force=False, show_help=False)

    @pytest.mark.parametrize("argv", [["--help"], ["-h"], ["--force", "--help"], ["--bogus", "-h"]])
    def test_help_wins(self, argv: list[str]) -> None:
        assert parse_args(argv).show_help is True

    def test_unknown_flag(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_args(["--bogus"])


class TestFormatStatistics:
    def test_reference_output(self) -> None:
        text = format_statistics(
            SeedingStatistics(
                processed=42,
                inserted=42,
                updated=0,
                failed=0,
                total_tokens=4250,
                categories={"audio": 15, "system": 18, "dev": 9},
                duration_ms=45200,
            )
        )

        for expected in ["42", "audio: 15", "system: 18", "dev: 9", "4,250", "45.2s"]:
            assert expected in text

    def test_errors_truncated(self) -> None:
        errors = [FileFailure(f"f{i}.ts", "AnalysisError", "bad") for i in range(8)]
        text = format_errors(errors)
        assert text.count("  - ") == 5
        assert "... and 3 more" in text
        assert "AnalysisError f0.ts: bad" in text

    def test_no_errors(self) -> None:
        assert format_errors([]) == ""


class ExplodingDependency:
    """Fails the test if the CLI touches the network."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        raise AssertionError("network collaborator must not be created")

    @classmethod
    def from_settings(cls, settings: Any) -> None:
        raise AssertionError("network collaborator must not be created")


class FakeConnection:
    instances: list["FakeConnection"] = []

    def __init__(self) -> None:
        self.connected = False
        self.closed = False
        FakeConnection.instances.append(self)

    @classmethod
    def from_settings(cls, settings: Any) -> "FakeConnection":
        return cls()

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def no_network(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(seed, "DatabaseConnection", ExplodingDependency)
    monkeypatch.setattr(seed, "EmbeddingClient", ExplodingDependency)


@pytest.fixture
def fake_backend(monkeypatch: pytest.MonkeyPatch) -> FakeScriptStore:
    store = FakeScriptStore()
    FakeConnection.instances = []
    monkeypatch.setattr(seed, "DatabaseConnection", FakeConnection)
    monkeypatch.setattr(seed, "EmbeddingClient", type(
        "FakeEmbeddingClient", (), {"from_settings": staticmethod(lambda settings: FakeEmbedder())}
    ))
    monkeypatch.setattr(seed, "ScriptStore", lambda db: store)
    return store


class TestRun:
    def test_help_exits_zero_without_io(
        self, no_network: None, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert seed.run(ParsedArgs(show_help=True), environ={}) == 0
        assert "--directory=<path>" in capsys.readouterr().out

    def test_invalid_directory_fails_before_network(
        self, no_network: None, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = seed.run(ParsedArgs(directory=str(tmp_path / "missing")), environ=dict(ENV))
        assert code == 1
        assert "DiscoveryError" in capsys.readouterr().out

    @pytest.mark.parametrize("directory", ["", "  "])
    def test_empty_directory_value_rejected(
        self, no_network: None, directory: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert parse_args([f"--directory={directory}"]).directory == directory
        code = seed.run(ParsedArgs(directory=directory), environ=dict(ENV))
        assert code == 1
        assert "DiscoveryError: Invalid directory: path is empty" in capsys.readouterr().out

    def test_missing_config_fails_before_network(
        self, no_network: None, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = seed.run(ParsedArgs(directory=str(tmp_path)), environ={})
        assert code == 1
        assert "ConfigurationError" in capsys.readouterr().out

    def test_empty_directory_exits_zero(
        self, fake_backend: FakeScriptStore, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert seed.run(ParsedArgs(directory=str(tmp_path)), environ=dict(ENV)) == 0
        assert "No scripts to seed." in capsys.readouterr().out
        assert FakeConnection.instances[0].closed

    def test_full_run_prints_statistics(
        self, fake_backend: FakeScriptStore, script_tree: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = seed.run(ParsedArgs(directory=str(script_tree)), environ=dict(ENV))

        out = capsys.readouterr().out
        assert code == 0
        assert "[3/3] Seeding scripts..." in out
        assert "Processed: 3" in out
        assert "audio: 1" in out
        assert len(fake_backend.rows) == 3
        assert FakeConnection.instances[0].closed

    def test_connection_closed_on_schema_failure(
        self, fake_backend: FakeScriptStore, script_tree: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        fake_backend.schema_dimensions = 1536

        code = seed.run(ParsedArgs(directory=str(script_tree)), environ=dict(ENV))

        assert code == 1
        assert "StoreError" in capsys.readouterr().out
        assert FakeConnection.instances[0].closed


class TestMain:
    def test_unknown_flag_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            seed.main(["--bogus"])
        assert exc_info.value.code == 1

    def test_help_exits_zero(self, no_network: None) -> None:
        with pytest.raises(SystemExit) as exc_info:
            seed.main(["--help"])
        assert exc_info.value.code == 0
