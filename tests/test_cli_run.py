"""CLI tests for `stash-migrate run`."""

from __future__ import annotations

import json
import os
import sqlite3
from pathlib import Path
from typing import Any

import yaml
from click.testing import CliRunner

from conftest import LegacyLayout, create_legacy_db
from stashmigrate.cli import cli
from stashmigrate.stores import JsonMetadataStore

_FILES = [
    ("loose1", "notes", 1, "text/plain", "alice", 1000, None, 1, None),
    ("album1", "first.png", 1, "image/png", "alice", 2000, 9000, 0, 4),
]


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("STASHMIGRATE__")}
    env["HOME"] = str(tmp_path)
    return env


def _setup(tmp_path: Path, layout: LegacyLayout, **sections: dict[str, Any]) -> Path:
    """Create a legacy database, its files, and a config file pointing at them.

    Args:
        tmp_path: Temporary directory provided by pytest.
        layout: Legacy layout fixture.
        **sections: Extra configuration sections merged into the file.

    Returns:
        Path: Location of the written configuration file.
    """
    database = create_legacy_db(
        tmp_path / "legacy" / "stash.db",
        users=[("alice", "alice@example.com", "hash", 1)],
        files=_FILES,
    )
    layout.add_content("loose1", "text/plain", b"hello")
    layout.add_thumbnail("loose1")
    layout.add_content("album1", "image/png", b"png-data")
    layout.add_thumbnail("album1")

    data: dict[str, Any] = {
        "legacy": {
            "database_path": str(database),
            "content_root": str(layout.content_root),
            "thumbnail_dir": str(layout.thumbnail_dir),
        },
        "metadata_store": {"path": str(tmp_path / "target" / "store.json")},
        "blob_store": {"root": str(tmp_path / "target" / "files")},
        "migration": {"state_dir": str(tmp_path / "state")},
    }
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)

    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_path


def _run(tmp_path: Path, *args: str) -> Any:
    return CliRunner().invoke(cli, ["run", *args], env=_env_with_home(tmp_path))


def test_run_json_reports_outcomes(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)

    result = _run(tmp_path, "--config", str(config_path), "--json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["counts"] == {
        "accounts": 1,
        "processed": 2,
        "skipped": 0,
        "failed": 0,
        "albums": 1,
    }
    assert payload["albums_created"] == [4]
    assert [entry["name"] for entry in payload["files"]] == ["notes.txt", "first.png"]

    document = JsonMetadataStore(tmp_path / "target" / "store.json").document
    assert document.albums[0]["expires_at"] == 9000
    assert document.albums[0]["is_private"] is True
    assert document.files[0]["expires_at"] == "Infinity"
    assert len(list((tmp_path / "target" / "files" / "alice").iterdir())) == 4


def test_run_prints_summary(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)

    result = _run(tmp_path, "--config", str(config_path))

    assert result.exit_code == 0, result.output
    assert "Migration summary for" in result.output
    assert "processed=2" in result.output


def test_run_quiet_suppresses_output(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)

    result = _run(tmp_path, "--config", str(config_path), "--quiet")

    assert result.exit_code == 0
    assert result.stdout == ""


def test_run_missing_database_reports_error(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)

    result = _run(
        tmp_path, "--config", str(config_path), "--legacy-db", str(tmp_path / "nope.db"), "--json"
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "legacy_store_unavailable"
    assert not (tmp_path / "target" / "store.json").exists()


def test_run_aborts_on_first_failed_file(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)
    (layout.thumbnail_dir / "album1.webp").unlink()

    result = _run(tmp_path, "--config", str(config_path), "--json")

    assert result.exit_code == 1
    error = json.loads(result.stdout)["error"]
    assert error["code"] == "adapter_error"
    assert error["details"] == {"operation": "write", "record_id": "album1"}


def test_run_continue_on_error_records_failure(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)
    (layout.thumbnail_dir / "album1.webp").unlink()

    result = _run(tmp_path, "--config", str(config_path), "--json", "--continue-on-error")

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["counts"]["failed"] == 1
    assert payload["files"][1]["outcome"] == "failed"
    assert payload["files"][1]["operation"] == "write"


def test_run_resume_continues_after_failure(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)
    thumbnail = layout.thumbnail_dir / "album1.webp"
    thumbnail.unlink()

    first = _run(tmp_path, "--config", str(config_path), "--json", "--resume")
    assert first.exit_code == 1
    assert (tmp_path / "state" / "state.json").exists()

    thumbnail.write_bytes(b"thumb")
    second = _run(tmp_path, "--config", str(config_path), "--json", "--resume")

    assert second.exit_code == 0, second.output
    payload = json.loads(second.stdout)
    assert payload["resumed_users"] == 1
    assert payload["resumed_files"] == 1
    assert payload["counts"]["processed"] == 1
    document = JsonMetadataStore(tmp_path / "target" / "store.json").document
    assert len(document.accounts) == 1


def test_run_rejects_invalid_configuration(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout, migration={"on_file_error": "ignore"})

    result = _run(tmp_path, "--config", str(config_path), "--json")

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "config_error"


def test_run_rejects_json_with_quiet(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)

    result = _run(tmp_path, "--config", str(config_path), "--json", "--quiet")

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "cli_error"


def test_run_reports_malformed_legacy_row(tmp_path: Path, layout: LegacyLayout) -> None:
    config_path = _setup(tmp_path, layout)
    database = tmp_path / "legacy" / "stash.db"
    connection = sqlite3.connect(database)
    connection.execute('ALTER TABLE "files" RENAME TO "files_strict"')
    # Copying the table drops its NOT NULL constraints.
    connection.execute('CREATE TABLE "files" AS SELECT * FROM "files_strict" WHERE 0')
    connection.execute(
        'INSERT INTO "files" VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)',
        ("broken", "x.png", 1, "image/png", None, 1, None, 1, None),
    )
    connection.commit()
    connection.close()

    result = _run(tmp_path, "--config", str(config_path), "--json")

    assert result.exit_code == 1
    error = json.loads(result.stdout)["error"]
    assert error["code"] == "malformed_legacy_row"
    assert error["details"] == {"table": "files", "row_id": "broken", "fields": ["uploaded_by"]}
