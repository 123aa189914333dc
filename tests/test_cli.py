"""Tests for CLI."""

import json
from pathlib import Path

from typer.testing import CliRunner

from notelens.cli.main import app

runner = CliRunner()


def invoke(*args: str):
    return runner.invoke(app, [str(a) for a in args])


class TestCLINotes:
    def test_notes_json(self, warehouse_path: Path):
        result = invoke(
            "notes", "--db", warehouse_path, "--status", "open", "-c", "42",
            "--page", "2", "--limit", "10", "-o", "json",
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["pagination"]["total"] == 25
        assert [row["note_id"] for row in payload["data"]] == list(range(15, 5, -1))

    def test_notes_table(self, warehouse_path: Path):
        result = invoke("notes", "--db", warehouse_path, "--text", "bridge")
        assert result.exit_code == 0
        assert "3 total" in result.stdout

    def test_notes_csv(self, warehouse_path: Path):
        result = invoke(
            "notes", "--db", warehouse_path, "--from", "2024-01-10", "--to", "2024-01-12",
            "-o", "csv",
        )
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("note_id,latitude,longitude")
        assert len(lines) == 4

    def test_notes_no_results(self, warehouse_path: Path):
        result = invoke("notes", "--db", warehouse_path, "--text", "nothing like this")
        assert result.exit_code == 0
        assert "No results" in result.stdout

    def test_invalid_filter(self, warehouse_path: Path):
        result = invoke("notes", "--db", warehouse_path, "--limit", "500", "--page", "0")
        assert result.exit_code == 1
        assert "limit" in result.stdout
        assert "page" in result.stdout

    def test_notes_with_sql(self, warehouse_path: Path):
        result = invoke("notes", "--db", warehouse_path, "--status", "closed", "--sql")
        assert result.exit_code == 0
        assert "-- count query" in result.stdout
        assert "params: ['closed']" in result.stdout


class TestCLIShowSQL:
    def test_show_sql(self, warehouse_path: Path):
        result = invoke(
            "show-sql", "--db", warehouse_path, "--text", "100%", "--operator", "or", "-u", "2"
        )
        assert result.exit_code == 0
        assert "-- data query" in result.stdout
        assert "params: [2, '%100\\\\%%', 20, 0]" in result.stdout

    def test_show_sql_invalid_bbox(self, warehouse_path: Path):
        result = invoke("show-sql", "--db", warehouse_path, "--bbox", "1,2,3")
        assert result.exit_code == 1
        assert "bbox" in result.stdout


class TestCLINote:
    def test_note_json_with_comments(self, warehouse_path: Path):
        result = invoke("note", "3", "--db", warehouse_path, "--comments", "-o", "json")
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["comments_count"] == 3
        assert [c["comment_id"] for c in payload["comments"]] == [3, 37, 38]

    def test_note_not_found(self, warehouse_path: Path):
        result = invoke("note", "999", "--db", warehouse_path)
        assert result.exit_code == 1
        assert "Note not found" in result.stdout


class TestCLIRankings:
    def test_user_rankings(self, warehouse_path: Path):
        result = invoke(
            "rankings", "users", "--metric", "resolution_rate", "--db", warehouse_path, "-o", "json"
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [entry["label"] for entry in payload["rankings"]] == ["bob", "alice", "carol_100%"]
        assert payload["rankings"][2]["value"] is None

    def test_country_rankings_table(self, warehouse_path: Path):
        result = invoke(
            "rankings", "countries", "-m", "notes_health_score", "--db", warehouse_path
        )
        assert result.exit_code == 0
        assert "Japan" in result.stdout

    def test_invalid_metric(self, warehouse_path: Path):
        result = invoke("rankings", "users", "--metric", "drop table", "--db", warehouse_path)
        assert result.exit_code == 1
        assert "Invalid metric" in result.stdout


class TestCLIEntities:
    def test_trends(self, warehouse_path: Path):
        result = invoke("trends", "users", "--id", "1", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [point["year"] for point in payload["trends"]] == ["2023", "2024"]

    def test_trends_missing_id(self, warehouse_path: Path):
        result = invoke("trends", "countries", "--db", warehouse_path)
        assert result.exit_code == 1
        assert "country_id" in result.stdout

    def test_hashtags(self, warehouse_path: Path):
        result = invoke("hashtags", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"][0] == {"hashtag": "#survey", "count": 3}

    def test_hashtag_details(self, warehouse_path: Path):
        result = invoke("hashtag", "#survey", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["users_count"] == 2

    def test_profile(self, warehouse_path: Path):
        result = invoke("profile", "countries", "42", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["country_name_en"] == "Spain"

    def test_global_profile(self, warehouse_path: Path):
        result = invoke("profile", "global", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["history_whole_open"] == 36

    def test_profile_needs_id(self, warehouse_path: Path):
        result = invoke("profile", "users", "--db", warehouse_path)
        assert result.exit_code == 1

    def test_search(self, warehouse_path: Path):
        result = invoke("search", "users", "o", "--db", warehouse_path, "-o", "json")
        assert result.exit_code == 0
        assert [row["username"] for row in json.loads(result.stdout)] == ["bob", "carol_100%"]

    def test_compare(self, warehouse_path: Path):
        result = invoke("compare", "countries", "7,42", "--db", warehouse_path, "-o", "csv")
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("country_id,country_name")
        assert len(lines) == 3

    def test_compare_too_many(self, warehouse_path: Path):
        ids = ",".join(str(i) for i in range(1, 12))
        result = invoke("compare", "users", ids, "--db", warehouse_path)
        assert result.exit_code == 1
        assert "Maximum 10" in result.stdout


class TestCLIValidate:
    def test_validate_success(self, warehouse_path: Path):
        result = invoke("validate", "--db", warehouse_path)
        assert result.exit_code == 0
        assert "Warehouse looks good!" in result.stdout

    def test_validate_empty_database(self, tmp_path: Path):
        result = invoke("validate", "--db", tmp_path / "empty.duckdb")
        assert result.exit_code == 1
        assert "Missing table main.notes" in result.stdout


class TestCLIInitSample:
    def test_init_sample(self, tmp_path: Path):
        db_path = tmp_path / "sample" / "notes.duckdb"
        result = invoke("init-sample", db_path, "--notes", "40", "--seed", "7")
        assert result.exit_code == 0
        assert "40 notes" in result.stdout

        result = invoke("validate", "--db", db_path)
        assert result.exit_code == 0

        result = invoke("notes", "--db", db_path, "--limit", "100", "-o", "json")
        assert json.loads(result.stdout)["pagination"]["total"] == 40

    def test_init_sample_refuses_overwrite(self, tmp_path: Path):
        db_path = tmp_path / "notes.duckdb"
        db_path.write_bytes(b"")
        result = invoke("init-sample", db_path)
        assert result.exit_code == 1
        assert "--force" in result.stdout

    def test_init_sample_force(self, tmp_path: Path):
        db_path = tmp_path / "notes.duckdb"
        db_path.write_bytes(b"")
        result = invoke("init-sample", db_path, "--notes", "10", "--force")
        assert result.exit_code == 0


class TestCLIHelp:
    def test_main_help(self):
        result = invoke("--help")
        assert result.exit_code == 0
        assert "notes" in result.stdout
        assert "rankings" in result.stdout

    def test_notes_help(self):
        result = invoke("notes", "--help")
        assert result.exit_code == 0
        assert "--bbox" in result.stdout
