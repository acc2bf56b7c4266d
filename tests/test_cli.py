import json

from typer.testing import CliRunner

from activitygen.cli.main import app

runner = CliRunner()


def test_dry_run_prints_layout_and_paths(tmp_path):
    src = tmp_path / "input.json"
    src.write_text(json.dumps({
        "write": ["WRITE_ENTITIES"],
        "data": [
            {"monthsAgo": 1, "all": {"clients": [{"count": 4}]}, "numSegments": 3, "skipSegmentIndexes": [1]},
            {"monthsAgo": 0, "all": {"clients": [{"count": 2, "repeated": True}]}},
        ],
    }), encoding="utf-8")

    result = runner.invoke(app, ["write", str(src), "--dry-run", "--now", "2024-03"])

    assert result.exit_code == 0, result.output
    assert "[MONTH] months_ago=1 clients=4" in result.output
    assert "segment 1: skipped (0 clients)" in result.output
    assert "segment 2: populated (2 clients)" in result.output
    stamp = 1706745600  # 2024-02-01T00:00:00Z
    assert f"sys/counters/activity/log/entity/{stamp}/2" in result.output
    assert "[TOTAL] segments written=3" in result.output


def test_dry_run_with_registry_file(tmp_path):
    registry = tmp_path / "registry.json"
    registry.write_text(json.dumps({
        "namespaces": [{"id": "team-a", "path": "team-a/"}],
        "mounts": [{"namespace_id": "team-a", "accessor": "auth_approle_a", "path": "auth/approle/"}],
    }), encoding="utf-8")
    src = tmp_path / "input.json"
    src.write_text(json.dumps({
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"namespace": "team-a", "mount": "auth/approle/login"}]}}],
    }), encoding="utf-8")

    result = runner.invoke(app, ["write", str(src), "--dry-run", "--registry", str(registry)])

    assert result.exit_code == 0, result.output
    assert "[TOTAL] segments written=1" in result.output


def test_invalid_input_exits_with_error(tmp_path):
    src = tmp_path / "input.json"
    src.write_text(json.dumps({"data": [{"monthsAgo": 0, "all": {}}]}), encoding="utf-8")

    result = runner.invoke(app, ["write", str(src), "--dry-run"])

    assert result.exit_code == 2


def test_policy_error_exits_with_error(tmp_path):
    src = tmp_path / "input.json"
    src.write_text(json.dumps({
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"namespace": "unknown"}]}}],
    }), encoding="utf-8")

    result = runner.invoke(app, ["write", str(src), "--dry-run"])

    assert result.exit_code == 1


def test_malformed_registry_file_exits_with_error(tmp_path):
    registry = tmp_path / "registry.json"
    registry.write_text(json.dumps({
        "namespaces": [{"id": "team-a", "path": "team-a/"}],
        "mounts": [{"namespace_id": "team-a", "accessor": "auth_approle_a"}],
    }), encoding="utf-8")
    src = tmp_path / "input.json"
    src.write_text(json.dumps({
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"count": 1}]}}],
    }), encoding="utf-8")

    result = runner.invoke(app, ["write", str(src), "--dry-run", "--registry", str(registry)])

    assert result.exit_code == 2
    assert "Invalid registry file" in result.output
