import json
import runpy
from pathlib import Path

from activitygen.generation.schema import parse_input, verify_input

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "make_mock_input.py"


def _run(monkeypatch, tmp_path, *args):
    out = tmp_path / "mock_input.json"
    monkeypatch.setattr("sys.argv", [str(SCRIPT), "--out", str(out), *args])
    runpy.run_path(str(SCRIPT), run_name="__main__")
    return json.loads(out.read_text(encoding="utf-8"))


def test_generated_input_is_accepted(monkeypatch, tmp_path):
    payload = _run(monkeypatch, tmp_path, "--months", "2", "--clients", "10")

    verify_input(parse_input(payload))
    assert [m["monthsAgo"] for m in payload["data"]] == [2, 1, 0]


def test_only_non_entity_clients_emits_no_zero_counts(monkeypatch, tmp_path):
    payload = _run(monkeypatch, tmp_path, "--months", "1", "--clients", "5", "--non-entity-ratio", "1.0")

    for month in payload["data"]:
        assert month["all"]["clients"] == [{"count": 5, "nonEntity": True}]
    verify_input(parse_input(payload))
