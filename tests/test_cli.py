import json
import logging

import pytest

from reptrack.runtime.cli import main, read_frames

CURL = (165, 165, 165, 165, 165, 165, 165, 150, 120, 90, 60, 50, 90, 130, 165)


@pytest.fixture(autouse=True)
def drop_log_handlers():
    yield
    # main() attaches a stdout handler; don't let it outlive the captured stream
    logging.getLogger("reptrack").handlers.clear()


def test_read_frames(capsys):
    lines = ["", "[1, 2]", '{"ts": 1.5, "landmarks": [3]}', "{bad", '{"landmarks": null}', '"hello"']
    assert list(read_frames(lines)) == [(None, [1, 2]), (1.5, [3]), (None, [])]
    assert "line 4: invalid json" in capsys.readouterr().err


def test_replay_counts_reps(tmp_path, capsys, frame):
    path = tmp_path / "curl.jsonl"
    with path.open("w") as f:
        for i, angle in enumerate(CURL):
            f.write(json.dumps({"ts": i * 0.1, "landmarks": frame(angle, angle)}) + "\n")

    rc = main([str(path), "-e", "bicep-curls", "--set", "latency_budget_ms=1000", "--set", "rep_debounce_duration=0"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "state IDLE → READY" in out
    assert "rep left #1" in out
    summary = json.loads(out[out.index("{\n"):])
    assert summary["exercise"] == "bicep-curls"
    assert summary["total_reps"] == 2


def test_replay_with_exercise_file(tmp_path, capsys, frame):
    ex = tmp_path / "curl.json"
    ex.write_text(json.dumps({
        "id": "left-curl",
        "landmarks": {"primary": ["left_shoulder", "left_elbow", "left_wrist"]},
        "startPosition": {"requiredAngles": [{"side": "left", "points": ["shoulder", "elbow", "wrist"],
                                              "targetAngle": 170}],
                          "readyPositionHoldTime": 0.5},
        "logicConfig": {"type": "angle", "anglesToTrack": [{"side": "left", "points": ["shoulder", "elbow", "wrist"],
                                                            "minThreshold": 45, "maxThreshold": 160}]},
    }))
    rec = tmp_path / "rec.jsonl"
    rec.write_text("\n".join(json.dumps({"ts": i * 0.1, "landmarks": frame(left=a)}) for i, a in enumerate(CURL)))

    assert main([str(rec), "--exercise-file", str(ex), "--set", "latency_budget_ms=1000"]) == 0
    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{\n"):])
    assert summary["exercise"] == "left-curl"
    assert summary["rep_count"] == {"left": 1, "right": 0}


def test_list(capsys):
    assert main(["--list"]) == 0
    assert "jumping-jacks" in capsys.readouterr().out


@pytest.mark.parametrize("args", [
    ["-e", "moonwalk"],
    ["--set", "visibility_threshold=5"],
    ["--set", "no-equals-sign"],
])
def test_bad_arguments(args, capsys, tmp_path):
    rec = tmp_path / "empty.jsonl"
    rec.write_text("")
    assert main([str(rec), *args]) == 2
    assert "error:" in capsys.readouterr().err


def test_missing_recording(tmp_path, capsys):
    assert main([str(tmp_path / "nope.jsonl")]) == 2
    assert "error:" in capsys.readouterr().err
