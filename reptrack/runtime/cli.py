# reptrack/runtime/cli.py
from __future__ import annotations
import argparse
import json
import sys
from typing import Iterator, List, Optional, Tuple

from pydantic import ValidationError

from reptrack.common.config import TrackerSettings, get_settings
from reptrack.common.log import setup_logger
from reptrack.counter.session import TrackingSessionManager
from reptrack.exercises.catalog import UnknownExerciseError, list_exercises, load_exercise_file


def read_frames(lines) -> Iterator[Tuple[Optional[float], list]]:
    """
    One JSON object per line: {"ts": seconds, "landmarks": [...]}.
    A bare list is accepted as landmarks without a timestamp. Blank lines are skipped.
    """
    for n, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            print(f"line {n}: invalid json ({e.msg})", file=sys.stderr, flush=True)
            continue
        if isinstance(obj, list):
            yield None, obj
        elif isinstance(obj, dict):
            ts = obj.get("ts")
            yield (float(ts) if isinstance(ts, (int, float)) else None), obj.get("landmarks") or []


def _parse_overrides(pairs: List[str]) -> dict:
    out = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"expected key=value, got {pair!r}")
        out[key.strip()] = value.strip()
    return out


def _printer(verbose: bool):
    def sink(ev: dict):
        kind = ev.get("type")
        if kind == "state_changed":
            print(f"[{ev['ts']:.3f}] state {ev['previous']} → {ev['current']}", flush=True)
        elif kind == "rep":
            print(f"[{ev['ts']:.3f}] rep {ev['side']} #{ev['rep_count']} (total {ev['total']})", flush=True)
        elif kind == "trace":
            if verbose:
                print(f"  trace: {ev.get('msg')}", flush=True)
        elif verbose:
            print(f"  event: {kind}", flush=True)
    return sink


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        prog="reptrack-replay",
        description="Run a JSONL recording of landmark frames through the rep tracker.",
    )
    ap.add_argument("recording", nargs="?", help="JSONL file (default: stdin)")
    ap.add_argument("-e", "--exercise", default="bicep-curls", help="catalog exercise id")
    ap.add_argument("--exercise-file", help="load the exercise from a JSON file instead")
    ap.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                    help="override a tracker setting, e.g. --set rep_debounce_duration=0")
    ap.add_argument("--list", action="store_true", help="list catalog exercises and exit")
    ap.add_argument("-v", "--verbose", action="store_true", help="print trace lines too")
    args = ap.parse_args(argv)

    if args.list:
        for ex in list_exercises():
            print(f"{ex.id:24s} {ex.name}", flush=True)
        return 0

    setup_logger("reptrack", "DEBUG" if args.verbose else get_settings().log_level)

    try:
        exercise_id = args.exercise
        if args.exercise_file:
            exercise_id = load_exercise_file(args.exercise_file).id
        settings = TrackerSettings(**{**get_settings().model_dump(), **_parse_overrides(args.overrides)})
    except (ValidationError, argparse.ArgumentTypeError, OSError) as e:
        print(f"error: {e}", file=sys.stderr, flush=True)
        return 2

    try:
        stream = open(args.recording, encoding="utf-8") if args.recording else sys.stdin
    except OSError as e:
        print(f"error: {e}", file=sys.stderr, flush=True)
        return 2

    manager = TrackingSessionManager(settings)
    manager.set_event_sink(_printer(args.verbose))
    try:
        manager.start(exercise_id)
        for ts, landmarks in read_frames(stream):
            manager.push_frame(landmarks, ts)
    except UnknownExerciseError:
        print(f"error: unknown exercise {exercise_id!r} (try --list)", file=sys.stderr, flush=True)
        return 2
    finally:
        if stream is not sys.stdin:
            stream.close()

    summary = manager.stop()
    print(json.dumps(summary.to_dict(), indent=2), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
