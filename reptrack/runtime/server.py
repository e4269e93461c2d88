from __future__ import annotations
import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from reptrack.common.config import get_settings
from reptrack.common.log import setup_logger
from reptrack.counter.history import display_series, reference_lines
from reptrack.counter.landmarks import CONNECTIONS, LANDMARK_MAP
from reptrack.counter.session import ACTIVE_MANAGER
from reptrack.exercises.catalog import UnknownExerciseError, get_exercise, list_exercises

logger = logging.getLogger(__name__)

app = FastAPI(title="reptrack")

MANAGER = ACTIVE_MANAGER()

WS_CLIENTS: Set[WebSocket] = set()


# let the manager emit events and traces to all WS clients
def _sink(ev: dict):
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # called outside the server loop (e.g. a sync caller); nobody to broadcast to
        return
    loop.create_task(broadcast(ev))

MANAGER.set_event_sink(_sink)


async def broadcast(obj: dict):
    dead = []
    text = json.dumps(obj)
    for ws in list(WS_CLIENTS):
        try:
            await ws.send_text(text)
        except Exception:
            dead.append(ws)
    for d in dead:
        WS_CLIENTS.discard(d)


class StartRequest(BaseModel):
    exercise_id: str
    settings: Dict[str, Any] = Field(default_factory=dict)


class ExerciseRequest(BaseModel):
    exercise_id: str


def _invalid(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail=json.loads(e.json()))


@app.get("/exercises")
async def exercises():
    return [
        {
            "id": ex.id,
            "name": ex.name,
            "is_two_sided": ex.is_two_sided,
            "has_weight": ex.has_weight,
            "logic_type": ex.logic_config.type,
            "muscle_groups": ex.muscle_groups,
        }
        for ex in list_exercises()
    ]


@app.get("/exercises/{exercise_id}")
async def exercise_detail(exercise_id: str):
    try:
        ex = get_exercise(exercise_id)
    except UnknownExerciseError:
        raise HTTPException(status_code=404, detail=f"unknown exercise {exercise_id}")
    out = ex.model_dump()
    out["reference_lines"] = reference_lines(ex)
    return out


@app.get("/landmarks")
async def landmarks():
    return {"names": LANDMARK_MAP, "connections": CONNECTIONS}


@app.get("/sessions/current")
async def current():
    m = ACTIVE_MANAGER()
    out = m.status().to_dict()
    if m.engine is not None:
        snap = m.engine.snapshot()
        out["phase_by_side"] = {side: p.value for side, p in snap.phase_by_side.items()}
        out["side_status"] = {side: s.to_dict() for side, s in snap.side_status.items()}
    return JSONResponse(out)


@app.get("/sessions/current/history")
async def current_history(window: Optional[float] = Query(None, gt=0)):
    m = ACTIVE_MANAGER()
    if m.engine is None:
        raise HTTPException(status_code=409, detail="no active session")
    s = m.engine.settings
    series = display_series(
        m.engine.history.entries(),
        m.engine.exercise,
        window or s.display_window_seconds,
        s.smoothing_factor,
        m.engine.snapshot().timestamp,
    )
    return {"series": series, "reference_lines": reference_lines(m.engine.exercise)}


@app.post("/tracker/start")
async def start(req: StartRequest):
    m = ACTIVE_MANAGER()
    try:
        sid, status = m.start(req.exercise_id, **req.settings)
    except UnknownExerciseError:
        raise HTTPException(status_code=404, detail=f"unknown exercise {req.exercise_id}")
    except ValidationError as e:
        raise _invalid(e)
    return {"session_id": sid, "status": status}


@app.post("/tracker/exercise")
async def select_exercise(req: ExerciseRequest):
    m = ACTIVE_MANAGER()
    try:
        sid = m.select_exercise(req.exercise_id)
    except UnknownExerciseError:
        raise HTTPException(status_code=404, detail=f"unknown exercise {req.exercise_id}")
    return {"session_id": sid, "exercise_id": req.exercise_id}


@app.post("/tracker/pause")
async def pause():
    return {"session_id": ACTIVE_MANAGER().pause(), "paused": True}


@app.post("/tracker/resume")
async def resume():
    return {"session_id": ACTIVE_MANAGER().resume(), "paused": False}


@app.post("/tracker/stop")
async def stop():
    summary = ACTIVE_MANAGER().stop()
    return JSONResponse({"stopped": True, **summary.to_dict()})


@app.put("/tracker/settings")
async def update_settings(values: Dict[str, Any]):
    try:
        settings = ACTIVE_MANAGER().update_settings(**values)
    except ValidationError as e:
        raise _invalid(e)
    return settings.model_dump()


@app.websocket("/ws/landmarks")
async def ws_landmarks(ws: WebSocket):
    await ws.accept()
    WS_CLIENTS.add(ws)
    logger.info("ws client connected (%d open)", len(WS_CLIENTS))
    await broadcast({"type": "trace", "msg": "ws: client connected"})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_text(json.dumps({"type": "error", "msg": "invalid json"}))
                continue
            if not isinstance(data, dict) or data.get("type") != "landmarks":
                continue
            m = ACTIVE_MANAGER()
            if m.engine is None:
                await ws.send_text(json.dumps({"type": "error", "msg": "no active session"}))
                continue
            try:
                ts = float(data["ts"])
            except (KeyError, TypeError, ValueError):
                ts = time.time()
            out = m.push_frame(data.get("landmarks"), ts)
            if out is None:
                # paused or skipped by the frame scheduler
                continue
            await ws.send_text(json.dumps({"type": "output", **out.to_dict(include_history=False)}))
    except WebSocketDisconnect:
        pass
    finally:
        WS_CLIENTS.discard(ws)
        await broadcast({"type": "trace", "msg": "ws closed"})


def main():
    import argparse
    import uvicorn

    ap = argparse.ArgumentParser(description="reptrack tracking server")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()

    setup_logger("reptrack", get_settings().log_level)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
