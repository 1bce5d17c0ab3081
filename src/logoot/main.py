from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from logoot.api.routes import router as api_router
from logoot.core.config import get_settings
from logoot.core.logging import configure_logging
from logoot.core.metrics import metrics as sequence_metrics
from logoot.crdt.errors import DecodeError, LogootError, SequenceInvariantError
from logoot.services.docs import store
from logoot.ws.manager import manager


logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


def _status_for(exc: LogootError) -> int:
    if isinstance(exc, DecodeError):
        return 400
    if isinstance(exc, SequenceInvariantError):
        return 500
    return 409


@app.exception_handler(LogootError)
async def logoot_error_handler(request: Request, exc: LogootError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": exc.code})


@app.get("/healthz")
async def healthz() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/readyz")
async def readyz() -> Dict[str, Any]:
    return {"status": "ready"}


@app.on_event("startup")
async def startup_events() -> None:
    configure_logging(settings)
    logger.info("%s %s serving as site %s", settings.app_name, settings.app_version, settings.site_id)


@app.get("/metrics")
async def metrics() -> Response:
    summary = sequence_metrics.summary()
    lines = [
        "# HELP sequence_atoms_total Atoms integrated by outcome",
        "# TYPE sequence_atoms_total counter",
    ]
    for outcome, count in summary.items():
        if outcome in {"remote_ops", "p95_position_depth"}:
            continue
        lines.append(f'sequence_atoms_total{{outcome="{outcome}"}} {count}')
    lines.append("# HELP sequence_position_depth_p95 95th percentile depth of generated positions")
    lines.append("# TYPE sequence_position_depth_p95 gauge")
    lines.append(f'sequence_position_depth_p95 {summary.get("p95_position_depth", 0.0)}')
    lines.append("# HELP sequence_remote_ops_total Remote op batches applied")
    lines.append("# TYPE sequence_remote_ops_total counter")
    lines.append(f'sequence_remote_ops_total {summary.get("remote_ops", 0)}')
    body = "\n".join(lines) + "\n"
    return Response(content=body, media_type="text/plain")


app.include_router(api_router)


async def _handle_message(doc_id: uuid.UUID, websocket: WebSocket, data: Dict[str, Any]) -> None:
    t = data.get("type")
    if t == "op.submit":
        op = data.get("op")
        if not isinstance(op, dict):
            await websocket.send_json({"type": "nack", "reason": "invalid_op"})
            return
        version, text = await store.apply_ops(doc_id, op)
    elif t == "edit.insert":
        try:
            index = int(data.get("index"))
            text_ins = str(data.get("text", ""))
        except (TypeError, ValueError):
            await websocket.send_json({"type": "nack", "reason": "bad_insert_args"})
            return
        op, version, text = await store.local_insert(doc_id, index, text_ins)
    elif t == "edit.delete":
        try:
            index = int(data.get("index"))
            length = int(data.get("length"))
        except (TypeError, ValueError):
            await websocket.send_json({"type": "nack", "reason": "bad_delete_args"})
            return
        op, version, text = await store.local_delete(doc_id, index, length)
    elif t == "cursor.update":
        # presence only, nothing is integrated
        payload = {"type": "presence.cursor", "data": data.get("data", {}), "ts": data.get("ts")}
        await manager.broadcast(doc_id, payload, exclude=websocket)
        return
    else:
        await websocket.send_json({"type": "nack", "reason": "unknown_type"})
        return

    await websocket.send_json({"type": "ack", "version": version, "text": text})
    await manager.broadcast(doc_id, {"type": "doc.op", "op": op, "version": version}, exclude=websocket)


@app.websocket("/v1/ws/docs/{doc_id}")
async def ws_docs(doc_id: uuid.UUID, websocket: WebSocket) -> None:
    await manager.connect(doc_id, websocket, websocket.query_params.get("site"))
    try:
        atoms, version = await store.snapshot_atoms(doc_id)
        text, _ = await store.snapshot_text(doc_id)
        await websocket.send_json({"type": "snapshot", "text": text, "version": version, "atoms": atoms})
        while True:
            msg = await websocket.receive_text()
            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "nack", "reason": "invalid_json"})
                continue
            if not isinstance(data, dict):
                await websocket.send_json({"type": "nack", "reason": "invalid_message"})
                continue
            try:
                await _handle_message(doc_id, websocket, data)
            except LogootError as exc:
                logger.warning("doc %s: rejected %s: %s", doc_id, data.get("type"), exc)
                await websocket.send_json({"type": "nack", "reason": exc.code})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(doc_id, websocket)
