from __future__ import annotations
import json, time, uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

import structlog
from daycare.observability import REQ_COUNT, REQ_LAT, init_logging, init_otel

from fastapi import FastAPI, Request, Response, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from pydantic import ValidationError

from daycare.config import settings
from daycare.dispatcher import SEND_NOTICE, Dispatcher
from daycare.errors import RequestValidationFailed
from daycare.line import LineClient, verify_signature
from daycare.render import ReportRenderer
from daycare.schemas import LineRequest, Problem
from daycare.sheets import SheetsSource
init_logging("daycare-api")
log = structlog.get_logger("daycare-api")

def problem(status_code: int, title: str, code: str, detail: str | None = None) -> JSONResponse:
    p = Problem(title=title, status=status_code, code=code, detail=detail)
    return JSONResponse(status_code=status_code, content=p.model_dump())

@lru_cache
def get_dispatcher() -> Dispatcher:
    return Dispatcher(
        settings,
        line=LineClient(settings),
        sheets=SheetsSource(settings),
        renderer=ReportRenderer(settings),
    )

app = FastAPI(title="Daycare LINE Report API", version="1.0.0", redirect_slashes=False)

if init_otel("daycare-api", settings.otel_enabled):
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    FastAPIInstrumentor.instrument_app(app)

@app.middleware("http")
async def request_mw(request: Request, call_next: Callable):
    rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=rid)
    start = time.time()
    try:
        response: Response = await call_next(request)
    finally:
        dur = time.time() - start
        REQ_LAT.labels(path=request.url.path).observe(dur)
        structlog.contextvars.unbind_contextvars("request_id")
    response.headers["X-Request-Id"] = rid
    REQ_COUNT.labels(method=request.method, path=request.url.path, status=str(response.status_code)).inc()
    return response

@app.exception_handler(HTTPException)
async def http_exc(request: Request, exc: HTTPException):
    code = "http_error"
    if exc.status_code == 400: code = "bad_request"
    if exc.status_code == 404: code = "not_found"
    return problem(exc.status_code, "Request failed", code, str(exc.detail))

def invalid_request(exc: ValidationError) -> JSONResponse:
    first = exc.errors()[0]
    field = ".".join(str(p) for p in first["loc"]) or "body"
    log.info("request_invalid", field=field, error=first["msg"])
    err = RequestValidationFailed(field)
    return JSONResponse(status_code=400, content={"success": False, "error": str(err), "field": field})

async def read_payload(request: Request) -> tuple[bytes, dict]:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else {}
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid_json")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid_json")
    return raw, payload

@app.get("/v1/health")
def health():
    return {"status":"ok","service":"daycare_api","time": datetime.now(timezone.utc).isoformat()}

@app.get("/v1/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

@app.get("/api/line-webhook")
def line_ready():
    return {"status": "LINE API is ready"}

@app.post("/api/line-webhook")
async def line_webhook(
    request: Request,
    secret: str | None = None,
    force_send: bool = Query(False, alias="forceSend"),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    raw, payload = await read_payload(request)

    # Webhook deliveries from LINE are signed; report actions from the front-end are not.
    channel_secret = dispatcher.settings.line_channel_secret
    if payload.get("events") is not None and channel_secret:
        signature = request.headers.get("X-Line-Signature", "")
        if not verify_signature(raw, signature, channel_secret):
            log.warning("line_signature_invalid")
            raise HTTPException(status_code=400, detail="invalid_signature")

    if secret is not None:
        payload.setdefault("secret", secret)
    if force_send:
        payload["forceSend"] = True
    try:
        req = LineRequest.model_validate(payload)
    except ValidationError as e:
        return invalid_request(e)

    result = await run_in_threadpool(dispatcher.dispatch, req)
    return JSONResponse(status_code=result.status_code, content=result.body)

@app.post("/api/line/send-health-report")
async def send_health_report(request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    _, payload = await read_payload(request)
    payload["action"] = SEND_NOTICE
    try:
        req = LineRequest.model_validate(payload)
    except ValidationError as e:
        return invalid_request(e)
    result = await run_in_threadpool(dispatcher.dispatch, req)
    return JSONResponse(status_code=result.status_code, content=result.body)
