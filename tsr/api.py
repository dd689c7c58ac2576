from __future__ import annotations

import secrets
import sqlite3
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.concurrency import run_in_threadpool

from . import db
from .api_models import TrafficRuleRequest
from .errors import InvariantViolation, SnapshotWriteFailure
from .metrics import DeployMetrics
from .reconciler import Reconciler, build_reconciler
from .runtime import RuntimeState
from .settings import Settings, settings as default_settings


security = HTTPBasic(auto_error=False)


def _ok(data: Any = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"success": True, **extra}
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status_code)


def _fail(error: Any, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": error, **extra}, status_code=status_code)


def _validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


def create_app(
    reconciler: Reconciler | None = None,
    runtime: RuntimeState | None = None,
    metrics: DeployMetrics | None = None,
    cfg: Settings | None = None,
) -> FastAPI:
    """Build the API. Collaborators not passed in are created on startup."""
    cfg = cfg or default_settings
    metrics = metrics or (reconciler.metrics if reconciler is not None else None) or DeployMetrics()
    if reconciler is not None and reconciler.metrics is None:
        reconciler.metrics = metrics

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_db()
        if app.state.reconciler is None:
            app.state.reconciler = build_reconciler(cfg, metrics=metrics)
        db.log_event("INFO", "API started")
        yield

    app = FastAPI(title="Traffic Split Reconciler", lifespan=lifespan)
    app.state.reconciler = reconciler
    app.state.runtime = runtime or RuntimeState()
    app.state.metrics = metrics

    def require_admin(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
        if not cfg.admin_password:
            return "anonymous"
        if credentials is None or not (
            secrets.compare_digest(credentials.username, cfg.admin_user)
            and secrets.compare_digest(credentials.password, cfg.admin_password)
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        try:
            await run_in_threadpool(
                db.log_event, "INFO", f"{request.method} {request.url.path} {response.status_code}"
            )
        except sqlite3.Error:
            pass
        return response

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _fail(_validation_errors(exc), status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(InvariantViolation)
    async def _on_invariant(request: Request, exc: InvariantViolation) -> JSONResponse:
        return _fail(str(exc), status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(Exception)
    async def _on_error(request: Request, exc: Exception) -> JSONResponse:
        db.log_event("ERROR", f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return _fail(str(exc) if cfg.expose_errors else "Internal server error", 500)

    # --- health / metrics ---

    @app.get("/health")
    def health() -> dict[str, Any]:
        rec: Reconciler | None = app.state.reconciler
        cluster = "connected" if rec is not None and rec.applier.available else "unavailable"
        return {"status": "healthy", "timestamp": db.utc_now(), "cluster": cluster}

    @app.get("/metrics")
    @app.get("/api/metrics")
    def prometheus_metrics() -> Response:
        payload, content_type = app.state.metrics.render()
        return Response(content=payload, media_type=content_type)

    # --- rules ---

    @app.get("/api/rules")
    def list_rules() -> JSONResponse:
        return _ok([r.to_dict() for r in db.list_rules()])

    @app.get("/api/rules/{rule_id}")
    def get_rule(rule_id: str) -> JSONResponse:
        row = db.get_rule(rule_id)
        if not row:
            return _fail("Rule not found", status.HTTP_404_NOT_FOUND)
        return _ok(row.to_dict())

    @app.post("/api/rules")
    def create_rule(req: TrafficRuleRequest, user: str = Depends(require_admin)) -> JSONResponse:
        row = db.create_rule(req.to_rule())
        db.log_event("INFO", f"Created traffic rule {row.id} ({user})", service_name=row.service_name)
        return _ok(row.to_dict(), status_code=status.HTTP_201_CREATED)

    @app.put("/api/rules/{rule_id}")
    def update_rule(rule_id: str, req: TrafficRuleRequest, user: str = Depends(require_admin)) -> JSONResponse:
        row = db.update_rule(rule_id, req.to_rule())
        if not row:
            return _fail("Rule not found", status.HTTP_404_NOT_FOUND)
        db.log_event("INFO", f"Updated traffic rule {row.id} ({user})", service_name=row.service_name)
        return _ok(row.to_dict())

    @app.delete("/api/rules/{rule_id}")
    def delete_rule(rule_id: str, user: str = Depends(require_admin)) -> JSONResponse:
        if not db.delete_rule(rule_id):
            return _fail("Rule not found", status.HTTP_404_NOT_FOUND)
        db.log_event("INFO", f"Deleted traffic rule {rule_id} ({user})")
        return _ok(message="Rule deleted successfully")

    @app.post("/api/rules/deploy/{rule_id}")
    def deploy_rule(rule_id: str, user: str = Depends(require_admin)) -> JSONResponse:
        row = db.get_rule(rule_id)
        if not row:
            return _fail("Rule not found", status.HTTP_404_NOT_FOUND)
        rule = row.to_rule()
        rec: Reconciler = app.state.reconciler
        runtime: RuntimeState = app.state.runtime

        db.log_event("INFO", f"Deploying traffic rule {row.id} ({user})", service_name=rule.host)
        with runtime.deploy_lock(rule.host):
            try:
                outcome = rec.reconcile(rule)
            except SnapshotWriteFailure as e:
                return _fail("Failed to deploy rule", status.HTTP_500_INTERNAL_SERVER_ERROR, details=str(e))
            # Snapshot written: that is enough to count as deployed.
            deployed_at = db.utc_now()
            db.update_deployed_at(row.id, deployed_at)
            runtime.record_deployment(row.id, rule.host, outcome)

        data = {**outcome.to_dict(), "deployedAt": deployed_at}
        if outcome.cluster_applied:
            message = "Traffic rule deployed successfully"
        else:
            message = "Traffic rule saved to GitOps snapshot; cluster not updated"
        return _ok(data, message=message)

    @app.get("/api/deployments/{service}")
    def last_deployment(service: str) -> JSONResponse:
        record = app.state.runtime.last_deployment(service)
        if record:
            return _ok(
                {
                    "source": "runtime",
                    "ruleId": record.rule_id,
                    "service": record.service,
                    "finishedAt": record.finished_at,
                    **record.outcome.to_dict(),
                }
            )
        # Nothing reconciled in this process (e.g. after a restart): fall back to the snapshot.
        rec: Reconciler = app.state.reconciler
        docs = rec.writer.read(service)
        if not docs:
            return _fail("No deployment recorded for service", status.HTTP_404_NOT_FOUND)
        return _ok({"source": "snapshot", "service": service.lower(), "snapshotPath": rec.writer.directory, **docs})

    # --- audit ---

    @app.get("/api/events")
    def events(limit: int = cfg.events_limit) -> JSONResponse:
        return _ok(db.latest_events(max(1, min(1000, limit))))

    return app
