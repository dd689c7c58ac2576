from __future__ import annotations

import os
import random
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest


VERSION = os.getenv("VERSION", "v1")

# v2 is the faster, more reliable build; the split demo relies on the difference.
DELAY_S = {"v2": 0.05}.get(VERSION, 0.1)
ERROR_RATE = {"v2": 0.1}.get(VERSION, 0.3)

REGISTRY = CollectorRegistry()
REQUESTS = Counter(
    "http_requests_total", "Total number of HTTP requests", ["method", "route", "status", "version"], registry=REGISTRY
)
DURATION = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method", "route", "version"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1),
    registry=REGISTRY,
)

APP_STATE = {"started": time.time(), "rand": random.random}

app = FastAPI(title=f"Demo Service {VERSION}")


@app.middleware("http")
async def track(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    REQUESTS.labels(request.method, request.url.path, str(response.status_code), VERSION).inc()
    DURATION.labels(request.method, request.url.path, VERSION).observe(time.perf_counter() - start)
    return response


@app.get("/")
def read_root():
    return {
        "message": f"Hello from {VERSION}!",
        "version": VERSION,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "service": "demo-service",
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "version": VERSION, "uptime": round(time.time() - APP_STATE["started"], 3)}


@app.get("/api/data")
def data():
    time.sleep(DELAY_S)
    return {
        "data": [
            {"id": 1, "value": f"Sample data from {VERSION}"},
            {"id": 2, "value": f"Another entry from {VERSION}"},
        ],
        "version": VERSION,
        "processingTime": int(DELAY_S * 1000),
    }


@app.get("/api/error")
def maybe_error():
    if APP_STATE["rand"]() < ERROR_RATE:
        return JSONResponse({"error": "Internal server error", "version": VERSION}, status_code=500)
    return {"message": "Success", "version": VERSION}


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
