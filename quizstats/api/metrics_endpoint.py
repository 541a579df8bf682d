"""Prometheus scrape endpoint.

Serves the request metrics from MetricsMiddleware together with the
progress counters (quiz events, rollovers, save conflicts, dashboard
cache hits) in text exposition format.  Keep it off the public ingress;
per-endpoint counts reveal traffic patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
