"""Prometheus metrics endpoint.

Example scrape config:
    ```yaml
    scrape_configs:
      - job_name: 'chat-service'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
    ```
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from chat_service.infra.metrics import REGISTRY, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose connection, fan-out and chat action metrics for Prometheus."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
