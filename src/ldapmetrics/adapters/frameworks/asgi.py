"""ASGI adapter exposing the metrics registry.

Framework-agnostic ASGI application that can be served by any ASGI server
(uvicorn, hypercorn, daphne) without a web framework dependency.
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

_LANDING_PAGE = """<html>
<head><title>OpenLDAP exporter</title></head>
<body>
<h1>OpenLDAP exporter</h1>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>
"""


async def _send_response(
    send: Send, status: int, content_type: str, body: bytes
) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body.
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body})


async def _handle_metrics(send: Send, registry: CollectorRegistry) -> None:
    """Encode the registry and send it, answering 500 on encoding errors."""
    try:
        body = generate_latest(registry)
    except Exception:
        logger.exception("Error encoding metrics endpoint")
        await _send_response(send, 500, "text/plain", b"Internal Server Error")
        return
    await _send_response(send, 200, CONTENT_TYPE_LATEST, body)


def create_asgi_app(
    registry: CollectorRegistry,
    metrics_path: str = "/metrics",
) -> ASGIApp:
    """Create an ASGI app serving the registry in Prometheus text format.

    Args:
        registry: Registry holding the scraper's metrics.
        metrics_path: Path of the metrics endpoint.

    Returns:
        ASGI application callable. "/" serves a landing page linking to
        the metrics path; any other path answers 404.
    """
    landing = _LANDING_PAGE.format(metrics_path=metrics_path).encode()

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]
        if path == metrics_path:
            await _handle_metrics(send, registry)
        elif path == "/":
            await _send_response(send, 200, "text/html; charset=utf-8", landing)
        else:
            await _send_response(send, 404, "text/plain", b"Not Found")

    return app
