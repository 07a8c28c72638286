"""
Exposition endpoint serving a CollectorRegistry in the Prometheus text format.
"""

import socket
import threading

from flask import Flask, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from werkzeug.serving import BaseWSGIServer, make_server

from monitor.utils.logger import LOGGER as logger


def create_exposition_app(registry: CollectorRegistry, path: str) -> Flask:
    """Build a WSGI app that answers GET <path> with the registry snapshot. Other paths are 404."""
    app = Flask(__name__)

    def prometheus_metrics() -> Response:
        return Response(generate_latest(registry), status=200, content_type=CONTENT_TYPE_LATEST)

    app.add_url_rule(path, "prometheus_metrics", prometheus_metrics, methods=["GET"])
    return app


def _bind_socket(host: str, port: int) -> socket.socket:
    # werkzeug exits the interpreter on bind errors, so bind here and hand over the fd
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    return sock


class ExpositionServer(threading.Thread):
    """
    Background thread serving the exposition app.
    The socket is bound in __init__, so an OSError surfaces to whoever constructs the server.
    """

    def __init__(self, app: Flask, host: str, port: int) -> None:
        super().__init__(name=f"metrics-exposition-{port}", daemon=True)
        self.host = host
        sock = _bind_socket(host, port)
        try:
            self.srv: BaseWSGIServer = make_server(host, port, app, threaded=True, fd=sock.fileno())
        finally:
            # make_server duplicates the descriptor
            sock.close()
        self.port: int = self.srv.port
        self.stopped = threading.Event()

    def run(self) -> None:
        logger.info(f"Starting metrics exposition server on http://{self.host}:{self.port}")
        try:
            self.srv.serve_forever()
        finally:
            self.stopped.set()

    def shutdown(self) -> None:
        logger.info(f"Shutting down metrics exposition server on port {self.port}")
        if self.is_alive():
            self.srv.shutdown()
        self.srv.server_close()
        self.stopped.set()
