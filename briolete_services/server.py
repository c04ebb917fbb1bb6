"""HTTP server entrypoints for the service-ticket API."""

from __future__ import annotations

import errno
import json
import logging
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

from .auth import AuthGate, page_redirect
from .config import Settings
from .services import ApiResponse, ServiceHandlers
from .store import AttachmentStore, ServiceStore, create_auth_client, create_data_client

logger = logging.getLogger(__name__)

DISCONNECT_ERRNOS = {
    errno.EPIPE,
    errno.ECONNRESET,
    errno.ETIMEDOUT,
}

SERVICES_RE = re.compile(r"^(?:/api)?/services/?$")
SERVICE_RE = re.compile(r"^(?:/api)?/services/(?P<code>[^/]+)/?$")
INVOICE_RE = re.compile(r"^(?:/api)?/services/(?P<code>[^/]+)/invoice/?$")
PAGE_PATHS = ("/", "/login", "/signup")

PAGE_TEMPLATE = """<!doctype html>
<html lang="es">
<head><meta charset="utf-8"><title>{title} · Briolete</title></head>
<body><main><h1>{title}</h1></main></body>
</html>
"""
PAGE_TITLES = {"/login": "Iniciar sesión", "/app": "Servicios"}


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


def is_page_path(path: str) -> bool:
    return path in PAGE_PATHS or path == "/app" or path.startswith("/app/")


class ServicesApp:
    """Everything a request needs, built once at startup."""

    def __init__(self, settings: Settings, handlers: ServiceHandlers, gate: AuthGate) -> None:
        self.settings = settings
        self.handlers = handlers
        self.gate = gate

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServicesApp":
        data_client = create_data_client(settings)
        gate = AuthGate(create_auth_client(settings), development=settings.is_development)
        handlers = ServiceHandlers(
            settings,
            gate,
            ServiceStore(data_client, settings.services_table),
            AttachmentStore(data_client, settings.quotation_bucket),
        )
        return cls(settings, handlers, gate)


class ServicesRequestHandler(BaseHTTPRequestHandler):
    server: "ServicesHTTPServer"

    @property
    def app(self) -> ServicesApp:
        return self.server.app

    def _split_path(self) -> Tuple[str, Dict[str, str]]:
        parts = urlsplit(self.path)
        return parts.path, dict(parse_qsl(parts.query, keep_blank_values=True))

    def _write_response(
        self,
        status: int,
        content_type: str,
        body: bytes,
        headers: Optional[Dict[str, str]] = None,
    ) -> bool:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any]) -> bool:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return self._write_response(status, "application/json; charset=utf-8", body)

    def _send(self, response: ApiResponse) -> bool:
        content_type = response.content_type
        if content_type == "application/json":
            content_type = "application/json; charset=utf-8"
        return self._write_response(response.status, content_type, response.encode(), response.headers)

    def _redirect(self, status: int, location: str) -> bool:
        return self._write_response(status, "text/plain; charset=utf-8", b"", {"Location": location})

    def _read_body(self, required: bool = True) -> Optional[bytes]:
        header = self.headers.get("Content-Length")
        if header is None:
            if not required:
                return b""
            self._send_json(411, {"error": "Se requiere el encabezado Content-Length"})
            return None

        try:
            content_length = int(header)
        except ValueError:
            self._send_json(400, {"error": "Content-Length inválido"})
            return None

        if content_length < 0:
            self._send_json(400, {"error": "Content-Length inválido"})
            return None

        if content_length > self.app.settings.max_body_bytes:
            self._send_json(413, {"error": "La solicitud es demasiado grande"})
            return None

        try:
            return self.rfile.read(content_length)
        except Exception as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def _not_found(self) -> None:
        self._send_json(404, {"error": "Ruta no encontrada"})

    def _serve_page(self, path: str) -> None:
        authenticated = self.app.gate.is_authenticated(self.headers)
        redirect = page_redirect(path, authenticated)
        if redirect is None and path == "/":
            redirect = (302, "/app" if authenticated else "/login")
        if redirect is not None:
            self._redirect(*redirect)
            return
        title = PAGE_TITLES["/app"] if path.startswith("/app") else PAGE_TITLES.get(path, "Briolete")
        body = PAGE_TEMPLATE.format(title=title).encode("utf-8")
        self._write_response(200, "text/html; charset=utf-8", body)

    def do_GET(self) -> None:
        path, params = self._split_path()
        handlers = self.app.handlers

        if path in ("/health", "/healthz"):
            self._send_json(200, {"status": "ok"})
            return
        if SERVICES_RE.match(path):
            self._send(handlers.list_services(self.headers, params))
            return
        match = INVOICE_RE.match(path)
        if match:
            self._send(handlers.service_invoice(self.headers, match.group("code"), params))
            return
        match = SERVICE_RE.match(path)
        if match:
            self._send(handlers.get_service(self.headers, match.group("code")))
            return
        if is_page_path(path):
            self._serve_page(path)
            return
        self._not_found()

    def do_HEAD(self) -> None:
        self.do_GET()

    def do_POST(self) -> None:
        path, _ = self._split_path()
        if not SERVICES_RE.match(path):
            self._not_found()
            return
        body = self._read_body()
        if body is None:
            return
        self._send(
            self.app.handlers.create_service(self.headers, self.headers.get("Content-Type"), body)
        )

    def do_PUT(self) -> None:
        path, _ = self._split_path()
        match = SERVICE_RE.match(path)
        if not match:
            self._not_found()
            return
        body = self._read_body()
        if body is None:
            return
        self._send(
            self.app.handlers.update_service(
                self.headers,
                match.group("code"),
                self.headers.get("Content-Type"),
                body,
            )
        )

    def do_DELETE(self) -> None:
        path, _ = self._split_path()
        if not SERVICES_RE.match(path):
            self._not_found()
            return
        body = self._read_body(required=False)
        if body is None:
            return
        self._send(self.app.handlers.delete_services(self.headers, body))

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class ServicesHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, app: ServicesApp) -> None:
        self.app = app
        self.request_queue_size = app.settings.listen_backlog
        super().__init__((app.settings.host, app.settings.port), ServicesRequestHandler)


def run(settings: Settings) -> None:
    app = ServicesApp.from_settings(settings)
    server = ServicesHTTPServer(app)
    logger.info("Service API listening on http://%s:%s", settings.host, settings.port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
