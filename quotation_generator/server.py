"""HTTP server entrypoints for quotation rendering and storage."""

from __future__ import annotations

import atexit
import errno
import json
import logging
import multiprocessing as mp
import re
import threading
from concurrent.futures import ProcessPoolExecutor, TimeoutError as FutureTimeoutError
from concurrent.futures.process import BrokenProcessPool
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlsplit

from .auth import Authenticator, parse_users
from .config import (
    AUTH_DOMAIN,
    AUTH_USERS,
    COMPANY_TAG,
    LISTEN_BACKLOG,
    MAX_BODY_BYTES as MAX_BODY_BYTES_CONFIG,
    MAX_CONCURRENT_RENDERS,
    MAX_INFLIGHT_RENDERS,
    MAX_PAGES as MAX_PAGES_CONFIG,
    PREFERENCES_PATH,
    RENDER_QUEUE_TIMEOUT_MS,
    RENDER_TIMEOUT_MS,
    STORAGE_DIR,
    Preferences,
    load_preferences,
    save_preferences,
)
from .images import ImageError, downscale_to_data_url
from .models import Quotation
from .pagination import LayoutBudget, estimate_page_count
from .preview import build_preview
from .storage import InvalidFileName, QuotationNotFound, QuotationStore, StorageError

logger = logging.getLogger(__name__)

RENDER_INFLIGHT_SEMAPHORE = threading.BoundedSemaphore(MAX_INFLIGHT_RENDERS)
RENDER_EXECUTOR_LOCK = threading.Lock()
RENDER_EXECUTOR: Optional[ProcessPoolExecutor] = None
ValidationError = Tuple[int, Dict[str, Any]]
Response = Tuple[int, Dict[str, Any]]

LAYOUT_BUDGET = LayoutBudget.from_env()
STORE = QuotationStore(STORAGE_DIR)
AUTHENTICATOR = Authenticator(parse_users(AUTH_USERS, AUTH_DOMAIN), AUTH_DOMAIN)
PREFERENCES = Preferences()
PREFERENCES_LOCK = threading.Lock()

RENDER_PATHS = ("/", "/quotation", "/generate")
HEALTH_PATHS = ("/", "/health", "/healthz", "/ready")
RECORDS_PATH = "/quotations"
HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

DISCONNECT_ERRNOS = {errno.EPIPE, errno.ECONNRESET, errno.ETIMEDOUT}


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


def load_render_quotation():
    try:
        from .rendering import render_quotation
    except ModuleNotFoundError as exc:
        if exc.name == "fpdf":
            raise DependencyError(
                "Missing dependency 'fpdf2'. Install the project with 'pip install -e .'."
            ) from exc
        raise
    return render_quotation


def create_render_executor() -> ProcessPoolExecutor:
    return ProcessPoolExecutor(
        max_workers=MAX_CONCURRENT_RENDERS,
        mp_context=mp.get_context("spawn"),
    )


def get_render_executor() -> ProcessPoolExecutor:
    global RENDER_EXECUTOR
    with RENDER_EXECUTOR_LOCK:
        if RENDER_EXECUTOR is None:
            RENDER_EXECUTOR = create_render_executor()
        return RENDER_EXECUTOR


def restart_render_executor(previous: ProcessPoolExecutor) -> ProcessPoolExecutor:
    global RENDER_EXECUTOR
    with RENDER_EXECUTOR_LOCK:
        if RENDER_EXECUTOR is previous:
            logger.warning("Render worker pool is broken; restarting it")
            previous.shutdown(wait=False, cancel_futures=True)
            RENDER_EXECUTOR = create_render_executor()
        if RENDER_EXECUTOR is None:
            RENDER_EXECUTOR = create_render_executor()
        return RENDER_EXECUTOR


def submit_render_job(payload: Dict[str, Any]):
    render_quotation = load_render_quotation()
    executor = get_render_executor()
    try:
        return executor.submit(render_quotation, payload)
    except BrokenProcessPool:
        return restart_render_executor(executor).submit(render_quotation, payload)


def shutdown_render_executor() -> None:
    global RENDER_EXECUTOR
    with RENDER_EXECUTOR_LOCK:
        executor = RENDER_EXECUTOR
        RENDER_EXECUTOR = None
    if executor is not None:
        executor.shutdown(wait=False, cancel_futures=True)


atexit.register(shutdown_render_executor)


def parse_json_object(body: bytes) -> Tuple[Optional[Dict[str, Any]], Optional[ValidationError]]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None, (
            400,
            {"error": "invalid_encoding", "detail": "Body must be UTF-8 encoded JSON."},
        )
    except json.JSONDecodeError as exc:
        return None, (
            400,
            {
                "error": "invalid_json",
                "detail": f"{exc.msg} (line {exc.lineno}, column {exc.colno})",
            },
        )

    if not isinstance(payload, dict):
        return None, (
            400,
            {"error": "invalid_payload", "detail": "JSON root must be an object."},
        )
    return payload, None


def validate_quotation_payload(
    body: bytes,
    max_pages: int,
    budget: Optional[LayoutBudget] = None,
) -> Tuple[Optional[Dict[str, Any]], Optional[ValidationError]]:
    payload, error = parse_json_object(body)
    if error is not None:
        return None, error
    assert payload is not None

    items = payload.get("items", [])
    if items is None:
        items = []
    if not isinstance(items, list):
        return None, (
            400,
            {"error": "invalid_payload", "detail": "'items' must be an array."},
        )

    quotation = Quotation.from_dict(payload)
    page_count = estimate_page_count(quotation.items, budget or LAYOUT_BUDGET)
    if page_count > max_pages:
        return None, (
            413,
            {
                "error": "quotation_too_large",
                "detail": f"Quotation would render {page_count} pages; maximum is {max_pages}.",
                "page_count": page_count,
            },
        )

    return payload, None


def handle_record_request(
    method: str,
    name: Optional[str],
    body: Optional[bytes],
    store: QuotationStore,
    theme_color: Optional[str] = None,
) -> Response:
    """Route a ``/quotations[/<name>]`` request to the store."""
    try:
        if method == "GET" and name is None:
            records = [record.to_dict() for record in store.list_records()]
            return 200, {"quotations": records}
        if method == "GET":
            return 200, store.load(name, theme_color=theme_color).to_dict()
        if method == "DELETE" and name is not None:
            store.delete(name)
            return 200, {"deleted": name}
        if method == "POST" and name is None:
            payload, error = parse_json_object(body or b"")
            if error is not None:
                return error
            assert payload is not None
            saved = store.save(Quotation.from_dict(payload))
            return 200, {"file_name": saved.file_name, "updated_at": saved.updated_at}
    except InvalidFileName as exc:
        return 400, {"error": "invalid_file_name", "detail": str(exc)}
    except QuotationNotFound as exc:
        return 404, {"error": "quotation_not_found", "detail": f"No quotation named {str(exc)!r}."}
    except StorageError as exc:
        logger.error("Storage failure on %s %r: %s", method, name, exc)
        return 500, {"error": "storage_error", "detail": str(exc)}
    return 405, {"error": "method_not_allowed", "detail": f"{method} is not supported here."}


def update_preferences(body: bytes, path: Optional[str] = None) -> Response:
    global PREFERENCES
    payload, error = parse_json_object(body)
    if error is not None:
        return error
    assert payload is not None

    theme = payload.get("theme_color")
    if not isinstance(theme, str) or not HEX_COLOR_RE.match(theme.strip()):
        return 400, {"error": "invalid_payload", "detail": "'theme_color' must be a hex colour like #1f2937."}

    preferences = Preferences(theme_color=theme.strip())
    with PREFERENCES_LOCK:
        try:
            save_preferences(preferences, path or PREFERENCES_PATH)
        except OSError as exc:
            logger.error("Could not save preferences: %s", exc)
            return 500, {"error": "storage_error", "detail": f"Could not save preferences: {exc}"}
        PREFERENCES = preferences
    return 200, asdict(preferences)


def split_record_path(path: str) -> Tuple[bool, Optional[str]]:
    """Return ``(is_record_path, decoded_name)`` for ``/quotations[/<name>]``."""
    if path.rstrip("/") == RECORDS_PATH:
        return True, None
    prefix = RECORDS_PATH + "/"
    if path.startswith(prefix) and len(path) > len(prefix):
        return True, unquote(path[len(prefix):])
    return False, None


class QuotationHandler(BaseHTTPRequestHandler):
    MAX_BODY_BYTES = MAX_BODY_BYTES_CONFIG
    MAX_PAGES = MAX_PAGES_CONFIG

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
            for key, value in (headers or {}).items():
                self.send_header(key, value)
            self.end_headers()
            self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> bool:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return self._write_response(status, "application/json; charset=utf-8", body, headers)

    def _not_found(self) -> None:
        self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})

    def _route(self) -> str:
        return urlsplit(self.path).path or "/"

    def _authorized(self) -> bool:
        if AUTHENTICATOR.check_header(self.headers.get("Authorization")):
            return True
        self._send_json(
            401,
            {"error": "unauthorized", "detail": "Valid credentials are required."},
            headers={"WWW-Authenticate": 'Basic realm="quotations"'},
        )
        return False

    def _read_body(self) -> Optional[bytes]:
        header = self.headers.get("Content-Length")
        if header is None:
            self._send_json(
                411,
                {
                    "error": "missing_content_length",
                    "detail": "Content-Length header is required.",
                },
            )
            return None

        try:
            content_length = int(header)
        except ValueError:
            self._send_json(
                400,
                {
                    "error": "invalid_content_length",
                    "detail": "Content-Length must be an integer.",
                },
            )
            return None

        if content_length <= 0:
            self._send_json(400, {"error": "empty_body", "detail": "Request body cannot be empty."})
            return None

        if content_length > self.MAX_BODY_BYTES:
            self._send_json(
                413,
                {
                    "error": "payload_too_large",
                    "detail": f"Body exceeds {self.MAX_BODY_BYTES} bytes.",
                },
            )
            return None

        try:
            return self.rfile.read(content_length)
        except Exception as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def _handle_records(self, method: str, name: Optional[str]) -> None:
        if not self._authorized():
            return
        body = None
        if method == "POST":
            body = self._read_body()
            if body is None:
                return
        status, payload = handle_record_request(
            method,
            name,
            body,
            STORE,
            theme_color=PREFERENCES.theme_color,
        )
        self._send_json(status, payload)

    def _handle_layout(self) -> None:
        body = self._read_body()
        if body is None:
            return
        payload, validation_error = validate_quotation_payload(body, self.MAX_PAGES)
        if validation_error is not None:
            status, payload_body = validation_error
            self._send_json(status, payload_body)
            return
        assert payload is not None
        self._send_json(200, build_preview(payload, LAYOUT_BUDGET, company_tag=COMPANY_TAG))

    def _handle_image(self) -> None:
        body = self._read_body()
        if body is None:
            return
        try:
            data_url = downscale_to_data_url(body)
        except ImageError as exc:
            self._send_json(400, {"error": "invalid_image", "detail": str(exc)})
            return
        self._send_json(200, {"data_url": data_url})

    def _handle_render(self) -> None:
        body = self._read_body()
        if body is None:
            return

        payload, validation_error = validate_quotation_payload(body, self.MAX_PAGES)
        if validation_error is not None:
            status, payload_body = validation_error
            self._send_json(status, payload_body)
            return

        acquired = RENDER_INFLIGHT_SEMAPHORE.acquire(timeout=RENDER_QUEUE_TIMEOUT_MS / 1000.0)
        if not acquired:
            retry_after_seconds = max(1, (RENDER_QUEUE_TIMEOUT_MS + 999) // 1000)
            self._send_json(
                503,
                {
                    "error": "server_busy",
                    "detail": "Render queue is full; retry shortly.",
                    "retry_after_ms": RENDER_QUEUE_TIMEOUT_MS,
                    "retry_after_seconds": retry_after_seconds,
                    "max_concurrent_renders": MAX_CONCURRENT_RENDERS,
                    "max_inflight_renders": MAX_INFLIGHT_RENDERS,
                },
            )
            return

        future = None
        try:
            future = submit_render_job(payload)
            pdf_bytes = future.result(timeout=RENDER_TIMEOUT_MS / 1000.0)
        except FutureTimeoutError:
            if future is not None:
                future.cancel()
            logger.warning("Render exceeded %d ms", RENDER_TIMEOUT_MS)
            self._send_json(
                504,
                {
                    "error": "render_timeout",
                    "detail": f"Render exceeded timeout of {RENDER_TIMEOUT_MS} ms.",
                },
            )
            return
        except BrokenProcessPool:
            restart_render_executor(get_render_executor())
            self._send_json(
                503,
                {
                    "error": "render_pool_restarting",
                    "detail": "Render worker pool restarted; retry shortly.",
                },
            )
            return
        except Exception as exc:
            logger.exception("Quotation render failed")
            self._send_json(500, {"error": "render_failed", "detail": str(exc)})
            return
        finally:
            RENDER_INFLIGHT_SEMAPHORE.release()

        self._write_response(200, "application/pdf", pdf_bytes)

    def do_POST(self) -> None:
        route = self._route()
        is_record, name = split_record_path(route)
        if is_record:
            self._handle_records("POST", name)
        elif route == "/layout":
            self._handle_layout()
        elif route == "/images":
            self._handle_image()
        elif route in RENDER_PATHS:
            self._handle_render()
        else:
            self._not_found()

    def do_GET(self) -> None:
        route = self._route()
        is_record, name = split_record_path(route)
        if is_record:
            self._handle_records("GET", name)
        elif route == "/preferences":
            self._send_json(200, asdict(PREFERENCES))
        elif route in HEALTH_PATHS:
            self._send_json(200, {"status": "ok"})
        else:
            self._not_found()

    def do_PUT(self) -> None:
        if self._route() != "/preferences":
            self._not_found()
            return
        body = self._read_body()
        if body is None:
            return
        status, payload = update_preferences(body)
        self._send_json(status, payload)

    def do_DELETE(self) -> None:
        is_record, name = split_record_path(self._route())
        if not is_record or name is None:
            self._not_found()
            return
        self._handle_records("DELETE", name)

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        return


class QuotationHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True
    request_queue_size = LISTEN_BACKLOG


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    global PREFERENCES
    load_render_quotation()
    get_render_executor()
    PREFERENCES = load_preferences(PREFERENCES_PATH)
    if not AUTHENTICATOR.enabled:
        logger.warning("QUOTATION_AUTH_USERS is not set; stored quotations are not access controlled")
    server = QuotationHTTPServer((host, port), QuotationHandler)
    logger.info("Quotation API server listening on http://%s:%s", host, port)
    server.serve_forever()
