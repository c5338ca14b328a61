"""Development server for Stitch.

Serves the output tree with live reload and sane defaults for local authoring:
- Injects a reload script into HTML responses (never into the output files).
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Pushes a reload message to every connected browser after each rebuild.

Key classes:
- LiveReloadServer: HTTP server plus websocket broadcaster.
- DevServer: Initial build, rebuild loop and live reload server together.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
"""

from __future__ import annotations

import asyncio
import functools
import json
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets

from .build import BuildReport, SiteBuilder
from .errors import WatchError
from .html_utils import insert_before_body_end
from .logging import get_logger
from .watcher import RebuildLoop

logger = get_logger("server")

RELOAD_MESSAGE = json.dumps({"type": "reload"})


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=3031)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_html(self, status: int, content: str):
        encoded = insert_before_body_end(content, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)
        return None

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.is_file():
            return self._send_html(404, error_page.read_text(encoding="utf-8"))
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.is_file():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.is_file():
            return self._serve_404()

        if path_obj.suffix.lower() == ".html":
            return self._send_html(200, path_obj.read_text(encoding="utf-8"))
        return super().send_head()


class LiveReloadServer:
    """Serves a directory over HTTP and broadcasts reloads over websockets.

    Attributes:
        directory: Directory served over HTTP.
        host: Interface both servers bind to.
        http_port: Port for the HTTP server.
        ws_port: Port for WebSocket connections.
    """

    def __init__(self, directory: Path, http_port: int = 3030, ws_port: int = 3031, host: str = "127.0.0.1"):
        self.directory = directory
        self.host = host
        self.http_port = http_port
        self.ws_port = ws_port
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=ws_port)
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._ws_done: asyncio.Future | None = None
        self._httpd: ThreadingHTTPServer | None = None

    def start(self) -> None:  # pragma: no cover - integration path
        threading.Thread(target=self._start_http, name="stitch-http", daemon=True).start()
        threading.Thread(target=self._start_ws, name="stitch-ws", daemon=True).start()

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd = None
        if self._ws_done is not None:
            self._loop.call_soon_threadsafe(self._finish_ws)

    def _finish_ws(self) -> None:
        if self._ws_done is not None and not self._ws_done.done():
            self._ws_done.set_result(None)

    def _handler_class(self) -> type:
        return type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(self._handler_class(), directory=str(self.directory))
        self._httpd = ThreadingHTTPServer((self.host, self.http_port), handler)
        logger.info("Serving %s at http://%s:%d", self.directory, self.host, self.http_port)
        self._httpd.serve_forever()

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        self._ws_done = self._loop.create_future()
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await self._ws_done

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def notify_reload(self) -> None:
        """Schedule a reload broadcast without waiting for it.

        With no connected clients the signal is simply dropped.
        """
        asyncio.run_coroutine_threadsafe(self._async_broadcast(RELOAD_MESSAGE), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
        if self._ws_clients:
            logger.debug("Reload sent to %d client(s)", len(self._ws_clients))


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        builder: Site builder for the source tree.
        loop: Rebuild loop watching the source tree.
        live: Live reload server for the output tree.
    """

    def __init__(
        self,
        source_root: Path,
        output_dir: Path | None = None,
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        """Initialize the development server.

        Args:
            source_root: Root of the source tree.
            output_dir: Optional override for the configured output directory.
            http_port: Optional override for HTTP port.
            ws_port: Optional override for the websocket port; defaults to
                the HTTP port + 1 when only the HTTP port is overridden.
        """
        self.builder = SiteBuilder(source_root, output_dir=output_dir)
        config = self.builder.config
        base_http = int(http_port or config.get("port", 3030))
        if ws_port is not None:
            resolved_ws = ws_port
        elif http_port is not None:
            resolved_ws = base_http + 1
        else:
            resolved_ws = int(config.get("ws_port", base_http + 1))
        self.http_port = base_http
        self.ws_port = resolved_ws
        self.live = LiveReloadServer(self.builder.output_dir, http_port=self.http_port, ws_port=self.ws_port)
        self.loop = RebuildLoop.for_builder(self.builder)
        self.builder.add_listener(self._on_build)

    def _on_build(self, report: BuildReport) -> None:
        # One reload per completed build that touched the output, including
        # partially failed ones: their healthy pages did change. Aborted
        # builds never reach listeners.
        if report.has_changes:
            self.live.notify_reload()

    def start(self) -> None:  # pragma: no cover - integration path
        self.loop.build_once()
        self.live.start()
        self.watch()
        try:
            while True:
                time.sleep(1)
                if self.loop.error is not None and not self.loop.running:
                    logger.warning("Still serving the last build; restart to resume watching")
                    self.loop.error = None
        except KeyboardInterrupt:
            self.stop()

    def watch(self) -> bool:
        """Start the rebuild loop; a watcher failure leaves the server serving."""
        try:
            self.loop.start()
        except WatchError as exc:
            logger.error("%s; serving without watching", exc)
            return False
        return True

    def stop(self) -> None:
        self.loop.stop()
        self.live.stop()
