"""Development server for mdblog.

Serves the build directory and rebuilds the blog when its sources change:
- HTTP requests are answered from the build directory by a threaded
  ``http.server``; directory listings and missing paths get a 404.
- HTML responses get a small script that reloads the page when the
  websocket server announces a finished rebuild.
- The main thread runs the RebuildWatcher loop.

The server only reads files from disk and shares no in-memory state with the
watcher. A request that lands while a rebuild is overwriting a page may see
that page half written; the next reload fixes it.

Key classes:
- DevServer: Starts the HTTP and websocket threads and runs the watch loop.
- _BuildDirHandler: Request handler for the build directory.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import webbrowser
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import TYPE_CHECKING

import websockets

from .errors import AddressParseError
from .watcher import RebuildWatcher

if TYPE_CHECKING:
    from .blog import Mdblog

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000

RELOAD_SCRIPT_TEMPLATE = """
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


def parse_address(value: str) -> tuple[str, int]:
    """Split a ``host:port`` string.

    Raises:
        AddressParseError: If the host is empty or the port is not a valid number.
    """
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise AddressParseError(f"invalid address {value!r}: expected host:port")
    try:
        number = int(port)
    except ValueError as exc:
        raise AddressParseError(f"invalid port in address {value!r}") from exc
    if not 0 <= number <= 65535:
        raise AddressParseError(f"port out of range in address {value!r}")
    return host, number


def inject_reload_script(html: str, script: str) -> str:
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


class _BuildDirHandler(SimpleHTTPRequestHandler):
    """Serves the build directory without listings and with live reload."""

    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - send_head never lists
        self.send_error(404, "File not found")
        return None

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def send_head(self):
        path = Path(self.translate_path(self.path))
        if path.is_dir():
            path = path / "index.html"
        if not path.is_file():
            self.send_error(404, "File not found")
            return None
        if path.suffix != ".html" or not self.reload_script:
            return super().send_head()
        content = inject_reload_script(path.read_text(encoding="utf-8"), self.reload_script)
        encoded = content.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)
        return None


class DevServer:
    """Serves a blog's build directory and rebuilds it on change.

    Attributes:
        blog: The blog being served.
        host: HTTP bind host.
        port: HTTP port.
        ws_port: Websocket port for reload notifications.
        build_dir: Directory served over HTTP.
        watcher: The RebuildWatcher, once started.
    """

    def __init__(
        self,
        blog: Mdblog,
        port: int = DEFAULT_PORT,
        ws_port: int | None = None,
        open_browser: bool = True,
    ):
        self.blog = blog
        self.host, self.port = parse_address(f"{DEFAULT_HOST}:{port}")
        self.ws_port = ws_port if ws_port is not None else self.port + 1
        self.open_browser = open_browser
        self.build_dir = blog.build_dir
        self.reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self.watcher: RebuildWatcher | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:  # pragma: no cover - integration path
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        logger.info("server blog at %s", self.url)
        if self.open_browser:
            webbrowser.open(self.url)
        self.watcher = self.create_watcher()
        try:
            self.watcher.run()
        except KeyboardInterrupt:
            logger.info("stopping server ...")
        finally:
            self.stop()

    def create_watcher(self) -> RebuildWatcher:
        blog = self.blog
        return RebuildWatcher(
            blog,
            blog.root.absolute(),
            blog.ignore_patterns(),
            interval=blog.settings.rebuild_interval,
            on_rebuilt=self._broadcast_reload,
        )

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def handler_class(self) -> type[_BuildDirHandler]:
        return type(
            "_BuildDirHandlerWithReload",
            (_BuildDirHandler,),
            {"reload_script": self.reload_script},
        )

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(self.handler_class(), directory=str(self.build_dir))
        httpd = ThreadingHTTPServer((self.host, self.port), handler)
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("websocket server failed to start (port %s): %s", self.ws_port, exc)
        except RuntimeError:
            # Raised when stop() halts the loop.
            pass

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
