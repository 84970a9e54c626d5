"""HTTP endpoint serving the merged calendar.

Routes:
  GET /tucan.ics  -> merged calendar (text/calendar), 503 before the first pass
  GET /health     -> "OK"
"""

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from src.campusnet.logging import get_logger
from src.campusnet.store import CalendarStore

logger = get_logger(__name__)

CALENDAR_PATH = "/tucan.ics"
HEALTH_PATH = "/health"


class CalendarServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], store: CalendarStore) -> None:
        super().__init__(address, CalendarHandler)
        self.store = store


class CalendarHandler(BaseHTTPRequestHandler):
    server: CalendarServer

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path == CALENDAR_PATH:
            merged = self.server.store.merged
            if merged is None:
                self._send(503, b"Calendar not available yet", "text/plain; charset=utf-8")
                return
            self._send(200, merged.encode("utf-8"), "text/calendar; charset=utf-8")
            return
        if path == HEALTH_PATH:
            self._send(200, b"OK", "text/plain; charset=utf-8")
            return
        self._send(404, b"Not Found", "text/plain; charset=utf-8")

    def _send(self, code: int, body: bytes, content_type: str) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("http_request", client=self.client_address[0], message=format % args)


def make_server(host: str, port: int, store: CalendarStore) -> CalendarServer:
    server = CalendarServer((host, port), store)
    logger.info("http_server_bound", host=host, port=server.server_address[1])
    return server
