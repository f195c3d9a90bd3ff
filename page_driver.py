"""Headless drivers for the lookup page.

Two ways of getting the page into Chromium:

- ``InlinePageDriver`` never opens a socket. The document is fulfilled from
  memory through request interception and every other request the page
  issues is replayed with ``requests``, so the page's ``fetch`` behaves as if
  it ran on the host rather than inside a browser origin.
- ``ServedPageDriver`` serves the HTML file over a local HTTP listener and
  navigates to it like a user would.

Both expose the same small surface: set a field, read a field, wait.
"""

import logging
import re
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urljoin, urlsplit

import requests
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

logger = logging.getLogger(__name__)

# --- Config ---
DEFAULT_PORT = 8080
INLINE_BASE_URL = "http://localhost/"
NAVIGATION_TIMEOUT_MS = 60_000
WAIT_TIMEOUT_MS = 30_000
POLL_INTERVAL_MS = 200
PROXY_TIMEOUT_S = 30

BLOCKED_RESOURCE_TYPES = {"image", "font", "media"}
# Hop-by-hop or already-decoded headers that must not be replayed verbatim.
DROPPED_PROXY_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}

SET_VALUE_JS = """(el, value) => {
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
}"""
READ_VALUE_JS = "el => el.value"
MATCH_RESULT_JS = """(pattern) => {
    const el = document.querySelector('#result');
    return !!el && new RegExp(pattern, 'i').test(el.value);
}"""
# Mirrors what a bare DOM gives the page: dialogs and editing commands do nothing.
PAGE_STUBS_JS = """
window.alert = () => {};
document.execCommand = () => false;
"""


class WaitTimeout(TimeoutError):
    pass


def field_selector(name):
    return f"#{name}"


class PageDriver:
    """Shared field access and polling on top of a Playwright page."""

    launch_args = ()

    def __init__(self):
        self._playwright = None
        self._browser = None
        self.page = None

    def __enter__(self):
        try:
            self.load()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def load(self):
        raise NotImplementedError

    def _launch(self):
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=True, args=list(self.launch_args)
        )
        return self._browser

    def set_field(self, name, value):
        self.page.eval_on_selector(field_selector(name), SET_VALUE_JS, value)

    def read_field(self, name):
        return self.page.eval_on_selector(field_selector(name), READ_VALUE_JS)

    def read_result(self):
        return self.read_field("result")

    def delay(self, ms):
        # wait_for_timeout keeps route handlers serviced; time.sleep would not.
        self.page.wait_for_timeout(ms)

    def wait_for(self, predicate, timeout_ms=WAIT_TIMEOUT_MS, interval_ms=POLL_INTERVAL_MS):
        deadline = time.monotonic() + timeout_ms / 1000
        while time.monotonic() < deadline:
            try:
                if predicate(self.read_result()):
                    return
            except Exception as exc:
                logger.debug("wait_for predicate_error=%r", exc)
            self.delay(interval_ms)
        raise WaitTimeout("Timeout waiting for condition")

    def wait_for_text(self, pattern, timeout_ms=WAIT_TIMEOUT_MS):
        regex = re.compile(pattern, re.IGNORECASE)
        self.wait_for(lambda text: bool(regex.search(text or "")), timeout_ms=timeout_ms)

    def screenshot(self, path):
        if self.page is None:
            return False
        try:
            self.page.screenshot(path=path)
        except Exception as exc:
            logger.warning("screenshot_failed path=%s error=%s", path, exc)
            return False
        logger.info("screenshot_saved path=%s", path)
        return True

    def close(self):
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        self.page = None


class InlinePageDriver(PageDriver):
    def __init__(self, html, base_url=INLINE_BASE_URL, session=None):
        super().__init__()
        self.html = html
        self.base_url = base_url
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._page_urls = {base_url, urljoin(base_url, "index.html")}

    def load(self):
        browser = self._launch()
        context = browser.new_context()
        context.add_init_script(PAGE_STUBS_JS)
        context.route("**/*", self._handle_route)
        self.page = context.new_page()
        logger.info("inline_load url=%s bytes=%s", self.base_url, len(self.html))
        self.page.goto(self.base_url, wait_until="load")
        return self

    def _handle_route(self, route):
        request = route.request
        if request.url in self._page_urls:
            route.fulfill(
                status=200,
                content_type="text/html; charset=utf-8",
                body=self.html,
            )
        elif request.resource_type in BLOCKED_RESOURCE_TYPES:
            route.abort()
        else:
            self._proxy(route)

    def _proxy(self, route):
        request = route.request
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.post_data_buffer,
                allow_redirects=True,
                timeout=PROXY_TIMEOUT_S,
            )
        except requests.RequestException as exc:
            logger.warning(
                "inline_proxy_failed host=%s error=%s", urlsplit(request.url).netloc, exc
            )
            route.abort("failed")
            return

        headers = {
            k: v for k, v in response.headers.items() if k.lower() not in DROPPED_PROXY_HEADERS
        }
        headers["Access-Control-Allow-Origin"] = "*"
        logger.debug(
            "inline_proxy status=%s host=%s bytes=%s",
            response.status_code,
            urlsplit(request.url).netloc,
            len(response.content),
        )
        route.fulfill(status=response.status_code, headers=headers, body=response.content)

    def close(self):
        super().close()
        if self._owns_session:
            self.session.close()


def _page_handler(html_path):
    class PageHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path not in ("/", "/index.html"):
                self._not_found()
                return
            try:
                with open(html_path, "rb") as f:
                    data = f.read()
            except OSError:
                self._not_found()
                return
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def _not_found(self):
            body = b"Not found"
            self.send_response(404)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            logger.debug("page_server %s", format % args)

    return PageHandler


def serve_page(html_path, port=DEFAULT_PORT, host=""):
    """Start a background server for ``html_path``; caller must ``shutdown()`` it."""
    server = ThreadingHTTPServer((host, port), _page_handler(html_path))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info("page_server listening port=%s path=%s", server.server_address[1], html_path)
    return server


class ServedPageDriver(PageDriver):
    launch_args = ("--no-sandbox", "--disable-setuid-sandbox")

    def __init__(self, html_path, port=DEFAULT_PORT, navigation_timeout_ms=NAVIGATION_TIMEOUT_MS):
        super().__init__()
        self.html_path = html_path
        self.port = port
        self.navigation_timeout_ms = navigation_timeout_ms
        self._server = None

    @property
    def url(self):
        return f"http://localhost:{self.port}/"

    def load(self):
        self._server = serve_page(self.html_path, self.port)
        browser = self._launch()
        self.page = browser.new_page()
        logger.info("served_load url=%s", self.url)
        self.page.goto(self.url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        return self

    def wait_for_text(self, pattern, timeout_ms=WAIT_TIMEOUT_MS):
        try:
            self.page.wait_for_function(MATCH_RESULT_JS, arg=pattern, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise WaitTimeout("Timeout waiting for condition") from exc

    def close(self):
        super().close()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
