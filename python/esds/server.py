# Copyright Rand Arete @ Ananke 2025
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Development server.

Serves a directory over HTTP. Requests are tried, in order, against:

1. the module handler (.js/.mjs files with rewritten imports)
2. static files under the root
3. the single page app entry, for GET/HEAD requests that accept HTML
4. a plain 404

Usage:
    python -m esds.server [--root DIR] [--host HOST] [--port PORT] [--entry FILE]

Examples:
    python -m esds.server --port 3000
    python -m esds.server --root ./web --entry index.html
"""

from __future__ import annotations

import argparse
import functools
import logging
import os
import sys
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Optional

from .cache import FileObserver, ResponseCache
from .config import ServerConfig
from .handler import ModuleHandler, Request, Response
from .logging_utils import configure_logging
from .resolvers import NodeModuleResolver
from .rewriter import ImportRewriter

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = b"Sorry can't find that!"


def accepts_html(accept: Optional[str]) -> bool:
    """Whether an Accept header value allows an HTML response."""
    if not accept:
        return True
    for item in accept.split(","):
        media_type = item.split(";")[0].strip().lower()
        if media_type in ("text/html", "text/*", "*/*"):
            return True
    return False


class DevRequestHandler(SimpleHTTPRequestHandler):
    """Request handler chaining modules, static files and the SPA entry."""

    module_handler: ModuleHandler
    entry: Optional[str] = None

    def do_GET(self) -> None:
        self._dispatch(super().do_GET)

    def do_HEAD(self) -> None:
        self._dispatch(super().do_HEAD)

    def _dispatch(self, serve_static) -> None:
        request = Request(
            method=self.command,
            path=self.path,
            headers={key.lower(): value for key, value in self.headers.items()},
        )
        response = self.module_handler.handle(request)
        if response is not None:
            self._write(response)
            return

        if self._static_exists():
            serve_static()
            return

        if self.entry and accepts_html(self.headers.get("accept")):
            entry = self.entry.lstrip("/")
            if os.path.isfile(os.path.join(self.directory, entry)):
                self.path = "/" + entry
                serve_static()
                return

        self._not_found()

    def _static_exists(self) -> bool:
        local = self.translate_path(self.path)
        if os.path.isdir(local):
            return os.path.isfile(os.path.join(local, "index.html"))
        return os.path.isfile(local)

    def _write(self, response: Response) -> None:
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        if "content-length" not in response.headers and response.status != HTTPStatus.NOT_MODIFIED:
            self.send_header("content-length", str(len(response.body)))
        self.end_headers()
        if response.body and self.command != "HEAD":
            self.wfile.write(response.body)

    def _not_found(self) -> None:
        self.send_response(HTTPStatus.NOT_FOUND)
        self.send_header("content-type", "text/plain; charset=utf-8")
        self.send_header("content-length", str(len(NOT_FOUND_BODY)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(NOT_FOUND_BODY)

    def log_message(self, format: str, *args) -> None:
        logger.info(f"{self.address_string()} {format % args}")


def create_server(
    config: ServerConfig,
    cache: Optional[ResponseCache] = None,
) -> ThreadingHTTPServer:
    """Create (but do not start) a threaded dev server for config."""
    root = config.root_path
    rewriter = ImportRewriter(NodeModuleResolver(extensions=config.extensions))
    module_handler = ModuleHandler(root, cache=cache, rewriter=rewriter)

    handler_class = type(
        "BoundDevRequestHandler",
        (DevRequestHandler,),
        {"module_handler": module_handler, "entry": config.entry},
    )
    server = ThreadingHTTPServer(
        (config.host, config.port),
        functools.partial(handler_class, directory=root),
    )
    server.daemon_threads = True
    return server


def log_cache_stats(cache: ResponseCache) -> None:
    stats = cache.stats
    logger.info(
        f"Cache: {stats.hits} hits, {stats.misses} misses, {stats.coalesced} coalesced, "
        f"{stats.invalidations} invalidations, {stats.failures} failures "
        f"(hit rate {stats.hit_rate:.0%})"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve ES modules with node-style import resolution"
    )
    parser.add_argument(
        "--root",
        help="Directory to serve (default: current directory)"
    )
    parser.add_argument(
        "--host",
        help="Interface to bind (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: 8080)"
    )
    parser.add_argument(
        "--entry",
        help="File served for unknown routes that accept HTML, e.g. index.html"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: INFO)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig.from_env().with_overrides(
            root=args.root,
            host=args.host,
            port=args.port,
            entry=args.entry,
            log_level=args.log_level,
        )
    except ValueError as e:
        print(f"esds: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)
    observer = FileObserver()
    cache = ResponseCache(observer=observer)
    server = create_server(config, cache)
    host, port = server.server_address[:2]
    logger.info(f"Serving {config.root_path} on http://{host}:{port}")

    observer.start()
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
        observer.stop()
        log_cache_stats(cache)
    return 0


if __name__ == "__main__":
    sys.exit(main())
