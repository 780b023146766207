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
"""HTTP-facing entry point for module requests.

ModuleHandler answers requests for .js and .mjs files under a root
directory with their rewritten source. Anything else, including modules
that do not exist on disk, is declined by returning None so the caller can
pass the request on to a fallback (static files, an SPA entry, a 404).

ModuleMiddleware adapts the handler to WSGI:

    app = ModuleMiddleware(static_app, ModuleHandler(root="."))
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import quote, unquote, urlsplit

from .cache import CachedResponse, ResponseCache
from .parsing import ModuleParseError
from .rewriter import ImportRewriter

logger = logging.getLogger(__name__)

MODULE_EXTENSIONS = (".js", ".mjs")
HANDLED_METHODS = ("GET", "HEAD")


def request_pathname(target: str) -> str:
    """Percent-decoded path of a request target, without query or fragment."""
    return unquote(urlsplit(target).path) or "/"


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """Whether an if-none-match header value names the etag."""
    return bool(if_none_match) and etag in if_none_match


@dataclass
class Request:
    """The parts of an HTTP request the handler looks at.

    Attributes:
        method: Request method
        path: Request target as sent by the client, query included
        headers: Header map, looked up case-insensitively
    """

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any]) -> Request:
        """Build a request from a WSGI environ."""
        path = quote(
            (environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")).encode("latin-1")
        )
        if environ.get("QUERY_STRING"):
            path += "?" + environ["QUERY_STRING"]
        headers = {
            key[5:].replace("_", "-").lower(): value
            for key, value in environ.items()
            if key.startswith("HTTP_")
        }
        return cls(method=environ.get("REQUEST_METHOD", "GET"), path=path, headers=headers)


@dataclass
class Response:
    """A complete response produced by the handler."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        return f"{self.status} {HTTPStatus(self.status).phrase}"


class ModuleHandler:
    """Serves JavaScript modules with rewritten import specifiers.

    Attributes:
        root: Directory request paths are resolved against
        cache: Cache of rewritten modules, shared by all requests
        rewriter: Rewriter used on cache misses
    """

    def __init__(
        self,
        root: Union[str, Path],
        cache: Optional[ResponseCache] = None,
        rewriter: Optional[ImportRewriter] = None,
    ) -> None:
        self.root = os.path.abspath(root)
        self.cache = cache if cache is not None else ResponseCache()
        self.rewriter = rewriter or ImportRewriter()

    def handles(self, request: Request) -> bool:
        """Whether the request is for a module this handler serves."""
        if request.method.upper() not in HANDLED_METHODS:
            return False
        return request_pathname(request.path).endswith(MODULE_EXTENSIONS)

    def file_path(self, pathname: str) -> Optional[str]:
        """Map a request path to a file under root, None if it escapes root."""
        candidate = os.path.normpath(os.path.join(self.root, pathname.lstrip("/")))
        if os.path.commonpath([self.root, candidate]) != self.root:
            return None
        return candidate

    def handle(self, request: Request) -> Optional[Response]:
        """Answer a module request.

        Returns:
            The response, or None when the request is not for an existing module
        """
        if not self.handles(request):
            return None

        pathname = request_pathname(request.path)
        file_path = self.file_path(pathname)
        if file_path is None or not os.path.isfile(file_path):
            return None

        try:
            entry = self.cache.get_or_build(pathname, file_path, self._build)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except ModuleParseError as e:
            logger.warning(f"Cannot rewrite {file_path}: {e.message}")
            return self._send(
                request,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                e.message.encode("utf-8"),
                {"content-type": "text/plain; charset=utf-8"},
            )

        if etag_matches(request.header("if-none-match"), entry.etag):
            return self._send(request, HTTPStatus.NOT_MODIFIED)

        body = entry.body
        headers = dict(entry.headers)
        headers["content-length"] = str(len(body))
        if request.method.upper() == "HEAD":
            body = b""
        return self._send(request, HTTPStatus.OK, body, headers)

    def _build(self, path: str) -> CachedResponse:
        try:
            with open(path, encoding="utf-8") as f:
                source = f.read()
        except UnicodeDecodeError as e:
            raise ModuleParseError(f"Module is not valid UTF-8: {e}", path=path) from e

        result = self.rewriter.rewrite(path, source)
        if result.parse_error is not None:
            raise result.parse_error

        logger.debug(
            f"Rewrote {len(result.patches)} of {len(result.references)} specifiers in {path}"
        )
        return CachedResponse.for_content(result.code)

    @staticmethod
    def _send(
        request: Request,
        status: int,
        body: bytes = b"",
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        headers = {
            "access-control-allow-origin": "*",
            "x-request-url": request.path,
        }
        if extra_headers:
            headers.update(extra_headers)
        return Response(status=int(status), headers=headers, body=body)


WSGIApp = Callable[[Dict[str, Any], Callable], Iterable[bytes]]


def not_found_app(environ: Dict[str, Any], start_response: Callable) -> List[bytes]:
    """WSGI fallback answering 404."""
    body = b"Sorry can't find that!"
    start_response(
        "404 Not Found",
        [("content-type", "text/plain; charset=utf-8"), ("content-length", str(len(body)))],
    )
    return [body]


class ModuleMiddleware:
    """WSGI middleware serving modules and delegating everything else."""

    def __init__(self, app: Optional[WSGIApp], handler: ModuleHandler) -> None:
        self.app = app or not_found_app
        self.handler = handler

    def __call__(self, environ: Dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        response = self.handler.handle(Request.from_environ(environ))
        if response is None:
            return self.app(environ, start_response)
        start_response(response.status_line, list(response.headers.items()))
        return [response.body]


def module_middleware(
    root: Union[str, Path],
    app: Optional[WSGIApp] = None,
    cache: Optional[ResponseCache] = None,
) -> ModuleMiddleware:
    """Wrap a WSGI app so module requests under root are rewritten."""
    return ModuleMiddleware(app, ModuleHandler(root, cache=cache))
