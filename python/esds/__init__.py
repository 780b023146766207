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
"""ESDS: an ES module dev server.

ESDS serves JavaScript modules to the browser with their bare import
specifiers rewritten to relative paths found by node's resolution
algorithm, so `import { LitElement } from 'lit-element'` loads
`../node_modules/lit-element/lit-element.js` without a build step.

Key Components:
    - resolvers: node-style specifier resolution with ES module entry points
    - parsing: locating import/export/import() specifiers with tree-sitter
    - rewriter: resolving and splicing the replacement specifiers
    - cache: rewritten modules with per-file invalidation
    - handler: request handling and the WSGI middleware
    - server: the development server command

Usage:
    python -m esds.server --root . --port 8080
"""

__version__ = "0.3.0"


# Use lazy imports so that importing the package does not pull in the parser
def __getattr__(name: str):
    """Lazy import of module attributes."""
    if name in ("ImportRewriter", "RewriteResult", "rewrite_imports"):
        from .rewriter import ImportRewriter, RewriteResult, rewrite_imports

        return locals()[name]

    if name in ("NodeModuleResolver", "ImportResolution"):
        from .resolvers import ImportResolution, NodeModuleResolver

        return locals()[name]

    if name in ("ResponseCache", "CachedResponse"):
        from .cache import CachedResponse, ResponseCache

        return locals()[name]

    if name in ("ModuleHandler", "ModuleMiddleware", "module_middleware"):
        from .handler import ModuleHandler, ModuleMiddleware, module_middleware

        return locals()[name]

    if name == "ServerConfig":
        from .config import ServerConfig

        return ServerConfig

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CachedResponse",
    "ImportResolution",
    "ImportRewriter",
    "ModuleHandler",
    "ModuleMiddleware",
    "NodeModuleResolver",
    "ResponseCache",
    "RewriteResult",
    "ServerConfig",
    "module_middleware",
    "rewrite_imports",
]
