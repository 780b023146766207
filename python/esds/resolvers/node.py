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
"""Node-style specifier resolver.

This module implements the parts of node's module resolution algorithm that
matter for serving ES modules to a browser:

- Relative and absolute specifiers (./foo, ../bar, /baz)
- Bare package specifiers looked up in ancestor node_modules directories
- Scoped packages (@org/pkg) and package subpaths (pkg/sub/file.js)
- Entry point selection from package.json, preferring the ES module
  fields (module, jsnext, jsnext:main) over main

References:
    - Node.js Module Resolution: https://nodejs.org/api/modules.html
    - jsnext:main: https://github.com/jsforum/jsforum/issues/5
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set, Union

from .base import (
    ImportResolution,
    ImportResolver,
    ResolutionFailure,
    ResolvedModule,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Node.js Built-in Modules
# =============================================================================

NODE_BUILTIN_MODULES: Set[str] = {
    "assert",
    "async_hooks",
    "buffer",
    "child_process",
    "cluster",
    "console",
    "constants",
    "crypto",
    "dgram",
    "dns",
    "events",
    "fs",
    "http",
    "http2",
    "https",
    "module",
    "net",
    "os",
    "path",
    "perf_hooks",
    "process",
    "querystring",
    "readline",
    "stream",
    "string_decoder",
    "timers",
    "tls",
    "tty",
    "url",
    "util",
    "vm",
    "worker_threads",
    "zlib",
}

DEFAULT_EXTENSIONS = (".js", ".mjs", ".cjs", ".json")

MODULE_DIRECTORY = "node_modules"


def is_builtin(specifier: str) -> bool:
    """Whether the specifier names a Node.js built-in (fs, node:path, fs/promises)."""
    if specifier.startswith("node:"):
        return True
    return specifier.split("/")[0] in NODE_BUILTIN_MODULES


def is_path_specifier(specifier: str) -> bool:
    """Whether the specifier is a file-system path rather than a package name."""
    return (
        specifier in (".", "..")
        or specifier.startswith(("./", "../", "/"))
    )


def get_package_name(specifier: str) -> str:
    """Extract the package name from a bare specifier.

    Handles scoped packages (@org/pkg) and subpath imports (pkg/subpath).
    """
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return f"{parts[0]}/{parts[1]}"
    return parts[0]


def to_posix(path: str) -> str:
    """Normalize OS path separators to forward slashes."""
    if os.sep != "/":
        return path.replace(os.sep, "/")
    return path


# =============================================================================
# Package Manifest Parsing
# =============================================================================

@dataclass
class PackageJson:
    """Entry point fields of a package.json.

    Attributes:
        name: Package name
        version: Package version
        main: CommonJS/default entry point
        module: ES module entry point
        jsnext: Legacy ES module entry point (jsnext or jsnext:main)
    """
    name: str = ""
    version: str = "0.0.0"
    main: Optional[str] = None
    module: Optional[str] = None
    jsnext: Optional[str] = None


def _entry_field(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def parse_package_json(path: Path) -> Optional[PackageJson]:
    """Parse package.json file.

    Args:
        path: Path to package.json

    Returns:
        PackageJson if successful, None if file doesn't exist or is invalid
    """
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.debug(f"Ignoring unreadable manifest {path}: {e}")
        return None

    if not isinstance(data, dict):
        return None

    return PackageJson(
        name=data.get("name", ""),
        version=data.get("version", "0.0.0"),
        main=_entry_field(data, "main"),
        module=_entry_field(data, "module"),
        jsnext=_entry_field(data, "jsnext", "jsnext:main"),
    )


def select_entry_point(pkg: Optional[PackageJson]) -> Optional[str]:
    """Pick the entry point a browser should load.

    module wins over jsnext, jsnext wins over main. None means the
    package has no entry field and its index file is used.
    """
    if pkg is None:
        return None
    return pkg.module or pkg.jsnext or pkg.main


class _InvalidEntryPoint(Exception):
    """A manifest names an entry point that does not exist."""


# =============================================================================
# Node Module Resolver
# =============================================================================

class NodeModuleResolver(ImportResolver):
    """Resolver applying node's algorithm with ES module entry preference.

    Example:
        >>> resolver = NodeModuleResolver()
        >>> result = resolver.resolve("lit-element", "/srv/app/src")
        >>> result.relative_path
        '../node_modules/lit-element/lit-element.js'
    """

    def __init__(
        self,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        module_directory: str = MODULE_DIRECTORY,
    ) -> None:
        """Initialize the resolver.

        Args:
            extensions: Suffixes tried after the exact path, in order
            module_directory: Name of package directories to search
        """
        self._extensions = tuple(extensions)
        self._module_directory = module_directory

    @property
    def extensions(self) -> Sequence[str]:
        return self._extensions

    def resolve(self, specifier: str, basedir: Union[str, Path]) -> ImportResolution:
        """Resolve a specifier from the importing module's directory.

        Args:
            specifier: The import specifier
            basedir: Directory of the importing module

        Returns:
            ImportResolution with a forward-slash relative path if found
        """
        basedir = Path(os.path.abspath(basedir))
        searched: List[str] = []

        if not specifier:
            return ImportResolution.failed(specifier, "Empty module specifier")

        # Plain names like "events" may be installed polyfills; only node: is final
        if specifier.startswith("node:"):
            return self._builtin(specifier)

        try:
            if is_path_specifier(specifier):
                target = self._join(basedir, specifier)
                searched.append(str(target))
                found = self._load_as_file(target) or self._load_as_directory(target)
                package_name = None
            else:
                found = None
                package_name = get_package_name(specifier)
                for directory in self._node_modules_paths(basedir):
                    candidate = self._join(directory, specifier)
                    searched.append(str(candidate))
                    found = self._load_as_file(candidate) or self._load_as_directory(candidate)
                    if found:
                        break
        except _InvalidEntryPoint as e:
            return ImportResolution.failed(
                specifier,
                str(e),
                failure=ResolutionFailure.INVALID_ENTRY,
                searched=searched,
            )

        if found is None:
            if not is_path_specifier(specifier) and is_builtin(specifier):
                return self._builtin(specifier, searched)
            return ImportResolution.failed(
                specifier,
                f"Cannot find module '{specifier}' from '{basedir}' "
                f"(searched: {', '.join(searched)})",
                searched=searched,
            )

        return ImportResolution.resolved(
            ResolvedModule(
                specifier=specifier,
                path=str(found),
                relative_path=to_posix(os.path.relpath(found, basedir)),
                package_name=package_name,
            )
        )

    @staticmethod
    def _builtin(specifier: str, searched: Optional[List[str]] = None) -> ImportResolution:
        return ImportResolution.failed(
            specifier,
            f"'{specifier}' is a Node.js built-in module and cannot be served to a browser",
            failure=ResolutionFailure.BUILTIN,
            searched=searched,
        )

    @staticmethod
    def _join(directory: Path, specifier: str) -> Path:
        return Path(os.path.normpath(directory / specifier))

    def _node_modules_paths(self, start: Path) -> Iterator[Path]:
        """Yield candidate package directories from start up to the root."""
        for parent in [start] + list(start.parents):
            if parent.name == self._module_directory:
                continue
            yield parent / self._module_directory

    def _load_as_file(self, path: Path) -> Optional[Path]:
        if path.is_file():
            return path
        if not path.name:
            return None
        for ext in self._extensions:
            candidate = path.with_name(path.name + ext)
            if candidate.is_file():
                return candidate
        return None

    def _load_index(self, path: Path) -> Optional[Path]:
        for ext in self._extensions:
            candidate = path / f"index{ext}"
            if candidate.is_file():
                return candidate
        return None

    def _load_as_directory(self, path: Path) -> Optional[Path]:
        if not path.is_dir():
            return None

        pkg = parse_package_json(path / "package.json")
        entry = select_entry_point(pkg)
        if entry is None:
            return self._load_index(path)

        entry_path = self._join(path, entry)
        found = self._load_as_file(entry_path) or self._load_index(entry_path)
        if found is None:
            raise _InvalidEntryPoint(
                f"Cannot find module '{entry}' declared as the entry point of "
                f"'{path}'. Please verify that its package.json has a valid entry"
            )
        return found
