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
"""Dev server configuration.

Settings come from, in increasing priority: defaults, ESDS_* environment
variables, command line flags.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .resolvers import DEFAULT_EXTENSIONS

ENV_PREFIX = "ESDS_"


@dataclass
class ServerConfig:
    """Configuration for the dev server.

    Attributes:
        root: Directory served, and the base of module resolution (default: cwd)
        host: Interface to bind (default: localhost)
        port: Port to listen on, 0 picks a free one (default: 8080)
        entry: File served for unknown HTML requests, for single page apps
        extensions: Suffixes tried when resolving extensionless specifiers
        log_level: Logging level name (default: INFO)

    Example:
        >>> config = ServerConfig.from_env().with_overrides(port=3000)
    """

    root: str = "."
    host: str = "localhost"
    port: int = 8080
    entry: Optional[str] = None
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.port = int(self.port)
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        self.log_level = self.log_level.upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.extensions = tuple(
            ext if ext.startswith(".") else f".{ext}" for ext in self.extensions
        )

    @property
    def root_path(self) -> str:
        return os.path.abspath(self.root)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
        """Read ESDS_ROOT, ESDS_HOST, ESDS_PORT, ESDS_ENTRY, ESDS_EXTENSIONS, ESDS_LOG_LEVEL."""
        environ = os.environ if environ is None else environ
        values: dict = {}
        for f in dataclasses.fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name == "extensions":
                values[f.name] = tuple(ext.strip() for ext in raw.split(",") if ext.strip())
            else:
                values[f.name] = raw
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> ServerConfig:
        """Return a copy with every non-None override applied."""
        return dataclasses.replace(
            self, **{key: value for key, value in overrides.items() if value is not None}
        )
