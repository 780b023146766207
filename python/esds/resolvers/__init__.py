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
"""Specifier resolvers.

Resolvers map an import specifier, as written in a module, to the file a
browser should load, expressed relative to the importing module.
"""

from .base import (
    ImportResolution,
    ImportResolver,
    ResolutionFailure,
    ResolutionStatus,
    ResolvedModule,
)
from .node import (
    DEFAULT_EXTENSIONS,
    NODE_BUILTIN_MODULES,
    NodeModuleResolver,
    PackageJson,
    get_package_name,
    is_builtin,
    is_path_specifier,
    parse_package_json,
    select_entry_point,
    to_posix,
)

__all__ = [
    "DEFAULT_EXTENSIONS",
    "ImportResolution",
    "ImportResolver",
    "NODE_BUILTIN_MODULES",
    "NodeModuleResolver",
    "PackageJson",
    "ResolutionFailure",
    "ResolutionStatus",
    "ResolvedModule",
    "get_package_name",
    "is_builtin",
    "is_path_specifier",
    "parse_package_json",
    "select_entry_point",
    "to_posix",
]
