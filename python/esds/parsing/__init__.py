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
"""Module parsing and specifier discovery."""

from .base import ModuleParseError, SpecifierKind, SpecifierReference
from .javascript import (
    ParsedModule,
    collect_specifiers,
    decode_string_literal,
    find_specifiers,
    first_error,
    iter_nodes,
    parse_module,
    reference_for,
)

__all__ = [
    "ModuleParseError",
    "SpecifierKind",
    "SpecifierReference",
    "ParsedModule",
    "collect_specifiers",
    "decode_string_literal",
    "find_specifiers",
    "first_error",
    "iter_nodes",
    "parse_module",
    "reference_for",
]
