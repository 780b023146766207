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
"""Base types for locating module specifiers.

The set of syntax that can name another module is small and closed:

- import declarations (named, default, namespace, side-effect only)
- re-exports with a source (export {a} from, export * from, export * as ns from)
- dynamic import() calls with a string literal argument

Each occurrence is reported as a SpecifierReference whose offsets point at
the string literal, quotes included, in the original source text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple


class SpecifierKind(Enum):
    """Syntax that carries a module specifier."""

    IMPORT = auto()            # import x from 'a'
    EXPORT_NAMED = auto()      # export { x } from 'a'
    EXPORT_ALL = auto()        # export * from 'a'
    EXPORT_DEFAULT = auto()    # reserved, no current grammar gives this a source
    DYNAMIC_IMPORT = auto()    # import('a')


@dataclass(frozen=True, slots=True)
class SpecifierReference:
    """A located mention of a module specifier.

    Attributes:
        kind: Syntax the specifier appears in
        specifier: Decoded value of the string literal
        start: Offset of the opening quote in the original source
        end: Offset just past the closing quote
    """

    kind: SpecifierKind
    specifier: str
    start: int
    end: int

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)

    @property
    def is_dynamic(self) -> bool:
        return self.kind == SpecifierKind.DYNAMIC_IMPORT


class ModuleParseError(Exception):
    """Source text is not a syntactically valid module."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message
