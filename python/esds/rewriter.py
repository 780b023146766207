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
"""Rewriting of module specifiers into browser-loadable relative paths.

Browsers only accept specifiers that start with "/", "./" or "../". The
rewriter parses a module, resolves every specifier it finds and replaces each
string literal with a quoted path relative to the module, so that

    import { LitElement } from 'lit-element'

served from src/app.js becomes

    import { LitElement } from "./../node_modules/lit-element/lit-element.js"

Replacement text almost never has the length of the literal it replaces, so
patches are spliced from the highest offset to the lowest. Every patch that
is still pending then lies entirely before the text already changed, and its
offsets into the original source stay valid.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .parsing import ModuleParseError, SpecifierReference, find_specifiers
from .resolvers import ImportResolution, ImportResolver, NodeModuleResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Patch:
    """Replace source[start:end] with text."""

    start: int
    end: int
    text: str


def quote_specifier(relative_path: str) -> str:
    """Turn a resolved relative path into a string literal."""
    return json.dumps("./" + relative_path)


def apply_patches(source: str, patches: Iterable[Patch]) -> str:
    """Apply patches in descending start order.

    Args:
        source: Original text the patch offsets refer to
        patches: Non-overlapping patches, in any order

    Returns:
        The patched text

    Raises:
        ValueError: If two patches overlap or a patch falls outside source
    """
    pieces: List[str] = []
    cursor = len(source)
    for patch in sorted(patches, key=lambda p: p.start, reverse=True):
        if patch.start < 0 or patch.start > patch.end:
            raise ValueError(f"Invalid patch range {patch.start}:{patch.end}")
        if patch.end > cursor:
            raise ValueError(
                f"Patch {patch.start}:{patch.end} overlaps a later patch or "
                f"exceeds the source length {len(source)}"
            )
        pieces.append(source[patch.end:cursor])
        pieces.append(patch.text)
        cursor = patch.start
    pieces.append(source[:cursor])
    return "".join(reversed(pieces))


@dataclass
class RewriteResult:
    """Outcome of rewriting one module.

    Attributes:
        path: The module file
        code: Rewritten source, None if parsing failed
        references: Every specifier found, in source order
        patches: Patches that were applied
        unresolved: Resolutions that failed and were left as written
        error: Parser message when the source is not a valid module
    """

    path: str
    code: Optional[str] = None
    references: List[SpecifierReference] = field(default_factory=list)
    patches: List[Patch] = field(default_factory=list)
    unresolved: List[ImportResolution] = field(default_factory=list)
    error: Optional[str] = None
    parse_error: Optional[ModuleParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> bool:
        return bool(self.patches)


class ImportRewriter:
    """Rewrites the specifiers of a module using a resolver.

    Example:
        >>> rewriter = ImportRewriter()
        >>> result = rewriter.rewrite("/srv/app/main.js", "import 'lit-element'")
        >>> result.code
        'import "./node_modules/lit-element/lit-element.js"'
    """

    def __init__(self, resolver: Optional[ImportResolver] = None) -> None:
        self._resolver = resolver or NodeModuleResolver()

    @property
    def resolver(self) -> ImportResolver:
        return self._resolver

    def rewrite(self, module_file_path: Union[str, Path], source: str) -> RewriteResult:
        """Rewrite every resolvable specifier of a module.

        A specifier that cannot be resolved is left as written; it does not
        stop the other specifiers of the file from being rewritten.

        Args:
            module_file_path: Path of the module, used as the resolution base
            source: Module source text

        Returns:
            RewriteResult with the new code, or with error set on a parse failure
        """
        path = str(module_file_path)
        try:
            references = find_specifiers(source, path=path)
        except ModuleParseError as e:
            return RewriteResult(path=path, error=e.message, parse_error=e)

        result = RewriteResult(path=path, references=references)
        for ref in references:
            resolution = self._resolver.resolve_from_file(ref.specifier, path)
            if not resolution.success:
                logger.debug(f"Leaving '{ref.specifier}' in {path}: {resolution.error}")
                result.unresolved.append(resolution)
                continue
            result.patches.append(
                Patch(ref.start, ref.end, quote_specifier(resolution.relative_path))
            )

        result.code = apply_patches(source, result.patches) if result.patches else source
        return result


def rewrite_imports(
    module_file_path: Union[str, Path],
    source: str,
    resolver: Optional[ImportResolver] = None,
) -> str:
    """Rewrite a module and return the new source.

    Raises:
        ModuleParseError: If the source is not a valid module
    """
    result = ImportRewriter(resolver).rewrite(module_file_path, source)
    if result.parse_error is not None:
        raise result.parse_error
    return result.code
