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
"""JavaScript module parsing on top of tree-sitter.

The whole source is parsed with the tree-sitter JavaScript grammar, which
tracks current ECMAScript (optional chaining, import.meta, class fields,
top-level await). Specifiers are only found where the language allows them,
so strings and comments that merely look like imports are never touched.

tree-sitter recovers from syntax errors instead of failing. A tree that
contains an ERROR or MISSING node is reported as a ModuleParseError, so a
broken module is never half rewritten.

tree-sitter positions are UTF-8 byte offsets; ParsedModule converts them to
offsets into the Python string before any reference leaves this module.

References:
    - tree-sitter JavaScript grammar: https://github.com/tree-sitter/tree-sitter-javascript
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser, Tree

from .base import ModuleParseError, SpecifierKind, SpecifierReference

logger = logging.getLogger(__name__)

JAVASCRIPT = Language(tree_sitter_javascript.language())

# Parser objects are not safe to share between request threads
_local = threading.local()

_ESCAPE = re.compile(
    r"\\(?:x([0-9a-fA-F]{2})|u\{([0-9a-fA-F]+)\}|u([0-9a-fA-F]{4})|(\r\n|[\r\n\u2028\u2029])|(.))",
    re.DOTALL,
)

_SINGLE_ESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "0": "\0",
}


def _parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser(JAVASCRIPT)
        _local.parser = parser
    return parser


def _unescape(match: re.Match) -> str:
    hex_byte, code_point, code_unit, continuation, char = match.groups()
    if hex_byte:
        return chr(int(hex_byte, 16))
    if code_point:
        return chr(int(code_point, 16))
    if code_unit:
        return chr(int(code_unit, 16))
    if continuation:
        return ""
    return _SINGLE_ESCAPES.get(char, char)


def decode_string_literal(literal: str) -> str:
    """Decode a quoted JavaScript string literal to its value.

    Escaped surrogate pairs ("\\ud83d\\ude00") are joined into one character.
    """
    value = _ESCAPE.sub(_unescape, literal[1:-1])
    return value.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


@dataclass
class ParsedModule:
    """A parsed module together with the text it was parsed from.

    Attributes:
        source: Module source text
        tree: tree-sitter syntax tree over the UTF-8 encoding of source
    """

    source: str
    tree: Tree
    encoded: bytes = field(repr=False, default=b"")

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def offset(self, byte_offset: int) -> int:
        """Offset into source for a UTF-8 byte offset."""
        if len(self.encoded) == len(self.source):
            return byte_offset
        return len(self.encoded[:byte_offset].decode("utf-8"))

    def text(self, node: Node) -> str:
        return self.source[self.offset(node.start_byte):self.offset(node.end_byte)]


def iter_nodes(root: Node) -> Iterator[Node]:
    """Yield every node of the tree in pre-order."""
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def first_error(root: Node) -> Optional[Node]:
    """The first ERROR or MISSING node in source order, if any."""
    if not root.has_error:
        return None
    for node in iter_nodes(root):
        if node.type == "ERROR" or node.is_missing:
            return node
    return root


def _syntax_error(module: ParsedModule, node: Node, path: Optional[str]) -> ModuleParseError:
    start = module.offset(node.start_byte)
    line = node.start_point[0] + 1
    column = start - (module.source.rfind("\n", 0, start) + 1)

    if node.is_missing:
        message = f"Line {line}: Missing {node.type}"
    else:
        snippet = module.text(node).strip().split("\n", 1)[0][:20]
        if snippet:
            message = f"Line {line}: Unexpected {snippet!r}"
        else:
            message = f"Line {line}: Unexpected end of input"
    return ModuleParseError(message, path=path, line=line, column=column)


def parse_module(source: str, path: Optional[str] = None) -> ParsedModule:
    """Parse source text as an ES module.

    Args:
        source: Module source text
        path: File the source came from, used in error messages

    Returns:
        The parsed module

    Raises:
        ModuleParseError: If the source is not a valid module
    """
    try:
        encoded = source.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ModuleParseError(f"Module text cannot be encoded: {e}", path=path) from e

    module = ParsedModule(source=source, tree=_parser().parse(encoded), encoded=encoded)
    error = first_error(module.root)
    if error is not None:
        raise _syntax_error(module, error, path)
    return module


def _reference(
    kind: SpecifierKind,
    literal: Optional[Node],
    module: ParsedModule,
) -> Optional[SpecifierReference]:
    if literal is None or literal.type != "string":
        return None
    start = module.offset(literal.start_byte)
    end = module.offset(literal.end_byte)
    return SpecifierReference(
        kind=kind,
        specifier=decode_string_literal(module.source[start:end]),
        start=start,
        end=end,
    )


def _export_kind(node: Node) -> SpecifierKind:
    # export * from 'a' and export * as ns from 'a'
    for child in node.children:
        if child.type in ("*", "namespace_export"):
            return SpecifierKind.EXPORT_ALL
    return SpecifierKind.EXPORT_NAMED


def reference_for(node: Node, module: ParsedModule) -> Optional[SpecifierReference]:
    """Return the specifier reference a single node carries, if any."""
    if node.type == "import_statement":
        return _reference(SpecifierKind.IMPORT, node.child_by_field_name("source"), module)

    if node.type == "export_statement":
        source = node.child_by_field_name("source")
        if source is None:
            return None
        return _reference(_export_kind(node), source, module)

    if node.type == "call_expression":
        function = node.child_by_field_name("function")
        if function is None or function.type != "import":
            return None
        arguments = node.child_by_field_name("arguments")
        values = []
        if arguments is not None and arguments.type == "arguments":
            values = [child for child in arguments.named_children if child.type != "comment"]
        if len(values) != 1 or values[0].type != "string":
            logger.debug("Skipping import() with a non-literal argument")
            return None
        return _reference(SpecifierKind.DYNAMIC_IMPORT, values[0], module)

    return None


def collect_specifiers(module: ParsedModule) -> List[SpecifierReference]:
    """Collect specifier references in source order."""
    references = [
        ref for ref in (reference_for(node, module) for node in iter_nodes(module.root)) if ref
    ]
    references.sort(key=lambda ref: ref.start)
    return references


def find_specifiers(source: str, path: Optional[str] = None) -> List[SpecifierReference]:
    """Parse a module and collect its specifier references.

    Raises:
        ModuleParseError: If the source is not a valid module
    """
    return collect_specifiers(parse_module(source, path=path))
