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
"""Pytest configuration for ESDS tests.

This conftest.py puts the python/ directory on sys.path so the tests run
without installing the package, and provides a small project tree builder.
"""

import json
import sys
from pathlib import Path

import pytest

python_dir = Path(__file__).parent.parent.parent
if str(python_dir) not in sys.path:
    sys.path.insert(0, str(python_dir))


class ProjectTree:
    """Writes files under a temporary project root."""

    def __init__(self, root: Path):
        self.root = root

    def write(self, relative: str, content: str = "") -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def package(self, name: str, manifest=None, files=None) -> Path:
        """Create node_modules/<name> with an optional package.json and files."""
        base = self.root / "node_modules" / name
        base.mkdir(parents=True, exist_ok=True)
        if manifest is not None:
            (base / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
        for relative, content in (files or {}).items():
            self.write(f"node_modules/{name}/{relative}", content)
        return base


@pytest.fixture
def project(tmp_path):
    """An empty project tree rooted at tmp_path."""
    return ProjectTree(tmp_path)
