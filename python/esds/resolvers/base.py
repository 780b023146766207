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
"""Base types for specifier resolution.

Resolvers are responsible for:
1. Locating the file an import specifier refers to
2. Expressing that file relative to the importing module
3. Reporting a readable reason when nothing can be found
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import List, Optional, Union


class ResolutionStatus(Enum):
    """Status of specifier resolution.

    Attributes:
        RESOLVED: Specifier resolved to an existing file
        FAILED: Specifier could not be resolved
    """

    RESOLVED = auto()
    FAILED = auto()


class ResolutionFailure(Enum):
    """Why a resolution failed."""

    NOT_FOUND = auto()
    INVALID_ENTRY = auto()
    BUILTIN = auto()


@dataclass
class ResolvedModule:
    """Information about a resolved module.

    Attributes:
        specifier: The specifier as written in the source
        path: Absolute file path of the target
        relative_path: Target path relative to the importing directory,
            always with forward slashes
        package_name: Owning package for bare specifiers
    """

    specifier: str
    path: str
    relative_path: str
    package_name: Optional[str] = None


@dataclass
class ImportResolution:
    """Result of resolving a specifier.

    Exactly one of ``module`` and ``error`` is set.

    Attributes:
        status: RESOLVED or FAILED
        specifier: The specifier being resolved
        module: The resolved module (if successful)
        error: Human readable error message (if failed)
        failure: Structured failure kind (if failed)
        searched: Locations that were tried
    """

    status: ResolutionStatus
    specifier: str
    module: Optional[ResolvedModule] = None
    error: Optional[str] = None
    failure: Optional[ResolutionFailure] = None
    searched: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED

    @property
    def relative_path(self) -> Optional[str]:
        """The browser-facing relative path, or None when unresolved."""
        return self.module.relative_path if self.module else None

    @classmethod
    def resolved(cls, module: ResolvedModule) -> ImportResolution:
        return cls(
            status=ResolutionStatus.RESOLVED,
            specifier=module.specifier,
            module=module,
        )

    @classmethod
    def failed(
        cls,
        specifier: str,
        error: str,
        failure: ResolutionFailure = ResolutionFailure.NOT_FOUND,
        searched: Optional[List[str]] = None,
    ) -> ImportResolution:
        return cls(
            status=ResolutionStatus.FAILED,
            specifier=specifier,
            error=error,
            failure=failure,
            searched=searched or [],
        )


class ImportResolver(ABC):
    """Abstract base class for specifier resolvers.

    Subclasses implement a resolution algorithm:
    - NodeModuleResolver: node_modules lookup with package.json entry points
    """

    @abstractmethod
    def resolve(self, specifier: str, basedir: Union[str, Path]) -> ImportResolution:
        """Resolve a specifier from a directory.

        Args:
            specifier: The specifier as written in the import
            basedir: Directory of the importing module

        Returns:
            ImportResolution with the relative path or an error message
        """
        pass

    def resolve_from_file(
        self,
        specifier: str,
        from_file: Union[str, Path],
    ) -> ImportResolution:
        """Resolve a specifier relative to the file that contains it."""
        return self.resolve(specifier, Path(from_file).parent)

