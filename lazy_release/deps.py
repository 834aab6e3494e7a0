"""Internal dependency analysis.

Works out which other workspace packages a package depended on at a given
revision. Two sources are combined:

- PEP 508 requirements in [project].dependencies,
  [project].optional-dependencies.* and [dependency-groups].*;
- [tool.uv.sources] entries, which alias a name to the workspace
  ({workspace = true}) or to a directory ({path = "../../packages/core"}).

A package's sources table may extend another TOML file through
[tool.lazy-release].extends; the chain is read at the same revision and
child entries override parent ones.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any

import tomlkit
from packaging.requirements import Requirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from . import vcs
from .config import TOOL_TABLE, ReleaseConfig
from .models import PackageDescriptor
from .packages import package_name_for_path, package_path
from .toml import get_all_dependency_strings, get_tool_table, get_uv_sources

logger = logging.getLogger(__name__)

MAX_EXTENDS_DEPTH = 8


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


class DependencyAnalyzer:
    """Resolves a package's internal dependencies at arbitrary revisions.

    Args:
        package: The package whose manifest is analyzed.
        config: Layout settings (namespace, directories).
        known_packages: Names of all workspace packages. Dependencies on
            these count as internal even without the namespace prefix.
    """

    def __init__(
        self,
        package: PackageDescriptor,
        config: ReleaseConfig,
        known_packages: set[str] | None = None,
    ) -> None:
        self.package = package
        self.config = config
        self.known_packages = known_packages or set()

    def is_internal(self, name: str) -> bool:
        if name in (self.package.name, self.config.root_package):
            return False
        if self.config.namespace and name.startswith(self.config.namespace):
            return True
        return name in self.known_packages

    def dependencies_at(self, ref: str) -> list[str]:
        """Internal packages this package depended on at ref.

        Returns [] when the manifest is missing or unreadable at ref.
        """
        text = vcs.show_file(ref, self.package.manifest_path, timeout=self.config.git_timeout)
        if text is None:
            return []
        try:
            doc = tomlkit.parse(text)
            names = [
                name
                for name in (dep_canonical_name(dep) for dep in get_all_dependency_strings(doc))
                if self.is_internal(name)
            ]
            names.extend(
                name
                for name in self._aliased_packages(ref, doc)
                if name not in (self.package.name, self.config.root_package)
            )
        except (TOMLKitError, ValueError) as exc:
            logger.warning(
                "Cannot read dependencies of %s at %s: %s", self.package.name, ref, exc
            )
            return []
        return list(dict.fromkeys(names))

    def dependency_paths_at(self, ref: str) -> list[str]:
        """Directories of the internal dependencies at ref."""
        return [package_path(name, self.config) for name in self.dependencies_at(ref)]

    def _aliased_packages(self, ref: str, doc: tomlkit.TOMLDocument) -> list[str]:
        names: list[str] = []
        for name, (declared_in, spec) in self._merged_sources(ref, doc).items():
            if spec.get("workspace") is True:
                names.append(name)
            elif isinstance(spec.get("path"), str):
                target = posixpath.normpath(
                    posixpath.join(posixpath.dirname(declared_in), spec["path"])
                )
                resolved = package_name_for_path(target, self.config)
                if resolved is not None:
                    names.append(resolved)
        return names

    def _merged_sources(
        self, ref: str, doc: tomlkit.TOMLDocument
    ) -> dict[str, tuple[str, dict[str, Any]]]:
        """Follow the extends chain and merge sources, children winning.

        Each entry remembers the file that declared it, since source paths
        are relative to that file.
        """
        current_path = self.package.manifest_path
        chain: list[tuple[str, dict[str, dict[str, Any]]]] = []
        visited = {current_path}
        for _ in range(MAX_EXTENDS_DEPTH):
            chain.append((current_path, get_uv_sources(doc)))
            extends = get_tool_table(doc, TOOL_TABLE).get("extends")
            if not isinstance(extends, str) or not extends:
                break
            next_path = posixpath.normpath(
                posixpath.join(posixpath.dirname(current_path), extends)
            )
            if next_path in visited:
                logger.warning("extends cycle at %s in %s", next_path, self.package.name)
                break
            visited.add(next_path)
            text = vcs.show_file(ref, next_path, timeout=self.config.git_timeout)
            if text is None:
                logger.warning("%s extends missing file %s at %s", current_path, next_path, ref)
                break
            doc = tomlkit.parse(text)
            current_path = next_path
        else:
            logger.warning(
                "extends chain of %s deeper than %d; ignoring the rest",
                self.package.name,
                MAX_EXTENDS_DEPTH,
            )

        merged: dict[str, tuple[str, dict[str, Any]]] = {}
        for declared_in, sources in reversed(chain):
            for name, spec in sources.items():
                merged[name] = (declared_in, spec)
        return merged
