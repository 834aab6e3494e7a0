"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files, and to parse manifests read from arbitrary git revisions.

Manifests from old revisions can be malformed in shape (an array where a
table belongs, a number where a string belongs). Readers here treat such
values as absent rather than raising.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def _table(value: Any) -> Mapping[str, Any]:
    """value if it is a TOML table, else an empty mapping."""
    return value if isinstance(value, Mapping) else {}


def _strings(value: Any) -> list[str]:
    """String items of a TOML array; anything else yields []."""
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, str)]


def _project(doc: tomlkit.TOMLDocument) -> Mapping[str, Any]:
    return _table(doc.get("project"))


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    name = _project(doc).get("name")
    return canonicalize_name(name if isinstance(name, str) else fallback)


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(_project(doc).get("version", "0.0.0"))


def has_static_version(doc: tomlkit.TOMLDocument) -> bool:
    """True when [project].version is set literally rather than declared dynamic."""
    return isinstance(_project(doc).get("version"), str)


def is_private(doc: tomlkit.TOMLDocument) -> bool:
    """True when the project carries the 'Private :: Do Not Upload' classifier."""
    return PRIVATE_CLASSIFIER in _strings(_project(doc).get("classifiers"))


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> None:
    """Set [project].version in place, creating the table if needed."""
    if "project" not in doc:
        doc["project"] = tomlkit.table()
    doc["project"]["version"] = version


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect all dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups)

    Returns raw PEP 508 strings like "requests>=2.0" or "pkg[extra]~=1.0".
    Dependency-group include tables ({include-group = "..."}) are skipped.
    """
    project = _project(doc)
    deps = _strings(project.get("dependencies"))
    for group_deps in _table(project.get("optional-dependencies")).values():
        deps.extend(_strings(group_deps))
    for group_deps in _table(doc.get("dependency-groups")).values():
        deps.extend(_strings(group_deps))
    return deps


def get_uv_sources(doc: tomlkit.TOMLDocument) -> dict[str, dict[str, Any]]:
    """Return [tool.uv.sources] as plain dicts keyed by canonical name.

    Entries look like {workspace = true} or {path = "../../packages/core"}.
    Entries that are not tables (or lists of per-marker tables) are ignored.
    """
    sources = _table(_table(_table(doc.get("tool")).get("uv")).get("sources"))
    result: dict[str, dict[str, Any]] = {}
    for name, spec in sources.items():
        if isinstance(spec, list):
            # Per-marker source lists; the first entry is representative.
            spec = spec[0] if spec else None
        if isinstance(spec, Mapping):
            result[canonicalize_name(name)] = dict(spec.unwrap() if hasattr(spec, "unwrap") else spec)
    return result


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Return [tool.<name>] as a plain dict, or an empty dict."""
    table = _table(_table(doc.get("tool")).get(name))
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)
