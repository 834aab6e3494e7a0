"""Package layout: names, paths, tag prefixes and manifests.

A uv workspace is laid out as:

    pyproject.toml          the "root" package, tagged v1.2.3
    apps/<name>/            applications, tagged <name>-v1.2.3
    packages/<name>/        namespaced libraries (repo-<name>), tagged repo-<name>-v1.2.3

The mapping between names and paths is pure; the Package class adds the
manifest and changelog files on disk.
"""

from __future__ import annotations

import posixpath
from pathlib import Path

import tomlkit

from .config import ReleaseConfig
from .models import PackageDescriptor
from .toml import (
    get_project_name,
    get_project_version,
    has_static_version,
    is_private,
    load_pyproject,
    save_pyproject,
    set_project_version,
)

MANIFEST_FILE = "pyproject.toml"


def package_path(name: str, config: ReleaseConfig) -> str:
    """Directory of a package relative to the repository root."""
    if name == config.root_package:
        return "."
    if config.namespace and name.startswith(config.namespace):
        return f"{config.libs_dir}/{name[len(config.namespace):]}"
    return f"{config.apps_dir}/{name}"


def package_name_for_path(path: str, config: ReleaseConfig) -> str | None:
    """Inverse of package_path() for a normalized repository-relative path.

    Paths inside a package directory resolve to that package. Returns None
    for paths outside the library and application directories.
    """
    path = posixpath.normpath(path)
    if path in (".", ""):
        return config.root_package
    parts = path.split("/")
    if len(parts) < 2:
        return None
    top, name = parts[0], parts[1]
    if top == config.libs_dir:
        return f"{config.namespace}{name}"
    if top == config.apps_dir:
        return name
    return None


def tag_prefix(name: str, config: ReleaseConfig) -> str:
    """Prefix of the version tags of a package: "v" for root, "<name>-v" otherwise."""
    if name == config.root_package:
        return "v"
    return f"{name}-v"


def _join(path: str, filename: str) -> str:
    return filename if path == "." else f"{path}/{filename}"


def manifest_path(name: str, config: ReleaseConfig) -> str:
    return _join(package_path(name, config), MANIFEST_FILE)


def changelog_path(name: str, config: ReleaseConfig) -> str:
    return _join(package_path(name, config), config.changelog_file)


def describe_package(name: str, config: ReleaseConfig) -> PackageDescriptor:
    return PackageDescriptor(
        name=name,
        path=package_path(name, config),
        manifest_path=manifest_path(name, config),
        changelog_path=changelog_path(name, config),
        tag_prefix=tag_prefix(name, config),
        is_root=name == config.root_package,
    )


def touches_path(files: list[str], path: str) -> bool:
    """True if any file lies inside path. "." contains every file."""
    if path == ".":
        return bool(files)
    prefix = path.rstrip("/") + "/"
    return any(f.startswith(prefix) for f in files)


class Package:
    """A package descriptor bound to a working tree.

    The manifest is read lazily and memoized for the lifetime of the
    instance; write_version() updates both the file and the memo.
    """

    def __init__(self, name: str, config: ReleaseConfig, root: Path | None = None) -> None:
        self.config = config
        self.descriptor = describe_package(name, config)
        self.root = root or Path.cwd()
        self._manifest: tomlkit.TOMLDocument | None = None

    def __repr__(self) -> str:
        return f"Package({self.name!r}, path={self.path!r})"

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def path(self) -> str:
        return self.descriptor.path

    @property
    def is_root(self) -> bool:
        return self.descriptor.is_root

    @property
    def manifest_file(self) -> Path:
        return self.root / self.descriptor.manifest_path

    @property
    def changelog_file(self) -> Path:
        return self.root / self.descriptor.changelog_path

    @property
    def manifest(self) -> tomlkit.TOMLDocument:
        if self._manifest is None:
            self._manifest = load_pyproject(self.manifest_file)
        return self._manifest

    def exists(self) -> bool:
        return self.manifest_file.exists()

    def is_versioned(self) -> bool:
        """Whether this package has a version series of its own."""
        if not self.exists():
            return False
        return has_static_version(self.manifest) and not is_private(self.manifest)

    def read_version(self) -> str:
        return get_project_version(self.manifest)

    def write_version(self, version: str) -> None:
        doc = self.manifest
        set_project_version(doc, version)
        save_pyproject(self.manifest_file, doc)

    def read_changelog(self) -> str:
        if not self.changelog_file.exists():
            return ""
        return self.changelog_file.read_text()

    def write_changelog(self, content: str) -> None:
        self.changelog_file.parent.mkdir(parents=True, exist_ok=True)
        self.changelog_file.write_text(content)


def discover_packages(config: ReleaseConfig, root: Path | None = None) -> list[Package]:
    """Find root plus every app and library directory holding a pyproject.toml.

    Directory names that disagree with [project].name are listed under the
    name their path implies, since that is what tags and paths key on.
    """
    root = root or Path.cwd()
    found: list[Package] = []
    if (root / MANIFEST_FILE).exists():
        found.append(Package(config.root_package, config, root))
    for base in (config.apps_dir, config.libs_dir):
        base_dir = root / base
        if not base_dir.is_dir():
            continue
        for child in sorted(base_dir.iterdir()):
            if not (child / MANIFEST_FILE).exists():
                continue
            name = package_name_for_path(f"{base}/{child.name}", config)
            if name is not None:
                found.append(Package(name, config, root))
    return found


def known_package_names(packages: list[Package]) -> set[str]:
    """Canonical [project].name values and layout names of discovered packages."""
    names: set[str] = set()
    for package in packages:
        names.add(package.name)
        if package.exists():
            names.add(get_project_name(package.manifest, package.name))
    return names
