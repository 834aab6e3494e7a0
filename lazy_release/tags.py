"""Per-package tag series.

Every versioned package owns the tags "<prefix><semver>", where the prefix is
"v" for root and "<name>-v" for everything else. Tags with the right prefix
but a non-semver remainder ("v-nightly", or "vault-v1.0.0" when listing the
root's "v*" series) are not part of the series.
"""

from __future__ import annotations

import logging
import re

import semver
import tomlkit
from tomlkit.exceptions import TOMLKitError

from . import vcs
from .config import ReleaseConfig
from .exceptions import InvalidReferenceError, TagError
from .models import PackageDescriptor, Tag, TagVersion
from .toml import get_project_version, has_static_version
from .versions import parse_version

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r"^(?P<prefix>.*?)(?P<version>\d+(?:\.\d+)+.*)$")
CALVER_RE = re.compile(r"^\d{4}\.\d{2}\.\d{2}")
SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+")


def parse_tag(name: str) -> Tag:
    """Split a tag name into prefix and version and guess its format.

    Examples:
        "v1.2.3" → prefix "v", format "semver"
        "api-v0.4.0" → prefix "api-v", format "semver"
        "2024.01.15" → prefix "", format "calver"
        "nightly" → prefix "nightly", format "custom"
    """
    match = TAG_RE.match(name)
    if not match:
        return Tag(name=name, prefix=name, format="custom")
    version = match.group("version")
    if CALVER_RE.match(version):
        fmt = "calver"
    elif SEMVER_RE.match(version):
        fmt = "semver"
    else:
        fmt = "custom"
    return Tag(name=name, prefix=match.group("prefix"), format=fmt)


def resolve_ref(ref: str, config: ReleaseConfig | None = None) -> str:
    """Resolve a tag, branch or sha to a commit sha.

    Raises:
        InvalidReferenceError: If ref does not name a commit.
    """
    timeout = (config or ReleaseConfig()).git_timeout
    sha = vcs.rev_parse(ref, timeout=timeout)
    if sha is None:
        raise InvalidReferenceError(ref)
    return sha


class PackageTags:
    """Reads and writes the tag series of one package."""

    def __init__(self, package: PackageDescriptor, config: ReleaseConfig) -> None:
        self.package = package
        self.config = config

    @property
    def prefix(self) -> str:
        return self.package.tag_prefix

    def tag_name(self, version: str) -> str:
        return f"{self.prefix}{version}"

    def version_of(self, tag: str) -> str | None:
        """Version encoded in a series tag, or None for foreign tags."""
        if not tag.startswith(self.prefix):
            return None
        version = tag[len(self.prefix):]
        return version if semver.Version.is_valid(version) else None

    def list_tags(self) -> list[str]:
        """Series tags, highest version first."""
        tags = [
            tag
            for tag in vcs.list_tags(f"{self.prefix}*", timeout=self.config.git_timeout)
            if self.version_of(tag) is not None
        ]
        return sorted(tags, key=lambda t: parse_version(self.version_of(t)), reverse=True)

    def latest_tag(self) -> str | None:
        tags = self.list_tags()
        return tags[0] if tags else None

    def latest_version(self) -> str | None:
        tag = self.latest_tag()
        return self.version_of(tag) if tag else None

    def tag_exists(self, version: str) -> bool:
        return vcs.tag_exists(self.tag_name(version), timeout=self.config.git_timeout)

    def _version_at(self, tag: str) -> TagVersion:
        version = self.version_of(tag) or ""
        text = vcs.show_file(tag, self.package.manifest_path, timeout=self.config.git_timeout)
        if text is not None:
            try:
                doc = tomlkit.parse(text)
                if has_static_version(doc):
                    version = get_project_version(doc)
            except TOMLKitError as exc:
                logger.warning("Unreadable manifest at %s: %s", tag, exc)
        date, message = vcs.tag_info(tag, timeout=self.config.git_timeout)
        return TagVersion(
            tag=tag,
            version=version,
            sha=vcs.rev_parse(tag, timeout=self.config.git_timeout),
            date=date,
            message=message,
        )

    def version_history(self) -> list[TagVersion]:
        """Released versions, newest first, as recorded in each tag's manifest.

        When the manifest at a tag has no static version, the version in
        the tag name is used.
        """
        return vcs.fan_out(self._version_at, self.list_tags(), self.config.max_workers)

    def base_ref(self) -> str | None:
        """Where the next release's commit range starts: the latest series tag."""
        return self.latest_tag()

    def tags_in_range(self, from_ref: str, to_ref: str) -> list[str]:
        """Series tags reachable from to_ref that descend from from_ref."""
        timeout = self.config.git_timeout
        return [
            tag
            for tag in self.list_tags()
            if vcs.is_ancestor(from_ref, tag, timeout=timeout)
            and vcs.is_ancestor(tag, to_ref, timeout=timeout)
        ]

    def create_tag(self, version: str, message: str, push: bool = False) -> str:
        """Create an annotated series tag, optionally pushing it.

        Raises:
            TagError: If the version is not semver, the tag exists, or git fails.
        """
        if not semver.Version.is_valid(version):
            raise TagError(f"Refusing to tag {self.package.name} with non-semver {version!r}")
        name = self.tag_name(version)
        if self.tag_exists(version):
            raise TagError(f"Tag {name} already exists")
        result = vcs.create_tag(name, message, timeout=self.config.git_timeout)
        if not result.ok:
            raise TagError(f"git tag {name} failed (exit {result.returncode})")
        if push:
            self.push_tag(version)
        return name

    def push_tag(self, version: str) -> None:
        name = self.tag_name(version)
        result = vcs.push_tag(name, timeout=self.config.git_timeout)
        if not result.ok:
            raise TagError(f"git push of {name} failed (exit {result.returncode})")

    def delete_tag(self, version: str) -> None:
        name = self.tag_name(version)
        if not self.tag_exists(version):
            raise TagError(f"Tag {name} does not exist")
        result = vcs.delete_tag(name, timeout=self.config.git_timeout)
        if not result.ok:
            raise TagError(f"git tag -d {name} failed (exit {result.returncode})")
