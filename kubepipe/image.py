"""Docker image reference helpers: trimming, expansion and matching."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

DEFAULT_DOMAIN = "docker.io"
LEGACY_DEFAULT_DOMAIN = "index.docker.io"
OFFICIAL_REPO_PREFIX = "library/"
_NAME_TOTAL_LENGTH_MAX = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"

_REFERENCE_RE = re.compile(rf"^({_NAME})(?::({_TAG}))?(?:@({_DIGEST}))?$")
_DOMAIN_RE = re.compile(rf"^({_DOMAIN})/")
_IDENTIFIER_RE = re.compile(r"^[a-f0-9]{64}$")


class ReferenceError_(ValueError):
    """Raised when an image reference cannot be parsed."""


@dataclass(frozen=True)
class _Reference:
    domain: str
    path: str
    tag: str = ""
    digest: str = ""

    @property
    def name(self) -> str:
        return f"{self.domain}/{self.path}" if self.domain else self.path

    def __str__(self) -> str:
        out = self.name
        if self.tag:
            out += ":" + self.tag
        if self.digest:
            out += "@" + self.digest
        return out

    def familiar_name(self) -> str:
        if self.domain != DEFAULT_DOMAIN:
            return self.name
        path = self.path
        if path.startswith(OFFICIAL_REPO_PREFIX):
            rest = path[len(OFFICIAL_REPO_PREFIX):]
            if "/" not in rest:
                return rest
        return path


def _split_domain(name: str) -> tuple[str, str]:
    i = name.find("/")
    if i == -1 or (
        not any(c in name[:i] for c in ".:")
        and name[:i] != "localhost"
        and name[:i].lower() == name[:i]
    ):
        domain, remainder = DEFAULT_DOMAIN, name
    else:
        domain, remainder = name[:i], name[i + 1:]
    if domain == LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in remainder:
        remainder = OFFICIAL_REPO_PREFIX + remainder
    return domain, remainder


def _parse(s: str) -> _Reference:
    if _IDENTIFIER_RE.match(s):
        raise ReferenceError_("reference is an image identifier")
    domain, remainder = _split_domain(s)
    remote = remainder.split(":", 1)[0]
    if remote.lower() != remote:
        raise ReferenceError_("repository name must be lowercase")
    full = f"{domain}/{remainder}"
    m = _REFERENCE_RE.match(full)
    if not m:
        raise ReferenceError_(f"invalid reference format: {s}")
    name, tag, digest = m.group(1), m.group(2) or "", m.group(3) or ""
    if len(name) > _NAME_TOTAL_LENGTH_MAX:
        raise ReferenceError_("repository name must not be more than 255 characters")
    dm = _DOMAIN_RE.match(name)
    if dm:
        ref_domain, path = dm.group(1), name[dm.end():]
    else:
        ref_domain, path = "", name
    return _Reference(ref_domain, path, tag, digest)


def trim(name: str) -> str:
    """Return the short image name without tag, or the input if unparsable."""
    try:
        ref = _parse(name)
    except ReferenceError_:
        return name
    return _Reference(ref.domain, ref.path).familiar_name()


def expand(name: str) -> str:
    """Return the fully qualified image name, or the input if unparsable."""
    try:
        ref = _parse(name)
    except ReferenceError_:
        return name
    if not ref.tag and not ref.digest:
        ref = _Reference(ref.domain, ref.path, "latest")
    return str(ref)


def match(image: str, *args: str) -> bool:
    """Return True if the image matches any of the given images, ignoring tags."""
    trimmed = trim(image)
    return any(trimmed == trim(other) for other in args)


def match_tag(a: str, b: str) -> bool:
    """Return True if both images match including the tag."""
    return expand(a) == expand(b)


def match_hostname(image: str, hostname: str) -> bool:
    """Return True if the image registry host matches hostname."""
    try:
        ref = _parse(image)
    except ReferenceError_:
        return False
    if hostname == LEGACY_DEFAULT_DOMAIN:
        hostname = DEFAULT_DOMAIN
    if hostname.startswith(("http://", "https://")):
        try:
            hostname = urlparse(hostname).netloc
        except ValueError:
            pass
    return ref.domain == hostname


def is_latest(name: str) -> bool:
    """Return True if the image uses the latest tag."""
    return expand(name).endswith(":latest")