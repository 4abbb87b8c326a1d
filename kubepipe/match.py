"""Repository and build-event matching used to restrict which builds run."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Sequence


@dataclass
class Repo:
    """A repository as seen by the runner."""

    slug: str = ""
    trusted: bool = False


@dataclass
class Build:
    """A build as seen by the runner."""

    event: str = ""


def _translate(pattern: str) -> re.Pattern:
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            i += 1
            if i >= n:
                raise ValueError("bad pattern")
            out.append(re.escape(pattern[i]))
        elif c == "[":
            j = pattern.find("]", i + 2 if i + 1 < n and pattern[i + 1] == "^" else i + 1)
            if j == -1:
                raise ValueError("bad pattern")
            body = pattern[i + 1:j]
            negate = body.startswith("^")
            if negate:
                body = body[1:]
            if not body:
                raise ValueError("bad pattern")
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            out.append(f"[{'^/' if negate else ''}{body}]")
            i = j
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _path_match(pattern: str, name: str) -> bool:
    try:
        return _translate(pattern).match(name) is not None
    except (ValueError, re.error):
        return False


def _matches_any(value: str, patterns: Sequence[str]) -> bool:
    if not patterns:
        return True
    return any(_path_match(p, value) for p in patterns)


def make_matcher(
    repos: Sequence[str], events: Sequence[str], trusted: bool
) -> Callable[[Repo, Build], bool]:
    """Return a predicate accepting builds whose repo and event are allowed."""

    def matcher(repo: Repo, build: Build) -> bool:
        if trusted and not repo.trusted:
            return False
        return _matches_any(repo.slug, repos) and _matches_any(build.event, events)

    return matcher