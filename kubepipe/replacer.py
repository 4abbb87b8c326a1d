"""Writer wrapper that masks secret values in output."""

from __future__ import annotations

import re
from typing import Any, Iterable, Protocol

from kubepipe.spec import Secret


class _Writer(Protocol):
    def write(self, data: Any) -> Any: ...

    def close(self) -> Any: ...


def _masked(name: str) -> str:
    return f"[secret:{name.lower()}]"


class Replacer:
    """Writes to a base writer, replacing secret values with masks."""

    def __init__(self, writer: _Writer, pairs: list[tuple[str, str]]) -> None:
        self._writer = writer
        self._text = {old: new for old, new in reversed(pairs)}
        self._bytes = {
            old.encode(): new.encode() for old, new in reversed(pairs)
        }
        # Alternation tries the secrets in the order given, like the first-match rule.
        olds = list(dict.fromkeys(old for old, _ in pairs))
        self._text_re = re.compile("|".join(re.escape(o) for o in olds))
        self._bytes_re = re.compile(b"|".join(re.escape(o.encode()) for o in olds))

    def write(self, data: str | bytes) -> int:
        """Write data with secrets masked; return the length of the input."""
        if isinstance(data, (bytes, bytearray)):
            out = self._bytes_re.sub(lambda m: self._bytes[m.group(0)], bytes(data))
        else:
            out = self._text_re.sub(lambda m: self._text[m.group(0)], data)
        self._writer.write(out)
        return len(data)

    def close(self) -> None:
        """Close the base writer."""
        self._writer.close()


def mask_writer(writer: _Writer, secrets: Iterable[Secret]) -> _Writer:
    """Wrap writer so masked secrets are hidden; return it unchanged if none are."""
    pairs = [
        (secret.data, _masked(secret.name))
        for secret in secrets
        if secret.data and secret.mask
    ]
    if not pairs:
        return writer
    return Replacer(writer, pairs)