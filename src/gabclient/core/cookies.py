from __future__ import annotations

import json
from typing import Dict, Iterable, Iterator, Optional
from urllib.parse import unquote


class CookieStore:
    """
    Minimal cookie jar owned by a Session.
    - Keys are cookie names; an empty value deletes the key
    - Set-Cookie attributes (Path, Expires, HttpOnly...) are ignored
    - No domain/path scoping: a Session talks to a single origin
    """

    def __init__(self, cookies: Optional[Dict[str, str]] = None):
        self._cookies: Dict[str, str] = {}
        if cookies:
            self.set(f"{k}={v}" for k, v in cookies.items())

    def set(self, lines: Iterable[str]) -> None:
        for line in lines:
            pair = line.split(";", 1)[0]
            i = pair.find("=")
            if i < 1:
                continue
            name = pair[:i].strip()
            value = pair[i + 1 :].strip()
            if not name:
                continue
            if value:
                self._cookies[name] = value
            else:
                self._cookies.pop(name, None)

    def get(self, name: str) -> Optional[str]:
        value = self._cookies.get(name)
        return unquote(value) if value is not None else None

    def has(self) -> bool:
        return bool(self._cookies)

    def to_header(self) -> str:
        return ";".join(f"{k}={v}" for k, v in self._cookies.items())

    def as_dict(self) -> Dict[str, str]:
        return dict(self._cookies)

    def serialize(self) -> str:
        return json.dumps(self._cookies)

    @classmethod
    def restore(cls, blob: str) -> "CookieStore":
        data = json.loads(blob) if blob else {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected a JSON object of cookies, got {type(data).__name__}"
            )
        return cls({str(k): str(v) for k, v in data.items() if v})

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __iter__(self) -> Iterator[str]:
        return iter(self._cookies)

    def __repr__(self) -> str:
        # names only; values are credentials
        return f"CookieStore({sorted(self._cookies)!r})"


__all__ = ["CookieStore"]
