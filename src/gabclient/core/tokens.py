"""Pull login/auth artifacts out of the site's server-rendered HTML."""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .errors import TokenExtractionError

_INPUT_TAG_RE = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"([\w:-]+)\s*=\s*\"([^\"]*)\"")
_INITIAL_STATE_RE = re.compile(
    r"<script\b(?=[^>]*\bid=\"initial-state\")[^>]*>(.*?)</script>",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class PageTokens:
    authenticity_token: Optional[str] = None
    csrf_token: Optional[str] = None
    access_token: Optional[str] = None
    bootstrap_state: Optional[Dict[str, Any]] = None


class TokenExtractor(Protocol):
    def extract(self, page: str) -> PageTokens: ...


def _tag_attrs(tag: str) -> Dict[str, str]:
    return {k.lower(): html.unescape(v) for k, v in _ATTR_RE.findall(tag)}


def _find_attr(
    pattern: re.Pattern, page: str, name: str, attr: str
) -> Optional[str]:
    for match in pattern.finditer(page):
        attrs = _tag_attrs(match.group(0))
        if attrs.get("name") == name and attrs.get(attr):
            return attrs[attr]
    return None


def _access_token(state: Any) -> Optional[str]:
    if not isinstance(state, dict):
        return None
    meta = state.get("meta")
    if not isinstance(meta, dict):
        return None
    token = meta.get("access_token")
    return token if isinstance(token, str) and token else None


class RegexTokenExtractor:
    """
    Pattern-based extractor. Sensitive to upstream markup changes; swap in
    another TokenExtractor if the site layout moves.
    """

    def extract(self, page: str) -> PageTokens:
        page = page or ""
        authenticity_token = _find_attr(
            _INPUT_TAG_RE, page, "authenticity_token", "value"
        )
        csrf_token = _find_attr(_META_TAG_RE, page, "csrf-token", "content")

        state: Optional[Dict[str, Any]] = None
        match = _INITIAL_STATE_RE.search(page)
        if match:
            raw = match.group(1)
            try:
                state = json.loads(raw)
            except ValueError as exc:
                raise TokenExtractionError(
                    f"Could not parse initial-state JSON from page: {exc}"
                ) from exc
            if not isinstance(state, dict):
                raise TokenExtractionError(
                    f"Expected initial-state JSON object, got {type(state).__name__}"
                )

        return PageTokens(
            authenticity_token=authenticity_token,
            csrf_token=csrf_token,
            access_token=_access_token(state),
            bootstrap_state=state,
        )


_default_extractor = RegexTokenExtractor()


def extract_tokens(page: str) -> PageTokens:
    return _default_extractor.extract(page)


__all__ = ["PageTokens", "TokenExtractor", "RegexTokenExtractor", "extract_tokens"]
