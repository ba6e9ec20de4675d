"""Canonical forms for dealer and chassis identifiers."""
from __future__ import annotations

import re

from .errors import InvalidIdentifier

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_LEGACY_SUFFIX = re.compile(r"^(.*?)-([a-z0-9]{6})$")
_WORD_START = re.compile(r"\b\w")


def slugify(name: object) -> str:
    text = "" if name is None else str(name)
    return _NON_SLUG.sub("-", text.lower()).strip("-")


def normalize_dealer_slug(raw: object) -> str:
    """Lowercase a dealer slug and drop the random ``-xxxxxx`` suffix of legacy links."""
    slug = "" if raw is None else str(raw).lower()
    match = _LEGACY_SUFFIX.match(slug)
    return match.group(1) if match else slug


def prettify_dealer_name(slug: str) -> str:
    text = slug.replace("-", " ").strip()
    return _WORD_START.sub(lambda m: m.group(0).upper(), text)


def normalize_chassis(raw: object) -> str:
    return "" if raw is None else str(raw).strip().upper()


def require_chassis(raw: object) -> str:
    chassis = normalize_chassis(raw)
    if not chassis:
        raise InvalidIdentifier("chassis", raw)
    return chassis


def require_dealer(raw: object) -> str:
    dealer = normalize_dealer_slug(slugify(raw) if raw is not None else "")
    if not dealer:
        raise InvalidIdentifier("dealer", raw)
    return dealer
