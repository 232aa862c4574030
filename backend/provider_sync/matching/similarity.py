"""Deterministic similarity helpers for provider matching."""

from __future__ import annotations

import math
import re
from difflib import SequenceMatcher


_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_MULTISPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"\D")
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
_LEGAL_SUFFIXES = frozenset({"llc", "inc", "co", "corp", "ltd", "company"})

_EARTH_RADIUS_METERS = 6_371_000.0
_MIN_PHONE_DIGITS = 7


def normalize_text(value: str | None) -> str:
    """Lowercase, strip punctuation, and collapse whitespace."""

    if not value:
        return ""
    collapsed = _MULTISPACE_RE.sub(" ", value.strip().lower())
    cleaned = _NON_ALNUM_RE.sub("", collapsed)
    return _MULTISPACE_RE.sub(" ", cleaned).strip()


def normalize_business_name(value: str | None) -> str:
    """Normalize a business name and drop trailing legal-form tokens."""

    tokens = normalize_text(value).split()
    while len(tokens) > 1 and tokens[-1] in _LEGAL_SUFFIXES:
        tokens.pop()
    return " ".join(tokens)


def normalize_phone(value: str | None) -> str | None:
    """Digits-only phone, or None when too short to be a real number."""

    if not value:
        return None
    digits = _NON_DIGIT_RE.sub("", value)
    if len(digits) < _MIN_PHONE_DIGITS:
        return None
    return digits


def phones_match(left: str | None, right: str | None) -> bool:
    """Compare normalized phones, tolerating a leading country code of 1."""

    left_digits = normalize_phone(left)
    right_digits = normalize_phone(right)
    if left_digits is None or right_digits is None:
        return False
    if left_digits == right_digits:
        return True
    return _strip_us_country_code(left_digits) == _strip_us_country_code(right_digits)


def extract_domain(url: str | None) -> str | None:
    """Return the host of a URL without scheme or leading ``www.``."""

    if not url:
        return None
    cleaned = _SCHEME_RE.sub("", url.strip().lower())
    host = cleaned.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host or None


def token_set_similarity(left: str, right: str) -> float:
    """Return token overlap similarity in [0, 1]."""

    left_tokens = set(normalize_text(left).split())
    right_tokens = set(normalize_text(right).split())
    if not left_tokens or not right_tokens:
        return 0.0
    intersection = len(left_tokens & right_tokens)
    union = len(left_tokens | right_tokens)
    return intersection / union if union else 0.0


def trigram_similarity(left: str | None, right: str | None) -> float:
    """Jaccard similarity over character trigrams of normalized text."""

    norm_left = normalize_text(left)
    norm_right = normalize_text(right)
    if not norm_left or not norm_right:
        return 0.0
    if norm_left == norm_right:
        return 1.0
    if len(norm_left) < 3 or len(norm_right) < 3:
        return 0.8 if norm_left in norm_right or norm_right in norm_left else 0.0
    left_grams = {norm_left[i : i + 3] for i in range(len(norm_left) - 2)}
    right_grams = {norm_right[i : i + 3] for i in range(len(norm_right) - 2)}
    union = len(left_grams | right_grams)
    return len(left_grams & right_grams) / union if union else 0.0


def string_similarity(left: str, right: str) -> float:
    """Composite deterministic similarity score."""

    norm_left = normalize_text(left)
    norm_right = normalize_text(right)
    if not norm_left or not norm_right:
        return 0.0
    if norm_left == norm_right:
        return 1.0
    sequence = SequenceMatcher(a=norm_left, b=norm_right).ratio()
    token = token_set_similarity(norm_left, norm_right)
    return max(sequence, token)


def name_similarity(left: str | None, right: str | None) -> float:
    """Best of sequence, token, and trigram similarity for business names."""

    norm_left = normalize_business_name(left)
    norm_right = normalize_business_name(right)
    if not norm_left or not norm_right:
        return 0.0
    return max(string_similarity(norm_left, norm_right), trigram_similarity(norm_left, norm_right))


def tag_similarity(left: list[str] | None, right: list[str] | None) -> float:
    """Jaccard similarity of normalized category tags."""

    left_tags = {normalize_text(tag) for tag in left or []} - {""}
    right_tags = {normalize_text(tag) for tag in right or []} - {""}
    if not left_tags or not right_tags:
        return 0.0
    return len(left_tags & right_tags) / len(left_tags | right_tags)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in meters."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return _EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _strip_us_country_code(digits: str) -> str:
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits
