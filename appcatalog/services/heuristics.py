"""Plain-string heuristics used to pull business fields out of page text.

Everything here is pure and works on ``str`` only, so each rule can be
tested without building a block tree.  Ordered rule tables
(:data:`CHANNEL_RULES`, :data:`METRIC_PATTERNS`) are evaluated top to bottom
and the first hit wins.
"""

import re
from typing import Iterable, List, NamedTuple, Optional

# ---------------------------------------------------------------------------
# Text normalisation
# ---------------------------------------------------------------------------

_WHITESPACE = re.compile(r"\s+")
_URL_IN_TEXT = re.compile(r"https?://[^\s)]+")
_EMAIL = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_PHONE = re.compile(r"\+\d[\d\s().-]{7,}\d")

# Minimum length for a line to count as prose rather than a label
NARRATIVE_MIN_LENGTH = 18
_ARROW_GLYPH = "↗"


def normalize_spacing(value: str) -> str:
    """Collapse whitespace runs (including non-breaking spaces) and trim."""
    return _WHITESPACE.sub(" ", value.replace("\u00a0", " ")).strip()


def is_narrative_text(value: str) -> bool:
    """Return True for prose: long enough, not a bare URL, not a ``↗`` link label."""
    text = normalize_spacing(value)
    if len(text) < NARRATIVE_MIN_LENGTH:
        return False
    if re.match(r"https?://", text, re.IGNORECASE):
        return False
    if text.startswith(_ARROW_GLYPH):
        return False
    return True


def extract_urls_from_text(value: str) -> List[str]:
    return _URL_IN_TEXT.findall(value)


def unique_strings(values: Iterable[str]) -> List[str]:
    """Trim, drop empties and deduplicate while keeping first-seen order."""
    seen: set = set()
    result: List[str] = []
    for value in values:
        stripped = value.strip()
        if stripped and stripped not in seen:
            seen.add(stripped)
            result.append(stripped)
    return result


def find_first_email(value: str) -> str:
    match = _EMAIL.search(value)
    return match.group(0) if match else ""


def find_first_phone(value: str) -> str:
    """Return the first ``+``-prefixed international number in *value*."""
    match = _PHONE.search(value)
    return match.group(0).strip() if match else ""


# ---------------------------------------------------------------------------
# Highlight metrics
# ---------------------------------------------------------------------------

_CURRENCY = re.compile(r"[$€£]")
_RATING_HINT = re.compile(r"⭐|\b[0-5](?:\.\d+)?\b")
_RATING_VALUE = re.compile(r"([0-4](?:\.\d+)?|5(?:\.0+)?)")
# Currency symbols go with the label ("MRR $12k" -> "12k"). Keeping them
# would mean stripping with ^[^$€£\d]+ instead; product has not settled which.
_LEADING_NON_DIGITS = re.compile(r"^\D+")


def mentions_currency(value: str) -> bool:
    return bool(_CURRENCY.search(value))


def looks_like_rating(value: str) -> bool:
    return bool(_RATING_HINT.search(value))


def parse_rating_from_text(value: str) -> Optional[float]:
    """Return the first 0-5 rating in *value* (``"⭐ 4.8"`` -> ``4.8``)."""
    match = _RATING_VALUE.search(value)
    if not match:
        return None
    return float(match.group(1))


def clean_heading_metric(value: str) -> str:
    """Drop everything before the first digit: ``"$12,400/mo"`` -> ``"12,400/mo"``."""
    return normalize_spacing(_LEADING_NON_DIGITS.sub("", value))


# ---------------------------------------------------------------------------
# User-acquisition channels
# ---------------------------------------------------------------------------

ICON_APP_STORE = "/images/Icons/app-store.svg"
ICON_GOOGLE_PLAY = "/images/Icons/google-play.svg"
ICON_INSTAGRAM = "/images/Icons/instagram.svg"
ICON_META_ADS = "/images/Icons/meta-ads.svg"
ICON_TIKTOK = "/images/Icons/tiktok.svg"


class ChannelInfo(NamedTuple):
    name: str
    icon: str
    metric_style: str  # "dark" | "light"


# Keyword sniffing, checked in order against the lower-cased line
CHANNEL_RULES = (
    (re.compile(r"apple|asa|app store|ios"), ChannelInfo("Apple Search Ads", ICON_APP_STORE, "dark")),
    (re.compile(r"google|play|admob|android"), ChannelInfo("Google Ads", ICON_GOOGLE_PLAY, "light")),
    (re.compile(r"instagram"), ChannelInfo("Instagram", ICON_INSTAGRAM, "light")),
    (re.compile(r"meta|facebook"), ChannelInfo("Meta Ads", ICON_META_ADS, "light")),
    (re.compile(r"tiktok"), ChannelInfo("TikTok Ads", ICON_TIKTOK, "dark")),
)


def infer_channel_from_line(line: str, index: int) -> ChannelInfo:
    """Map an acquisition line to a named channel; unknown lines become ``Channel N``."""
    lower = line.lower()
    for pattern, channel in CHANNEL_RULES:
        if pattern.search(lower):
            return channel
    return ChannelInfo(f"Channel {index + 1}", ICON_META_ADS, "light")


# Metric extraction, checked in order; the first pattern that matches wins
METRIC_PATTERNS = (
    re.compile(r"\d+(?:\.\d+)?x\s*ROAS", re.IGNORECASE),
    re.compile(r"\$\d+(?:\.\d+)?\s*CPI", re.IGNORECASE),
    re.compile(r"\d+(?:\.\d+)?%[^,.]*", re.IGNORECASE),
)
_PROFITABLE = re.compile(r"profitable", re.IGNORECASE)
_NDA = re.compile(r"nda|sign nda", re.IGNORECASE)
METRIC_MAX_LENGTH = 36


def infer_metric_from_line(line: str) -> str:
    """Return a one-line metric for an acquisition channel.

    ROAS multiplier, then CPI dollar amount, then a percentage phrase; a
    line without numbers becomes ``Profitable`` or ``Metrics (NDA)`` when it
    says so, otherwise the line itself, cut to 36 characters.
    """
    normalized = normalize_spacing(line)
    for pattern in METRIC_PATTERNS:
        match = pattern.search(normalized)
        if match:
            return match.group(0).strip()
    if _PROFITABLE.search(normalized):
        return "Profitable"
    if _NDA.search(normalized):
        return "Metrics (NDA)"
    if len(normalized) > METRIC_MAX_LENGTH:
        return normalized[: METRIC_MAX_LENGTH - 3] + "..."
    return normalized
