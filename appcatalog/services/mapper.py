"""Mapping of Notion database rows to public catalog summaries."""

import json
import logging
import re
import unicodedata
from typing import Any, Dict, List, NamedTuple, Optional

from appcatalog.models.app import (
    AppSummary,
    Contact,
    DbField,
    Faq,
    Highlights,
    OrganicChannel,
    PaidChannel,
    UserAcquisition,
)
from appcatalog.services.heuristics import ICON_APP_STORE, ICON_META_ADS, normalize_spacing
from appcatalog.services.properties import (
    get_checkbox,
    get_file_url,
    get_multi_select_names,
    get_number,
    get_page_icon_url,
    get_rich_text,
    get_status_name,
    get_title,
    get_url,
    parse_property_to_field,
)

logger = logging.getLogger(__name__)

Page = Dict[str, Any]

DEFAULT_ICON = "/images/EHVM_Icon.png"
DEFAULT_SCREENSHOTS = "/images/app-screenshots.png"
DEFAULT_CONTACT = Contact(
    name="Evelin Herrera",
    image="/images/evelin.png",
    email="hi@evelinherrera.com",
    phone="+1 415 798 1766",
)
MISSING_METRIC = "—"
SOLD_STATUS = "sold"

# Properties already modeled on AppSummary; everything else is passed through
EXCLUDED_DB_FIELD_NAMES = frozenset(
    {
        "Name",
        "Slug",
        "Icon",
        "PaidChannelsJSON",
        "OrganicChannelsJSON",
        "FAQsJSON",
        "ContactImage",
        "Screenshots",
    }
)


def slugify(value: str) -> str:
    """Lowercase, ASCII-only, hyphen-separated slug of *value*.

    Accents are stripped after Unicode decomposition; every run of other
    characters becomes a single hyphen. Returns ``""`` when nothing is left.
    """
    slug = unicodedata.normalize("NFKD", value)
    slug = "".join(ch for ch in slug if not unicodedata.combining(ch))
    slug = re.sub(r"[^a-z0-9]+", "-", slug.lower())
    return slug.strip("-")


def _props(page: Page) -> Dict[str, Any]:
    return page.get("properties") or {}


def get_app_slug(page: Page) -> str:
    """Slug property, else a slug of the name, else the page id without dashes."""
    props = _props(page)
    return (
        slugify(get_rich_text(props.get("Slug")))
        or slugify(get_title(props.get("Name")))
        or str(page.get("id", "")).replace("-", "")
    )


def is_sold_page(page: Page) -> bool:
    return get_status_name(_props(page).get("Hearing offers")).lower() == SOLD_STATUS


class Platform(NamedTuple):
    label: str
    emoji: str


def parse_platform(raw_values: List[str]) -> Platform:
    values = [normalize_spacing(v) for v in raw_values]
    has_ios = any("ios" in v.lower() for v in values)
    has_android = any("android" in v.lower() for v in values)
    has_web = any(re.search(r"\bweb\b", v, re.IGNORECASE) for v in values)

    if has_ios and has_android:
        return Platform("iOS + Android", "📱")
    if has_ios:
        return Platform("iOS", "🔵")
    if has_android:
        return Platform("Android", "🟢")
    if has_web:
        return Platform("Web", "💻")

    # Custom OS labels, stripped of leading emoji/punctuation
    label = " + ".join(
        cleaned for cleaned in (re.sub(r"^[^A-Za-z0-9]+", "", v).strip() for v in values) if cleaned
    )
    return Platform(label, "📱") if label else Platform("iOS", "📱")


def derive_subtitle(name: str) -> str:
    """Text after the first ``:``, ``-`` or ``·`` of *name*, if any."""
    match = re.search(r"[:\-·](.+)$", name)
    return match.group(1).strip() if match else ""


def parse_mrr_for_card(raw: str) -> str:
    """Compact MRR figure for cards: ``"$ 12.5 k / month"`` -> ``"12.5K"``."""
    match = re.search(r"(\d+(?:\.\d+)?\s*[kKmM]?)", normalize_spacing(raw))
    if not match:
        return ""
    return re.sub(r"\s+", "", match.group(1)).upper()


def parse_multiline(value: str) -> List[str]:
    return [line.strip() for line in value.splitlines() if line.strip()]


def _load_json_list(raw: str, label: str) -> List[Dict[str, Any]]:
    """Decode a JSON array of objects stored in a text property; bad JSON gives []."""
    if not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        logger.warning("Ignoring malformed %s property: %s", label, exc)
        return []
    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, dict)]


def _clean(item: Dict[str, Any], key: str) -> str:
    value = item.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_paid_channels(raw: str) -> List[PaidChannel]:
    channels = [
        PaidChannel(
            name=_clean(item, "name"),
            subtitle=_clean(item, "subtitle") or "Paid",
            icon=_clean(item, "icon") or ICON_META_ADS,
            metric=_clean(item, "metric") or "N/A",
            metric_style="dark" if item.get("metricStyle") == "dark" else "light",
            link=_clean(item, "link") or None,
        )
        for item in _load_json_list(raw, "PaidChannelsJSON")
    ]
    return [channel for channel in channels if channel.name]


def parse_organic_channels(raw: str) -> List[OrganicChannel]:
    channels = [
        OrganicChannel(
            name=_clean(item, "name"),
            subtitle=_clean(item, "subtitle"),
            icon=_clean(item, "icon") or ICON_APP_STORE,
            metric=_clean(item, "metric") or "N/A",
            link=_clean(item, "link") or None,
        )
        for item in _load_json_list(raw, "OrganicChannelsJSON")
    ]
    return [channel for channel in channels if channel.name]


def parse_faqs(raw: str) -> List[Faq]:
    faqs = [
        Faq(question=_clean(item, "question"), answer=_clean(item, "answer") or None)
        for item in _load_json_list(raw, "FAQsJSON")
    ]
    return [faq for faq in faqs if faq.question]


def parse_db_fields(props: Dict[str, Any]) -> List[DbField]:
    """Every non-excluded property that decodes to a value, in schema order."""
    fields: List[DbField] = []
    for label, prop in props.items():
        if label in EXCLUDED_DB_FIELD_NAMES:
            continue
        parsed = parse_property_to_field(prop)
        if parsed is not None:
            fields.append(DbField(label=label, value=parsed.value, url=parsed.url))
    return fields


def map_page_to_app_summary(page: Page) -> Optional[AppSummary]:
    """Build the catalog summary of one database row; sold apps give ``None``."""
    if is_sold_page(page):
        return None

    props = _props(page)
    name = get_title(props.get("Name")) or "Untitled App"
    mrr = parse_mrr_for_card(get_rich_text(props.get("MRR"))) or MISSING_METRIC
    rating = get_number(props.get("Rating")) or 0
    followers = get_rich_text(props.get("Followers"))
    platform = parse_platform(get_multi_select_names(props.get("OS")))

    highlights = Highlights(
        mrr=get_rich_text(props.get("HighlightsMRR"))
        or (f"${mrr}" if mrr != MISSING_METRIC else MISSING_METRIC),
        rating=get_rich_text(props.get("HighlightsRating"))
        or (_format_number(rating) if rating > 0 else MISSING_METRIC),
        rating_label=get_rich_text(props.get("HighlightsRatingLabel")) or "Rating",
        followers=get_rich_text(props.get("HighlightsFollowers")) or followers or MISSING_METRIC,
        followers_label=get_rich_text(props.get("HighlightsFollowersLabel")) or "Followers",
    )
    contact = Contact(
        name=get_rich_text(props.get("ContactName")) or DEFAULT_CONTACT.name,
        image=get_file_url(props.get("ContactImage")) or DEFAULT_CONTACT.image,
        email=get_rich_text(props.get("ContactEmail")) or DEFAULT_CONTACT.email,
        phone=get_rich_text(props.get("ContactPhone")) or DEFAULT_CONTACT.phone,
    )
    db_fields = parse_db_fields(props)

    return AppSummary(
        notion_page_id=page.get("id"),
        slug=get_app_slug(page),
        name=name,
        subtitle=get_rich_text(props.get("Subtitle")) or derive_subtitle(name),
        icon=get_file_url(props.get("Icon")) or get_page_icon_url(page) or DEFAULT_ICON,
        mrr=mrr,
        platform=platform.label,
        platform_emoji=platform.emoji,
        monetization_type=get_rich_text(props.get("Monetization type")) or None,
        hearing_offers_status=get_status_name(props.get("Hearing offers")) or None,
        rating=rating,
        followers=followers or None,
        category=normalize_spacing(get_rich_text(props.get("Category"))) or "Other",
        about=get_rich_text(props.get("About")) or f"{name} is listed for acquisition on EHVM.",
        highlights=highlights,
        screenshots_image=get_file_url(props.get("Screenshots")) or DEFAULT_SCREENSHOTS,
        app_store_link=get_url(props.get("AppStoreLink")),
        play_store_link=get_url(props.get("PlayStoreLink")),
        user_acquisition=UserAcquisition(
            paid=parse_paid_channels(get_rich_text(props.get("PaidChannelsJSON"))),
            organic=parse_organic_channels(get_rich_text(props.get("OrganicChannelsJSON"))),
        ),
        opportunities=parse_multiline(get_rich_text(props.get("Opportunities"))),
        developer_country=get_rich_text(props.get("DeveloperCountry")) or "Unknown",
        developer_flag=get_rich_text(props.get("DeveloperFlag")) or "🌍",
        faqs=parse_faqs(get_rich_text(props.get("FAQsJSON"))),
        contact=contact,
        featured=bool(get_checkbox(props.get("Featured"))),
        db_fields=db_fields or None,
    )


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
