"""Derive catalog fields from a traversed page body.

Each field has its own independent rule; a miss on one never blocks the
others and a missing field stays ``None`` rather than getting a guess.
"""

import re
from typing import Iterable, List, Optional

from appcatalog.models.app import (
    Faq,
    PaidChannel,
    ParsedAppContent,
    PartialContact,
    PartialHighlights,
    UserAcquisition,
)
from appcatalog.models.blocks import ContentBlock, DetailBlock
from appcatalog.services.blocks import FlatBlock, PageBlocks
from appcatalog.services.heuristics import (
    clean_heading_metric,
    extract_urls_from_text,
    find_first_email,
    find_first_phone,
    infer_channel_from_line,
    infer_metric_from_line,
    is_narrative_text,
    looks_like_rating,
    mentions_currency,
    normalize_spacing,
    parse_rating_from_text,
    unique_strings,
)

_APP_STORE = re.compile(r"apps\.apple\.com", re.IGNORECASE)
_PLAY_STORE = re.compile(r"play\.google\.com", re.IGNORECASE)
_NDA_LINK = re.compile(r"docuseal|nda", re.IGNORECASE)
_HTTP_LINK = re.compile(r"^https?://", re.IGNORECASE)
_MAILTO = re.compile(r"^mailto:", re.IGNORECASE)

_OPPORTUNITY_SECTION = re.compile(r"opportunit", re.IGNORECASE)
_ACQUISITION_SECTION = re.compile(r"user acquisition", re.IGNORECASE)
_PAID_CHANNELS_LABEL = re.compile(r"^active paid channels$", re.IGNORECASE)
_RATING_LABEL = re.compile(r"rating", re.IGNORECASE)
CONTACT_SECTION_KEY = "have more questions"

_PROSE_TYPES = ("quote", "paragraph", "bulleted_list_item", "numbered_list_item")
MAX_PAID_CHANNELS = 5

# Acquisition detail section bounds
_DETAIL_START = re.compile(r"acquisition|main geos|user growth|channels?", re.IGNORECASE)
_DETAIL_STOP = re.compile(r"opportunit|faq|have more questions", re.IGNORECASE)


def build_link_pool(blocks: Iterable[FlatBlock]) -> List[str]:
    """Every link and in-text URL of the page, trimmed and deduplicated."""
    blocks = list(blocks)
    links = [link for block in blocks for link in block.links]
    links += [url for block in blocks for url in extract_urls_from_text(block.text)]
    return unique_strings(links)


def _first(values: Iterable[Optional[str]]) -> Optional[str]:
    return next((v for v in values if v), None)


def _find_link(pool: List[str], pattern: "re.Pattern[str]") -> Optional[str]:
    return _first(url for url in pool if pattern.search(url))


def _section_lines(blocks: List[FlatBlock], section: "re.Pattern[str]") -> List[str]:
    """Narrative prose lines of every block whose section matches *section*."""
    lines = (
        normalize_spacing(block.text)
        for block in blocks
        if section.search(block.section) and block.type in _PROSE_TYPES
    )
    return unique_strings(line for line in lines if is_narrative_text(line))


def extract_about(blocks: List[FlatBlock]) -> Optional[str]:
    return _first(
        block.text
        for block in blocks
        if block.type == "paragraph" and not block.section and is_narrative_text(block.text)
    )


def extract_screenshots_image(blocks: List[FlatBlock]) -> Optional[str]:
    images = [block for block in blocks if block.type == "image" and block.image_url]
    unsectioned = _first(block.image_url for block in images if not block.section)
    return unsectioned or _first(block.image_url for block in images)


def extract_opportunities(blocks: List[FlatBlock]) -> List[str]:
    return _section_lines(blocks, _OPPORTUNITY_SECTION)


def extract_paid_channels(blocks: List[FlatBlock], link_pool: List[str]) -> List[PaidChannel]:
    lines = [
        line
        for line in _section_lines(blocks, _ACQUISITION_SECTION)
        if not _PAID_CHANNELS_LABEL.match(line)
    ]
    link = _find_link(link_pool, _NDA_LINK) or _find_link(link_pool, _HTTP_LINK)

    channels: List[PaidChannel] = []
    for index, line in enumerate(lines[:MAX_PAID_CHANNELS]):
        channel = infer_channel_from_line(line, index)
        channels.append(
            PaidChannel(
                name=channel.name,
                subtitle="Paid",
                icon=channel.icon,
                metric=infer_metric_from_line(line),
                metric_style=channel.metric_style,
                link=link,
            )
        )
    return channels


def extract_rating(blocks: List[FlatBlock]) -> Optional[float]:
    """Rating from the first heading_1 carrying a star or a 0-5 number."""
    raw = _first(
        block.text for block in blocks if block.type == "heading_1" and looks_like_rating(block.text)
    )
    return parse_rating_from_text(raw) if raw else None


def extract_highlights(blocks: List[FlatBlock]) -> PartialHighlights:
    mrr_raw = _first(
        block.text for block in blocks if block.type == "heading_1" and mentions_currency(block.text)
    )
    rating = extract_rating(blocks)
    rating_label = _first(
        block.text
        for block in blocks
        if block.type == "paragraph" and not block.section and _RATING_LABEL.search(block.text)
    )
    return PartialHighlights(
        mrr=clean_heading_metric(mrr_raw) if mrr_raw else None,
        rating=_format_rating(rating),
        rating_label=rating_label,
    )


def _format_rating(rating: Optional[float]) -> Optional[str]:
    if rating is None:
        return None
    return str(int(rating)) if rating.is_integer() else str(rating)


def extract_contact(blocks: List[FlatBlock], link_pool: List[str]) -> PartialContact:
    in_contact = [block for block in blocks if CONTACT_SECTION_KEY in block.section.lower()]
    name = _first(
        block.text
        for block in in_contact
        if block.type == "heading_1" and CONTACT_SECTION_KEY not in block.text.lower()
    )
    image = _first(block.image_url for block in in_contact if block.type == "image")

    all_text = " \n ".join(block.text for block in blocks)
    mailto = _find_link(link_pool, _MAILTO)
    email = _MAILTO.sub("", mailto).strip() if mailto else ""

    return PartialContact(
        name=name,
        image=image,
        email=email or find_first_email(all_text) or None,
        phone=find_first_phone(all_text) or None,
    )


def build_detail_blocks(blocks: List[FlatBlock]) -> List[DetailBlock]:
    """Collect the acquisition part of the page as flat detail blocks.

    Starts at the first heading mentioning acquisition, geos, growth or
    channels and stops at the opportunities / FAQ / contact heading.
    """
    detail: List[DetailBlock] = []
    in_section = False

    for block in blocks:
        text = normalize_spacing(block.text)
        is_heading = block.type.startswith("heading_")

        if is_heading and (_DETAIL_START.search(text) or _DETAIL_START.search(block.section)):
            in_section = True
        if not in_section:
            continue
        if is_heading and _DETAIL_STOP.search(text):
            break

        if is_heading and text:
            detail.append(DetailBlock(type="heading", value=text))
        elif block.type == "divider":
            detail.append(DetailBlock(type="divider"))
        elif block.type == "image" and block.image_url:
            detail.append(DetailBlock(type="image", src=block.image_url))
        elif block.type in ("quote", "callout") and text:
            detail.append(DetailBlock(type="quote", value=text))
        elif block.type in ("paragraph", "bulleted_list_item", "numbered_list_item") and text and text != "/":
            detail.append(DetailBlock(type="text", value=text))

    return compact_detail_blocks(detail)


def compact_detail_blocks(blocks: List[DetailBlock]) -> List[DetailBlock]:
    """Drop consecutive duplicates (dividers, equal text, equal images)."""
    compacted: List[DetailBlock] = []
    for block in blocks:
        previous = compacted[-1] if compacted else None
        if previous is not None and block.type == previous.type:
            if block.type == "divider":
                continue
            if block.value and block.value == previous.value:
                continue
            if block.src and block.src == previous.src:
                continue
        compacted.append(block)
    return compacted


def extract_parsed_content(page: PageBlocks) -> ParsedAppContent:
    """Run every field rule over a traversed page."""
    blocks = page.blocks
    link_pool = build_link_pool(blocks)

    opportunities = extract_opportunities(blocks)
    paid_channels = extract_paid_channels(blocks, link_pool)
    detail_blocks = build_detail_blocks(blocks)
    highlights = extract_highlights(blocks)
    faqs: List[Faq] = list(page.toggles)
    page_blocks: List[ContentBlock] = list(page.page_blocks)

    return ParsedAppContent(
        about=extract_about(blocks),
        app_store_link=_find_link(link_pool, _APP_STORE),
        play_store_link=_find_link(link_pool, _PLAY_STORE),
        screenshots_image=extract_screenshots_image(blocks),
        opportunities=opportunities or None,
        faqs=faqs or None,
        user_acquisition=UserAcquisition(paid=paid_channels, organic=[]) if paid_channels else None,
        detail_blocks=detail_blocks or None,
        page_blocks=page_blocks or None,
        contact=extract_contact(blocks, link_pool),
        highlights=highlights,
        rating=extract_rating(blocks),
    )
