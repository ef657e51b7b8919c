"""Block-tree traversal: flat block list, normalized tree and toggle FAQs.

A page body is fetched child list by child list and walked depth-first.
One pass yields three things, all in document order:

``blocks``
    A :class:`FlatBlock` per visited node, tagged with the text of the
    heading_1 that opens its section.

``page_blocks``
    The normalized :class:`~appcatalog.models.blocks.ContentBlock` tree.

``toggles``
    One :class:`~appcatalog.models.app.Faq` per toggle with a heading.

Sibling subtrees are fetched concurrently (bounded by *concurrency*) and
their results are written into index-addressed slots, so completion order
never leaks into the output.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, TypeVar

from appcatalog.models.app import Faq
from appcatalog.models.blocks import ContentBlock
from appcatalog.services.heuristics import extract_urls_from_text, normalize_spacing
from appcatalog.services.notion import NotionClient, list_all_block_children
from appcatalog.services.properties import file_object_url

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Block = Dict[str, Any]

DEFAULT_CONCURRENCY = 3

_RICH_TEXT_TYPES = (
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "code",
    "quote",
    "bulleted_list_item",
    "numbered_list_item",
    "toggle",
    "callout",
)
_FILE_TYPES = ("file", "pdf", "audio", "video")
_CHECKED = "☑"
_UNCHECKED = "☐"


class ParsedContent(NamedTuple):
    text: str
    links: List[str]
    image_url: Optional[str] = None


class FlatBlock(NamedTuple):
    type: str
    section: str
    text: str
    links: List[str]
    image_url: Optional[str] = None


class TraversalResult(NamedTuple):
    blocks: List[FlatBlock]
    toggles: List[Faq]
    text_parts: List[str]
    page_block: Optional[ContentBlock]


class PageBlocks(NamedTuple):
    blocks: List[FlatBlock]
    toggles: List[Faq]
    page_blocks: List[ContentBlock]


# ---------------------------------------------------------------------------
# Per-block decoding
# ---------------------------------------------------------------------------

def parse_rich_text(rich_text: List[Dict[str, Any]]) -> ParsedContent:
    """Join rich-text runs into normalized text and collect their links."""
    text = normalize_spacing("".join((part or {}).get("plain_text") or "" for part in rich_text))
    links: List[str] = []
    for part in rich_text:
        part = part or {}
        link = part.get("href") or ((part.get("text") or {}).get("link") or {}).get("url")
        if link:
            links.append(link)
    return ParsedContent(text, links)


def _parse_unknown(block: Block) -> ParsedContent:
    """Best effort for block types without a dedicated rule."""
    data = block.get(block.get("type") or "")
    if not isinstance(data, dict):
        return ParsedContent("", [])

    rich_text = data.get("rich_text")
    if isinstance(rich_text, list):
        return parse_rich_text(rich_text)

    raw = data.get("text") or data.get("title") or data.get("expression") or ""
    text = normalize_spacing(str(raw))
    return ParsedContent(text, extract_urls_from_text(text))


def parse_block_content(block: Block) -> ParsedContent:
    """Return the display text, links and image URL of a single block."""
    block_type = block.get("type")
    data = (block.get(block_type) or {}) if block_type else {}

    if block_type in _RICH_TEXT_TYPES:
        return parse_rich_text(data.get("rich_text") or [])

    if block_type == "to_do":
        parsed = parse_rich_text(data.get("rich_text") or [])
        glyph = _CHECKED if data.get("checked") else _UNCHECKED
        return ParsedContent(f"{glyph} {parsed.text}" if parsed.text else "", parsed.links)

    if block_type == "table_row":
        cells = data.get("cells") if isinstance(data.get("cells"), list) else []
        pieces = [parse_rich_text(cell if isinstance(cell, list) else []) for cell in cells]
        pieces = [piece for piece in pieces if piece.text]
        return ParsedContent(
            " | ".join(piece.text for piece in pieces),
            [link for piece in pieces for link in piece.links],
        )

    if block_type in ("child_page", "child_database"):
        return ParsedContent(normalize_spacing(data.get("title") or ""), [])

    if block_type in ("embed", "bookmark"):
        url = data.get("url") or ""
        return ParsedContent(url, [url] if url else [])

    if block_type == "image":
        if data.get("type") == "external":
            image_url = (data.get("external") or {}).get("url")
        else:
            image_url = (data.get("file") or {}).get("url")
        return ParsedContent("", [], image_url or None)

    if block_type in _FILE_TYPES:
        url = file_object_url(data) or ""
        return ParsedContent(url, [url] if url else [])

    return _parse_unknown(block)


# ---------------------------------------------------------------------------
# Normalized tree construction
# ---------------------------------------------------------------------------

# Source types that map onto a text node, and the type they are rendered as
_TEXT_NODE_TYPES = {
    "paragraph": "paragraph",
    "heading_1": "heading_1",
    "heading_2": "heading_2",
    "heading_3": "heading_3",
    "quote": "quote",
    "bulleted_list_item": "bulleted_list_item",
    "numbered_list_item": "numbered_list_item",
    "toggle": "toggle",
    "callout": "callout",
    "to_do": "bulleted_list_item",
    "code": "quote",
    "table_row": "paragraph",
}


def to_content_block(
    block: Block,
    parsed: ParsedContent,
    children: List[ContentBlock],
) -> Optional[ContentBlock]:
    """Build the normalized node for *block*, or ``None`` when it has nothing to show.

    Pure: depends only on its arguments. Unknown wrapper types collapse to
    their single child, or to a ``column`` when they hold several.
    """
    block_type = block.get("type") or ""
    kids = children or None

    if block_type in _TEXT_NODE_TYPES:
        if not parsed.text and not children:
            return None
        return ContentBlock(
            type=_TEXT_NODE_TYPES[block_type],
            value=parsed.text or None,
            links=parsed.links or None,
            children=kids,
        )

    if block_type in ("child_page", "child_database"):
        title = normalize_spacing((block.get(block_type) or {}).get("title") or parsed.text)
        if not title and not children:
            return None
        return ContentBlock(type="heading_3", value=title or None, children=kids)

    if block_type in ("embed", "bookmark"):
        url = (block.get(block_type) or {}).get("url") or parsed.text
        return ContentBlock(type=block_type, url=url) if url else None

    if block_type == "image":
        return ContentBlock(type="image", src=parsed.image_url) if parsed.image_url else None

    if block_type in _FILE_TYPES:
        url = file_object_url(block.get(block_type))
        return ContentBlock(type="bookmark", url=url) if url else None

    if block_type == "divider":
        return ContentBlock(type="divider")

    if block_type in ("column", "column_list"):
        return ContentBlock(type=block_type, children=children) if children else None

    if len(children) == 1:
        return children[0]
    if children:
        return ContentBlock(type="column", children=children)
    return None


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------

async def map_with_concurrency(
    items: List[T],
    limit: int,
    mapper: Callable[[T], Awaitable[R]],
) -> List[R]:
    """Apply *mapper* to every item with at most *limit* calls in flight.

    Results are written by index, so the output order matches *items*
    whatever order the calls finish in.
    """
    results: List[Any] = [None] * len(items)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            index = next_index
            next_index += 1
            results[index] = await mapper(items[index])

    workers = max(1, min(limit, len(items)))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results


async def traverse_block(
    client: NotionClient,
    block: Block,
    section: str,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> TraversalResult:
    """Walk *block* and its descendants depth-first."""
    parsed = parse_block_content(block)
    block_type = block.get("type") or ""
    blocks = [FlatBlock(block_type, section, parsed.text, parsed.links, parsed.image_url)]
    toggles: List[Faq] = []
    children_text: List[str] = []
    child_nodes: List[ContentBlock] = []

    if block.get("has_children"):
        # A heading_1 opens the section its own children belong to
        next_section = parsed.text if block_type == "heading_1" and parsed.text else section
        children = await list_all_block_children(client, block["id"])
        child_results = await map_with_concurrency(
            children,
            concurrency,
            lambda child: traverse_block(client, child, next_section, concurrency),
        )
        for result in child_results:
            blocks.extend(result.blocks)
            toggles.extend(result.toggles)
            children_text.extend(result.text_parts)
            if result.page_block is not None:
                child_nodes.append(result.page_block)

    if block_type == "toggle" and parsed.text:
        answer = normalize_spacing(" ".join(children_text))
        toggles.append(Faq(question=parsed.text, answer=answer or None))

    text_parts = ([parsed.text] if parsed.text else []) + children_text
    return TraversalResult(blocks, toggles, text_parts, to_content_block(block, parsed, child_nodes))


def top_level_sections(top_level: List[Block]) -> List[str]:
    """Section label of each top-level block: the last heading_1 seen before it."""
    sections: List[str] = []
    current = ""
    for block in top_level:
        sections.append(current)
        if block.get("type") == "heading_1":
            text = parse_block_content(block).text
            if text:
                current = text
    return sections


async def parse_page_blocks(
    client: NotionClient,
    page_id: str,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> PageBlocks:
    """Fetch and traverse the whole body of *page_id*."""
    top_level = await list_all_block_children(client, page_id)
    sections = top_level_sections(top_level)
    logger.debug("Traversing %d top-level blocks of page %s", len(top_level), page_id)

    results = await map_with_concurrency(
        list(zip(top_level, sections)),
        concurrency,
        lambda pair: traverse_block(client, pair[0], pair[1], concurrency),
    )

    blocks: List[FlatBlock] = []
    toggles: List[Faq] = []
    page_blocks: List[ContentBlock] = []
    for result in results:
        blocks.extend(result.blocks)
        toggles.extend(result.toggles)
        if result.page_block is not None:
            page_blocks.append(result.page_block)

    return PageBlocks(blocks, toggles, page_blocks)
