"""Builders for Notion API payloads and an in-memory stand-in for NotionClient."""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

_ids = itertools.count(1)


def rich(text: str, href: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "text",
        "plain_text": text,
        "href": href,
        "text": {"content": text, "link": {"url": href} if href else None},
    }


def block(block_type: str, text: str = "", href: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """A rich-text block; pass ``has_children=True`` and an ``id`` for containers."""
    payload: Dict[str, Any] = {"rich_text": [rich(text, href)] if text else []}
    payload.update(extra.pop("data", {}))
    return {
        "object": "block",
        "id": extra.pop("id", f"block-{next(_ids)}"),
        "type": block_type,
        "has_children": extra.pop("has_children", False),
        block_type: payload,
        **extra,
    }


def image(url: str, **extra: Any) -> Dict[str, Any]:
    return {
        "object": "block",
        "id": extra.pop("id", f"block-{next(_ids)}"),
        "type": "image",
        "has_children": False,
        "image": {"type": "external", "external": {"url": url}},
    }


def divider() -> Dict[str, Any]:
    return {"object": "block", "id": f"block-{next(_ids)}", "type": "divider", "has_children": False, "divider": {}}


# -- database properties -----------------------------------------------------


def title_prop(text: str) -> Dict[str, Any]:
    return {"id": "title", "type": "title", "title": [rich(text)] if text else []}


def text_prop(text: str) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "rich_text", "rich_text": [rich(text)] if text else []}


def number_prop(value: Optional[float]) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "number", "number": value}


def select_prop(name: Optional[str]) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "select", "select": {"name": name} if name else None}


def status_prop(name: str) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "status", "status": {"name": name}}


def multi_select_prop(*names: str) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "multi_select", "multi_select": [{"name": n} for n in names]}


def checkbox_prop(value: bool) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "checkbox", "checkbox": value}


def files_prop(*urls: str) -> Dict[str, Any]:
    return {
        "id": f"p{next(_ids)}",
        "type": "files",
        "files": [{"name": u, "type": "external", "external": {"url": u}} for u in urls],
    }


def url_prop(url: Optional[str]) -> Dict[str, Any]:
    return {"id": f"p{next(_ids)}", "type": "url", "url": url}


def make_page(page_id: str, name: str, **properties: Any) -> Dict[str, Any]:
    props = {"Name": title_prop(name)}
    props.update(properties)
    return {"object": "page", "id": page_id, "properties": props}


# -- fake client ----------------------------------------------------------------


class FakeNotionClient:
    """Serves canned block children, pages and schema; records every call.

    ``delays`` maps a block id to seconds slept before its children are
    returned, to force out-of-order completion.
    """

    def __init__(
        self,
        children: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        pages: Optional[List[Dict[str, Any]]] = None,
        database: Optional[Dict[str, Any]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.children = children or {}
        self.pages = pages or []
        self.database = database or {"object": "database", "properties": {}}
        self.delays = delays or {}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.closed = False

    def _maybe_fail(self, name: str) -> None:
        if name in self.errors:
            raise self.errors[name]

    async def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        self.calls.append(("retrieve_database", database_id))
        self._maybe_fail("retrieve_database")
        return self.database

    async def query_database(self, database_id: str, start_cursor=None, page_size=100,
                             filter_properties=None, filter=None) -> Dict[str, Any]:
        self.calls.append(("query_database", database_id, filter))
        self._maybe_fail("query_database")
        results = self.pages
        if filter is not None:
            kind = "title" if "title" in filter else "rich_text"
            wanted = filter[kind]["equals"]
            results = [
                p for p in self.pages
                if "".join(r["plain_text"] for r in (p["properties"].get("Slug") or {}).get(kind, [])) == wanted
            ]
        return {"object": "list", "results": results, "has_more": False, "next_cursor": None}

    async def list_block_children(self, block_id: str, start_cursor=None, page_size=100) -> Dict[str, Any]:
        self.calls.append(("list_block_children", block_id))
        self._maybe_fail("list_block_children")
        if block_id in self.delays:
            await asyncio.sleep(self.delays[block_id])
        return {"object": "list", "results": self.children.get(block_id, []), "has_more": False, "next_cursor": None}

    async def aclose(self) -> None:
        self.closed = True

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)
