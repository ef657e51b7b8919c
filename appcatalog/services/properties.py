"""Decoding of Notion database property values into display strings."""

from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

Property = Dict[str, Any]


class FieldValue(NamedTuple):
    value: str
    url: Optional[str] = None


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------

def _plain_text(parts: Optional[List[Dict[str, Any]]]) -> str:
    return "".join((part or {}).get("plain_text") or "" for part in parts or []).strip()


def _first_link(parts: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Return the first hyperlink carried by a rich-text run, if any."""
    for part in parts or []:
        part = part or {}
        if part.get("href"):
            return part["href"]
        if part.get("type") == "text":
            url = ((part.get("text") or {}).get("link") or {}).get("url")
            if url:
                return url
    return None


def format_date_range(value: Optional[Dict[str, Any]]) -> str:
    """``{"start": a, "end": b}`` -> ``"a -> b"``; a missing end gives just ``a``."""
    if not value or not value.get("start"):
        return ""
    if not value.get("end"):
        return value["start"]
    return f"{value['start']} -> {value['end']}"


def format_timestamp(value: str) -> str:
    """Truncate an ISO-8601 timestamp to its UTC calendar day."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def get_user_name(value: Any) -> str:
    if not isinstance(value, dict):
        return ""
    name = value.get("name")
    return name.strip() if isinstance(name, str) else ""


def _number_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _rollup_item_text(item: Any) -> str:
    """Render one element of a rollup ``array`` payload."""
    if not isinstance(item, dict):
        return ""
    item_type = item.get("type")
    if item_type == "number":
        return _number_text(item.get("number")) or ""
    if item_type == "checkbox":
        return _yes_no(item.get("checkbox"))
    if item_type in ("url", "email", "phone_number"):
        return item.get(item_type) or ""
    if item_type in ("select", "status"):
        return (item.get(item_type) or {}).get("name") or ""
    if item_type == "multi_select":
        return ", ".join(o.get("name") for o in item.get("multi_select") or [] if o.get("name"))
    if item_type in ("rich_text", "title"):
        return _plain_text(item.get(item_type))
    if item_type == "date":
        return format_date_range(item.get("date"))
    return ""


# ---------------------------------------------------------------------------
# Per-type decoders. Each returns a FieldValue with a non-empty value or None.
# ---------------------------------------------------------------------------

def _decode_text_runs(prop: Property) -> Optional[FieldValue]:
    parts = prop.get(prop["type"])
    value = _plain_text(parts)
    return FieldValue(value, _first_link(parts)) if value else None


def _decode_number(prop: Property) -> Optional[FieldValue]:
    text = _number_text(prop.get("number"))
    return FieldValue(text) if text is not None else None


def _decode_named_option(prop: Property) -> Optional[FieldValue]:
    name = (prop.get(prop["type"]) or {}).get("name")
    return FieldValue(name) if name else None


def _decode_multi_select(prop: Property) -> Optional[FieldValue]:
    value = ", ".join(o.get("name") for o in prop.get("multi_select") or [] if o.get("name"))
    return FieldValue(value) if value else None


def _decode_url(prop: Property) -> Optional[FieldValue]:
    url = prop.get("url")
    return FieldValue(url, url) if url else None


def _decode_email(prop: Property) -> Optional[FieldValue]:
    email = prop.get("email")
    return FieldValue(email, f"mailto:{email}") if email else None


def _decode_phone(prop: Property) -> Optional[FieldValue]:
    phone = prop.get("phone_number")
    return FieldValue(phone, f"tel:{phone}") if phone else None


def _decode_checkbox(prop: Property) -> Optional[FieldValue]:
    return FieldValue(_yes_no(prop.get("checkbox")))


def _decode_date(prop: Property) -> Optional[FieldValue]:
    value = format_date_range(prop.get("date"))
    return FieldValue(value) if value else None


def _decode_files(prop: Property) -> Optional[FieldValue]:
    files = prop.get("files") or []
    if not files:
        return None
    url = file_object_url(files[0])
    if not url:
        return None
    label = "Open file" if len(files) == 1 else f"{len(files)} files"
    return FieldValue(label, url)


def _decode_people(prop: Property) -> Optional[FieldValue]:
    people = prop.get("people") or []
    if not people:
        return None
    names = [n for n in (get_user_name(p) for p in people) if n]
    return FieldValue(", ".join(names)) if names else FieldValue(f"{len(people)} people")


def _decode_relation(prop: Property) -> Optional[FieldValue]:
    related = prop.get("relation") or []
    return FieldValue(f"{len(related)} related") if related else None


def _decode_formula(prop: Property) -> Optional[FieldValue]:
    formula = prop.get("formula") or {}
    kind = formula.get("type")
    if kind == "string":
        return FieldValue(formula["string"]) if formula.get("string") else None
    if kind == "number":
        text = _number_text(formula.get("number"))
        return FieldValue(text) if text is not None else None
    if kind == "boolean":
        return FieldValue(_yes_no(formula.get("boolean")))
    if kind == "date":
        value = format_date_range(formula.get("date"))
        return FieldValue(value) if value else None
    return None


def _decode_rollup(prop: Property) -> Optional[FieldValue]:
    rollup = prop.get("rollup") or {}
    kind = rollup.get("type")
    if kind == "number":
        text = _number_text(rollup.get("number"))
        return FieldValue(text) if text is not None else None
    if kind == "date":
        value = format_date_range(rollup.get("date"))
        return FieldValue(value) if value else None
    if kind == "array":
        items = rollup.get("array") or []
        if not items:
            return None
        parts = [text for text in (_rollup_item_text(item) for item in items) if text]
        return FieldValue(", ".join(parts)) if parts else FieldValue(f"{len(items)} items")
    return None


def _decode_timestamp(prop: Property) -> Optional[FieldValue]:
    value = prop.get(prop["type"])
    return FieldValue(format_timestamp(value)) if value else None


def _decode_user(prop: Property) -> Optional[FieldValue]:
    name = get_user_name(prop.get(prop["type"]))
    return FieldValue(name) if name else None


def _decode_unique_id(prop: Property) -> Optional[FieldValue]:
    unique_id = prop.get("unique_id")
    if not unique_id or unique_id.get("number") is None:
        return None
    return FieldValue(f"{unique_id.get('prefix') or ''}{unique_id['number']}")


_DECODERS = {
    "title": _decode_text_runs,
    "rich_text": _decode_text_runs,
    "number": _decode_number,
    "select": _decode_named_option,
    "status": _decode_named_option,
    "multi_select": _decode_multi_select,
    "url": _decode_url,
    "email": _decode_email,
    "phone_number": _decode_phone,
    "checkbox": _decode_checkbox,
    "date": _decode_date,
    "files": _decode_files,
    "people": _decode_people,
    "relation": _decode_relation,
    "formula": _decode_formula,
    "rollup": _decode_rollup,
    "created_time": _decode_timestamp,
    "last_edited_time": _decode_timestamp,
    "created_by": _decode_user,
    "last_edited_by": _decode_user,
    "unique_id": _decode_unique_id,
}


def parse_property_to_field(prop: Optional[Property]) -> Optional[FieldValue]:
    """Decode one database property into ``FieldValue(value, url)``.

    Returns ``None`` for unset or empty values and for property types the
    catalog does not know; a returned ``value`` is never empty.
    """
    if not prop:
        return None
    decoder = _DECODERS.get(prop.get("type"))
    if decoder is None:
        return None
    return decoder(prop)


# ---------------------------------------------------------------------------
# Typed getters used by the summary mapper
# ---------------------------------------------------------------------------

def file_object_url(file_obj: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the URL of a Notion file object (external or hosted)."""
    if not file_obj:
        return None
    if file_obj.get("external"):
        return file_obj["external"].get("url") or None
    if file_obj.get("file"):
        return file_obj["file"].get("url") or None
    return file_obj.get("url") or None


def _of_type(prop: Optional[Property], *types: str) -> bool:
    return bool(prop) and prop.get("type") in types


def get_title(prop: Optional[Property]) -> str:
    return _plain_text(prop.get("title")) if _of_type(prop, "title") else ""


def get_rich_text(prop: Optional[Property]) -> str:
    """Text of a rich_text, title or select property; empty for anything else."""
    if _of_type(prop, "rich_text", "title"):
        return _plain_text(prop.get(prop["type"]))
    if _of_type(prop, "select"):
        return (prop.get("select") or {}).get("name") or ""
    return ""


def get_number(prop: Optional[Property]) -> Optional[float]:
    if not _of_type(prop, "number"):
        return None
    number = prop.get("number")
    return number if isinstance(number, (int, float)) and not isinstance(number, bool) else None


def get_checkbox(prop: Optional[Property]) -> Optional[bool]:
    return bool(prop.get("checkbox")) if _of_type(prop, "checkbox") else None


def get_status_name(prop: Optional[Property]) -> str:
    if not _of_type(prop, "status"):
        return ""
    return (prop.get("status") or {}).get("name") or ""


def get_multi_select_names(prop: Optional[Property]) -> List[str]:
    if _of_type(prop, "multi_select"):
        return [o["name"] for o in prop.get("multi_select") or [] if o.get("name")]
    if _of_type(prop, "select") and (prop.get("select") or {}).get("name"):
        return [prop["select"]["name"]]
    return []


def get_file_url(prop: Optional[Property]) -> Optional[str]:
    if not _of_type(prop, "files"):
        return None
    files = prop.get("files") or []
    return file_object_url(files[0]) if files else None


def get_url(prop: Optional[Property]) -> Optional[str]:
    return (prop.get("url") or None) if _of_type(prop, "url") else None


def get_page_icon_url(page: Dict[str, Any]) -> Optional[str]:
    """URL of a page's file, external or custom-emoji icon; emoji icons give None."""
    icon = page.get("icon") or {}
    icon_type = icon.get("type")
    if icon_type in ("file", "external", "custom_emoji"):
        return (icon.get(icon_type) or {}).get("url") or None
    return None
