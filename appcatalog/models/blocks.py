from typing import List, Literal, Optional

from pydantic import BaseModel

ContentBlockType = Literal[
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "quote",
    "divider",
    "image",
    "embed",
    "bookmark",
    "bulleted_list_item",
    "numbered_list_item",
    "toggle",
    "callout",
    "column_list",
    "column",
]


class ContentBlock(BaseModel):
    """One node of the normalized page tree handed to the presentation layer.

    Only container types carry ``children``; a node with no text, no media
    reference and no children is never built.
    """

    type: ContentBlockType
    value: Optional[str] = None
    src: Optional[str] = None  # image URL
    url: Optional[str] = None  # embed / bookmark target
    links: Optional[List[str]] = None
    children: Optional[List["ContentBlock"]] = None


ContentBlock.model_rebuild()


class DetailBlock(BaseModel):
    """Flattened block of the user-acquisition section."""

    type: Literal["heading", "text", "quote", "image", "divider"]
    value: Optional[str] = None
    src: Optional[str] = None
