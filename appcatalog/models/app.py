from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from appcatalog.models.blocks import ContentBlock, DetailBlock


class PaidChannel(BaseModel):
    name: str
    subtitle: str = "Paid"
    icon: str
    metric: str
    metric_style: Literal["dark", "light"] = "light"
    link: Optional[str] = None


class OrganicChannel(BaseModel):
    name: str
    subtitle: str = ""
    icon: str
    metric: str
    link: Optional[str] = None


class UserAcquisition(BaseModel):
    paid: List[PaidChannel] = []
    organic: List[OrganicChannel] = []


class Faq(BaseModel):
    question: str
    answer: Optional[str] = None


class Contact(BaseModel):
    name: str
    image: str
    email: str
    phone: str


class Highlights(BaseModel):
    mrr: str
    rating: str
    rating_label: str
    followers: str
    followers_label: str


class DbField(BaseModel):
    """A database property surfaced as-is under its label."""

    label: str
    value: str
    url: Optional[str] = None


class AppSummary(BaseModel):
    """One row of the public catalog, rebuilt wholesale on every refresh."""

    model_config = ConfigDict(frozen=True)

    notion_page_id: Optional[str] = None
    slug: str
    name: str
    subtitle: str
    icon: str
    mrr: str
    platform: str
    platform_emoji: str
    monetization_type: Optional[str] = None
    hearing_offers_status: Optional[str] = None
    rating: float
    followers: Optional[str] = None
    category: str
    about: str
    highlights: Highlights
    screenshots_image: str
    app_store_link: Optional[str] = None
    play_store_link: Optional[str] = None
    user_acquisition: UserAcquisition
    opportunities: List[str]
    developer_country: str
    developer_flag: str
    faqs: List[Faq]
    contact: Contact
    featured: bool = False
    db_fields: Optional[List[DbField]] = None


class PartialContact(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class PartialHighlights(BaseModel):
    mrr: Optional[str] = None
    rating: Optional[str] = None
    rating_label: Optional[str] = None


class ParsedAppContent(BaseModel):
    """Fields derived from a page body; every one of them may be missing."""

    about: Optional[str] = None
    app_store_link: Optional[str] = None
    play_store_link: Optional[str] = None
    screenshots_image: Optional[str] = None
    opportunities: Optional[List[str]] = None
    faqs: Optional[List[Faq]] = None
    user_acquisition: Optional[UserAcquisition] = None
    detail_blocks: Optional[List[DetailBlock]] = None
    page_blocks: Optional[List[ContentBlock]] = None
    contact: PartialContact = PartialContact()
    highlights: PartialHighlights = PartialHighlights()
    rating: Optional[float] = None
