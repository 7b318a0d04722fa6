"""
Domain items stored in the actor's repository.

Payloads are deliberately permissive: unknown fields are kept and round-tripped,
and nothing beyond basic typing is validated.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ContentItem(RecordModel):
    """Base for list items: a stable ``id`` and a display ``order``."""

    id: str = ""
    order: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class Link(ContentItem):
    title: str = ""
    url: str = ""
    description: str | None = None
    icon: str = ""
    group: str = ""
    enabled: bool = True
    is_scheduled: bool = False
    scheduled_start: str | None = None
    scheduled_end: str | None = None


class Note(ContentItem):
    content: str = ""
    is_public: bool = False


class Story(ContentItem):
    content: str = ""
    image_url: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    sticker: str | None = None
    expires_at: str | None = None


class Widget(ContentItem):
    type: str = "text_block"
    title: str | None = None
    enabled: bool = True
    size: Literal["default", "small", "medium", "large", "full"] = "default"
    width: Literal["half", "full"] = "full"
    config: dict[str, Any] = Field(default_factory=dict)


class Company(ContentItem):
    name: str = ""
    handle: str | None = None
    description: str | None = None
    website: str | None = None
    logo: str | None = None
    industry: str | None = None
    location: str | None = None
    size: str | None = None
    is_verified: bool = False
    is_bluesky_company: bool = False
    bluesky_did: str | None = None


class WorkHistory(ContentItem):
    company_id: str = ""
    position: str = ""
    description: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    is_current: bool = False
    location: str | None = None
    employment_type: Literal["full-time", "part-time", "contract", "internship", "freelance"] = "full-time"
    is_verified: bool = False


class AdminRole(ContentItem):
    did: str = ""
    handle: str = ""
    display_name: str | None = None
    permissions: list[str] = Field(default_factory=lambda: ["verify_work"])
    is_active: bool = True


class PollOption(RecordModel):
    id: str
    text: str = ""
    votes: int = 0


class Poll(ContentItem):
    question: str = ""
    options: list[PollOption] = Field(default_factory=list)
    allow_multiple: bool = False
    expires_at: str | None = None
    is_active: bool = True
    total_votes: int = 0


class BlogPost(ContentItem):
    title: str = ""
    content: str = ""
    excerpt: str | None = None
    slug: str = ""
    tags: list[str] = Field(default_factory=list)
    is_published: bool = False
    published_at: str | None = None
    views: int = 0


class PortfolioItem(ContentItem):
    title: str = ""
    description: str | None = None
    image_url: str = ""
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    link_url: str | None = None
    featured: bool = False


class Product(ContentItem):
    name: str = ""
    description: str | None = None
    price: float = 0.0
    currency: str = "USD"
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    link_url: str | None = None
    is_available: bool = True


class HeatMapEntry(ContentItem):
    element_id: str = ""
    element_type: Literal["link", "widget", "story", "button"] = "link"
    clicks: int = 0
    views: int = 0
    last_clicked: str | None = None


class ChatMessage(ContentItem):
    content: str = ""
    sender_did: str = ""
    sender_handle: str = ""
    sender_avatar: str | None = None
    is_from_owner: bool = False


class Group(ContentItem):
    """A named section of the link list; links refer to it through ``Link.group``."""

    name: str = ""
    is_open: bool = True


class Settings(RecordModel):
    """Profile-wide settings; stored as one blob and always replaced whole."""

    theme: dict[str, Any] = Field(default_factory=dict)
    show_stories: bool = True
    show_notes: bool = True
    is_public: bool = True
    enable_analytics: bool = True
    section_order: list[str] = Field(default_factory=lambda: ["widgets", "notes", "links"])
    social_links: list[dict[str, Any]] = Field(default_factory=list)
    custom_bio: str | None = None
    custom_avatar: str | None = None
    custom_banner: str | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    seo_keywords: list[str] = Field(default_factory=list)
    enable_custom_domain: bool = False
    custom_domain: str | None = None
    enable_redirect: bool = False
    redirect_url: str | None = None
