"""Structured results returned by every browser session operation."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MetaTag(BaseModel):
    """A single <meta> tag: its name (or property) and content."""

    name: Optional[str] = None
    content: Optional[str] = None


class PageMetadata(BaseModel):
    """
    Metadata read from the page's <meta> tags.

    Open Graph and Twitter card tags are keyed by their full name
    (e.g. "og:title"). ``all_meta`` is only populated on request.
    """

    title: str = ""
    description: Optional[str] = ""
    keywords: Optional[str] = ""
    author: Optional[str] = ""
    viewport: Optional[str] = ""
    robots: Optional[str] = ""
    og_tags: Dict[str, Optional[str]] = Field(default_factory=dict)
    twitter_tags: Dict[str, Optional[str]] = Field(default_factory=dict)
    all_meta: List[MetaTag] = Field(default_factory=list)


class ElementAttribute(BaseModel):
    name: str
    value: str


class ElementRect(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ComputedStyleSubset(BaseModel):
    display: str = ""
    visibility: str = ""
    opacity: str = ""
    background_color: str = ""
    color: str = ""
    font_size: str = ""
    font_weight: str = ""


class ElementInfo(BaseModel):
    """Description of the element found at an inspected coordinate."""

    tag_name: str
    id: str = ""
    class_name: str = ""
    text_content: str = ""
    inner_html: Optional[str] = None  # only when children were requested
    outer_html: str = ""
    attributes: List[ElementAttribute] = Field(default_factory=list)
    rect: ElementRect
    computed_style: ComputedStyleSubset = Field(default_factory=ComputedStyleSubset)


class ActionResult(BaseModel):
    """
    Result of a browser session operation.

    Every field is optional. Actions fill the screenshot, logs, URL and mouse
    position; inspection operations leave the screenshot unset and fill their
    own payload instead.

    Examples:
        ActionResult(screenshot="data:image/webp;base64,UklGR...", logs="", current_url="https://example.com/")
        ActionResult(page_title="Example Domain", logs="", current_url="https://example.com/")
    """

    screenshot: Optional[str] = None  # data:image/<fmt>;base64,<payload>
    logs: Optional[str] = None
    current_url: Optional[str] = None
    current_mouse_position: Optional[str] = None

    # Page source inspection
    html_source: Optional[str] = None
    original_length: Optional[int] = None
    processed_length: Optional[int] = None

    page_title: Optional[str] = None
    meta_data: Optional[PageMetadata] = None
    element_info: Optional[ElementInfo] = None

    @property
    def screenshot_format(self) -> Optional[str]:
        """Image format encoded in the screenshot data URI ("webp" or "png")."""
        if not self.screenshot or not self.screenshot.startswith("data:image/"):
            return None
        return self.screenshot[len("data:image/"):].split(";", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary, leaving out unset fields."""
        return self.model_dump(exclude_none=True)
