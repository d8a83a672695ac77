"""
Read-only page inspection: markup, title, meta tags and element lookup.

The functions here take a page and return one payload each. They are run by
the session inside the executor's log-capture envelope.
"""

from typing import Tuple

from bs4 import BeautifulSoup, Comment
from playwright.async_api import Page

from webpilot.action_result import ElementInfo, PageMetadata
from webpilot.exceptions import ElementNotFoundError

TEXT_CONTENT_LIMIT = 200

PAGE_META_JS = """
(includeAll) => {
    const meta = {
        title: document.title,
        description: '',
        keywords: '',
        author: '',
        viewport: '',
        robots: '',
        og_tags: {},
        twitter_tags: {},
        all_meta: []
    };

    document.querySelectorAll('meta').forEach((tag) => {
        const name = tag.getAttribute('name') || tag.getAttribute('property');
        const content = tag.getAttribute('content');

        if (includeAll) {
            meta.all_meta.push({ name, content });
        }

        if (name === 'description') meta.description = content;
        else if (name === 'keywords') meta.keywords = content;
        else if (name === 'author') meta.author = content;
        else if (name === 'viewport') meta.viewport = content;
        else if (name === 'robots') meta.robots = content;

        if (name && name.startsWith('og:')) {
            meta.og_tags[name] = content;
        }
        if (name && name.startsWith('twitter:')) {
            meta.twitter_tags[name] = content;
        }
    });

    return meta;
}
"""

ELEMENT_INFO_JS = """
([x, y, includeChildren, textLimit]) => {
    const el = document.elementFromPoint(x, y);
    if (!el) return null;

    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const text = el.textContent || '';
    const className = typeof el.className === 'string'
        ? el.className
        : (el.getAttribute('class') || '');

    return {
        tag_name: el.tagName,
        id: el.id || '',
        class_name: className,
        text_content: text.substring(0, textLimit) + (text.length > textLimit ? '...' : ''),
        inner_html: includeChildren ? el.innerHTML : null,
        outer_html: el.outerHTML,
        attributes: Array.from(el.attributes).map((attr) => ({ name: attr.name, value: attr.value })),
        rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
        computed_style: {
            display: style.display,
            visibility: style.visibility,
            opacity: style.opacity,
            background_color: style.backgroundColor,
            color: style.color,
            font_size: style.fontSize,
            font_weight: style.fontWeight
        }
    };
}
"""


def strip_html_comments(html: str) -> str:
    """Remove comment nodes from the markup. Script and style text is left as is."""
    soup = BeautifulSoup(html, "html.parser")
    comments = soup.find_all(string=lambda text: isinstance(text, Comment))
    if not comments:
        return html
    for comment in comments:
        comment.extract()
    return str(soup)


async def get_page_source(page: Page, include_comments: bool = True) -> Tuple[str, int, int]:
    """
    Return the page markup and its lengths.

    Returns:
        Tuple of (processed markup, original length, processed length).
    """
    html_source = await page.content()
    processed = html_source if include_comments else strip_html_comments(html_source)
    return processed, len(html_source), len(processed)


async def get_page_metadata(page: Page, include_all_meta: bool = False) -> PageMetadata:
    data = await page.evaluate(PAGE_META_JS, include_all_meta)
    return PageMetadata.model_validate(data)


async def get_element_info(
    page: Page,
    x: float,
    y: float,
    coordinates: str,
    include_children: bool = False,
) -> ElementInfo:
    """
    Describe the topmost element at (x, y).

    Raises:
        ElementNotFoundError: If nothing is rendered at the coordinate.
    """
    data = await page.evaluate(ELEMENT_INFO_JS, [x, y, include_children, TEXT_CONTENT_LIMIT])
    if not data:
        raise ElementNotFoundError(coordinates)
    return ElementInfo.model_validate(data)
