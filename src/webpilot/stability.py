import asyncio
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

logger = logging.getLogger(__name__)


async def wait_till_html_stable(
    page: Page,
    timeout_ms: int = 5_000,
    interval_ms: int = 500,
    min_stable_iterations: int = 3,
) -> int:
    """
    Wait until the rendered markup stops changing size.

    The size of the serialized DOM stands in for "the page has rendered".
    "networkidle" may never fire on busy pages.

    The page counts as stable once the size was equal to the previous sample
    min_stable_iterations times in a row. A size of zero never counts. At most
    timeout_ms / interval_ms samples are taken. A sample that fails because the
    page is navigating resets the count and polling goes on.

    Parameters:
        page (Page): The page to watch.
        timeout_ms (int): Overall budget in milliseconds.
        interval_ms (int): Delay between samples in milliseconds.
        min_stable_iterations (int): Consecutive equal samples required.

    Returns:
        int: Number of samples taken.
    """
    max_checks = max(1, timeout_ms // interval_ms)
    last_html_size = 0
    stable_iterations = 0
    samples = 0

    while samples < max_checks:
        samples += 1
        try:
            html = await page.content()
        except PlaywrightError as e:
            logger.debug(f"Content unavailable, retrying: {e}")
            stable_iterations = 0
            last_html_size = 0
            await asyncio.sleep(interval_ms / 1000)
            continue
        current_html_size = len(html)

        logger.debug(f"last: {last_html_size} <> curr: {current_html_size}")

        if last_html_size != 0 and current_html_size == last_html_size:
            stable_iterations += 1
        else:
            stable_iterations = 0

        if stable_iterations >= min_stable_iterations:
            logger.debug("Page rendered fully")
            break

        last_html_size = current_html_size
        await asyncio.sleep(interval_ms / 1000)

    return samples
