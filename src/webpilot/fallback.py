"""Ordered fallback chains over lazily evaluated async strategies."""

import logging
from typing import Awaitable, Callable, Iterable, Optional, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Strategy = Callable[[], Awaitable[Optional[T]]]
NamedStrategy = Tuple[str, Strategy]


async def first_successful(
    strategies: Iterable[Union[Strategy, NamedStrategy]],
    label: str = "fallback chain",
) -> Optional[T]:
    """
    Run strategies in order and return the first truthy result.

    A strategy is a zero-argument coroutine function, optionally paired with a
    name for logging. A strategy is only invoked when every earlier one came
    back empty.
    An exception counts as an empty result; it is logged and the chain moves
    on.

    Parameters:
        strategies: Callables or (name, callable) pairs, in priority order.
        label: Name of the chain used in log messages.

    Returns:
        The first truthy result, or None when every strategy came back empty.
    """
    for index, entry in enumerate(strategies):
        if isinstance(entry, tuple):
            name, strategy = entry
        else:
            name, strategy = getattr(entry, "__name__", f"strategy #{index + 1}"), entry

        try:
            result = await strategy()
        except Exception as e:
            logger.debug(f"{label}: {name} failed: {e}")
            continue

        if result:
            logger.debug(f"{label}: {name} succeeded")
            return result
        logger.debug(f"{label}: {name} returned nothing")

    return None
