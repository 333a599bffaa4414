"""Ordered fallback chains: try candidate producers until one yields a value."""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Producer = Callable[[], Union[Any, Awaitable[Any]]]


def is_usable(value: Any) -> bool:
    """None, blank strings and empty collections do not count as output."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict, set)):
        return bool(value)
    return True


async def first_usable(stage: str, producers: Sequence[Producer]) -> Optional[Any]:
    """Return the first usable value from ``producers``, evaluated in order.

    A producer may return a plain value or an awaitable. Errors are logged
    and treated like an empty result, so the next producer gets its turn.
    """
    for position, producer in enumerate(producers):
        try:
            value = producer()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.warning("%s: candidate %d failed: %s", stage, position, e)
            continue
        if is_usable(value):
            if position:
                logger.info("%s: using fallback candidate %d", stage, position)
            return value
        logger.debug("%s: candidate %d returned nothing usable", stage, position)
    return None
