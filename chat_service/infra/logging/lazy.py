"""Deferred message construction for debug logging.

Fan-out and history code logs member lists and row counts at DEBUG; the
f-strings are only built when a handler will actually see them.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Accept zero-argument callables as the message or as format args.

        logger = get_lazy_logger(__name__)
        logger.debug(lambda: f"targets: {sorted(member_ids)}")
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        # debug()/info()/... on LoggerAdapter all funnel through here
        if not self.isEnabledFor(level):
            return
        msg = msg() if callable(msg) else msg
        args = tuple(a() if callable(a) else a for a in args)
        super().log(level, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Wrap ``logging.getLogger(name)``; ``context`` becomes the adapter's extra."""
    return LazyLoggerAdapter(logging.getLogger(name), context)
