from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

VisibilityListener = Callable[[], None]


class VisibilitySignal:
    """Page visibility flag that notifies subscribers on transitions.

    Listeners take no arguments and read ``hidden`` when they fire, the way a
    browser ``visibilitychange`` handler reads ``document.hidden``.
    """

    def __init__(self, hidden: bool = False) -> None:
        self._hidden = hidden
        self._listeners: List[VisibilityListener] = []

    @property
    def hidden(self) -> bool:
        return self._hidden

    def subscribe(self, listener: VisibilityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_hidden(self, hidden: bool) -> None:
        if hidden == self._hidden:
            return
        self._hidden = hidden
        logger.debug("Visibility changed: %s", "hidden" if hidden else "visible")
        for listener in list(self._listeners):
            listener()
