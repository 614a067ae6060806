from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from .models import PredictionEvent

logger = logging.getLogger(__name__)

AfterPredictionHook = Callable[[PredictionEvent], None]


class HookRunner:
    """Runs side effects after a prediction has been saved.

    Hooks are best-effort: a failing hook is logged and never affects the
    turn or the other hooks. ``dispatch_after_prediction`` runs them on a
    small worker pool and returns without waiting.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._after_prediction: list[AfterPredictionHook] = []
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="after-prediction")

    def add_after_prediction(self, hook: AfterPredictionHook) -> None:
        self._after_prediction.append(hook)

    def run_after_prediction(self, event: PredictionEvent) -> None:
        for hook in self._after_prediction:
            try:
                hook(event)
            except Exception:
                logger.warning(
                    "after-prediction hook %s failed for conversation %s",
                    getattr(hook, "__name__", repr(hook)),
                    event.conversation_id,
                    exc_info=True,
                )

    def dispatch_after_prediction(self, event: PredictionEvent) -> Future | None:
        if not self._after_prediction:
            return None
        return self._executor.submit(self.run_after_prediction, event)
