"""
Paginated suggestion feed ("load more").

`start()` ranks a little more than one page and shows one page. `load_more()` first
reveals what was already ranked; only when everything is shown does it ask the engine
for a bigger batch, keeping venues it has not seen before. The feed is exhausted as soon
as a sourcing round comes back short.
"""

from __future__ import annotations

import logging
from typing import Sequence

from meety.domain.models import Participant, Suggestion, SuggestionRun
from meety.recommender.engine import SuggestionEngine
from meety.scoring.ranking import dedupe_suggestions

logger = logging.getLogger(__name__)


class SuggestionFeed:
    def __init__(
        self,
        engine: SuggestionEngine,
        participants: Sequence[Participant],
        *,
        page_size: int | None = None,
        prefetch: int | None = None,
        batch_size: int | None = None,
    ):
        s = engine.settings.suggestions
        self._engine = engine
        self._participants = tuple(participants)
        self._page_size = int(s.page_size if page_size is None else page_size)
        self._prefetch = int(s.prefetch if prefetch is None else prefetch)
        self._batch_size = int(s.load_more_batch if batch_size is None else batch_size)
        if self._page_size < 1 or self._batch_size < 1:
            raise ValueError("page_size and batch_size must be >= 1")
        self._ranked: list[Suggestion] = []
        self._seen: set[str] = set()
        self._displayed = 0
        self._exhausted = False
        self.last_run: SuggestionRun | None = None

    @property
    def visible(self) -> list[Suggestion]:
        return list(self._ranked[: self._displayed])

    @property
    def buffered(self) -> int:
        """Ranked suggestions not shown yet."""
        return len(self._ranked) - self._displayed

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def has_more(self) -> bool:
        return self.buffered > 0 or not self._exhausted

    def start(self) -> list[Suggestion]:
        """Run the first sourcing round and return the first page."""
        run = self._engine.run(self._participants, self._page_size + self._prefetch)
        self.last_run = run
        self._seen = set()
        self._ranked = dedupe_suggestions(run.suggestions, seen=self._seen)
        self._exhausted = run.exhausted
        self._displayed = min(self._page_size, len(self._ranked))
        return self.visible

    def load_more(self, batch_size: int | None = None) -> list[Suggestion]:
        """Reveal up to `batch_size` more suggestions; returns only the newly revealed ones."""
        batch = int(self._batch_size if batch_size is None else batch_size)
        if batch < 1:
            raise ValueError("batch_size must be >= 1")
        if self.buffered <= 0 and not self._exhausted:
            requested = len(self._ranked) + batch
            run = self._engine.run(self._participants, requested)
            self.last_run = run
            fresh = dedupe_suggestions(run.suggestions, seen=self._seen)
            self._ranked.extend(fresh)
            if run.exhausted or not fresh:
                self._exhausted = True
            logger.info("Load more: requested=%d fresh=%d exhausted=%s", requested, len(fresh), self._exhausted)

        start = self._displayed
        self._displayed = min(len(self._ranked), self._displayed + batch)
        return list(self._ranked[start : self._displayed])

