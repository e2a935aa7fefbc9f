"""
Search and selection state shared by the screens.

Local filtering runs synchronously on every keystroke. Remote searches go
through DebouncedSearchController, which waits for a quiet interval before
fetching and uses a generation counter so that a result is only applied if no
newer input has arrived since its fetch was scheduled.
"""

import asyncio
from typing import (Awaitable, Callable, Generic, Hashable, Iterable, Iterator,
                    List, Optional, Sequence, Set, Tuple, TypeVar)

from loguru import logger

from skvk_screens.errors import OfflineError
from skvk_screens.models import PlaybackIndicator

T = TypeVar("T")

Labels = Callable[[T], Tuple[str, str]]


def filter_items(items: Sequence[T], query: str, labels: Labels) -> List[T]:
    """
    Case-insensitive substring filter.

    An item matches when the query is contained in either of the two labels
    returned by ``labels(item)``. The query is matched as typed, surrounding
    spaces included; only a blank query short-circuits to every item in order.
    The source sequence is never modified.
    """
    if not query.strip():
        return list(items)
    needle = query.lower()
    matched = []
    for item in items:
        primary, secondary = labels(item)
        if needle in (primary or "").lower() or needle in (secondary or "").lower():
            matched.append(item)
    return matched


def track_labels(track) -> Tuple[str, str]:
    return track.title, track.display_subtitle


def book_labels(book) -> Tuple[str, str]:
    return book.title, book.author or ""


class DebouncedSearchController(Generic[T]):
    """Debounced remote search with stale-result protection."""

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Sequence[T]]],
        on_change: Optional[Callable[[], None]] = None,
        min_length: int = 3,
        delay: float = 0.3,
        error_message: str = "Failed to search. Please try again.",
    ):
        self.fetch = fetch
        self.on_change = on_change
        self.min_length = min_length
        self.delay = delay
        self.error_message = error_message

        self.query = ""
        self.results: List[T] = []
        self.error: Optional[str] = None
        self.is_loading = False
        self.fetch_count = 0

        self._generation = 0
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def on_input(self, text: str) -> None:
        """Record new input and (re)schedule a fetch if it is long enough."""
        self.query = text
        self._generation += 1
        self._stop_timer()

        if len(text.strip()) < self.min_length:
            self._set_state(results=[], error=None, is_loading=False)
            return

        task = asyncio.get_running_loop().create_task(self._fire(self._generation, text.strip()))
        self._timer = task
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    def reset(self) -> None:
        """Clear the query and results; any in-flight fetch becomes stale."""
        self.on_input("")

    def cancel(self) -> None:
        """Stop the pending timer and invalidate in-flight fetches without touching results."""
        self._generation += 1
        self._stop_timer()
        self.is_loading = False

    async def wait_idle(self) -> None:
        """Wait until the pending timer and all in-flight fetches have finished."""
        while True:
            pending = [task for task in self._in_flight if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _stop_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _fire(self, generation: int, query: str) -> None:
        await asyncio.sleep(self.delay)
        # The quiet interval has elapsed; from here on new input only marks this fetch stale.
        if self._timer is asyncio.current_task():
            self._timer = None
        if not self._is_current(generation):
            return

        self.fetch_count += 1
        self._set_state(is_loading=True, error=None)
        logger.debug(f"Searching for {query!r} (generation {generation})")
        try:
            results = await self.fetch(query)
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding failed search for superseded query {query!r}")
                return
            logger.opt(exception=e).warning(f"Search failed for {query!r}")
            message = e.user_message if isinstance(e, OfflineError) else self.error_message
            self._set_state(error=message, is_loading=False)
            return

        if not self._is_current(generation):
            logger.debug(f"Discarding {len(results)} results for superseded query {query!r}")
            return
        self._set_state(results=list(results), is_loading=False)

    def _set_state(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self, name, value)
        if self.on_change is not None:
            self.on_change()


class SelectionSet:
    """A set of selected ids (favorites, marked rows)."""

    def __init__(self, ids: Iterable[Hashable] = ()):
        self._ids: Set[Hashable] = set(ids)

    def toggle(self, item_id: Hashable) -> bool:
        """Flip membership of ``item_id`` and return whether it is now selected."""
        if item_id in self._ids:
            self._ids.remove(item_id)
            return False
        self._ids.add(item_id)
        return True

    def is_selected(self, item_id: Hashable) -> bool:
        return item_id in self._ids

    def add(self, item_id: Hashable) -> None:
        self._ids.add(item_id)

    def remove(self, item_id: Hashable) -> None:
        self._ids.discard(item_id)

    def replace(self, ids: Iterable[Hashable]) -> None:
        self._ids = set(ids)

    @property
    def ids(self) -> frozenset:
        return frozenset(self._ids)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)


def playback_indicator(row_id: str, current_id: Optional[str], is_playing: bool) -> PlaybackIndicator:
    """Derive a row's playback indicator from the observed player state."""
    if current_id is None or row_id != current_id:
        return PlaybackIndicator.IDLE
    return PlaybackIndicator.CURRENT_PLAYING if is_playing else PlaybackIndicator.CURRENT_PAUSED
