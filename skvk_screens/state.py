"""
Screen state, kept apart from the Textual widgets so it can be driven directly.
Each class owns the mutable state of one screen and talks to the services.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Callable, List, Optional

from loguru import logger

from skvk_screens.errors import FetchError, PersistenceError, ValidationError
from skvk_screens.models import (DEFAULT_LATITUDE, DEFAULT_LONGITUDE, Book,
                                 PlaybackIndicator, Place, Track, UserProfile,
                                 default_date_of_birth)
from skvk_screens.search import (DebouncedSearchController, book_labels,
                                 filter_items, playback_indicator,
                                 track_labels)

LOAD_TRACKS_FAILED = "Failed to load tracks. Please try again."
LOAD_BOOKS_FAILED = "Failed to load books. Please try again."
SEARCH_LOCATIONS_FAILED = "Failed to search locations. Please try again."
SAVE_PROFILE_FAILED = "Failed to save profile. Please try again."


@dataclass
class AppState:
    """A single object to hold the audio screen's state."""
    tracks: List[Track] = field(default_factory=list)
    filtered: List[Track] = field(default_factory=list)
    query: str = ""
    is_loading: bool = False
    error_message: Optional[str] = None
    is_searching: bool = False
    selected_track: Optional[Track] = None


class TrackBrowser:
    """Loads the track list and filters it locally as the user types."""

    def __init__(self, source, probe, playback):
        self.source = source
        self.probe = probe
        self.playback = playback
        self.state = AppState()

    async def load(self, refresh: bool = False) -> AppState:
        state = self.state
        state.is_loading = True
        state.error_message = None

        if not await self.probe.has_connection():
            state.is_loading = False
            state.error_message = self.probe.offline_message()
            return state

        if refresh:
            self.source.clear_cache()
        try:
            tracks = await self.source.fetch_tracks()
        except FetchError:
            logger.exception("Failed to load music list")
            state.is_loading = False
            state.error_message = LOAD_TRACKS_FAILED
            return state

        state.tracks = tracks
        state.filtered = filter_items(tracks, state.query, track_labels)
        state.is_loading = False
        logger.info(f"Loaded {len(tracks)} tracks")
        return state

    def search(self, query: str) -> List[Track]:
        self.state.query = query
        self.state.filtered = filter_items(self.state.tracks, query, track_labels)
        return self.state.filtered

    def toggle_search(self) -> bool:
        """Switches search mode; leaving it clears the query and shows every track."""
        self.state.is_searching = not self.state.is_searching
        if not self.state.is_searching:
            self.search("")
        return self.state.is_searching

    @property
    def empty_message(self) -> str:
        return "No tracks found" if self.state.is_searching else "No tracks available"

    def indicator(self, track: Track) -> PlaybackIndicator:
        current = self.playback.state
        return playback_indicator(track.id, current.current_id, current.is_playing)

    def play(self, track: Track):
        self.state.selected_track = track
        self.playback.play(track)


class BookBrowser:
    """A filtered book list with favorites."""

    def __init__(self, content, probe, favorites, language: str = "en"):
        self.content = content
        self.probe = probe
        self.favorites = favorites
        self.language = language
        self.books: List[Book] = []
        self.query = ""
        self.favorites_only = False
        self.is_loading = False
        self.error_message: Optional[str] = None

    async def load(self) -> List[Book]:
        self.is_loading = True
        self.error_message = None
        await self.favorites.load()

        if not await self.probe.has_connection():
            self.error_message = self.probe.offline_message()
            self.is_loading = False
            return self.books
        try:
            self.books = await self.content.fetch_books(self.language)
        except FetchError:
            logger.exception("Failed to load book list")
            self.error_message = LOAD_BOOKS_FAILED
        self.is_loading = False
        return self.books

    @property
    def visible(self) -> List[Book]:
        books = filter_items(self.books, self.query, book_labels)
        if self.favorites_only:
            books = [b for b in books if self.favorites.is_favorite(b.id)]
        return books

    def is_favorite(self, book_id: str) -> bool:
        return self.favorites.is_favorite(book_id)

    async def toggle_favorite(self, book_id: str) -> Optional[str]:
        """Toggles a favorite. Returns a message for the user if saving failed."""
        try:
            await self.favorites.toggle(book_id)
        except PersistenceError as e:
            return e.user_message
        return None


class ProfileForm:
    """Profile editor state, including the debounced place-of-birth search."""

    def __init__(self, locations, users, min_length: int = 3, delay: float = 0.3,
                 on_change: Optional[Callable[[], None]] = None):
        self.users = users
        self.name = ""
        self.date_text = default_date_of_birth().isoformat()
        self.time_text = datetime.now().strftime("%H:%M")
        self.sex = "Male"
        self.place_of_birth = ""
        self.latitude = DEFAULT_LATITUDE
        self.longitude = DEFAULT_LONGITUDE
        self.ayanamsha = "lahiri"
        self.house_system = "placidus"
        self.show_suggestions = False
        self._existing: Optional[UserProfile] = None
        self._echo_text: Optional[str] = None
        self._on_change = on_change
        self.locations: DebouncedSearchController[Place] = DebouncedSearchController(
            locations.search,
            on_change=self._locations_changed,
            min_length=min_length,
            delay=delay,
            error_message=SEARCH_LOCATIONS_FAILED,
        )

    def _locations_changed(self):
        self.show_suggestions = (
            bool(self.locations.results) and not self.locations.is_loading and not self.locations.error
        )
        if self._on_change is not None:
            self._on_change()

    async def load_existing(self) -> Optional[UserProfile]:
        try:
            profile = await self.users.load_latest()
        except PersistenceError:
            logger.exception("Failed to load saved profile")
            return None
        if profile is None:
            return None
        self._existing = profile
        self.name = profile.name
        self.date_text = profile.date_of_birth.isoformat()
        self.time_text = profile.time_of_birth.strftime("%H:%M")
        self.sex = profile.sex
        self.place_of_birth = profile.place_of_birth
        self._echo_text = profile.place_of_birth
        self.latitude = profile.latitude
        self.longitude = profile.longitude
        self.ayanamsha = profile.ayanamsha
        self.house_system = profile.house_system
        return profile

    def on_place_input(self, text: str):
        # Filling the field programmatically echoes the text back here once; ignore it.
        if self._echo_text is not None:
            echo, self._echo_text = self._echo_text, None
            if text == echo:
                return
        self.place_of_birth = text
        self.locations.on_input(text)

    def select_place(self, place: Place):
        self.locations.cancel()
        self.locations.results = []
        self.locations.error = None
        self.locations.query = place.name
        self.place_of_birth = place.name
        self._echo_text = place.name
        self.latitude = place.latitude
        self.longitude = place.longitude
        self.show_suggestions = False

    @property
    def location_error(self) -> Optional[str]:
        return self.locations.error

    def build_profile(self) -> UserProfile:
        try:
            date_of_birth = date.fromisoformat(self.date_text.strip())
        except ValueError:
            raise ValidationError("Please enter a valid date of birth (YYYY-MM-DD)")
        try:
            time_of_birth = time.fromisoformat(self.time_text.strip())
        except ValueError:
            raise ValidationError("Please enter a valid time of birth (HH:MM)")

        profile = UserProfile(
            name=self.name.strip(),
            place_of_birth=self.place_of_birth.strip(),
            date_of_birth=date_of_birth,
            time_of_birth=time_of_birth,
            latitude=self.latitude,
            longitude=self.longitude,
            sex=self.sex,
            ayanamsha=self.ayanamsha,
            house_system=self.house_system,
        )
        if self._existing is not None:
            profile.id = self._existing.id
            profile.created_at = self._existing.created_at
        return profile

    async def save(self) -> UserProfile:
        """
        Validates and saves the profile.

        Raises:
            ValidationError: A required field is missing or malformed; nothing is saved.
            PersistenceError: The user store rejected the write.
        """
        profile = self.build_profile()
        profile.validate()
        saved = await self.users.save(profile)
        self._existing = saved
        return saved
