# services.py
import asyncio
import sqlite3
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger
from ytmusicapi import YTMusic

from skvk_screens.errors import FetchError, OfflineError, PersistenceError
from skvk_screens.models import Book, PlaybackState, Place, Track, UserProfile
from skvk_screens.search import SelectionSet


class DatabaseService:
    """A service to manage all SQLite database interactions."""
    def __init__(self, db_name: str):
        self.db_name = db_name
        # Calls arrive through asyncio.to_thread, so the connection crosses threads.
        self.conn = sqlite3.connect(db_name, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.create_tables()

    def create_tables(self):
        """Creates the favorites and users tables if they don't exist."""
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS favorites (
                    kind TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    PRIMARY KEY (kind, item_id)
                )
            """)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    date_of_birth TEXT NOT NULL,
                    time_of_birth TEXT NOT NULL,
                    place_of_birth TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    sex TEXT NOT NULL,
                    ayanamsha TEXT NOT NULL,
                    house_system TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def load_favorites(self, kind: str) -> List[str]:
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "SELECT item_id FROM favorites WHERE kind = ? ORDER BY item_id", (kind,)
                )
                return [row["item_id"] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not load {kind} favorites: {e}") from e

    def add_favorite(self, kind: str, item_id: str):
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR IGNORE INTO favorites (kind, item_id) VALUES (?, ?)", (kind, item_id)
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save favorite {item_id!r}: {e}") from e

    def remove_favorite(self, kind: str, item_id: str):
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM favorites WHERE kind = ? AND item_id = ?", (kind, item_id)
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not remove favorite {item_id!r}: {e}") from e

    def save_user(self, profile: UserProfile):
        """Inserts or replaces a user profile."""
        row = (
            profile.id, profile.name, profile.date_of_birth.isoformat(),
            profile.time_of_birth.isoformat(timespec="minutes"), profile.place_of_birth,
            profile.latitude, profile.longitude, profile.sex, profile.ayanamsha,
            profile.house_system, profile.created_at.isoformat(), profile.updated_at.isoformat(),
        )
        try:
            with self.conn:
                self.conn.execute("""
                    INSERT OR REPLACE INTO users
                    (id, name, date_of_birth, time_of_birth, place_of_birth, latitude, longitude,
                     sex, ayanamsha, house_system, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, row)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save profile for {profile.name!r}: {e}") from e

    def load_latest_user(self) -> Optional[UserProfile]:
        try:
            with self.conn:
                row = self.conn.execute(
                    "SELECT * FROM users ORDER BY updated_at DESC LIMIT 1"
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not load profile: {e}") from e
        if row is None:
            return None
        return UserProfile(
            id=row["id"],
            name=row["name"],
            date_of_birth=date.fromisoformat(row["date_of_birth"]),
            time_of_birth=time.fromisoformat(row["time_of_birth"]),
            place_of_birth=row["place_of_birth"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            sex=row["sex"],
            ayanamsha=row["ayanamsha"],
            house_system=row["house_system"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def close(self):
        self.conn.close()


class FavoritesService:
    """
    Favorites for one kind of item, backed by the database.

    Toggling updates the in-memory selection first and then persists it. A
    failed write is logged and re-raised but the local state is left as the
    user set it.
    """
    def __init__(self, db_service: DatabaseService, kind: str = "book"):
        self.db_service = db_service
        self.kind = kind
        self.selection = SelectionSet()

    async def load(self) -> SelectionSet:
        try:
            ids = await asyncio.to_thread(self.db_service.load_favorites, self.kind)
        except PersistenceError:
            logger.exception(f"Failed to load {self.kind} favorites")
            ids = []
        self.selection.replace(ids)
        return self.selection

    def is_favorite(self, item_id: str) -> bool:
        return self.selection.is_selected(item_id)

    def current_set(self) -> frozenset:
        return self.selection.ids

    async def toggle(self, item_id: str) -> bool:
        """Flips the favorite locally, then persists. Returns the new membership."""
        selected = self.selection.toggle(item_id)
        write = self.db_service.add_favorite if selected else self.db_service.remove_favorite
        try:
            await asyncio.to_thread(write, self.kind, item_id)
        except PersistenceError:
            logger.exception(f"Failed to persist {self.kind} favorite {item_id!r}")
            raise
        return selected


class UserService:
    """Persists user profiles."""
    def __init__(self, db_service: DatabaseService):
        self.db_service = db_service

    async def save(self, profile: UserProfile) -> UserProfile:
        profile.updated_at = datetime.now()
        await asyncio.to_thread(self.db_service.save_user, profile)
        logger.info(f"Saved profile {profile.id} for {profile.name!r}")
        return profile

    async def load_latest(self) -> Optional[UserProfile]:
        return await asyncio.to_thread(self.db_service.load_latest_user)


class ConnectivityProbe:
    """Checks whether the network is reachable before content is fetched."""
    def __init__(self, client: httpx.AsyncClient, probe_url: str):
        self.client = client
        self.probe_url = probe_url

    async def has_connection(self) -> bool:
        try:
            await self.client.head(self.probe_url)
        except httpx.HTTPError as e:
            logger.info(f"Connectivity probe failed: {e!r}")
            return False
        return True

    def offline_message(self) -> str:
        return OfflineError.user_message


class ContentApiService:
    """A service to fetch track and book listings from the content API."""
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self._cache: Dict[str, Dict[str, Any]] = {}

    async def _get_json(self, cache_key: str, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if cache_key in self._cache:
            return self._cache[cache_key]
        try:
            response = await self.client.get(
                f"{self.base_url}{path}", params=params, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {path} failed: {e!r}") from e
        if response.status_code != 200:
            raise FetchError(f"API error: {response.status_code} - {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {path}") from e
        self._cache[cache_key] = data
        return data

    def clear_cache(self):
        self._cache.clear()

    def _parse_list(self, data: Any, key: str, parse: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        """Parses ``data[key]`` record by record; any malformed part becomes a FetchError."""
        if not isinstance(data, dict):
            raise FetchError(f"Expected a JSON object with {key!r}, got {type(data).__name__}")
        records = data.get(key) or []
        if not isinstance(records, list):
            raise FetchError(f"Expected {key!r} to be a list, got {type(records).__name__}")
        items = []
        for record in records:
            if not isinstance(record, dict):
                raise FetchError(f"Malformed {key} record: {record!r}")
            try:
                items.append(parse(record))
            except (TypeError, ValueError, AttributeError) as e:
                raise FetchError(f"Malformed {key} record {record!r}: {e}") from e
        return items

    async def fetch_tracks(self) -> List[Track]:
        data = await self._get_json("music_list", "/api/music")
        return self._parse_list(data, "music", Track.from_record)

    async def fetch_books(self, language: str = "en") -> List[Book]:
        data = await self._get_json(f"books_list_{language}", "/api/books", params={"lang": language})
        return self._parse_list(data, "books", Book.from_record)


class YTMusicTrackSource:
    """Tracks from a YouTube Music song search, fetched once per session."""
    WATCH_URL = "https://music.youtube.com/watch?v={}"

    def __init__(self, catalog_query: str, limit: int):
        self.catalog_query = catalog_query
        self.limit = limit
        self._tracks: Optional[List[Track]] = None

    async def fetch_tracks(self) -> List[Track]:
        if self._tracks is None:
            self._tracks = await asyncio.to_thread(self._load_catalog)
        return list(self._tracks)

    def clear_cache(self):
        self._tracks = None

    def _load_catalog(self) -> List[Track]:
        tracks: Dict[str, Track] = {}
        try:
            songs = YTMusic().search(query=self.catalog_query, filter="songs", limit=self.limit)
            for song in songs:
                track = self.song_to_track(song)
                if track is not None:
                    tracks.setdefault(track.id, track)
        except Exception as e:
            raise FetchError(f"YouTube Music search failed for {self.catalog_query!r}: {e!r}") from e
        logger.info(f"Loaded {len(tracks)} tracks from YouTube Music")
        return list(tracks.values())

    @classmethod
    def song_to_track(cls, song: Any) -> Optional[Track]:
        """Maps one song search hit to a Track; hits without a video id are skipped."""
        video_id = song.get("videoId") if isinstance(song, dict) else None
        if not video_id:
            return None
        seconds = song.get("duration_seconds")
        artists = [a["name"] for a in song.get("artists") or [] if a.get("name")]
        return Track(
            id=video_id,
            title=song.get("title") or video_id,
            artist=", ".join(artists) or None,
            album=(song.get("album") or {}).get("name"),
            audio_url=cls.WATCH_URL.format(video_id),
            duration_ms=int(seconds) * 1000 if seconds is not None else None,
        )


class LocationSearchService:
    """Place search against a Nominatim endpoint."""
    def __init__(self, client: httpx.AsyncClient, base_url: str, limit: int = 5, user_agent: str = ""):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.limit = limit
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self.client.get(f"{self.base_url}{path}", params=params, headers=self.headers)
        except httpx.HTTPError as e:
            raise FetchError(f"Location request failed: {e!r}") from e
        if response.status_code != 200:
            raise FetchError(f"Location service returned {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from location service {path}") from e

    async def search(self, query: str) -> List[Place]:
        query = query.strip()
        if not query:
            return []
        data = await self._get("/search", {"q": query, "format": "json", "limit": self.limit})
        if not isinstance(data, list):
            raise FetchError(f"Expected a list of places, got {type(data).__name__}")
        places = [Place.from_record(item, fallback_name=query) for item in data if isinstance(item, dict)]
        logger.debug(f"Found {len(places)} places for {query!r}")
        return places


class PlaybackService:
    """
    Holds the player state the track list observes.

    Audio output is not handled here; this only tracks which track is current
    and whether it is playing, and notifies listeners on every change.
    """
    def __init__(self):
        self.state = PlaybackState()
        self._listeners: List[Callable[[PlaybackState], None]] = []

    def subscribe(self, listener: Callable[[PlaybackState], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, state: PlaybackState):
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    def play(self, track: Track):
        logger.info(f"Playing {track.id} ({track.title})")
        self._publish(PlaybackState(current_track=track, is_playing=True))

    def toggle_pause(self):
        if self.state.current_track is None:
            return
        self._publish(PlaybackState(current_track=self.state.current_track, is_playing=not self.state.is_playing))

    def stop(self):
        self._publish(PlaybackState())
