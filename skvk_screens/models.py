# models.py
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from skvk_screens.errors import FetchError, ValidationError


def _optional_str(record: Dict[str, Any], key: str) -> Optional[str]:
    value = record.get(key)
    return str(value) if value is not None else None


def _coordinate(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class Track:
    """A single audio track as listed by the content service."""
    id: str
    title: str
    artist: Optional[str] = None
    subtitle: Optional[str] = None
    album: Optional[str] = None
    cover_url: Optional[str] = None
    audio_url: Optional[str] = None
    duration_ms: Optional[int] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Track":
        """Builds a Track from a raw content API record, rejecting records without an id."""
        track_id = record.get("id")
        if not track_id:
            raise FetchError(f"Track record is missing an id: {record!r}")
        duration = record.get("duration")
        return cls(
            id=str(track_id),
            title=_optional_str(record, "title") or str(track_id),
            artist=_optional_str(record, "artist"),
            subtitle=_optional_str(record, "subtitle") or _optional_str(record, "artist"),
            album=_optional_str(record, "album"),
            cover_url=_optional_str(record, "coverArtUrl") or _optional_str(record, "coverUrl"),
            audio_url=_optional_str(record, "audioUrl"),
            duration_ms=int(duration) if duration is not None else None,
        )

    @property
    def display_subtitle(self) -> str:
        return self.artist or self.subtitle or ""

    @property
    def duration(self) -> str:
        if self.duration_ms is None:
            return "N/A"
        minutes, seconds = divmod(self.duration_ms // 1000, 60)
        return f"{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class Book:
    id: str
    title: str
    language: str = "en"
    available_languages: List[str] = field(default_factory=list)
    author: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Book":
        book_id = record.get("id")
        if not book_id:
            raise FetchError(f"Book record is missing an id: {record!r}")
        return cls(
            id=str(book_id),
            title=_optional_str(record, "title") or str(book_id),
            language=_optional_str(record, "language") or "en",
            available_languages=[str(lang) for lang in record.get("availableLanguages") or []],
            author=_optional_str(record, "author"),
        )

    @property
    def languages_note(self) -> str:
        if len(self.available_languages) > 1:
            return f"Available in {len(self.available_languages)} languages"
        return ""


@dataclass(frozen=True)
class Place:
    """A geocoded place returned by the location search service."""
    name: str
    latitude: float
    longitude: float

    @classmethod
    def from_record(cls, record: Dict[str, Any], fallback_name: str = "Unknown Location") -> "Place":
        return cls(
            name=_optional_str(record, "display_name") or fallback_name,
            latitude=_coordinate(record.get("lat")),
            longitude=_coordinate(record.get("lon")),
        )

    @property
    def coordinates(self) -> str:
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


@dataclass(frozen=True)
class AstrologyOption:
    key: str
    name: str


AYANAMSHA_OPTIONS: List[AstrologyOption] = [
    AstrologyOption("lahiri", "Lahiri Ayanamsha"),
    AstrologyOption("raman", "B.V. Raman Ayanamsha"),
    AstrologyOption("krishnamurti", "K.P. (Krishnamurti) Ayanamsha"),
    AstrologyOption("faganBradley", "Fagan-Bradley Ayanamsha"),
    AstrologyOption("yukteshwar", "Sri Yukteshwar Ayanamsha"),
    AstrologyOption("jnBhasin", "J.N. Bhasin Ayanamsha"),
    AstrologyOption("babylonian", "Babylonian Ayanamsha"),
    AstrologyOption("sassanian", "Sassanian Ayanamsha"),
    AstrologyOption("aldebaran15Tau", "Aldebaran 15° Taurus"),
    AstrologyOption("galacticCenter", "Galactic Center Ayanamsha"),
]

HOUSE_SYSTEM_OPTIONS: List[AstrologyOption] = [
    AstrologyOption("placidus", "Placidus Houses"),
    AstrologyOption("koch", "Koch Houses"),
    AstrologyOption("equal", "Equal Houses"),
    AstrologyOption("wholeSign", "Whole Sign Houses"),
    AstrologyOption("porphyry", "Porphyry Houses"),
    AstrologyOption("regiomontanus", "Regiomontanus Houses"),
    AstrologyOption("campanus", "Campanus Houses"),
    AstrologyOption("alcabitius", "Alcabitius Houses"),
    AstrologyOption("topocentric", "Topocentric Houses"),
    AstrologyOption("morinus", "Morinus Houses"),
    AstrologyOption("sripati", "Sripati Houses"),
]


def option_name(options: List[AstrologyOption], key: str) -> str:
    """Display name for an option key, falling back to the key itself."""
    return next((o.name for o in options if o.key == key), key)


SEX_OPTIONS = ["Male", "Female", "Other"]

DEFAULT_LATITUDE = 28.6139  # New Delhi
DEFAULT_LONGITUDE = 77.2090


def default_date_of_birth() -> date:
    return date.today() - timedelta(days=25 * 365)


def _current_time() -> time:
    return datetime.now().time().replace(second=0, microsecond=0)


@dataclass
class UserProfile:
    """A user's birth details and astrology preferences."""
    name: str
    place_of_birth: str
    date_of_birth: date = field(default_factory=default_date_of_birth)
    time_of_birth: time = field(default_factory=_current_time)
    latitude: float = DEFAULT_LATITUDE
    longitude: float = DEFAULT_LONGITUDE
    sex: str = "Male"
    ayanamsha: str = "lahiri"
    house_system: str = "placidus"
    id: str = field(default_factory=lambda: str(int(datetime.now().timestamp() * 1000)))
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def validate(self) -> None:
        """Raises ValidationError for the first missing required field."""
        if not self.name.strip():
            raise ValidationError("Please enter your name")
        if not self.place_of_birth.strip():
            raise ValidationError("Please select your place of birth")


class PlaybackIndicator(Enum):
    """Per-row playback state shown in the track list."""
    IDLE = "idle"
    CURRENT_PAUSED = "current-paused"
    CURRENT_PLAYING = "current-playing"


@dataclass(frozen=True)
class PlaybackState:
    current_track: Optional[Track] = None
    is_playing: bool = False

    @property
    def current_id(self) -> Optional[str]:
        return self.current_track.id if self.current_track else None

