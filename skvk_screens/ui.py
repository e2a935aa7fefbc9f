# ui.py
from typing import Callable, Iterable, List, Optional, Tuple

from textual.app import ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import (DataTable, Input, Label, Markdown, OptionList,
                             RichLog, Static)
from textual.widgets.option_list import Option

from skvk_screens.models import (AstrologyOption, Book, PlaybackIndicator,
                                 Place, Track)

INDICATOR_GLYPHS = {
    PlaybackIndicator.IDLE: " ",
    PlaybackIndicator.CURRENT_PAUSED: "⏸",
    PlaybackIndicator.CURRENT_PLAYING: "▶",
}


class SearchBar(Static):
    """Widget for the search input; hidden until search mode is switched on."""
    DEFAULT_CSS = """
    SearchBar {
        display: none;
        height: auto;
    }
    """

    class QueryChanged(Message):
        def __init__(self, query: str) -> None:
            self.query = query
            super().__init__()

    def __init__(self, placeholder: str = "Search...", **kwargs) -> None:
        super().__init__(**kwargs)
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        yield Input(placeholder=self.placeholder)

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        self.post_message(self.QueryChanged(event.value))

    def open(self) -> None:
        self.display = True
        self.query_one(Input).focus()

    def close(self) -> None:
        self.display = False
        self.query_one(Input).value = ""


class DetailsPane(Static):
    """Widget to display details of the selected track."""
    def on_mount(self) -> None:
        self.update_details(None)

    def update_details(self, track: Optional[Track]) -> None:
        if track:
            content = f"## {track.title}\n\n- **Artist**: {track.display_subtitle or 'N/A'}\n- **Album**: {track.album or 'N/A'}\n- **Duration**: {track.duration}\n- **Link**: `{track.audio_url or 'N/A'}`"
        else:
            content = "## Details\n\n*Select a track to play it.*"
        self.query_one(Markdown).update(content)

    def compose(self) -> ComposeResult:
        yield Markdown()


class KeyedTable(DataTable):
    """Row-cursor table keyed by item id; redraws keep the cursor on the same item."""
    COLUMNS: tuple = ()

    def on_mount(self) -> None:
        self._ensure_columns()
        self.cursor_type = "row"

    def _ensure_columns(self) -> None:
        if not self.columns:
            self.add_columns(*self.COLUMNS)

    def _cursor_key(self) -> Optional[str]:
        if self.row_count == 0:
            return None
        row_key, _ = self.coordinate_to_cell_key(self.cursor_coordinate)
        return row_key.value

    def _replace_rows(self, rows: List[Tuple[str, tuple]]) -> None:
        """Swaps in ``(key, cells)`` rows, then restores the cursor by key, else by row."""
        self._ensure_columns()
        cursor_key = self._cursor_key()
        cursor_row = self.cursor_row
        self.clear()
        for key, cells in rows:
            self.add_row(*cells, key=key)
        if not rows:
            return
        keys = [key for key, _ in rows]
        row = keys.index(cursor_key) if cursor_key in keys else min(cursor_row, len(rows) - 1)
        self.move_cursor(row=row)


class TrackTable(KeyedTable):
    """Widget for the track list, with a playback indicator column."""
    COLUMNS = (" ", "Title", "Artist", "Duration")

    class RowSelected(Message):
        def __init__(self, key: str) -> None:
            self.key = key
            super().__init__()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        if event.row_key.value:
            self.post_message(self.RowSelected(event.row_key.value))

    def update_tracks(self, tracks: List[Track], indicator: Callable[[Track], PlaybackIndicator]) -> None:
        self._replace_rows([
            (t.id, (INDICATOR_GLYPHS[indicator(t)], t.title, t.display_subtitle, t.duration)) for t in tracks
        ])


class BookTable(KeyedTable):
    """Widget for the book list, with a favorite marker column."""
    COLUMNS = ("★", "Title", "Language", "")

    class FavoriteToggled(Message):
        def __init__(self, key: str) -> None:
            self.key = key
            super().__init__()

    class BookChosen(Message):
        def __init__(self, key: str) -> None:
            self.key = key
            super().__init__()

    BINDINGS = [Binding("f", "toggle_favorite", "Favorite")]

    def action_toggle_favorite(self) -> None:
        key = self._cursor_key()
        if key:
            self.post_message(self.FavoriteToggled(key))

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        if event.row_key.value:
            self.post_message(self.BookChosen(event.row_key.value))

    def update_books(self, books: List[Book], is_favorite: Callable[[str], bool]) -> None:
        self._replace_rows([
            (b.id, ("★" if is_favorite(b.id) else "☆", b.title, f"Language: {b.language}", b.languages_note))
            for b in books
        ])


class LocationSuggestions(OptionList):
    """Autocomplete list under the place-of-birth field."""
    class PlaceChosen(Message):
        def __init__(self, place: Place) -> None:
            self.place = place
            super().__init__()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.places: List[Place] = []

    def update_places(self, places: List[Place]) -> None:
        self.places = list(places)
        self.clear_options()
        self.add_options([Option(f"{p.name}  ({p.coordinates})") for p in self.places])

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        if 0 <= event.option_index < len(self.places):
            self.post_message(self.PlaceChosen(self.places[event.option_index]))


class OptionPicker(ModalScreen[str]):
    """Modal list of astrology options; dismisses with the chosen key."""
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, options: Iterable[AstrologyOption], current: str) -> None:
        super().__init__()
        self.title_text = title
        self.choices = list(options)
        self.current = current

    def compose(self) -> ComposeResult:
        yield Label(self.title_text, id="picker-title")
        yield OptionList(
            *[Option(("● " if o.key == self.current else "  ") + o.name, id=o.key) for o in self.choices],
            id="picker-options",
        )

    def on_mount(self) -> None:
        option_list = self.query_one(OptionList)
        keys = [o.key for o in self.choices]
        if self.current in keys:
            option_list.highlighted = keys.index(self.current)
        option_list.focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)

    def action_cancel(self) -> None:
        self.dismiss(self.current)


class LogPane(RichLog):
    """A dedicated widget for logging application events."""
    def add_message(self, message: str) -> None:
        self.write(message)
