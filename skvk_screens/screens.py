"""
The three screens: audio tracks, books, and the profile editor.

Screens own no business logic; they forward input to the state objects in
skvk_screens.state and redraw from them.
"""

try:
    import pyperclip
except ImportError:
    pyperclip = None

from loguru import logger
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Input, Label, Select, Static

from skvk_screens.errors import ScreenError, ValidationError
from skvk_screens.models import (AYANAMSHA_OPTIONS, HOUSE_SYSTEM_OPTIONS,
                                 SEX_OPTIONS, PlaybackState, option_name)
from skvk_screens.state import (SAVE_PROFILE_FAILED, BookBrowser,
                                ProfileForm, TrackBrowser)
from skvk_screens.ui import (BookTable, DetailsPane, LocationSuggestions,
                             LogPane, OptionPicker, SearchBar, TrackTable)


class AudioListScreen(Screen):
    BINDINGS = [
        Binding("slash", "open_search", "Search"),
        Binding("escape", "close_search", "Close search"),
        Binding("r", "refresh", "Refresh"),
        Binding("p", "toggle_pause", "Play/Pause"),
        Binding("c", "copy_link", "Copy Link"),
    ]

    def __init__(self, services, config) -> None:
        super().__init__()
        self.services = services
        self.browser = TrackBrowser(services.track_source, services.probe, services.playback)
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="app-grid"):
            with Vertical(id="left-pane"):
                yield SearchBar(placeholder="Search tracks...", id="track-search")
                yield Static(id="track-status", classes="status")
                yield TrackTable(id="tracks-table")
            with Vertical(id="right-pane"):
                yield DetailsPane(id="details-pane")
        yield LogPane(id="log", wrap=True, highlight=True, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Devotional Audio"
        self._unsubscribe = self.services.playback.subscribe(self.on_playback_changed)
        self.run_worker(self.load_tracks(), group="load_tracks", exclusive=True)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()

    async def load_tracks(self, refresh: bool = False) -> None:
        log = self.query_one(LogPane)
        self.query_one("#track-status", Static).update("Loading tracks...")
        state = await self.browser.load(refresh=refresh)
        if state.error_message:
            log.add_message(f"[red]❌ {state.error_message}[/red]")
        else:
            log.add_message(f"🎶 Loaded {len(state.tracks)} tracks.")
        self.render_tracks()

    def render_tracks(self) -> None:
        state = self.browser.state
        status = self.query_one("#track-status", Static)
        if state.error_message:
            status.update(f"[red]{state.error_message}[/red]  (press r to retry)")
        elif not state.filtered:
            status.update(self.browser.empty_message)
        else:
            status.update("")
        self.query_one(TrackTable).update_tracks(state.filtered, self.browser.indicator)
        self.query_one(DetailsPane).update_details(state.selected_track)

    def on_playback_changed(self, state: PlaybackState) -> None:
        self.render_tracks()

    def on_search_bar_query_changed(self, message: SearchBar.QueryChanged) -> None:
        self.browser.search(message.query)
        self.render_tracks()

    def on_track_table_row_selected(self, message: TrackTable.RowSelected) -> None:
        track = next((t for t in self.browser.state.filtered if t.id == message.key), None)
        if track:
            self.browser.play(track)
            self.query_one(LogPane).add_message(f"▶ Playing '[b]{track.title}[/b]'")

    def action_open_search(self) -> None:
        if not self.browser.state.is_searching:
            self.browser.toggle_search()
        self.query_one(SearchBar).open()

    def action_close_search(self) -> None:
        if self.browser.state.is_searching:
            self.browser.toggle_search()
            self.query_one(SearchBar).close()
            self.query_one(TrackTable).focus()
            self.render_tracks()

    def action_refresh(self) -> None:
        self.run_worker(self.load_tracks(refresh=True), group="load_tracks", exclusive=True)

    def action_toggle_pause(self) -> None:
        self.services.playback.toggle_pause()

    def action_copy_link(self) -> None:
        log = self.query_one(LogPane)
        if not pyperclip:
            log.add_message("[red]❌ 'pyperclip' not installed.[/red]")
            return
        track = self.browser.state.selected_track
        if track and track.audio_url:
            pyperclip.copy(track.audio_url)
            log.add_message(f"📋 Copied link for '[b]{track.title}[/b]'.")
        else:
            log.add_message("[yellow]⚠️ No track selected.[/yellow]")


class BookListScreen(Screen):
    BINDINGS = [
        Binding("slash", "open_search", "Search"),
        Binding("escape", "close_search", "Close search"),
        Binding("v", "toggle_favorites_only", "Favorites only"),
        Binding("r", "refresh", "Refresh"),
    ]

    def __init__(self, services, config) -> None:
        super().__init__()
        self.services = services
        self.browser = BookBrowser(
            services.content, services.probe, services.favorites, language=config.BOOK_LANGUAGE
        )

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="books-pane"):
            yield Label("", id="books-count")
            yield SearchBar(placeholder="Search books...", id="book-search")
            yield Static(id="book-status", classes="status")
            yield BookTable(id="books-table")
        yield LogPane(id="log", wrap=True, highlight=True, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Books"
        self.run_worker(self.load_books(), group="load_books", exclusive=True)

    async def load_books(self) -> None:
        await self.browser.load()
        if self.browser.error_message:
            self.query_one(LogPane).add_message(f"[red]❌ {self.browser.error_message}[/red]")
        self.render_books()

    def render_books(self) -> None:
        books = self.browser.visible
        status = self.query_one("#book-status", Static)
        if self.browser.error_message:
            status.update(f"[red]{self.browser.error_message}[/red]")
        elif not books:
            status.update("No favorite books yet" if self.browser.favorites_only else "No books available")
        else:
            status.update("")
        heading = "Favorite books" if self.browser.favorites_only else "All books"
        self.query_one("#books-count", Label).update(f"{heading}: {len(books)}")
        self.query_one(BookTable).update_books(books, self.browser.is_favorite)

    def on_search_bar_query_changed(self, message: SearchBar.QueryChanged) -> None:
        self.browser.query = message.query
        self.render_books()

    async def on_book_table_favorite_toggled(self, message: BookTable.FavoriteToggled) -> None:
        error = await self.browser.toggle_favorite(message.key)
        self.render_books()
        if error:
            self.query_one(LogPane).add_message(f"[red]❌ {error}[/red]")

    def on_book_table_book_chosen(self, message: BookTable.BookChosen) -> None:
        book = next((b for b in self.browser.books if b.id == message.key), None)
        if book:
            logger.info(f"Book selected: {book.id}")
            self.query_one(LogPane).add_message(f"📖 Opening '[b]{book.title}[/b]'")

    def action_open_search(self) -> None:
        self.query_one(SearchBar).open()

    def action_close_search(self) -> None:
        self.query_one(SearchBar).close()
        self.browser.query = ""
        self.query_one(BookTable).focus()
        self.render_books()

    def action_toggle_favorites_only(self) -> None:
        self.browser.favorites_only = not self.browser.favorites_only
        self.render_books()

    def action_refresh(self) -> None:
        self.browser.content.clear_cache()
        self.run_worker(self.load_books(), group="load_books", exclusive=True)


class UserEditScreen(Screen):
    BINDINGS = [Binding("ctrl+s", "save", "Save profile")]

    def __init__(self, services, config) -> None:
        super().__init__()
        self.services = services
        self.form = ProfileForm(
            services.locations,
            services.users,
            min_length=config.SEARCH_MIN_LENGTH,
            delay=config.SEARCH_DEBOUNCE_SECONDS,
            on_change=self.render_locations,
        )

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="profile-form"):
            yield Label("Full Name *")
            yield Input(placeholder="Enter your full name", id="name")
            yield Label("Date of Birth (YYYY-MM-DD)")
            yield Input(self.form.date_text, id="date-of-birth")
            yield Label("Time of Birth (HH:MM)")
            yield Input(self.form.time_text, id="time-of-birth")
            yield Label("Sex")
            yield Select([(s, s) for s in SEX_OPTIONS], value=self.form.sex, allow_blank=False, id="sex")
            yield Label("Place of Birth *")
            yield Input(placeholder="Search for your birth location", id="place-of-birth")
            yield Static("Type to search for your birth location", id="location-status", classes="status")
            yield LocationSuggestions(id="location-suggestions")
            yield Label("Ayanamsha")
            yield Button(option_name(AYANAMSHA_OPTIONS, self.form.ayanamsha), id="ayanamsha")
            yield Label("House System")
            yield Button(option_name(HOUSE_SYSTEM_OPTIONS, self.form.house_system), id="house-system")
            yield Static(id="form-notice", classes="status")
            yield Button("Save Profile", variant="primary", id="save")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Edit Profile"
        self.query_one(LocationSuggestions).display = False
        self.run_worker(self.load_profile(), group="load_profile", exclusive=True)

    def on_unmount(self) -> None:
        self.form.locations.cancel()

    async def load_profile(self) -> None:
        profile = await self.form.load_existing()
        if profile is None:
            return
        self.query_one("#name", Input).value = self.form.name
        self.query_one("#date-of-birth", Input).value = self.form.date_text
        self.query_one("#time-of-birth", Input).value = self.form.time_text
        self.query_one("#sex", Select).value = self.form.sex
        self.query_one("#place-of-birth", Input).value = self.form.place_of_birth
        self.refresh_option_buttons()

    def render_locations(self) -> None:
        suggestions = self.query_one(LocationSuggestions)
        status = self.query_one("#location-status", Static)
        if self.form.locations.is_loading:
            status.update("Searching...")
        elif self.form.location_error:
            status.update(f"[red]{self.form.location_error}[/red]")
        else:
            status.update(f"📍 {self.form.latitude:.4f}, {self.form.longitude:.4f}")
        suggestions.update_places(self.form.locations.results if self.form.show_suggestions else [])
        suggestions.display = self.form.show_suggestions

    def refresh_option_buttons(self) -> None:
        self.query_one("#ayanamsha", Button).label = option_name(AYANAMSHA_OPTIONS, self.form.ayanamsha)
        self.query_one("#house-system", Button).label = option_name(HOUSE_SYSTEM_OPTIONS, self.form.house_system)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "name":
            self.form.name = event.value
        elif event.input.id == "date-of-birth":
            self.form.date_text = event.value
        elif event.input.id == "time-of-birth":
            self.form.time_text = event.value
        elif event.input.id == "place-of-birth":
            self.form.on_place_input(event.value)

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "sex" and isinstance(event.value, str):
            self.form.sex = event.value

    def on_location_suggestions_place_chosen(self, message: LocationSuggestions.PlaceChosen) -> None:
        self.form.select_place(message.place)
        self.query_one("#place-of-birth", Input).value = message.place.name
        self.render_locations()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "ayanamsha":
            self.app.push_screen(
                OptionPicker("Select Ayanamsha", AYANAMSHA_OPTIONS, self.form.ayanamsha),
                self._set_ayanamsha,
            )
        elif event.button.id == "house-system":
            self.app.push_screen(
                OptionPicker("Select House System", HOUSE_SYSTEM_OPTIONS, self.form.house_system),
                self._set_house_system,
            )
        elif event.button.id == "save":
            self.action_save()

    def _set_ayanamsha(self, key) -> None:
        if key:
            self.form.ayanamsha = key
        self.refresh_option_buttons()

    def _set_house_system(self, key) -> None:
        if key:
            self.form.house_system = key
        self.refresh_option_buttons()

    def action_save(self) -> None:
        self.run_worker(self.save_profile(), group="save_profile", exclusive=True)

    async def save_profile(self) -> None:
        notice = self.query_one("#form-notice", Static)
        notice.update("Saving profile...")
        try:
            profile = await self.form.save()
        except ValidationError as e:
            notice.update(f"[red]{e.user_message}[/red]")
            return
        except ScreenError:
            logger.exception("Failed to save profile")
            notice.update(f"[red]{SAVE_PROFILE_FAILED}[/red]")
            return
        notice.update(f"[green]Profile saved successfully for {profile.name}![/green]")
