# main.py
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger
from textual.app import App

from skvk_screens.config import Config, get_data_dir, load_config
from skvk_screens.logs import setup_loguru
from skvk_screens.screens import AudioListScreen, BookListScreen, UserEditScreen
from skvk_screens.services import (ConnectivityProbe, ContentApiService,
                                   DatabaseService, FavoritesService,
                                   LocationSearchService, PlaybackService,
                                   UserService, YTMusicTrackSource)

SCREENS = {
    "audio": AudioListScreen,
    "books": BookListScreen,
    "profile": UserEditScreen,
}


@dataclass
class Services:
    """Everything the screens talk to, built once per app run."""
    db: DatabaseService
    client: httpx.AsyncClient
    probe: ConnectivityProbe
    content: ContentApiService
    track_source: object
    locations: LocationSearchService
    favorites: FavoritesService
    users: UserService
    playback: PlaybackService

    async def aclose(self) -> None:
        await self.client.aclose()
        self.db.close()


def build_services(config: Config, client: Optional[httpx.AsyncClient] = None) -> Services:
    if client is None:
        client = httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS, follow_redirects=True)
    db_path = Path(config.DATABASE_FILENAME)
    if not db_path.is_absolute():
        db_path = get_data_dir() / db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
    db = DatabaseService(str(db_path))
    content = ContentApiService(client, config.CONTENT_API_BASE_URL)
    if config.TRACK_SOURCE == "ytmusic":
        track_source = YTMusicTrackSource(config.YTMUSIC_CATALOG_QUERY, config.SEARCH_RESULT_LIMIT)
    else:
        track_source = content
    return Services(
        db=db,
        client=client,
        probe=ConnectivityProbe(client, config.CONNECTIVITY_PROBE_URL),
        content=content,
        track_source=track_source,
        locations=LocationSearchService(
            client, config.LOCATION_SEARCH_URL, limit=config.LOCATION_RESULT_LIMIT, user_agent=config.USER_AGENT
        ),
        favorites=FavoritesService(db, kind="book"),
        users=UserService(db),
        playback=PlaybackService(),
    )


class SKVKApp(App):
    BINDINGS = [
        ("1", "show('audio')", "Audio"),
        ("2", "show('books')", "Books"),
        ("3", "show('profile')", "Profile"),
        ("q", "quit", "Quit"),
    ]
    CSS_PATH = "skvk_screens.tcss"

    def __init__(self, services: Services, config: Config, initial_screen: str = "audio"):
        super().__init__()
        self.services = services
        self.config = config
        self.initial_screen = initial_screen

    def on_mount(self) -> None:
        for name, screen_class in SCREENS.items():
            self.install_screen(screen_class(self.services, self.config), name=name)
        self.push_screen(self.initial_screen)

    async def action_show(self, name: str) -> None:
        if name not in SCREENS or self.screen is self.get_screen(name):
            return
        logger.debug(f"Switching to {name} screen")
        await self.switch_screen(name)

    async def on_unmount(self) -> None:
        await self.services.aclose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Devotional audio, books and profile screens.")
    parser.add_argument("--config", type=Path, help="Path to a TOML config file")
    parser.add_argument("--screen", choices=sorted(SCREENS), default="audio", help="Screen to open first")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args(argv)

    app_config = load_config(args.config)
    setup_loguru(Path(app_config.LOG_FILE) if app_config.LOG_FILE else None, args.log_level or app_config.LOG_LEVEL)
    services = build_services(app_config)

    app = SKVKApp(services, app_config, initial_screen=args.screen)
    app.run()


if __name__ == "__main__":
    main()
