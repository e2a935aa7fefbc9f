"""Error types raised by services and handled by the screens."""


class ScreenError(Exception):
    """Base class for failures scoped to a single screen operation."""

    user_message = "Something went wrong. Please try again."


class OfflineError(ScreenError):
    user_message = (
        "Please connect to the internet to stream audio. This app requires an "
        "active internet connection for streaming and monetization."
    )


class FetchError(ScreenError):
    user_message = "Failed to load content. Please try again."


class ValidationError(ScreenError):
    """A required form field is missing; the message is shown inline as-is."""

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return str(self)


class PersistenceError(ScreenError):
    user_message = "Failed to save changes. Please try again."
