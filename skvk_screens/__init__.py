"""Audio, book and profile screens for the SKVK app, as a Textual terminal UI."""

__version__ = "0.1.0"
