"""Capture paginated documents, slide decks and podcasts from the browser."""

__version__ = "0.1.0"
APP_NAME = "pagegrab"
