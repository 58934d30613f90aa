"""Widget content provider.

Serves the HTML template that the render tool points clients at. The source
is either a file configured by the deployment or the copy bundled with the
package.

Missing-file policy is explicit:
- required=False: log a warning and serve a placeholder page
- required=True: raise ContentUnavailableError (fatal at startup)
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

from .errors import ContentUnavailableError
from .protocol.types import ResourceContents, ResourceDescriptor

logger = logging.getLogger(__name__)

WIDGET_URI = "ui://widget/kitchen-sink.html"
WIDGET_MIME_TYPE = "text/html+skybridge"

PLACEHOLDER_HTML = (
    "<!doctype html><html><body>"
    "<p>Widget content is not available on this server.</p>"
    "</body></html>"
)


class WidgetProvider:
    """Loads and caches the widget HTML."""

    def __init__(self, path: Path | None = None, required: bool = False) -> None:
        self._path = path
        self._required = required
        self._html: str | None = None
        self._placeholder = False

    @property
    def uri(self) -> str:
        return WIDGET_URI

    @property
    def is_placeholder(self) -> bool:
        return self._placeholder

    def load(self) -> str:
        """Load the widget HTML, applying the missing-file policy."""
        if self._html is not None:
            return self._html

        if self._path is None:
            self._html = _bundled_html()
            return self._html

        try:
            self._html = self._path.read_text(encoding="utf-8")
            logger.info(f"Loaded widget content from {self._path}")
        except OSError as e:
            if self._required:
                raise ContentUnavailableError(
                    f"Widget content required but unreadable at {self._path}: {e}"
                ) from e
            logger.warning(f"Widget content missing at {self._path} ({e}), serving placeholder")
            self._html = PLACEHOLDER_HTML
            self._placeholder = True

        return self._html

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            uri=WIDGET_URI,
            name="kitchen-sink-widget",
            mimeType=WIDGET_MIME_TYPE,
            description="HTML widget that displays a message",
        )

    def read(self, uri: str) -> ResourceContents | None:
        """Return the contents for uri, or None when it is not ours."""
        if uri != WIDGET_URI:
            return None
        return ResourceContents(uri=WIDGET_URI, mimeType=WIDGET_MIME_TYPE, text=self.load())


def _bundled_html() -> str:
    return (
        resources.files("kitchen_sink_server")
        .joinpath("widgets", "kitchen_sink.html")
        .read_text(encoding="utf-8")
    )
