from __future__ import annotations

import webbrowser
from typing import Callable, Optional
from urllib.parse import quote

from ..util.errors import ViewerError

VIEWER_BASE_URL = "http://dreampuf.github.io/GraphvizOnline/#"

Opener = Callable[[str], bool]


def viewer_url(dot: str) -> str:
    """Hosted Graphviz renderer URL with the DOT text carried in the fragment."""
    return VIEWER_BASE_URL + quote(dot, safe="")


def open_in_viewer(url: str, *, opener: Optional[Opener] = None) -> None:
    open_url = opener or webbrowser.open
    try:
        opened = open_url(url)
    except webbrowser.Error as e:
        raise ViewerError(f"Failed to open graph viewer: {e}") from e
    if not opened:
        raise ViewerError("No browser available to open the graph viewer")
