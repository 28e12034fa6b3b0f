"""
Shared types and utilities for the talk page builder.

Contains TalkConfig, the fetch helper and the constants used by
catalog.py, page.py, captions.py and the command-line front end.
"""

import json
import time
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import builtins


def tprint(*args, **kwargs):
    """Print with [HH:MM:SS] timestamp prefix.

    Skips the timestamp for carriage-return progress lines (end != newline)
    so that in-place progress updates remain clean.
    """
    if kwargs.get("end", "\n") != "\n":
        builtins.print(*args, flush=True, **kwargs)
        return
    stamp = time.strftime("[%H:%M:%S]")
    builtins.print(stamp, *args, flush=True, **kwargs)


print = tprint


# Page assets (slides.css, the client script) live one level up from the page
PAGE_BASE = "../"
SCOPE_SELECTOR = "#slides"
NO_CAPTIONS = "x-none"
DEFAULT_POSTER = "https://www.w3.org/2020/Talks/ac-slides/template/AC-2020-slides-banner.png"
NO_SLIDES_HTML = "<div class=slide>(No slides yet)</div>"
EMPTY_TRANSCRIPT_HTML = "<html>"

# Names of the caption languages, shown in the language dropdown
LANGUAGE_LABELS = {
    "en": "English",
    "zh-hans": "简体中文",
    "ko": "한국어",
    "ja": "日本語",
}


class SourceFetchError(Exception):
    """A slides, transcript, timecode or caption source could not be read."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


@dataclass
class TalkConfig:
    """Configuration for building one talk page."""
    catalog_path: Path
    output: Optional[Path] = None  # Default: <key>.html in the current directory
    page_base: str = PAGE_BASE
    scope_selector: str = SCOPE_SELECTOR
    cuelang: Optional[str] = None  # Preferred caption language (or NO_CAPTIONS)
    sync: bool = False  # Initial state of the "sync" checkbox
    fetch_timeout: float = 30.0  # seconds per source
    max_workers: int = 4  # Caption loader threads
    verbose: bool = False

    @property
    def base_dir(self) -> Path:
        """Directory that relative local sources are read from."""
        return Path(self.catalog_path).parent


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_text(source: str, base_dir: Optional[Path] = None,
               timeout: float = 30.0) -> str:
    """Read a source as text, from the network or from disk.

    http(s) sources are fetched with urllib; anything else is a file path,
    relative paths being taken relative to base_dir. Every failure is
    reported as SourceFetchError so callers can fall back.
    """
    if not source:
        raise SourceFetchError(source, "no source given")
    if is_remote(source):
        try:
            with urllib.request.urlopen(source, timeout=timeout) as response:
                charset = response.headers.get_content_charset() or "utf-8"
                return response.read().decode(charset, errors="replace")
        except Exception as e:
            raise SourceFetchError(source, str(e)) from e

    path = Path(source)
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise SourceFetchError(source, e.strerror or str(e)) from e


def _save_json(path: Path, data) -> None:
    """Write data to a JSON file with standard formatting."""
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)
