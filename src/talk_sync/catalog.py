"""Talk catalog: the table of talks a page can be built for.

The catalog is a JSON file:

    {"version": 1,
     "talks": [{"key": "i18n", "title": "...", "presenter": "...",
                "slides": "slides.html", "transcript": "i18n.html",
                "captions": {"en": "i18n.en.vtt"}, "player": "https://...",
                "timecodes": "times.json", "duration": "29 min"}, ...],
     "languages": {"fr": "Français"}}

A talk has either a "player" (embedded video) or an "audio" file, not both.
The order of the talks is the order of the previous/next links.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from talk_sync.shared import DEFAULT_POSTER, LANGUAGE_LABELS

CATALOG_VERSION = 1


class TalkNotFoundError(LookupError):
    def __init__(self, key: str):
        super().__init__(f"Not found: {key}")
        self.key = key


@dataclass(frozen=True)
class TalkRecord:
    """One talk and the sources its page is built from."""
    key: str
    title: str
    presenter: str = ""
    slides: str = ""
    transcript: str = ""
    captions: Mapping[str, str] = field(default_factory=dict)  # language -> WebVTT source
    player: Optional[str] = None  # Embedded video player URL
    audio: Optional[str] = None   # Sound file URL
    poster: str = DEFAULT_POSTER
    timecodes: Optional[str] = None
    duration: str = ""  # For display, e.g. "29 min"

    def __post_init__(self):
        if not self.key:
            raise ValueError("talk has no key")
        if self.player and self.audio:
            raise ValueError(f"talk {self.key} has both a player and an audio file")
        object.__setattr__(self, "captions", MappingProxyType(dict(self.captions or {})))
        if not self.poster:
            object.__setattr__(self, "poster", DEFAULT_POSTER)

    @property
    def player_kind(self) -> Optional[str]:
        if self.audio:
            return "audio"
        if self.player:
            return "video"
        return None

    @property
    def media_label(self) -> str:
        return "sound player" if self.audio else "video"

    @property
    def media_title(self) -> str:
        return f"{self.media_label} of ‘{self.title}’ by {self.presenter}"

    @property
    def duration_minutes(self) -> Optional[int]:
        """Leading number of the duration string ("29 min" -> 29), if any."""
        first = self.duration.split(" ")[0] if self.duration else ""
        return int(first) if first.isdigit() else None


class Catalog:
    """Immutable, ordered table of talks."""

    def __init__(self, talks, languages: Optional[dict] = None):
        self.talks = tuple(talks)
        self.languages = MappingProxyType({**LANGUAGE_LABELS, **(languages or {})})
        self._positions = {}
        for i, talk in enumerate(self.talks):
            if talk.key in self._positions:
                raise ValueError(f"Duplicate talk key in catalog: {talk.key}")
            self._positions[talk.key] = i

    def __len__(self):
        return len(self.talks)

    def __iter__(self):
        return iter(self.talks)

    def __contains__(self, key):
        return key in self._positions

    def lookup(self, key: str) -> TalkRecord:
        if key not in self._positions:
            raise TalkNotFoundError(key)
        return self.talks[self._positions[key]]

    def neighbours(self, key: str) -> tuple[Optional[TalkRecord], Optional[TalkRecord]]:
        """The talks before and after `key` in catalog order."""
        if key not in self._positions:
            raise TalkNotFoundError(key)
        i = self._positions[key]
        previous = self.talks[i - 1] if i > 0 else None
        following = self.talks[i + 1] if i + 1 < len(self.talks) else None
        return previous, following

    def language_label(self, language: str) -> str:
        return self.languages.get(language, language)


def load_catalog(catalog_path: Path) -> Catalog:
    """Load catalog from JSON."""
    data = json.loads(Path(catalog_path).read_text(encoding="utf-8"))
    version = data.get("version", CATALOG_VERSION)
    if version != CATALOG_VERSION:
        raise ValueError(f"Unsupported catalog version: {version}")
    return Catalog([TalkRecord(**t) for t in data["talks"]], data.get("languages"))
