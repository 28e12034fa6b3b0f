"""
Caption tracks: WebVTT parsing and per-language loading.

A malformed cue block is reported (line number + message) and skipped;
the cues around it are kept. Each language is fetched on its own worker,
and a language whose file cannot be fetched is simply left out.
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from talk_sync.shared import (
    tprint as print,
    SourceFetchError, fetch_text,
)

# <v Speaker>, <v.loud Speaker>, </v>
_VOICE_TAG = re.compile(r'</?v(?:[\s.][^>]*)?>')
_TIMESTAMP = re.compile(r'^(?:(\d{2,}):)?([0-5]\d):([0-5]\d)\.(\d{3})$')
_SIGNATURE = re.compile(r'^WEBVTT(?:[ \t].*)?$')


@dataclass(frozen=True)
class Cue:
    start_time: float  # seconds
    end_time: float
    text: str
    identifier: Optional[str] = None


@dataclass(frozen=True)
class CueError:
    line: int  # 1-based line in the caption file
    message: str


@dataclass
class CaptionTrack:
    language: str
    cues: list[Cue] = field(default_factory=list)
    errors: list[CueError] = field(default_factory=list)

    def error_message(self) -> Optional[str]:
        """The first parse error, phrased for the caption area."""
        if not self.errors:
            return None
        e = self.errors[0]
        return f"Error: line {e.line} of {self.language}: {e.message}"


def strip_voice_tags(text: str) -> str:
    return _VOICE_TAG.sub('', text)


def parse_timestamp(value: str) -> Optional[float]:
    """'01:02:03.500' or '02:03.500' to seconds; None if malformed."""
    m = _TIMESTAMP.match(value.strip())
    if not m:
        return None
    hours, minutes, seconds, millis = m.groups()
    return int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds) + int(millis) / 1000


def _blocks(text: str):
    """Yield (first_line_number, lines) for each blank-line separated block."""
    block, start = [], 0
    for number, line in enumerate(text.split('\n'), start=1):
        if line.strip():
            if not block:
                start = number
            block.append(line)
        elif block:
            yield start, block
            block = []
    if block:
        yield start, block


def _parse_cue(start: int, lines: list[str], errors: list[CueError]) -> Optional[Cue]:
    identifier = None
    timing_at = 0
    if '-->' not in lines[0]:
        if len(lines) == 1:
            errors.append(CueError(start, "Cue identifier cannot be standalone."))
            return None
        if '-->' not in lines[1]:
            errors.append(CueError(start + 1, "Cue identifier needs to be followed by timestamp."))
            return None
        identifier = lines[0].strip()
        timing_at = 1

    line_number = start + timing_at
    begin, _, rest = lines[timing_at].partition('-->')
    end_field = rest.split()
    start_time = parse_timestamp(begin)
    end_time = parse_timestamp(end_field[0]) if end_field else None
    if start_time is None:
        errors.append(CueError(line_number, f"Invalid start timestamp: {begin.strip()!r}"))
        return None
    if end_time is None:
        errors.append(CueError(line_number, f"Invalid end timestamp: {rest.strip()!r}"))
        return None
    if end_time <= start_time:
        errors.append(CueError(line_number, "End timestamp is not greater than start timestamp."))
        return None

    text = strip_voice_tags('\n'.join(lines[timing_at + 1:]))
    return Cue(start_time, end_time, text, identifier)


def ensure_sorted(cues: list[Cue], language: str = "") -> list[Cue]:
    """Return the cues ordered by start time (stable), warning if they were not."""
    for i in range(1, len(cues)):
        if cues[i].start_time < cues[i - 1].start_time:
            print(f"  Warning: captions {language} are not in time order; sorting them")
            return sorted(cues, key=lambda c: c.start_time)
    return list(cues)


def parse_webvtt(text: str, language: str = "") -> CaptionTrack:
    """Parse a WebVTT file into a CaptionTrack."""
    text = text.lstrip('\ufeff').replace('\r\n', '\n').replace('\r', '\n')
    track = CaptionTrack(language)

    blocks = list(_blocks(text))
    lines = text.split('\n')
    if not lines or not _SIGNATURE.match(lines[0]):
        track.errors.append(CueError(1, 'No valid signature. (File needs to start with "WEBVTT".)'))

    for n, (start, block) in enumerate(blocks):
        first = block[0]
        if n == 0 and start == 1 and first.startswith("WEBVTT"):
            continue  # Header, including any metadata lines
        if first.startswith(("NOTE", "STYLE", "REGION")) and '-->' not in first:
            continue
        cue = _parse_cue(start, block, track.errors)
        if cue is not None:
            track.cues.append(cue)

    track.cues = ensure_sorted(track.cues, language)
    return track


def find_cue(cues: list[Cue], t: float) -> Optional[int]:
    """Binary search for the cue with start_time <= t <= end_time."""
    lo, hi = 0, len(cues) - 1
    while lo <= hi:
        m = (lo + hi) // 2
        if t < cues[m].start_time:
            hi = m - 1
        elif t > cues[m].end_time:
            lo = m + 1
        else:
            return m
    return None


def _load_track(language: str, source: str, fetch: Callable[[str], str]) -> CaptionTrack:
    return parse_webvtt(fetch(source), language)


def load_captions(sources: dict, fetch: Callable[[str], str] = fetch_text,
                  on_loaded: Optional[Callable[[str, CaptionTrack], object]] = None,
                  max_workers: int = 4, verbose: bool = False) -> dict[str, CaptionTrack]:
    """Fetch and parse one caption track per language, concurrently.

    on_loaded(language, track) is called in this thread as each language
    completes, in completion order. Languages that fail to load are logged
    and omitted from the result.
    """
    tracks = {}
    if not sources:
        return tracks

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(_load_track, lang, source, fetch): lang
            for lang, source in sources.items()
        }
        for future in as_completed(futures):
            lang = futures[future]
            try:
                track = future.result()
            except SourceFetchError as e:
                print(f"  Warning: no captions for {lang}: {e}")
                continue
            if verbose:
                print(f"  Captions {lang}: {len(track.cues)} cues, {len(track.errors)} errors")
            tracks[lang] = track
            if on_loaded is not None:
                on_loaded(lang, track)
    return tracks
