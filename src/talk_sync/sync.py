"""
Synchronization of slides and captions with a playing recording.

The SyncEngine holds the presentation state of one loaded page: which
element of the flattened slide sequence is current, which slide is shown,
and which caption cue is displayed. It reacts to three kinds of events,
each handled to completion before the next one:

- position reports from the playback surface (["position", t] messages,
  or timeupdate events of an audio element),
- the first/previous/next navigation buttons,
- caption tracks arriving for a language.

Every operation returns a list of effects (Announce, Seek, ShowCue, ...)
for the host to apply to the page or the player. The engine never touches
the page itself; it only flips state on the SyncElement objects it owns.
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from talk_sync.captions import CaptionTrack, Cue, find_cue
from talk_sync.shared import NO_CAPTIONS


class SlideState(Enum):
    UNVISITED = "unvisited"
    VISITED = "visited"  # Left behind; transitions are suppressed when returning
    ACTIVE = "active"


@dataclass
class SyncElement:
    """One addressable step of the presentation: a slide or a reveal step."""
    index: int
    is_slide: bool
    element_id: Optional[str] = None
    label: Optional[str] = None  # "Slide i of N" for slides
    state: SlideState = SlideState.UNVISITED  # Slides only
    revealed: bool = False  # Reveal steps only

    @property
    def is_active(self) -> bool:
        return self.is_slide and self.state is SlideState.ACTIVE

    @property
    def css_classes(self) -> list[str]:
        """Classes the page script puts on the element for this state."""
        if self.is_slide:
            return [] if self.state is SlideState.UNVISITED else [self.state.value]
        return ["active"] if self.revealed else []


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Announce:
    """A new slide became visible; show its label in the slide number output."""
    slide_index: int
    label: Optional[str]
    element_id: Optional[str]


@dataclass(frozen=True)
class Seek:
    """Ask the player to jump to a time."""
    time: float

    def as_message(self) -> list:
        return ["seek", self.time]


@dataclass(frozen=True)
class ShowCue:
    text: str
    language: str
    cue_index: int


@dataclass(frozen=True)
class ClearCue:
    pass


@dataclass(frozen=True)
class ShowMessage:
    """Text for the caption area that is not a cue, e.g. a parse error."""
    text: str


@dataclass(frozen=True)
class ShowNextTalk:
    key: str
    title: str


# ---------------------------------------------------------------------------
# Timecodes
# ---------------------------------------------------------------------------

def _first_decrease(timecodes: list) -> Optional[int]:
    for i in range(1, len(timecodes)):
        if timecodes[i] < timecodes[i - 1]:
            return i
    return None


def parse_timecodes(text: str) -> list[float]:
    """Parse a timecode file: a JSON array of non-negative seconds.

    Raises ValueError for anything else, including a table that is not in
    non-decreasing order (the position search relies on it).
    """
    data = json.loads(text)
    if not isinstance(data, list) or not data:
        raise ValueError("timecodes must be a non-empty JSON array")
    timecodes = []
    for i, t in enumerate(data):
        if isinstance(t, bool) or not isinstance(t, (int, float)) or t < 0 or math.isnan(t):
            raise ValueError(f"timecode {i} is not a non-negative number: {t!r}")
        timecodes.append(float(t))
    bad = _first_decrease(timecodes)
    if bad is not None:
        raise ValueError(f"timecode {bad} ({timecodes[bad]}) is smaller than the one before it")
    return timecodes


def player_timecodes(timecodes: list[float], player_kind: Optional[str]) -> list[float]:
    """Adapt timecodes to what the playback surface can seek to.

    Embedded video players only seek to whole seconds, and seeking to 0 does
    not work while 0.01 does. Audio elements take the table as is.
    """
    if player_kind != "video":
        return list(timecodes)
    rounded = [float(math.floor(t + 0.5)) for t in timecodes]
    return [0.01 if t == 0 else t for t in rounded]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SyncEngine:
    """State machine keeping the visible slide and caption in step with playback."""

    def __init__(self, elements: list[SyncElement], timecodes: Optional[list[float]] = None,
                 captions: Optional[dict] = None, language: Optional[str] = None,
                 next_talk: Optional[tuple] = None):
        self.elements = list(elements)
        self.timecodes = list(timecodes) if timecodes else [0.0]
        bad = _first_decrease(self.timecodes)
        if bad is not None:
            raise ValueError(f"timecodes must be non-decreasing (index {bad})")
        if self.elements and not self.elements[0].is_slide:
            raise ValueError("the first sync element must be a slide")

        self.captions: dict[str, list[Cue]] = {}
        for lang, cues in (captions or {}).items():
            self.captions[lang] = list(cues.cues if isinstance(cues, CaptionTrack) else cues)
        self.selected_language = language
        self.next_talk = next_talk  # (key, title) of the following talk
        self.current = 0
        self.current_slide = 0
        self.current_cue: Optional[int] = None
        self.position: Optional[float] = None

        for el in self.elements:
            el.state = SlideState.UNVISITED
            el.revealed = False
        if self.elements:
            self.elements[0].state = SlideState.ACTIVE

    @property
    def active_slide(self) -> Optional[SyncElement]:
        return self.elements[self.current_slide] if self.elements else None

    @property
    def active_cue(self) -> Optional[Cue]:
        cues = self.captions.get(self.selected_language)
        if cues is None or self.current_cue is None:
            return None
        return cues[self.current_cue]

    def _containing_slide(self, index: int) -> int:
        while index > 0 and not self.elements[index].is_slide:
            index -= 1
        return index

    # -- moving the "active" state -----------------------------------------

    def seek_to_index(self, target: int) -> list:
        """Make element `target` the current one."""
        effects = []
        self._seek(target, effects)
        return effects

    def _seek(self, target: int, effects: list) -> None:
        if not self.elements or target == self.current:
            return
        if not 0 <= target < len(self.elements):
            raise IndexError(f"sync element {target} out of range 0..{len(self.elements) - 1}")

        previous_slide = self.current_slide
        if target < self.current:
            # Deactivate everything after the target, down to it
            for i in range(self.current, target, -1):
                el = self.elements[i]
                if el.is_slide:
                    el.state = SlideState.VISITED
                else:
                    el.revealed = False
            new_slide = self._containing_slide(target)
        else:
            # Activate everything up to the target; slides passed become visited
            new_slide = previous_slide
            for i in range(self.current + 1, target + 1):
                el = self.elements[i]
                if el.is_slide:
                    self.elements[new_slide].state = SlideState.VISITED
                    new_slide = i
                else:
                    el.revealed = True

        # Reveal steps of the shown slide up to the target are visible;
        # everything after the target is hidden by the walks above.
        for i in range(new_slide + 1, target + 1):
            self.elements[i].revealed = True
        self.current = target

        if new_slide != previous_slide:
            self.elements[previous_slide].state = SlideState.VISITED
            slide = self.elements[new_slide]
            slide.state = SlideState.ACTIVE
            self.current_slide = new_slide
            effects.append(Announce(new_slide, slide.label, slide.element_id))

    def locate(self, t: float) -> int:
        """Index of the last timecode <= t (0 if t is before all of them).

        Walks from the current element, which is cheap because successive
        position reports are close together.
        """
        tc = self.timecodes
        i = min(self.current, len(tc) - 1)
        while i < len(tc) - 1 and tc[i + 1] <= t:
            i += 1
        while i > 0 and tc[i] > t:
            i -= 1
        return i

    # -- captions -----------------------------------------------------------

    def _update_cue(self, effects: list) -> None:
        cues = self.captions.get(self.selected_language)
        if cues is None or self.position is None:
            return
        i = find_cue(cues, self.position)
        if i == self.current_cue:
            return  # Output already has the right cue
        self.current_cue = i
        if i is None:
            effects.append(ClearCue())
        else:
            effects.append(ShowCue(cues[i].text, self.selected_language, i))

    def add_captions(self, language: str, track) -> list:
        """Store a language's cues once its load has completed."""
        effects = []
        if isinstance(track, CaptionTrack):
            cues = track.cues
            if track.errors:
                effects.append(ShowMessage(track.error_message()))
        else:
            cues = track
        self.captions[language] = list(cues)
        if language == self.selected_language:
            self.current_cue = None
            self._update_cue(effects)
        return effects

    def set_language(self, language: Optional[str]) -> list:
        """Switch the caption language; the slide state is left alone."""
        self.selected_language = language
        self.current_cue = None
        effects = []
        cues = self.captions.get(language) if language != NO_CAPTIONS else None
        if cues is not None and self.position is not None:
            self._update_cue(effects)
        if self.current_cue is None and not effects:
            effects.append(ClearCue())
        return effects

    # -- events -------------------------------------------------------------

    def report_position(self, t: float) -> list:
        """The player is at time t: update the caption and the active element."""
        effects = []
        self.position = t
        self._update_cue(effects)
        if self.elements:
            index = min(self.locate(t), len(self.elements) - 1)
            self._seek(index, effects)
        return effects

    def handle_message(self, message) -> list:
        """Entry point for ["position", t] messages from an embedded player."""
        if not isinstance(message, (list, tuple)) or len(message) < 2:
            return []
        if message[0] != "position":
            return []
        try:
            t = float(message[1])
        except (TypeError, ValueError):
            return []
        return self.report_position(t)

    def _navigate(self, target: int) -> list:
        effects = []
        self._seek(target, effects)
        if target < len(self.timecodes):
            effects.append(Seek(self.timecodes[target]))
        return effects

    def navigate_first(self) -> list:
        if not self.elements:
            return []
        return self._navigate(0)

    def navigate_prev(self) -> list:
        if self.current == 0:
            return []  # Already at first element
        return self._navigate(self.current - 1)

    def navigate_next(self) -> list:
        if self.current >= len(self.elements) - 1:
            return []  # No next element
        return self._navigate(self.current + 1)

    def playback_ended(self) -> list:
        """When an audio talk ends, offer the next talk in the caption area."""
        if not self.next_talk:
            return []
        self.current_cue = None
        key, title = self.next_talk
        return [ShowNextTalk(key, title)]
