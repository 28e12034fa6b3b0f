"""
Talk page assembly.

build_talk_page() fetches the sources of one talk (slides, transcript,
timecodes), recovering from any that are missing, and returns a TalkPage.
render_page() turns that into the HTML document: the merged slides and
transcript, the playback surface, the caption area with its language
selector, and a JSON data island (#talk-data) that the client script reads
the timecodes and caption URLs from.
"""

import html
import json
from dataclasses import dataclass, field
from typing import Callable, Optional

from talk_sync.catalog import Catalog, TalkRecord
from talk_sync.document import (
    SlideDeck, TranscriptBlock, merge, merged_html,
    prepare_slide_deck, prepare_transcript,
)
from talk_sync.shared import (
    tprint as print,
    EMPTY_TRANSCRIPT_HTML, NO_CAPTIONS, NO_SLIDES_HTML,
    SourceFetchError, TalkConfig, fetch_text,
)
from talk_sync.sync import SyncEngine, parse_timecodes, player_timecodes
from talk_sync.urls import resolve

DEFAULT_TIMECODES = [0.0]

# Layout rules the synchronized mode depends on. Everything else comes
# from the shared style sheets next to the pages.
PAGE_STYLE = """
      #caption, #prevnext {display: none}
      #cue {display: block}
      #cuelang {float: right}
      #player, #slides {position: relative}
      .slide:target {outline: none}

      /* In synchronized mode, show only the active slide. */
      #sync:checked ~ #player .slide {position: absolute; top: 0; left: 0;
        visibility: hidden}
      #sync:checked ~ #player .slide.active {position: relative;
        visibility: visible}
      #sync:checked ~ #prevnext {display: inline}
      #sync:checked ~ #player #slides > *:not(.slide) {display: none}
      #sync:checked ~ #player #caption {display: block}

      /* ... and only the revealed steps of incremental display. */
      #sync:checked ~ #player .next {visibility: hidden}
      #sync:checked ~ #player .slide.active .next.active {visibility: visible}

      /* No transitions when moving backwards or when not synchronized. */
      #sync:not(:checked) ~ #player .slide {animation: none}
      #sync:checked ~ #player .slide.active ~ .visited {animation: none}
"""

KEYBOARD_HELP = """
        <details>
          <summary>Keyboard shortcuts in the video player</summary>
          <ul>
            <li>Play/pause: <kbd>space</kbd>
            <li>Increase volume: <kbd>up arrow</kbd>
            <li>Decrease volume: <kbd>down arrow</kbd>
            <li>Seek forward: <kbd>right arrow</kbd>
            <li>Seek backward: <kbd>left arrow</kbd>
            <li>Captions on/off: <kbd>C</kbd>
            <li>Fullscreen on/off: <kbd>F</kbd>
            <li>Mute/unmute: <kbd>M</kbd>
          </ul>
        </details>
"""


@dataclass
class TalkPage:
    """Everything needed to render one talk page."""
    talk: TalkRecord
    deck: SlideDeck
    transcript: list[TranscriptBlock] = field(default_factory=list)
    timecodes: list[float] = field(default_factory=lambda: list(DEFAULT_TIMECODES))
    caption_urls: dict[str, str] = field(default_factory=dict)  # language -> absolute URL
    language_labels: dict[str, str] = field(default_factory=dict)
    previous: Optional[TalkRecord] = None
    following: Optional[TalkRecord] = None
    cuelang: Optional[str] = None
    sync: bool = False
    page_base: str = ""

    @property
    def merged(self) -> list:
        return merge(self.deck.slides, self.transcript)

    @property
    def seek_times(self) -> list[float]:
        """Timecodes as the playback surface will see them."""
        return player_timecodes(self.timecodes, self.talk.player_kind)

    @property
    def has_navigation(self) -> bool:
        return bool(self.talk.timecodes) and self.talk.player_kind is not None

    @property
    def default_language(self) -> str:
        if self.cuelang:
            return self.cuelang
        return next(iter(self.caption_urls), NO_CAPTIONS)

    def engine(self, language: Optional[str] = None) -> SyncEngine:
        """A SyncEngine over this page's slides, as the client would run it."""
        next_talk = (self.following.key, self.following.title) if self.following else None
        return SyncEngine(self.deck.sync_elements, self.seek_times,
                          language=language or self.default_language,
                          next_talk=next_talk)


def load_timecodes(talk: TalkRecord, fetch: Callable[[str], str]) -> list[float]:
    """The talk's timecode table, or [0.0] if it is missing or unusable."""
    if not talk.timecodes:
        print("  No timecodes for this talk")
        return list(DEFAULT_TIMECODES)
    try:
        return parse_timecodes(fetch(talk.timecodes))
    except SourceFetchError as e:
        print(f"  Warning: cannot load timecodes: {e}")
    except ValueError as e:
        print(f"  Warning: ignoring timecodes {talk.timecodes}: {e}")
    return list(DEFAULT_TIMECODES)


def build_talk_page(talk: TalkRecord, catalog: Catalog, config: TalkConfig,
                    fetch: Callable = fetch_text) -> TalkPage:
    """Fetch and prepare the sources of a talk page.

    fetch(source, base_dir, timeout) returns the text of a source or raises
    SourceFetchError; missing slides, transcript or timecodes are replaced
    by placeholders so a page is always produced.
    """
    def get(source):
        return fetch(source, config.base_dir, config.fetch_timeout)

    print(f"Building page for {talk.key}: {talk.title}")

    print("[1] Loading slides...")
    try:
        slides_text = get(talk.slides)
    except SourceFetchError as e:
        print(f"  Warning: no slides ({e}), using a placeholder")
        slides_text = NO_SLIDES_HTML
    deck = prepare_slide_deck(slides_text, talk.slides, config.page_base, config.scope_selector)
    print(f"  {len(deck.slides)} slides, {deck.reveal_count} reveal steps, "
          f"{len(deck.styles)} style sheets")

    print("[2] Loading transcript...")
    try:
        transcript_text = get(talk.transcript)
    except SourceFetchError as e:
        print(f"  Warning: no transcript ({e})")
        transcript_text = EMPTY_TRANSCRIPT_HTML
    blocks = prepare_transcript(transcript_text, talk.transcript, config.page_base)
    print(f"  {len(blocks)} transcript blocks")
    if blocks and len(blocks) != len(deck.slides):
        print(f"  Warning: {len(deck.slides)} slides but {len(blocks)} transcript blocks")

    print("[3] Loading timecodes...")
    timecodes = load_timecodes(talk, get)
    if config.verbose:
        print(f"  {len(timecodes)} timecodes for {len(deck.sync_elements)} slides and steps")
    if len(timecodes) > len(deck.sync_elements):
        print(f"  Warning: {len(timecodes)} timecodes but only "
              f"{len(deck.sync_elements)} slides and steps")

    previous, following = catalog.neighbours(talk.key)
    caption_urls = {lang: resolve(src, config.page_base) for lang, src in talk.captions.items()}
    labels = {lang: catalog.language_label(lang) for lang in talk.captions}

    return TalkPage(
        talk=talk,
        deck=deck,
        transcript=blocks,
        timecodes=timecodes,
        caption_urls=caption_urls,
        language_labels=labels,
        previous=previous,
        following=following,
        cuelang=config.cuelang,
        sync=config.sync,
        page_base=config.page_base,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _esc(value) -> str:
    return html.escape(str(value), quote=True)


def _script_json(data) -> str:
    """JSON that is safe inside a SCRIPT element."""
    return json.dumps(data, ensure_ascii=False, indent=2).replace("</", "<\\/")


def _description(talk: TalkRecord) -> str:
    return f"{talk.presenter}’s presentation on “{talk.title}”"


def _head(page: TalkPage) -> str:
    talk, base = page.talk, page.page_base
    lines = [
        "<meta charset=utf-8>",
        "<meta name=viewport content=\"width=device-width\">",
        f"<title>{_esc(talk.title)}</title>",
        "<meta name=\"twitter:card\" content=\"summary_large_image\">",
        f"<meta property=\"og:title\" content=\"{_esc(talk.title)}\">",
        f"<meta property=\"og:description\" content=\"{_esc(_description(talk))}\">",
        f"<meta property=\"og:image\" content=\"{_esc(talk.poster)}\">",
        f"<meta property=\"twitter:image\" content=\"{_esc(talk.poster)}\">",
        f"<link rel=stylesheet media=\"screen, print\" href=\"{_esc(base)}slides.css\">",
    ]
    lines.extend(page.deck.styles)
    lines.append(f"<link rel=stylesheet media=\"screen, print\" href=\"{_esc(base)}page.css\">")
    lines.append(f"<style>{PAGE_STYLE}    </style>")
    if page.previous is not None:
        lines.append(f"<link rel=prev href=\"{_esc(page.previous.key)}\">")
    if page.following is not None:
        lines.append(f"<link rel=next href=\"{_esc(page.following.key)}\">")
    lines.append(f"<script src=\"{_esc(base)}talk-sync.js\" defer></script>")
    return "\n    ".join(lines)


def _talk_buttons(page: TalkPage, next_id: str = "") -> str:
    parts = []
    if page.previous is not None:
        parts.append(
            f"<a class=\"button picto im-arrow-left\" rel=prev"
            f" href=\"{_esc(page.previous.key)}#intro\">Previous: {_esc(page.previous.title)}</a>")
    parts.append(f"<a class=\"button picto im-data\" href=\"{_esc(page.page_base)}index.html\">All talks</a>")
    if page.following is not None:
        id_attr = f" id={next_id}" if next_id else ""
        parts.append(
            f"<a{id_attr} class=button rel=next"
            f" href=\"{_esc(page.following.key)}#intro\">Next: {_esc(page.following.title)}"
            f"<span class=\"picto im-arrow-right\"></span></a>")
    return "<p class=buttons>\n          " + "\n          ".join(parts) + "\n        </p>"


def _navigation(page: TalkPage) -> str:
    if not page.has_navigation:
        return ""
    return """
        <span id=prevnext aria-label="Slide navigation controls" role=navigation>
          <a id=firstslide href="#firstslide" title="First slide" class=button role=button>1st</a>
          <a id=prevslide href="#prevslide" class="picto im-arrow-left button" title="Previous slide" role=button></a>
          <a id=nextslide href="#nextslide" class="picto im-arrow-right button" title="Next slide" role=button></a>
        </span>"""


def _media(page: TalkPage) -> str:
    talk = page.talk
    if talk.audio:
        return (f"\n          <audio id=audio controls title=\"{_esc(talk.media_title)}\""
                f" src=\"{_esc(resolve(talk.audio, page.page_base))}\"></audio>")
    if talk.player:
        return (f"\n          <div id=video1><iframe id=video width=640 height=360"
                f" title=\"{_esc(talk.media_title)}\""
                f" src=\"{_esc(resolve(talk.player, page.page_base))}\""
                f" frameborder=0 allow=\"autoplay; encrypted-media; picture-in-picture\""
                f" allowfullscreen></iframe></div>")
    return ""


def _slide_number(page: TalkPage) -> str:
    if not page.deck.slides or page.talk.player_kind is None:
        return ""
    first = page.deck.slides[0]
    return (f"\n          <output id=slidenr aria-live=polite>"
            f"<a href=\"#{_esc(first.id)}\">{_esc(first.label)}</a></output>")


def _caption_selector(page: TalkPage) -> str:
    options = []
    for lang in page.caption_urls:
        selected = " selected" if lang == page.cuelang else ""
        label = page.language_labels.get(lang, lang)
        options.append(f"<option value=\"{_esc(lang)}\"{selected}>{_esc(label)}</option>")
    selected = " selected" if page.cuelang == NO_CAPTIONS else ""
    options.append(f"<option value={NO_CAPTIONS}{selected}>no captions</option>")
    return ("<select title=\"Language for subtitles\" id=cuelang name=cuelang>\n              "
            + "\n              ".join(options) + "\n            </select>")


def _json_ld(page: TalkPage) -> str:
    talk = page.talk
    data = {
        "@context": "https://schema.org",
        "@type": "VideoObject",
        "name": talk.title,
        "description": _description(talk),
        "thumbnailUrl": talk.poster,
    }
    if talk.duration_minutes is not None:
        data["duration"] = f"PT{talk.duration_minutes}M0S"
    if talk.player or talk.audio:
        key = "embedUrl" if talk.player else "contentUrl"
        data[key] = resolve(talk.player or talk.audio, page.page_base)
    return f"<script type=\"application/ld+json\">\n{_script_json(data)}\n</script>"


def page_data(page: TalkPage) -> dict:
    """What the client script needs to run the synchronization.

    The page loads the script from ``{page_base}talk-sync.js``, an asset
    deployed next to the shared style sheets rather than shipped here. It
    runs the same state machine as `SyncEngine` and shows it only through
    classes, which PAGE_STYLE keys on (see `SyncElement.css_classes`):

    - the active slide has class "active", slides left behind "visited";
    - a revealed ``.next`` step has class "active", a hidden one none.
    """
    following = page.following
    return {
        "key": page.talk.key,
        "player": page.talk.player_kind,
        "timecodes": page.seek_times,
        "captions": dict(page.caption_urls),
        "next": {"key": following.key, "title": following.title} if following else None,
    }


def render_page(page: TalkPage) -> str:
    """Render the complete HTML document for a talk page."""
    talk = page.talk
    checked = " checked" if page.sync else ""
    help_block = KEYBOARD_HELP if talk.player and not talk.audio else ""

    return f"""<!DOCTYPE html>
<html lang=en>
  <head>
    {_head(page)}
  </head>
  <body>
    <main>
      <section id=intro>
        <h1>{_esc(talk.title)}</h1>

        <p>Presenter: <strong>{_esc(talk.presenter)}</strong><br>
        Duration: <strong>{_esc(talk.duration)}</strong></p>

        {_talk_buttons(page)}
      </section>

      <section id=talk>
        <h2>Slides &amp; {_esc(talk.media_label)}</h2>
{help_block}
        <form id=form>
        <input type=checkbox name=sync id=sync{checked}
        ><label for=sync class=button>Sync {_esc(talk.media_label)} and hide transcript</label>
{_navigation(page)}
        <div id=player>
          {_json_ld(page)}{_media(page)}{_slide_number(page)}
          <div id=slides class=fade-in role=region aria-live=off aria-label="Slide container">

{merged_html(page.merged)}          </div><!-- id=slides -->

          <p id=caption>
            {_caption_selector(page)}
            <output id=cue aria-live=off>
              <noscript>(Synchronization requires JavaScript)</noscript>
            </output>
          </p>
        </div><!-- id=player -->
        </form>
      </section>

      <section id=extrabuttons>
        {_talk_buttons(page, next_id="nexttalk")}
      </section>
    </main>

    <script type=application/json id=talk-data>
{_script_json(page_data(page))}
    </script>
  </body>
</html>
"""
