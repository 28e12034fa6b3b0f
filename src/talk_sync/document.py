"""
Slides and transcript documents, merged into one sequence for the talk page.

The slide deck is a flat list of elements with class "slide" (DIV or
SECTION); the transcript is a list of top-level DIVs in its BODY, one per
slide. Both are parsed permissively with BeautifulSoup/lxml, their links
are made absolute, and the slides are annotated (role, label, id) before
being interleaved by position.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

from talk_sync.css import scope_style_sheet
from talk_sync.shared import PAGE_BASE, SCOPE_SELECTOR
from talk_sync.sync import SyncElement
from talk_sync.urls import resolve

SLIDE_CLASS = "slide"
REVEAL_CLASS = "next"
ACTIVE_CLASS = "active"


@dataclass
class SlideNode:
    """One slide container of the deck."""
    element: Tag
    index: int
    total: int

    @property
    def id(self) -> Optional[str]:
        return self.element.get("id")

    @property
    def label(self) -> str:
        return f"Slide {self.index + 1} of {self.total}"

    @property
    def is_active(self) -> bool:
        return ACTIVE_CLASS in self.element.get("class", [])


@dataclass
class TranscriptBlock:
    """One top-level DIV of the transcript; block i belongs with slide i."""
    element: Tag
    index: int


def parse_html(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "lxml")


def make_links_absolute(soup: BeautifulSoup, source_url: str,
                        page_base: str = PAGE_BASE) -> None:
    """Rewrite every href and src relative to the page being generated.

    A link is first resolved against the document it came from, then
    against page_base, the location of the page relative to the sources.
    """
    for attr in ("href", "src"):
        for tag in soup.find_all(attrs={attr: True}):
            tag[attr] = resolve(resolve(tag[attr], source_url), page_base)


def rename_tag(soup: BeautifulSoup, tag: Tag, name: str) -> Tag:
    """Replace tag by a `name` element with the same attributes and children."""
    if tag.name == name:
        return tag
    attrs = {k: (list(v) if isinstance(v, list) else v) for k, v in tag.attrs.items()}
    new = soup.new_tag(name, attrs=attrs)
    for child in list(tag.contents):
        new.append(child.extract())
    tag.replace_with(new)
    return new


def find_slides(soup: BeautifulSoup) -> list[Tag]:
    """All slide containers in document order, SECTIONs turned into DIVs."""
    for section in soup.find_all("section", class_=SLIDE_CLASS):
        rename_tag(soup, section, "div")
    return soup.find_all("div", class_=SLIDE_CLASS)


def _unique_id(candidate: str, used: set) -> str:
    if candidate not in used:
        return candidate
    n = 2
    while f"{candidate}-{n}" in used:
        n += 1
    return f"{candidate}-{n}"


def annotate_slides(soup: BeautifulSoup, tags: list[Tag]) -> list[SlideNode]:
    """Give each slide ARIA attributes and an id; mark the first one active.

    Ids the author wrote are kept. Generated ids ("slide-<i>") are made
    unique against every id in the document.
    """
    used = {t["id"] for t in soup.find_all(id=True)}
    total = len(tags)
    slides = []
    for i, tag in enumerate(tags):
        node = SlideNode(tag, i, total)
        tag["role"] = "region"
        tag["aria-label"] = node.label
        if not tag.get("id"):
            tag["id"] = _unique_id(f"slide-{i}", used)
            used.add(tag["id"])
        slides.append(node)

    if slides:
        classes = slides[0].element.get("class", [])
        if ACTIVE_CLASS not in classes:
            slides[0].element["class"] = classes + [ACTIVE_CLASS]
    return slides


def find_transcript_blocks(soup: BeautifulSoup) -> list[TranscriptBlock]:
    body = soup.body
    if body is None:
        return []
    return [TranscriptBlock(div, i) for i, div in enumerate(body.find_all("div", recursive=False))]


def merge(slides: list, blocks: list) -> list[Union[SlideNode, TranscriptBlock]]:
    """Interleave by position: slide 0, block 0, slide 1, block 1, ...

    When one side is longer, its remaining items follow at the end.
    """
    merged = []
    i = 0
    while i < len(slides) or i < len(blocks):
        if i < len(slides):
            merged.append(slides[i])
        if i < len(blocks):
            merged.append(blocks[i])
        i += 1
    return merged


def merged_html(items: list) -> str:
    return "".join(str(item.element) + "\n\n" for item in items)


def collect_sync_elements(slides: list[SlideNode]) -> list[SyncElement]:
    """Flatten the slides and their incremental reveal steps, in document order."""
    elements = []
    for slide in slides:
        elements.append(SyncElement(len(elements), True, slide.id, slide.label))
        for step in slide.element.find_all(class_=REVEAL_CLASS):
            elements.append(SyncElement(len(elements), False, step.get("id")))
    return elements


@dataclass
class SlideDeck:
    soup: BeautifulSoup
    slides: list[SlideNode] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)  # Rescoped STYLE elements, as HTML
    sync_elements: list[SyncElement] = field(default_factory=list)

    @property
    def reveal_count(self) -> int:
        return sum(1 for e in self.sync_elements if not e.is_slide)


def prepare_slide_deck(text: str, slides_url: str, page_base: str = PAGE_BASE,
                       scope_selector: str = SCOPE_SELECTOR) -> SlideDeck:
    """Parse a slide deck and get it ready to be merged into the talk page."""
    soup = parse_html(text)
    make_links_absolute(soup, slides_url, page_base)
    slides = annotate_slides(soup, find_slides(soup))

    # The slide author's style rules must only apply inside the slides
    base = resolve(slides_url, page_base)
    styles = []
    for style in soup.find_all("style"):
        css = "".join(str(c) for c in style.contents)
        style.string = "\n" + scope_style_sheet(css, scope_selector, base) + "\n"
        styles.append(str(style))

    return SlideDeck(soup, slides, styles, collect_sync_elements(slides))


def prepare_transcript(text: str, transcript_url: str,
                       page_base: str = PAGE_BASE) -> list[TranscriptBlock]:
    soup = parse_html(text)
    make_links_absolute(soup, transcript_url, page_base)
    return find_transcript_blocks(soup)
