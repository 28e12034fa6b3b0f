"""Tests for document.py — slide annotation, link rewriting and merging."""

from talk_sync.document import (
    SlideNode,
    TranscriptBlock,
    annotate_slides,
    collect_sync_elements,
    find_slides,
    find_transcript_blocks,
    make_links_absolute,
    merge,
    merged_html,
    parse_html,
    prepare_slide_deck,
    prepare_transcript,
    rename_tag,
)
from talk_sync.shared import EMPTY_TRANSCRIPT_HTML, NO_SLIDES_HTML

SLIDES_URL = "http://h/talks/slides.html"

SLIDES = """<!DOCTYPE html>
<html>
<head>
<style>
h1 {color: red}
.bg {background: url(img/bg.png)}
</style>
</head>
<body>
<section class="slide" id="intro"><h1>Hello</h1><p class="next">one</p></section>
<div class="slide"><a href="notes.html">notes</a><img src="/pic.png">
  <p class="next">two</p><p class="next">three</p></div>
<div class="slider" id="slide-1">not a slide</div>
<div class="slide" id="slide-2">third</div>
</body>
</html>
"""

TRANSCRIPT = """<html><body>
<div><p>First part. <a href="#t2">later</a></p></div>
<p>stray paragraph</p>
<div>Second part.<div>nested</div></div>
</body></html>
"""


# ---------------------------------------------------------------------------
# rename_tag / find_slides
# ---------------------------------------------------------------------------

class TestRenameTag:
    def test_section_to_div(self):
        soup = parse_html('<body><section class="slide a" data-x="1"><p>t</p></section></body>')
        new = rename_tag(soup, soup.section, "div")
        assert soup.section is None
        assert new.name == "div"
        assert new["class"] == ["slide", "a"]
        assert new["data-x"] == "1"
        assert new.p.get_text() == "t"
        assert new.parent.name == "body"

    def test_keeps_position(self):
        soup = parse_html("<body><p>a</p><section>b</section><p>c</p></body>")
        rename_tag(soup, soup.section, "div")
        assert [t.name for t in soup.body.children] == ["p", "div", "p"]

    def test_same_name_returns_tag(self):
        soup = parse_html("<body><div>x</div></body>")
        tag = soup.div
        assert rename_tag(soup, tag, "div") is tag


class TestFindSlides:
    def test_sections_and_divs_in_order(self):
        soup = parse_html(SLIDES)
        slides = find_slides(soup)
        assert [s.name for s in slides] == ["div", "div", "div"]
        assert slides[0]["id"] == "intro"
        assert slides[2]["id"] == "slide-2"

    def test_class_token_must_match_exactly(self):
        soup = parse_html('<div class="slider">a</div><div class="big slide">b</div>')
        slides = find_slides(soup)
        assert [s.get_text() for s in slides] == ["b"]

    def test_no_slides(self):
        assert find_slides(parse_html("<p>nothing</p>")) == []


# ---------------------------------------------------------------------------
# annotate_slides
# ---------------------------------------------------------------------------

class TestAnnotateSlides:
    def test_aria_attributes(self):
        soup = parse_html(SLIDES)
        slides = annotate_slides(soup, find_slides(soup))
        assert [s.label for s in slides] == ["Slide 1 of 3", "Slide 2 of 3", "Slide 3 of 3"]
        for s in slides:
            assert s.element["role"] == "region"
            assert s.element["aria-label"] == s.label

    def test_author_ids_kept(self):
        soup = parse_html(SLIDES)
        slides = annotate_slides(soup, find_slides(soup))
        assert slides[0].id == "intro"
        assert slides[2].id == "slide-2"

    def test_generated_id_is_unique(self):
        soup = parse_html(SLIDES)
        slides = annotate_slides(soup, find_slides(soup))
        # slide-1 is taken by another element
        assert slides[1].id == "slide-1-2"
        ids = [t["id"] for t in soup.find_all(id=True)]
        assert len(ids) == len(set(ids))

    def test_generated_ids(self):
        soup = parse_html('<div class="slide">a</div><div class="slide">b</div>')
        slides = annotate_slides(soup, find_slides(soup))
        assert [s.id for s in slides] == ["slide-0", "slide-1"]

    def test_only_first_active(self):
        soup = parse_html(SLIDES)
        slides = annotate_slides(soup, find_slides(soup))
        assert [s.is_active for s in slides] == [True, False, False]
        assert slides[0].element["class"] == ["slide", "active"]

    def test_no_slides(self):
        soup = parse_html("<p>x</p>")
        assert annotate_slides(soup, []) == []


# ---------------------------------------------------------------------------
# make_links_absolute
# ---------------------------------------------------------------------------

class TestMakeLinksAbsolute:
    def test_absolute_source(self):
        soup = parse_html('<a href="notes.html">n</a><img src="/pic.png">')
        make_links_absolute(soup, SLIDES_URL, "../")
        assert soup.a["href"] == "http://h/talks/notes.html"
        assert soup.img["src"] == "http://h/pic.png"

    def test_relative_source(self):
        soup = parse_html('<img src="img/a.png"><a href="#x">x</a>')
        make_links_absolute(soup, "slides.html", "../")
        assert soup.img["src"] == "../img/a.png"
        assert soup.a["href"] == "../slides.html#x"

    def test_absolute_links_untouched(self):
        soup = parse_html('<a href="https://www.w3.org/">w3</a>')
        make_links_absolute(soup, SLIDES_URL, "../")
        assert soup.a["href"] == "https://www.w3.org/"


# ---------------------------------------------------------------------------
# find_transcript_blocks / merge
# ---------------------------------------------------------------------------

class TestFindTranscriptBlocks:
    def test_top_level_divs_only(self):
        blocks = find_transcript_blocks(parse_html(TRANSCRIPT))
        assert len(blocks) == 2
        assert blocks[0].element.get_text().startswith("First part.")
        assert blocks[1].element.get_text().startswith("Second part.")
        assert [b.index for b in blocks] == [0, 1]

    def test_empty_document(self):
        assert find_transcript_blocks(parse_html(EMPTY_TRANSCRIPT_HTML)) == []
        assert find_transcript_blocks(parse_html("")) == []


class TestMerge:
    def test_more_slides(self):
        assert merge(["s0", "s1", "s2"], ["t0"]) == ["s0", "t0", "s1", "s2"]

    def test_more_blocks(self):
        assert merge(["s0"], ["t0", "t1", "t2"]) == ["s0", "t0", "t1", "t2"]

    def test_equal(self):
        assert merge(["s0", "s1"], ["t0", "t1"]) == ["s0", "t0", "s1", "t1"]

    def test_no_slides(self):
        assert merge([], ["t0", "t1"]) == ["t0", "t1"]

    def test_empty(self):
        assert merge([], []) == []

    def test_merged_html(self):
        soup = parse_html('<div class="slide">a</div><div>b</div>')
        slide, block = soup.find_all("div")
        html = merged_html([SlideNode(slide, 0, 1), TranscriptBlock(block, 0)])
        assert html == '<div class="slide">a</div>\n\n<div>b</div>\n\n'


# ---------------------------------------------------------------------------
# collect_sync_elements / prepare_slide_deck / prepare_transcript
# ---------------------------------------------------------------------------

class TestCollectSyncElements:
    def test_slides_and_reveal_steps(self):
        soup = parse_html(SLIDES)
        slides = annotate_slides(soup, find_slides(soup))
        elements = collect_sync_elements(slides)
        assert [e.is_slide for e in elements] == [True, False, True, False, False, True]
        assert [e.index for e in elements] == list(range(6))
        assert elements[0].element_id == "intro"
        assert elements[0].label == "Slide 1 of 3"
        assert elements[5].label == "Slide 3 of 3"

    def test_empty(self):
        assert collect_sync_elements([]) == []


class TestPrepareSlideDeck:
    def test_deck(self):
        deck = prepare_slide_deck(SLIDES, SLIDES_URL, "../", "#slides")
        assert len(deck.slides) == 3
        assert deck.reveal_count == 3
        assert len(deck.sync_elements) == 6

    def test_styles_rescoped(self):
        deck = prepare_slide_deck(SLIDES, SLIDES_URL, "../", "#slides")
        assert len(deck.styles) == 1
        style = deck.styles[0]
        assert style.startswith("<style>")
        assert "#slides h1 {color: red}" in style
        assert "#slides .bg {background: url(http://h/talks/img/bg.png)}" in style

    def test_style_with_child_combinator_not_escaped(self):
        deck = prepare_slide_deck("<style>ul > li {x: y}</style><div class=slide>a</div>",
                                  SLIDES_URL, "../", "#slides")
        assert "#slides ul > li {x: y}" in deck.styles[0]

    def test_links_rewritten(self):
        deck = prepare_slide_deck(SLIDES, SLIDES_URL, "../", "#slides")
        second = deck.slides[1].element
        assert second.a["href"] == "http://h/talks/notes.html"

    def test_placeholder(self):
        deck = prepare_slide_deck(NO_SLIDES_HTML, "", "../", "#slides")
        assert len(deck.slides) == 1
        assert deck.slides[0].element.get_text() == "(No slides yet)"
        assert deck.slides[0].label == "Slide 1 of 1"


class TestPrepareTranscript:
    def test_blocks_with_links(self):
        blocks = prepare_transcript(TRANSCRIPT, "http://h/talks/i18n.html", "../")
        assert len(blocks) == 2
        assert blocks[0].element.a["href"] == "http://h/talks/i18n.html#t2"
