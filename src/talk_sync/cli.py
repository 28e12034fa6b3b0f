"""Command-line front end for talk-sync.

Subcommands:
    render  — Build the synchronized page for one talk
    list    — Show the talks in a catalog
    replay  — Drive the sync engine with playback positions and show its state
"""

import argparse
import functools
import sys
from pathlib import Path

from talk_sync import __version__
from talk_sync.captions import load_captions
from talk_sync.catalog import TalkNotFoundError, load_catalog
from talk_sync.page import build_talk_page, render_page
from talk_sync.shared import (
    tprint as print,
    PAGE_BASE, TalkConfig, _save_json, fetch_text,
)
from talk_sync.sync import (
    Announce, ClearCue, Seek, ShowCue, ShowMessage, ShowNextTalk,
)


def describe_effect(effect) -> str:
    """One line for an engine effect."""
    if isinstance(effect, Announce):
        return f"show {effect.label} (#{effect.element_id})"
    if isinstance(effect, Seek):
        return f"seek to {effect.time:g}s"
    if isinstance(effect, ShowCue):
        return f"cue [{effect.language}] {effect.text!r}"
    if isinstance(effect, ClearCue):
        return "clear cue"
    if isinstance(effect, ShowMessage):
        return effect.text
    if isinstance(effect, ShowNextTalk):
        return f"next talk: {effect.title} ({effect.key})"
    return repr(effect)


def _config_from_args(args) -> TalkConfig:
    output = getattr(args, "output", None)
    return TalkConfig(
        catalog_path=Path(args.catalog),
        output=Path(output) if output else None,
        page_base=getattr(args, "page_base", PAGE_BASE),
        cuelang=getattr(args, "cuelang", None),
        sync=getattr(args, "sync", False),
        fetch_timeout=getattr(args, "timeout", 30.0),
        verbose=getattr(args, "verbose", False),
    )


def render_command(args, config: TalkConfig):
    catalog = load_catalog(config.catalog_path)
    talk = catalog.lookup(args.key)
    page = build_talk_page(talk, catalog, config)

    output = config.output or Path(f"{talk.key}.html")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_page(page), encoding="utf-8")
    print(f"Page written: {output}")


def list_command(args, config: TalkConfig):
    catalog = load_catalog(config.catalog_path)
    print(f"{len(catalog)} talks in {config.catalog_path}")
    for talk in catalog:
        kind = talk.player_kind or "no player"
        langs = ", ".join(talk.captions) or "no captions"
        print(f"  {talk.key}: {talk.title} by {talk.presenter} ({talk.duration or '?'}, {kind}; {langs})")


def replay_command(args, config: TalkConfig):
    catalog = load_catalog(config.catalog_path)
    talk = catalog.lookup(args.key)
    page = build_talk_page(talk, catalog, config)
    engine = page.engine(args.lang)
    trace = []

    def record(event, effects):
        lines = [describe_effect(e) for e in effects]
        for line in lines:
            print(f"  {line}")
        trace.append({
            "event": event,
            "element": engine.current,
            "slide": engine.current_slide,
            "cue": engine.current_cue,
            "effects": lines,
        })

    print("[4] Loading captions...")
    fetch = functools.partial(fetch_text, base_dir=config.base_dir, timeout=config.fetch_timeout)
    load_captions(
        dict(talk.captions), fetch,
        on_loaded=lambda lang, track: record(f"captions {lang}", engine.add_captions(lang, track)),
        max_workers=config.max_workers, verbose=config.verbose,
    )

    print(f"[5] Replaying {len(args.at)} positions ({engine.selected_language})...")
    for t in args.at:
        effects = engine.report_position(t)
        slide = engine.active_slide
        cue = engine.active_cue
        print(f"t={t:g}: element {engine.current}, {slide.label if slide else 'no slides'}, "
              f"cue {cue.text if cue else '-'!r}")
        record(f"position {t:g}", effects)

    if args.ended:
        record("ended", engine.playback_ended())

    if args.trace:
        _save_json(Path(args.trace), trace)
        print(f"Trace written: {args.trace}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="talk-sync",
        description="Build pages that keep slides and captions in sync with a talk recording",
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- render ---
    render_parser = subparsers.add_parser("render", help="Build the page for one talk")
    render_parser.add_argument("key", help="Key of the talk in the catalog")
    render_parser.add_argument("--catalog", required=True, help="Path to the catalog JSON file")
    render_parser.add_argument("-o", "--output", default=None,
                               help="Output HTML file (default: <key>.html)")
    render_parser.add_argument("--cuelang", default=None,
                               help="Caption language selected when the page opens (x-none for none)")
    render_parser.add_argument("--sync", action="store_true",
                               help="Check the sync box when the page opens")
    render_parser.add_argument("--page-base", default=PAGE_BASE,
                               help=f"Location of the page relative to its sources (default: {PAGE_BASE})")
    render_parser.add_argument("--timeout", type=float, default=30.0,
                               help="Seconds to wait for each remote source (default: 30)")
    render_parser.add_argument("-v", "--verbose", action="store_true")

    # --- list ---
    list_parser = subparsers.add_parser("list", help="List the talks in a catalog")
    list_parser.add_argument("--catalog", required=True, help="Path to the catalog JSON file")

    # --- replay ---
    replay_parser = subparsers.add_parser(
        "replay", help="Feed playback positions to the sync engine and print its state"
    )
    replay_parser.add_argument("key", help="Key of the talk in the catalog")
    replay_parser.add_argument("--catalog", required=True, help="Path to the catalog JSON file")
    replay_parser.add_argument("--at", type=float, action="append", required=True,
                               help="Playback position in seconds (repeatable)")
    replay_parser.add_argument("--lang", default=None,
                               help="Caption language (default: the first one of the talk)")
    replay_parser.add_argument("--ended", action="store_true",
                               help="End playback after the last position")
    replay_parser.add_argument("--trace", default=None,
                               help="Write every event and its effects to this JSON file")
    replay_parser.add_argument("--page-base", default=PAGE_BASE)
    replay_parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)
    config = _config_from_args(args)

    try:
        if args.command == "render":
            render_command(args, config)
        elif args.command == "list":
            list_command(args, config)
        elif args.command == "replay":
            replay_command(args, config)
    except TalkNotFoundError as e:
        print(str(e))
        sys.exit(1)
    except Exception as e:
        print()
        print(f"Error: {e}")
        if config.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
