#!/usr/bin/env python3
"""
mdx_presenter.py

Single-file local web app (Flask) that presents a markdown document as slides
with step-by-step reveal.

Features:
- Load .md/.markdown/.txt files, pasted text, or PDF/EPUB (text extracted)
- Slides split on standalone horizontal rules and level-1/level-2 headings
- Each slide partitioned into revealable segments (heading, text, code,
  list item, image, table), revealed one at a time
- Keyboard, click and mouse-wheel/touch-pad navigation
- Wheel gestures coalesced so one flick reveals exactly one segment
- Per-slide progress indicator, page indicator, slide list menu
- Background gradient themes, adjustable font size, code block theme
- Segments rendered server-side with markdown-it (raw HTML disabled)
"""

from __future__ import annotations

import argparse
import html
import logging
import math
import os
import re
import tempfile
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub
from flask import Flask, jsonify, render_template_string, request
from markdown_it import MarkdownIt
from pypdf import PdfReader

logger = logging.getLogger(__name__)


# ============================================================
# Function List (explicit to help preserve all functions)
# ============================================================
# normalize_newlines
# normalize_whitespace
# split_sections
# split_slides
# segment_content
# segment_document
# render_segment
# render_fallback
# extract_text_from_pdf
# extract_text_from_epub
# read_text_file
# extract_text_from_file
# allowed_file
# index
# api_state
# api_load
# api_input
# api_slide
# api_settings
# main

DEFAULT_SLIDE_TITLE = "Untitled"

KIND_HEADING = "heading"
KIND_TEXT = "text"
KIND_CODE = "code"
KIND_LIST_ITEM = "listItem"
KIND_IMAGE = "image"
KIND_TABLE = "table"
SEGMENT_KINDS = (KIND_HEADING, KIND_TEXT, KIND_CODE, KIND_LIST_ITEM, KIND_IMAGE, KIND_TABLE)

RULE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")
SLIDE_HEADING_RE = re.compile(r"^\s{0,3}#{1,2}\s+(\S.*?)(?:\s+#+)?\s*$")
HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s")
FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+")
LIST_CONTINUATION_RE = re.compile(r"^(?: {2,}|\t)\S")
IMAGE_RE = re.compile(r"^\s*!\[[^\]]*\]\([^)]*\)\s*$")
TABLE_DELIMITER_RE = re.compile(r"[|\-:\s]")


# -------------------------------
# Document model
# -------------------------------
@dataclass(frozen=True)
class Segment:
    id: str
    kind: str
    content: str
    # Reveal state at creation; runtime visibility lives in RevealStore.
    visible: bool = False


@dataclass(frozen=True)
class Slide:
    id: str
    title: str
    raw_content: str
    segments: Tuple[Segment, ...] = ()


# -------------------------------
# Segmentation
# -------------------------------
def normalize_newlines(text: str) -> str:
    if not text:
        return ""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_whitespace(text: str) -> str:
    if not text:
        return ""
    text = normalize_newlines(text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n[ \t]+", "\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _closes_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(fence) and not stripped.strip(fence[0])


def _scan_fences(lines: Sequence[str]) -> Iterator[Tuple[str, bool]]:
    """Yield ``(line, fenced)`` pairs. Fence lines themselves count as fenced."""
    fence: Optional[str] = None
    for line in lines:
        if fence is not None:
            if _closes_fence(line, fence):
                fence = None
            yield line, True
            continue
        m = FENCE_RE.match(line)
        if m:
            fence = m.group(1)
            yield line, True
        else:
            yield line, False


def _is_blank(lines: Sequence[str], i: int) -> bool:
    return i < 0 or i >= len(lines) or not lines[i].strip()


def split_sections(lines: Sequence[str]) -> List[List[str]]:
    """Split lines at horizontal rules that stand alone between blank lines."""
    sections: List[List[str]] = [[]]
    for i, (line, fenced) in enumerate(_scan_fences(lines)):
        if not fenced and RULE_RE.match(line) and _is_blank(lines, i - 1) and _is_blank(lines, i + 1):
            sections.append([])
            continue
        sections[-1].append(line)
    return sections


def split_slides(lines: Sequence[str]) -> List[Tuple[str, List[str]]]:
    """
    Split one section at level-1/level-2 headings.

    Each heading opens a slide titled with the heading text and keeps the
    heading line as its first line. Lines before the first heading form an
    untitled slide. Whitespace-only slides are dropped.
    """
    slides: List[Tuple[str, List[str]]] = [("", [])]
    for line, fenced in _scan_fences(lines):
        m = None if fenced else SLIDE_HEADING_RE.match(line)
        if m:
            slides.append((m.group(1).strip(), [line]))
        else:
            slides[-1][1].append(line)
    return [(title, body) for title, body in slides if "\n".join(body).strip()]


def _starts_table(lines: Sequence[str], i: int) -> bool:
    if "|" not in lines[i] or i + 1 >= len(lines):
        return False
    delimiter = lines[i + 1]
    return "|" in delimiter and not TABLE_DELIMITER_RE.sub("", delimiter)


def segment_content(content: str) -> List[Segment]:
    """Partition one slide's content into ordered, typed segments."""
    lines = normalize_newlines(content).split("\n")
    n = len(lines)
    blocks: List[Tuple[str, List[str]]] = []
    i = 0

    while i < n:
        line = lines[i]
        if not line.strip():
            i += 1
            continue

        fence = FENCE_RE.match(line)
        if fence:
            end = i + 1
            while end < n and not _closes_fence(lines[end], fence.group(1)):
                end += 1
            end = min(end + 1, n)
            blocks.append((KIND_CODE, lines[i:end]))
            i = end
            continue

        if _starts_table(lines, i):
            end = i + 2
            while end < n and "|" in lines[end] and lines[end].strip():
                end += 1
            blocks.append((KIND_TABLE, lines[i:end]))
            i = end
            continue

        if HEADING_RE.match(line):
            blocks.append((KIND_HEADING, [line]))
            i += 1
            continue

        if LIST_ITEM_RE.match(line):
            end = i + 1
            while end < n and LIST_CONTINUATION_RE.match(lines[end]):
                end += 1
            blocks.append((KIND_LIST_ITEM, lines[i:end]))
            i = end
            continue

        kind = KIND_IMAGE if IMAGE_RE.match(line) else KIND_TEXT
        blocks.append((kind, [line]))
        i += 1

    return [
        Segment(id=f"segment-{k}", kind=kind, content="\n".join(body), visible=(k == 1))
        for k, (kind, body) in enumerate(blocks, start=1)
    ]


def segment_document(document: str) -> List[Slide]:
    """
    Partition a document into slides, each holding its ordered segments.

    Never fails: a document without rules or level-1/level-2 headings becomes
    one slide titled ``DEFAULT_SLIDE_TITLE`` and an empty or whitespace-only
    document yields no slides at all.
    """
    text = normalize_newlines(document or "")
    if not text.strip():
        return []

    lines = text.split("\n")
    sections = split_sections(lines)
    has_heading = any(
        not fenced and SLIDE_HEADING_RE.match(line) for line, fenced in _scan_fences(lines)
    )

    parts: List[Tuple[str, str]] = []
    if len(sections) == 1 and not has_heading:
        parts.append((DEFAULT_SLIDE_TITLE, text.strip("\n")))
    else:
        for section in sections:
            for title, body in split_slides(section):
                parts.append((title, "\n".join(body).strip("\n")))

    slides = [
        Slide(
            id=f"slide-{n}",
            title=title,
            raw_content=content,
            segments=tuple(segment_content(content)),
        )
        for n, (title, content) in enumerate(parts, start=1)
    ]
    logger.debug(
        "Segmented %d chars into %d slide(s), %d segment(s)",
        len(text),
        len(slides),
        sum(len(s.segments) for s in slides),
    )
    return slides


# -------------------------------
# Reveal / navigation state
# -------------------------------
StateListener = Callable[["RevealStore"], None]


def _initial_visibility(count: int) -> List[bool]:
    return [k == 0 for k in range(count)]


def _percent(part: int, whole: int) -> int:
    # Halves round up (12.5 -> 13) rather than to even.
    return int(math.floor(part * 100 / whole + 0.5))


class RevealStore:
    """
    Active slide index plus one visibility vector per slide.

    Visibility only ever changes through ``go_to_slide`` (reset of the
    destination slide) and ``reveal_next`` (lowest hidden segment becomes
    visible), so every vector stays contiguous: visible segments always form
    a prefix.
    """

    def __init__(self, slides: Sequence[Slide] = ()) -> None:
        self._slides: Tuple[Slide, ...] = ()
        self._visibility: Dict[str, List[bool]] = {}
        self._current = 0
        self._listeners: List[StateListener] = []
        self.reset(slides)

    def reset(self, slides: Sequence[Slide]) -> None:
        """Replace every slide and all reveal state."""
        self._slides = tuple(slides)
        self._visibility = {s.id: _initial_visibility(len(s.segments)) for s in self._slides}
        self._current = 0
        self._notify()

    @property
    def slides(self) -> Tuple[Slide, ...]:
        return self._slides

    @property
    def current_slide_index(self) -> int:
        return self._current

    @property
    def total_slides(self) -> int:
        return len(self._slides)

    @property
    def current_slide(self) -> Optional[Slide]:
        if not self._slides:
            return None
        return self._slides[self._current]

    def visibility(self, slide_id: str) -> Tuple[bool, ...]:
        return tuple(self._visibility.get(slide_id, ()))

    def go_to_slide(self, target: int) -> bool:
        """Clamp ``target`` and activate it. Returns True if the slide changed."""
        if not self._slides:
            return False
        target = max(0, min(int(target), len(self._slides) - 1))
        if target == self._current:
            return False
        slide = self._slides[target]
        self._visibility[slide.id] = _initial_visibility(len(slide.segments))
        self._current = target
        logger.debug("Slide %d/%d active", target + 1, len(self._slides))
        self._notify()
        return True

    def next_slide(self) -> bool:
        return self.go_to_slide(self._current + 1)

    def previous_slide(self) -> bool:
        return self.go_to_slide(self._current - 1)

    def reveal_next(self) -> bool:
        """Reveal the lowest-index hidden segment of the current slide."""
        slide = self.current_slide
        if slide is None:
            return False
        vector = self._visibility[slide.id]
        try:
            index = vector.index(False)
        except ValueError:
            return False
        vector[index] = True
        self._notify()
        return True

    def has_hidden_segments(self) -> bool:
        slide = self.current_slide
        return slide is not None and False in self._visibility[slide.id]

    def progress(self) -> int:
        slide = self.current_slide
        if slide is None:
            return 100
        vector = self._visibility[slide.id]
        if not vector:
            return 100
        return _percent(sum(vector), len(vector))

    def subscribe(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def snapshot(self) -> dict:
        slides = []
        for slide in self._slides:
            vector = self._visibility[slide.id]
            slides.append(
                {
                    "id": slide.id,
                    "title": slide.title,
                    "segments": [
                        {"id": seg.id, "kind": seg.kind, "visible": vector[k]}
                        for k, seg in enumerate(slide.segments)
                    ],
                }
            )
        return {
            "currentSlideIndex": self._current,
            "totalSlides": len(self._slides),
            "progress": self.progress(),
            "hasHiddenSegments": self.has_hidden_segments(),
            "slides": slides,
        }


# -------------------------------
# Wheel coalescing
# -------------------------------
WHEEL_IGNORED = "ignored"
WHEEL_CONSUMED = "consumed"
WHEEL_TRIGGERED = "triggered"


@dataclass(frozen=True)
class WheelConfig:
    threshold: float = 200.0
    idle_reset_ms: float = 300.0
    cooldown_ms: float = 500.0

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self.threshold}")
        if self.idle_reset_ms < 0 or self.cooldown_ms < 0:
            raise ValueError("idle_reset_ms and cooldown_ms must not be negative")


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class WheelCoalescer:
    """
    Turns a stream of wheel deltas into discrete ``reveal_next`` calls.

    Positive deltas are forward (content scrolling down). ``handle`` returns
    ``WHEEL_IGNORED`` when the event should fall through to native scrolling;
    any other outcome means the host must suppress the default scroll, even
    when nothing was revealed yet.
    """

    def __init__(
        self,
        store: RevealStore,
        config: Optional[WheelConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = store
        self.config = config or WheelConfig()
        self._clock = clock or _monotonic_ms
        self.reset()

    def reset(self) -> None:
        self.accumulated = 0.0
        self.last_event_at: Optional[float] = None
        self.last_trigger_at: Optional[float] = None

    def handle(self, delta: float, now: Optional[float] = None) -> str:
        if delta <= 0 or not self.store.has_hidden_segments():
            return WHEEL_IGNORED

        if now is None:
            now = self._clock()
        # Timestamps from an earlier clock (e.g. a reloaded page) start over.
        if (self.last_event_at is not None and now < self.last_event_at) or (
            self.last_trigger_at is not None and now < self.last_trigger_at
        ):
            self.reset()

        cfg = self.config
        if self.last_trigger_at is not None and now - self.last_trigger_at < cfg.cooldown_ms:
            return WHEEL_CONSUMED

        if self.last_event_at is None or now - self.last_event_at > cfg.idle_reset_ms:
            self.accumulated = 0.0
        self.accumulated += abs(delta)
        self.last_event_at = now

        if self.accumulated >= cfg.threshold:
            self.store.reveal_next()
            self.accumulated = 0.0
            self.last_trigger_at = now
            return WHEEL_TRIGGERED
        return WHEEL_CONSUMED


# -------------------------------
# Input routing
# -------------------------------
INTENT_NEXT = "next"
INTENT_PREVIOUS = "previous"
INTENT_ADVANCE = "advance"
INTENT_FIRST = "first"
INTENT_LAST = "last"
INTENTS = (INTENT_NEXT, INTENT_PREVIOUS, INTENT_ADVANCE, INTENT_FIRST, INTENT_LAST)

DEFAULT_KEY_BINDINGS: Dict[str, str] = {
    "ArrowRight": INTENT_NEXT,
    "PageDown": INTENT_NEXT,
    "l": INTENT_NEXT,
    "ArrowLeft": INTENT_PREVIOUS,
    "PageUp": INTENT_PREVIOUS,
    "h": INTENT_PREVIOUS,
    " ": INTENT_ADVANCE,
    "Enter": INTENT_ADVANCE,
    "ArrowDown": INTENT_ADVANCE,
    "j": INTENT_ADVANCE,
    "Home": INTENT_FIRST,
    "End": INTENT_LAST,
}


class InputRouter:
    """Maps keyboard, click and wheel input onto store transitions."""

    def __init__(
        self,
        store: RevealStore,
        coalescer: WheelCoalescer,
        key_bindings: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.store = store
        self.coalescer = coalescer
        self.key_bindings = dict(DEFAULT_KEY_BINDINGS if key_bindings is None else key_bindings)
        unknown = set(self.key_bindings.values()) - set(INTENTS)
        if unknown:
            raise ValueError(f"Unknown intent(s) in key bindings: {sorted(unknown)}")

    def dispatch(self, intent: str) -> bool:
        """Apply one intent. Returns True if the state changed."""
        if intent == INTENT_NEXT:
            return self.store.next_slide()
        if intent == INTENT_PREVIOUS:
            return self.store.previous_slide()
        if intent == INTENT_ADVANCE:
            # Fully revealed slides hand over to the next slide.
            return self.store.reveal_next() or self.store.next_slide()
        if intent == INTENT_FIRST:
            return self.store.go_to_slide(0)
        if intent == INTENT_LAST:
            return self.store.go_to_slide(self.store.total_slides - 1)
        raise ValueError(f"Unknown intent: {intent}")

    def handle_key(self, key: str) -> Optional[str]:
        """Dispatch the intent bound to ``key``; returns it, or None if unbound."""
        intent = self.key_bindings.get(key)
        if intent is None and len(key) == 1:
            intent = self.key_bindings.get(key.lower())
        if intent is None:
            return None
        self.dispatch(intent)
        return intent

    def handle_click(self) -> bool:
        return self.dispatch(INTENT_ADVANCE)

    def handle_wheel(self, delta: float, timestamp: Optional[float] = None) -> str:
        return self.coalescer.handle(delta, timestamp)


# -------------------------------
# Segment rendering
# -------------------------------
_MARKDOWN = MarkdownIt("commonmark", {"html": False}).enable(["table", "strikethrough"])


def render_fallback(content: str) -> str:
    return f'<pre class="segment-fallback">{html.escape(content)}</pre>'


@lru_cache(maxsize=4096)
def render_segment(content: str) -> str:
    """Render one segment's markdown to HTML. Never raises."""
    try:
        return _MARKDOWN.render(content)
    except Exception as e:
        logger.warning("Rendering failed, showing literal content: %s", e)
        return render_fallback(content)


# -------------------------------
# Presentation settings
# -------------------------------
THEME_GRADIENTS = (
    "linear-gradient(135deg, #74A5FF, #CEFF7E)",
    "linear-gradient(135deg, #FF74A4, #7ECEFF)",
    "linear-gradient(135deg, #A474FF, #FFE97E)",
    "linear-gradient(135deg, #74FFD1, #7E84FF)",
    "linear-gradient(135deg, #FF9D74, #7EFFD4)",
    "linear-gradient(135deg, #74FFAE, #FF7E7E)",
    "linear-gradient(135deg, #FF768D, #AEFFF8)",
    "linear-gradient(135deg, #8274FF, #FFEF72)",
    "linear-gradient(135deg, #D874FF, #FFCE72)",
    "linear-gradient(135deg, #FF74B7, #72FFBD)",
    "linear-gradient(135deg, #FF7476, #8DCCFF)",
    "linear-gradient(135deg, #FFAE5E, #85FBFF)",
    "linear-gradient(135deg, #56D413, #CBACFF)",
    "linear-gradient(135deg, #226EE0, #75FF9E)",
)
CODE_THEMES = ("normal", "dark", "light")
FONT_SIZE_MIN = 16
FONT_SIZE_MAX = 64
FONT_SIZE_PRESETS = {"small": 24, "medium": 42, "large": 58}


@dataclass(frozen=True)
class PresenterSettings:
    theme: str = THEME_GRADIENTS[0]
    font_size: int = 36
    code_theme: str = "normal"

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, object], base: Optional["PresenterSettings"] = None
    ) -> "PresenterSettings":
        """Build settings from client JSON; bad fields keep the ``base`` value."""
        base = base or cls()

        theme = data.get("theme", base.theme)
        if theme not in THEME_GRADIENTS:
            logger.debug("Ignoring unknown theme %r", theme)
            theme = base.theme

        font_size = data.get("fontSize", base.font_size)
        if isinstance(font_size, str) and font_size in FONT_SIZE_PRESETS:
            font_size = FONT_SIZE_PRESETS[font_size]
        try:
            font_size = int(font_size)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            logger.debug("Ignoring invalid font size %r", font_size)
            font_size = base.font_size
        font_size = max(FONT_SIZE_MIN, min(font_size, FONT_SIZE_MAX))

        code_theme = data.get("codeTheme", base.code_theme)
        if code_theme not in CODE_THEMES:
            code_theme = base.code_theme

        return cls(theme=str(theme), font_size=font_size, code_theme=str(code_theme))

    def update(self, data: Mapping[str, object]) -> "PresenterSettings":
        return PresenterSettings.from_mapping(data, base=self)

    def to_dict(self) -> dict:
        return {"theme": self.theme, "fontSize": self.font_size, "codeTheme": self.code_theme}


# -------------------------------
# Presenter facade
# -------------------------------
class Presenter:
    """Owns one slide tree together with its reveal, wheel and input state."""

    def __init__(
        self,
        wheel_config: Optional[WheelConfig] = None,
        settings: Optional[PresenterSettings] = None,
        renderer: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = RevealStore()
        self.coalescer = WheelCoalescer(self.store, wheel_config, clock=clock)
        self.router = InputRouter(self.store, self.coalescer)
        self.settings = settings or PresenterSettings()
        self.renderer = renderer or render_segment
        self.source: Optional[str] = None

    @property
    def slides(self) -> Tuple[Slide, ...]:
        return self.store.slides

    def load_document(self, text: str, source: Optional[str] = None) -> List[Slide]:
        """Re-segment ``text``, discarding every slide and all reveal state."""
        slides = segment_document(text)
        self.coalescer.reset()
        self.store.reset(slides)
        self.source = source
        logger.info("Loaded %s: %d slide(s)", source or "document", len(slides))
        return slides

    def configure_wheel(self, config: WheelConfig) -> None:
        self.coalescer.config = config
        self.coalescer.reset()

    def render(self, content: str) -> str:
        try:
            return self.renderer(content)
        except Exception as e:
            logger.warning("Renderer raised, showing literal content: %s", e)
            return render_fallback(content)

    def snapshot(self) -> dict:
        state = self.store.snapshot()
        for slide, slide_state in zip(self.store.slides, state["slides"]):
            for seg, seg_state in zip(slide.segments, slide_state["segments"]):
                seg_state["html"] = self.render(seg.content)
        state["source"] = self.source
        state["settings"] = self.settings.to_dict()
        state["keyBindings"] = sorted(self.router.key_bindings)
        return state


# -------------------------------
# Document import
# -------------------------------
TEXT_EXTENSIONS = {".md", ".markdown", ".txt"}
ALLOWED_EXTENSIONS = TEXT_EXTENSIONS | {".pdf", ".epub"}
SLIDE_BREAK = "\n\n---\n\n"


class DocumentLoadError(RuntimeError):
    pass


def extract_text_from_pdf(path: str) -> str:
    """One slide per page with extractable text."""
    reader = PdfReader(path)
    pages: List[str] = []
    for i, page in enumerate(reader.pages):
        try:
            txt = page.extract_text() or ""
        except Exception as e:
            logger.debug("Skipping unreadable PDF page %d: %s", i + 1, e)
            txt = ""
        txt = normalize_whitespace(txt)
        if txt:
            pages.append(txt)
    return SLIDE_BREAK.join(pages)


def _epub_document_to_markdown(content: bytes) -> str:
    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["script", "style", "nav"]):
        tag.decompose()

    blocks: List[str] = []
    for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre"]):
        if tag.name in ("p", "li") and tag.find_parent(["li", "pre"]):
            continue
        if tag.name == "pre":
            blocks.append("```\n" + tag.get_text().strip("\n") + "\n```")
            continue
        text = normalize_whitespace(tag.get_text(separator=" ", strip=True)).replace("\n", " ")
        if not text:
            continue
        if tag.name.startswith("h"):
            blocks.append("#" * int(tag.name[1]) + " " + text)
        elif tag.name == "li":
            blocks.append("- " + text)
        else:
            blocks.append(text)
    return "\n\n".join(blocks)


def extract_text_from_epub(path: str) -> str:
    """One section per EPUB document, headings and lists kept as markdown."""
    book = epub.read_epub(path)
    parts: List[str] = []
    for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
        text = _epub_document_to_markdown(item.get_content())
        if text.strip():
            parts.append(text)
    return SLIDE_BREAK.join(parts)


def read_text_file(path: str) -> str:
    data = Path(path).read_bytes()
    return normalize_newlines(data.decode("utf-8-sig", errors="replace"))


def extract_text_from_file(path: str) -> str:
    ext = Path(path).suffix.lower()
    if ext in TEXT_EXTENSIONS:
        return read_text_file(path)
    if ext == ".pdf":
        return extract_text_from_pdf(path)
    if ext == ".epub":
        return extract_text_from_epub(path)
    raise DocumentLoadError(f"Unsupported file type: {ext} (expected .md, .markdown, .txt, .pdf or .epub)")


def allowed_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS


# -------------------------------
# Web app
# -------------------------------
app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 50 * 1024 * 1024  # 50MB

presenter = Presenter()


HTML_PAGE = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>MDX Presenter</title>
  <meta name="viewport" content="width=device-width, initial-scale=1, viewport-fit=cover" />
  <style>
    :root {
      --presentation-font-size: 36px;
      --panel: rgba(255, 255, 255, 0.92);
      --text: #1d2330;
      --muted: #6b7689;
      --accent: #4a89dc;
      --line: #e2e6ee;
      --code-bg: #f4f6fa;
      --code-text: #1d2330;
      --sans-font: Inter, system-ui, -apple-system, "Segoe UI", Roboto, sans-serif;
      --mono-font: "Roboto Mono", "SF Mono", Menlo, Consolas, "Liberation Mono", monospace;
    }
    body.code-dark { --code-bg: #1e2230; --code-text: #e8edf5; }
    body.code-light { --code-bg: #ffffff; --code-text: #30343f; }

    * { box-sizing: border-box; }
    html, body { height: 100%; }
    body {
      margin: 0;
      color: var(--text);
      font-family: var(--sans-font);
      background: linear-gradient(135deg, #74A5FF, #CEFF7E);
      overflow: hidden;
    }

    .presentation-container {
      position: absolute;
      inset: 0;
      display: flex;
      align-items: center;
      justify-content: center;
      padding: 60px 90px;
    }
    .slide {
      width: min(1200px, 100%);
      max-height: 100%;
      overflow-y: auto;
      background: var(--panel);
      border-radius: 18px;
      padding: 40px 56px;
      box-shadow: 0 18px 50px rgba(0, 0, 0, 0.12);
      font-size: var(--presentation-font-size);
      line-height: 1.45;
    }
    .slide.empty { text-align: center; color: var(--muted); }
    .segment { transition: opacity 0.35s ease, transform 0.35s ease; }
    .segment.hidden-segment { opacity: 0; transform: translateY(12px); pointer-events: none; }
    .segment.visible-segment { opacity: 1; transform: none; }
    .segment.kind-listItem ul, .segment.kind-listItem ol { margin: 0.15em 0; }
    .segment.kind-image img { max-width: 100%; max-height: 60vh; display: block; margin: 0 auto; }
    .segment pre, .segment-fallback {
      background: var(--code-bg);
      color: var(--code-text);
      font-family: var(--mono-font);
      font-size: 0.6em;
      padding: 14px 18px;
      border-radius: 10px;
      overflow-x: auto;
      white-space: pre-wrap;
    }
    .segment code { font-family: var(--mono-font); }
    .segment table { border-collapse: collapse; font-size: 0.7em; }
    .segment th, .segment td { border: 1px solid var(--line); padding: 6px 12px; }

    button {
      background: transparent;
      border: none;
      cursor: pointer;
      color: rgba(0, 0, 0, 0.25);
    }
    button:hover { color: rgba(0, 0, 0, 0.6); }

    .control-btn {
      position: fixed;
      top: 50%;
      transform: translateY(-50%);
      width: 46px;
      height: 92px;
    }
    .prev-btn { left: 16px; }
    .next-btn { right: 16px; }

    .settings-btn, .articles-btn {
      position: fixed;
      top: 14px;
      font-size: 22px;
    }
    .settings-btn { right: 16px; }
    .articles-btn { left: 16px; }

    .page-indicator, .progress-indicator {
      position: fixed;
      bottom: 16px;
      font-size: 14px;
      color: rgba(0, 0, 0, 0.45);
    }
    .page-indicator { left: 50%; transform: translateX(-50%); }
    .progress-indicator { right: 20px; }

    .panel {
      position: fixed;
      top: 0;
      bottom: 0;
      width: 340px;
      background: #fff;
      box-shadow: 0 0 30px rgba(0, 0, 0, 0.15);
      padding: 22px;
      overflow-y: auto;
      transition: transform 0.25s ease;
      z-index: 10;
      font-size: 14px;
    }
    .settings-panel { right: 0; transform: translateX(110%); }
    .articles-panel { left: 0; transform: translateX(-110%); }
    .panel.active { transform: none; }
    .panel h3 { margin: 8px 0 10px; font-size: 15px; }
    .panel hr { margin: 15px 0; border: none; border-top: 1px solid #eee; }
    .panel textarea { width: 100%; height: 120px; font-family: var(--mono-font); font-size: 12px; }
    .panel .action { border: 1px solid var(--line); border-radius: 6px; padding: 6px 10px; color: var(--text); }
    .close-btn { position: absolute; top: 10px; right: 12px; font-size: 20px; }

    .theme-options { display: grid; grid-template-columns: repeat(7, 1fr); gap: 8px; }
    .theme-option { height: 30px; border-radius: 6px; cursor: pointer; border: 2px solid transparent; }
    .theme-option.active { border-color: #333; }

    .font-size-presets { display: flex; gap: 8px; margin-top: 8px; }
    .articles-list { list-style: none; padding: 0; margin: 0; }
    .articles-list li { padding: 7px 8px; border-radius: 6px; cursor: pointer; }
    .articles-list li.current { background: #eef3fb; font-weight: 600; }
    .status { color: var(--muted); margin-top: 8px; min-height: 1.2em; }
    .status.err { color: #d64545; }
  </style>
</head>
<body>
  <div class="presentation-container" id="presentation">
    <div class="slide empty" id="slide">Open a document from the settings panel.</div>
  </div>

  <button class="articles-btn" id="articles-btn" title="Slides">&#9776;</button>
  <button class="settings-btn" id="settings-btn" title="Settings">&#9881;</button>

  <button class="control-btn prev-btn" id="prev-btn" title="Previous Slide">
    <svg width="100%" height="100%" viewBox="0 0 50 100" preserveAspectRatio="xMidYMid meet">
      <path d="M 35 20 L 15 50 L 35 80" stroke="currentColor" stroke-width="5" fill="none"
            stroke-linecap="round" stroke-linejoin="round"/>
    </svg>
  </button>
  <button class="control-btn next-btn" id="next-btn" title="Next Slide">
    <svg width="100%" height="100%" viewBox="0 0 50 100" preserveAspectRatio="xMidYMid meet">
      <path d="M 15 20 L 35 50 L 15 80" stroke="currentColor" stroke-width="5" fill="none"
            stroke-linecap="round" stroke-linejoin="round"/>
    </svg>
  </button>

  <div class="page-indicator"><span id="current-page">0</span> / <span id="total-pages">0</span></div>
  <div class="progress-indicator"><span id="progress-text">100</span>%</div>

  <div class="panel articles-panel" id="articles-panel">
    <button class="close-btn" data-close="articles-panel">&times;</button>
    <h3>Slides</h3>
    <ul class="articles-list" id="articles-list"></ul>
  </div>

  <div class="panel settings-panel" id="settings-panel">
    <button class="close-btn" data-close="settings-panel">&times;</button>

    <h3>Markdown source</h3>
    <label for="markdown-file">Load a local file (.md, .markdown, .txt, .pdf, .epub):</label>
    <input type="file" id="markdown-file" accept=".md,.markdown,.txt,.pdf,.epub" />
    <p>or paste markdown:</p>
    <textarea id="markdown-text" placeholder="# Title&#10;&#10;Some text"></textarea>
    <button class="action" id="load-text">Load</button>
    <div class="status" id="load-status"></div>

    <hr />
    <h3>Background theme</h3>
    <div class="theme-options" id="theme-options"></div>

    <hr />
    <h3>Font size</h3>
    <input type="range" id="font-size-slider" min="{{ font_min }}" max="{{ font_max }}" />
    <span id="font-size-value"></span>px
    <div class="font-size-presets" id="font-size-presets"></div>

    <hr />
    <h3>Code block theme</h3>
    <select id="code-theme"></select>
  </div>

<script>
(() => {
  const THEMES = {{ themes|tojson }};
  const CODE_THEMES = {{ code_themes|tojson }};
  const FONT_PRESETS = {{ font_presets|tojson }};
  const LINE_HEIGHT_PX = 16;

  const els = {
    slide: document.getElementById("slide"),
    presentation: document.getElementById("presentation"),
    currentPage: document.getElementById("current-page"),
    totalPages: document.getElementById("total-pages"),
    progress: document.getElementById("progress-text"),
    prevBtn: document.getElementById("prev-btn"),
    nextBtn: document.getElementById("next-btn"),
    settingsBtn: document.getElementById("settings-btn"),
    articlesBtn: document.getElementById("articles-btn"),
    settingsPanel: document.getElementById("settings-panel"),
    articlesPanel: document.getElementById("articles-panel"),
    articlesList: document.getElementById("articles-list"),
    fileInput: document.getElementById("markdown-file"),
    textInput: document.getElementById("markdown-text"),
    loadTextBtn: document.getElementById("load-text"),
    loadStatus: document.getElementById("load-status"),
    themeOptions: document.getElementById("theme-options"),
    fontSlider: document.getElementById("font-size-slider"),
    fontValue: document.getElementById("font-size-value"),
    fontPresets: document.getElementById("font-size-presets"),
    codeTheme: document.getElementById("code-theme"),
  };

  let state = null;
  let queue = Promise.resolve();

  function setStatus(msg, isErr = false) {
    els.loadStatus.textContent = msg;
    els.loadStatus.classList.toggle("err", !!isErr);
  }

  // Every event goes through one chain so the server sees arrival order.
  function send(url, options) {
    queue = queue.then(async () => {
      const res = await fetch(url, options);
      const data = await res.json();
      if (!data.ok) throw new Error(data.error || `HTTP ${res.status}`);
      if (data.state) applyState(data.state);
      return data;
    }).catch((err) => {
      setStatus(String(err.message || err), true);
    });
    return queue;
  }

  function postJson(url, payload) {
    return send(url, {
      method: "POST",
      headers: { "Content-Type": "application/json" },
      body: JSON.stringify(payload),
    });
  }

  function applySettings(settings) {
    document.body.style.background = settings.theme;
    document.documentElement.style.setProperty("--presentation-font-size", `${settings.fontSize}px`);
    document.body.classList.remove(...CODE_THEMES.map((t) => `code-${t}`));
    document.body.classList.add(`code-${settings.codeTheme}`);

    els.fontSlider.value = String(settings.fontSize);
    els.fontValue.textContent = String(settings.fontSize);
    els.codeTheme.value = settings.codeTheme;
    for (const opt of els.themeOptions.children) {
      opt.classList.toggle("active", opt.dataset.gradient === settings.theme);
    }
  }

  function renderArticles(st) {
    els.articlesList.innerHTML = "";
    st.slides.forEach((slide, i) => {
      const li = document.createElement("li");
      li.textContent = `${i + 1}. ${slide.title || "(untitled)"}`;
      li.classList.toggle("current", i === st.currentSlideIndex);
      li.addEventListener("click", () => postJson("/api/slide", { index: i }));
      els.articlesList.appendChild(li);
    });
  }

  function renderSlide(st) {
    const slide = st.slides[st.currentSlideIndex];
    if (!slide) {
      els.slide.className = "slide empty";
      els.slide.textContent = "No content loaded. Open a document from the settings panel.";
      return;
    }
    const content = document.createElement("div");
    content.className = "segmented-content";
    for (const seg of slide.segments) {
      const div = document.createElement("div");
      div.id = `${slide.id}-${seg.id}`;
      div.className = `segment kind-${seg.kind} ${seg.visible ? "visible-segment" : "hidden-segment"}`;
      div.innerHTML = seg.html;
      content.appendChild(div);
    }
    els.slide.className = "slide active";
    els.slide.replaceChildren(content);
    const shown = content.querySelectorAll(".visible-segment");
    const last = shown[shown.length - 1];
    if (last) last.scrollIntoView({ behavior: "smooth", block: "nearest" });
  }

  function applyState(st) {
    state = st;
    els.currentPage.textContent = String(st.totalSlides ? st.currentSlideIndex + 1 : 0);
    els.totalPages.textContent = String(st.totalSlides);
    els.progress.textContent = String(st.progress);
    applySettings(st.settings);
    renderArticles(st);
    renderSlide(st);
  }

  function isFormField(target) {
    return target && (target.tagName === "INPUT" || target.tagName === "TEXTAREA" || target.tagName === "SELECT");
  }

  function buildSettingsPanel() {
    THEMES.forEach((gradient) => {
      const div = document.createElement("div");
      div.className = "theme-option";
      div.style.background = gradient;
      div.dataset.gradient = gradient;
      div.addEventListener("click", () => postJson("/api/settings", { theme: gradient }));
      els.themeOptions.appendChild(div);
    });
    Object.entries(FONT_PRESETS).forEach(([name, size]) => {
      const btn = document.createElement("button");
      btn.className = "action";
      btn.textContent = name;
      btn.addEventListener("click", () => postJson("/api/settings", { fontSize: size }));
      els.fontPresets.appendChild(btn);
    });
    CODE_THEMES.forEach((name) => {
      const opt = document.createElement("option");
      opt.value = name;
      opt.textContent = name;
      els.codeTheme.appendChild(opt);
    });
  }

  async function loadFile() {
    const f = els.fileInput.files && els.fileInput.files[0];
    if (!f) return;
    setStatus(`Loading ${f.name}...`);
    const form = new FormData();
    form.append("file", f);
    const data = await send("/api/load", { method: "POST", body: form });
    if (data) setStatus(`Loaded ${data.filename}: ${data.slideCount} slides`);
  }

  async function loadText() {
    const text = els.textInput.value;
    if (!text.trim()) {
      setStatus("Nothing to load", true);
      return;
    }
    const data = await postJson("/api/load", { text, filename: "pasted.md" });
    if (data) setStatus(`Loaded ${data.slideCount} slides`);
  }

  buildSettingsPanel();

  els.fileInput.addEventListener("change", loadFile);
  els.loadTextBtn.addEventListener("click", loadText);
  els.prevBtn.addEventListener("click", () => postJson("/api/input", { type: "intent", intent: "previous" }));
  els.nextBtn.addEventListener("click", () => postJson("/api/input", { type: "intent", intent: "next" }));
  els.settingsBtn.addEventListener("click", () => els.settingsPanel.classList.toggle("active"));
  els.articlesBtn.addEventListener("click", () => els.articlesPanel.classList.toggle("active"));
  document.querySelectorAll("[data-close]").forEach((btn) => {
    btn.addEventListener("click", () => document.getElementById(btn.dataset.close).classList.remove("active"));
  });

  els.fontSlider.addEventListener("change", () => postJson("/api/settings", { fontSize: Number(els.fontSlider.value) }));
  els.fontSlider.addEventListener("input", () => { els.fontValue.textContent = els.fontSlider.value; });
  els.codeTheme.addEventListener("change", () => postJson("/api/settings", { codeTheme: els.codeTheme.value }));

  els.presentation.addEventListener("click", (e) => {
    if (e.target.closest("a, button, input, textarea, select")) return;
    postJson("/api/input", { type: "click" });
  });

  window.addEventListener("keydown", (e) => {
    if (isFormField(e.target)) {
      if (e.key === "Escape") e.target.blur();
      return;
    }
    if (e.key === "Escape") {
      els.settingsPanel.classList.remove("active");
      els.articlesPanel.classList.remove("active");
      return;
    }
    if (!state || !state.keyBindings.includes(e.key.length === 1 ? e.key.toLowerCase() : e.key)) return;
    e.preventDefault();
    postJson("/api/input", { type: "key", key: e.key });
  });

  window.addEventListener("wheel", (e) => {
    if (isFormField(e.target) || e.target.closest(".panel")) return;
    // Backward scrolls and fully revealed slides keep native scrolling.
    if (e.deltaY <= 0 || !state || !state.hasHiddenSegments) return;
    e.preventDefault();
    const delta = e.deltaMode === 1 ? e.deltaY * LINE_HEIGHT_PX : e.deltaY;
    postJson("/api/input", { type: "wheel", deltaY: delta, timeStamp: e.timeStamp });
  }, { passive: false });

  send("/api/state", { method: "GET" });
})();
</script>
</body>
</html>
"""


def state_payload(**extra) -> dict:
    payload = {"ok": True}
    payload.update(extra)
    payload["state"] = presenter.snapshot()
    return payload


def _as_number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


@app.route("/", methods=["GET"])
def index():
    return render_template_string(
        HTML_PAGE,
        themes=list(THEME_GRADIENTS),
        code_themes=list(CODE_THEMES),
        font_presets=FONT_SIZE_PRESETS,
        font_min=FONT_SIZE_MIN,
        font_max=FONT_SIZE_MAX,
    )


@app.route("/api/state", methods=["GET"])
def api_state():
    return jsonify(state_payload())


@app.route("/api/load", methods=["POST"])
def api_load():
    if "file" in request.files:
        f = request.files["file"]
        if not f or not f.filename:
            return jsonify({"ok": False, "error": "Missing file"}), 400

        filename = f.filename
        if not allowed_file(filename):
            return jsonify({"ok": False, "error": "Unsupported file type (use .md, .markdown, .txt, .pdf or .epub)"}), 400

        suffix = Path(filename).suffix.lower()
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
                temp_path = tmp.name
                f.save(temp_path)

            try:
                text = extract_text_from_file(temp_path)
            finally:
                try:
                    os.unlink(temp_path)
                except OSError as e:
                    logger.debug("Could not remove %s: %s", temp_path, e)
        except DocumentLoadError as e:
            return jsonify({"ok": False, "error": str(e)}), 400
        except Exception as e:
            logger.exception("Failed to extract text from %s", filename)
            return jsonify({"ok": False, "error": str(e)}), 500
    else:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"ok": False, "error": "Expected a JSON object"}), 400
        text = data.get("text")
        filename = data.get("filename") or "document.md"
        if not isinstance(text, str):
            return jsonify({"ok": False, "error": "No document uploaded"}), 400

    if not text.strip():
        return jsonify({"ok": False, "error": "No extractable text found. (Scanned PDF likely needs OCR.)"}), 400

    slides = presenter.load_document(text, source=filename)
    return jsonify(state_payload(filename=filename, slideCount=len(slides)))


@app.route("/api/input", methods=["POST"])
def api_input():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "Expected a JSON object"}), 400
    kind = data.get("type")

    if kind == "key":
        key = data.get("key")
        if not isinstance(key, str) or not key:
            return jsonify({"ok": False, "error": "Missing key"}), 400
        intent = presenter.router.handle_key(key)
        return jsonify(state_payload(handled=intent is not None, intent=intent))

    if kind == "click":
        changed = presenter.router.handle_click()
        return jsonify(state_payload(handled=True, intent=INTENT_ADVANCE, changed=changed))

    if kind == "wheel":
        delta = _as_number(data.get("deltaY"))
        if delta is None:
            return jsonify({"ok": False, "error": "deltaY must be a number"}), 400
        # Gesture windows compare browser event times only.
        timestamp = _as_number(data.get("timeStamp"))
        if timestamp is None:
            return jsonify({"ok": False, "error": "timeStamp must be a number"}), 400
        outcome = presenter.router.handle_wheel(delta, timestamp)
        return jsonify(state_payload(handled=outcome != WHEEL_IGNORED, outcome=outcome))

    if kind == "intent":
        intent = data.get("intent")
        if intent not in INTENTS:
            return jsonify({"ok": False, "error": f"Unknown intent: {intent}"}), 400
        changed = presenter.router.dispatch(intent)
        return jsonify(state_payload(handled=True, intent=intent, changed=changed))

    return jsonify({"ok": False, "error": f"Unknown input type: {kind}"}), 400


@app.route("/api/slide", methods=["POST"])
def api_slide():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "Expected a JSON object"}), 400
    target = data.get("index")
    if isinstance(target, bool) or not isinstance(target, int):
        return jsonify({"ok": False, "error": "index must be an integer"}), 400
    changed = presenter.store.go_to_slide(target)
    return jsonify(state_payload(changed=changed))


@app.route("/api/settings", methods=["GET", "POST"])
def api_settings():
    if request.method == "POST":
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"ok": False, "error": "Expected a JSON object"}), 400
        presenter.settings = presenter.settings.update(data)
        return jsonify(state_payload(settings=presenter.settings.to_dict()))
    return jsonify({"ok": True, "settings": presenter.settings.to_dict()})


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Present a markdown document as step-by-step slides.")
    parser.add_argument("document", nargs="?", help="Document to open at startup (.md, .markdown, .txt, .pdf, .epub)")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--threshold", type=float, default=WheelConfig.threshold,
                        help="Accumulated wheel delta needed to reveal one segment")
    parser.add_argument("--idle-reset-ms", type=float, default=WheelConfig.idle_reset_ms,
                        help="Wheel pause that starts a new gesture")
    parser.add_argument("--cooldown-ms", type=float, default=WheelConfig.cooldown_ms,
                        help="Minimum time between two wheel reveals")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    presenter.configure_wheel(
        WheelConfig(threshold=args.threshold, idle_reset_ms=args.idle_reset_ms, cooldown_ms=args.cooldown_ms)
    )
    if args.document:
        presenter.load_document(extract_text_from_file(args.document), source=Path(args.document).name)

    logger.info("Starting presenter on http://%s:%d", args.host, args.port)
    # One request at a time keeps input events strictly ordered.
    app.run(host=args.host, port=args.port, debug=False, threaded=False)


if __name__ == "__main__":
    main()
