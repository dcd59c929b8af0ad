"""
Portfolio Tracker — Filing Text Extractor & Chunker
────────────────────────────────────────────────────
Pure functions. No side effects. No data fetching.

  clean_filing_html()   raw EDGAR document → plain text, one block per line
  extract_sections()    plain text → [Section] keyed on ITEM headings
  truncate_middle()     keep head + tail of an oversize block
  pack_sections()       [Section] → size-bounded groups for the LLM
  order_by_form()       10-K before 10-Q before 8-K
"""

import html
import re
from dataclasses import dataclass, replace
from typing import Iterable, List, Sequence, TypeVar

MAX_SECTION_LENGTH = 5000
FALLBACK_LENGTH    = 15000
MAX_GROUP_LENGTH   = 4000
GAP_MARKER         = "\n...[content summarized]...\n"

# Headings we care about, in reading priority
FILING_SECTION_MARKERS = [
    "ITEM 1. BUSINESS",
    "ITEM 1A. RISK FACTORS",
    "ITEM 2. MANAGEMENT",
    "ITEM 3. FINANCIAL",
    "ITEM 7. MANAGEMENT'S DISCUSSION",
    "ITEM 7A. QUANTITATIVE AND QUALITATIVE DISCLOSURES",
]

FORM_PRIORITY = {"10-K": 0, "10-Q": 1, "8-K": 2}

_GENERIC_ITEM = re.compile(r"ITEM\s+(\d+[A-Z]?)\.", re.IGNORECASE)


@dataclass
class Section:
    title:    str
    content:  str
    priority: int = 0


# ── HTML cleaning ─────────────────────────────────────────────
_TEXT_BLOCK   = re.compile(r"<TEXT>(.*?)</TEXT>", re.IGNORECASE | re.DOTALL)
_DROP_BLOCKS  = re.compile(r"<(head|style|script)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_BLOCK_TAGS   = re.compile(r"</?(p|br|div|tr|li|h[1-6]|table)\b[^>]*>", re.IGNORECASE)
_ANY_TAG      = re.compile(r"<[^>]+>")
_SPACES       = re.compile(r"[ \t\r\f\v\xa0]+")


def clean_filing_html(raw: str) -> str:
    text = raw or ""
    block = _TEXT_BLOCK.search(text)
    if block:
        text = block.group(1)
    text = _DROP_BLOCKS.sub("", text)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _ANY_TAG.sub(" ", text)
    text = html.unescape(text).replace("’", "'")
    lines = (_SPACES.sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


# ── Section extraction ────────────────────────────────────────
def _match_marker(line: str, markers: Sequence[str]) -> int:
    upper = line.upper().strip()
    for i, marker in enumerate(markers):
        if marker in upper:
            return i
    return -1


def _split_generic_items(text: str, max_section_length: int) -> List[Section]:
    matches = list(_GENERIC_ITEM.finditer(text))
    sections = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[m.start():end].strip()
        if len(body) > len(m.group(0)):
            sections.append(Section(
                title=f"ITEM {m.group(1).upper()}",
                content=body[:max_section_length],
                priority=len(sections),
            ))
    return sections


def extract_sections(
    text: str,
    markers: Sequence[str] = FILING_SECTION_MARKERS,
    max_section_length: int = MAX_SECTION_LENGTH,
    fallback_length: int = FALLBACK_LENGTH,
    generic_items: bool = True,
) -> List[Section]:
    """
    Group lines under the most recent heading marker.

    Text before the first marker is discarded. With no marker at all, falls
    back to generic "ITEM n." headings (when generic_items is set), then to a
    single FILING CONTENT section of the first fallback_length characters.
    """
    markers = [m.upper() for m in markers]
    sections: List[Section] = []
    title, priority, buf = None, 0, []

    def close():
        content = "\n".join(buf).strip()
        if title is not None and content:
            sections.append(Section(title=title, content=content[:max_section_length], priority=priority))

    for line in text.split("\n"):
        idx = _match_marker(line, markers)
        if idx >= 0:
            close()
            title, priority, buf = markers[idx], idx, [line]
        elif title is not None:
            buf.append(line)
    close()

    if not sections and generic_items:
        sections = _split_generic_items(text, max_section_length)

    if not sections:
        sections = [Section(title="FILING CONTENT", content=text[:fallback_length].strip())]

    return sections


def format_sections(sections: Iterable[Section]) -> str:
    return "\n\n".join(f"### {s.title} ###\n{s.content}" for s in sections)


# ── Packing ───────────────────────────────────────────────────
def truncate_middle(text: str, max_length: int = MAX_GROUP_LENGTH, keep_ratio: float = 0.4) -> str:
    if len(text) <= max_length:
        return text
    part = int(max_length * keep_ratio)
    if part == 0 or 2 * part + len(GAP_MARKER) > max_length:
        return text[:max_length]
    return text[:part] + GAP_MARKER + text[-part:]


def pack_sections(sections: Sequence[Section], max_group_length: int = MAX_GROUP_LENGTH) -> List[List[Section]]:
    """
    Greedy packing into groups whose combined content fits max_group_length.
    Lower priority value goes first; a section never spans two groups.
    """
    groups: List[List[Section]] = []
    current: List[Section] = []
    current_len = 0

    for section in sorted(sections, key=lambda s: s.priority):
        if len(section.content) > max_group_length:
            section = replace(section, content=truncate_middle(section.content, max_group_length))
        size = len(section.content)

        if current and current_len + size > max_group_length:
            groups.append(current)
            current, current_len = [], 0

        current.append(section)
        current_len += size

    if current:
        groups.append(current)
    return groups


T = TypeVar("T")


def order_by_form(items: Sequence[T], form_of=lambda item: item.form_type) -> List[T]:
    """Stable sort: annual, then quarterly, then event-driven filings."""
    return sorted(items, key=lambda item: FORM_PRIORITY.get(form_of(item), len(FORM_PRIORITY)))
