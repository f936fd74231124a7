# engine/segments.py

import re
from enum import Enum
from typing import List

from pydantic import BaseModel


class SegmentKind(str, Enum):
    NARRATIVE = "narrative"
    SYSTEM_NOTICE = "system_notice"
    INTERNAL_REASONING = "internal_reasoning"


class Segment(BaseModel):
    kind: SegmentKind
    text: str


# A marker runs to the end of its line. Models sometimes bold it (**[System]**).
_MARKER_RE = re.compile(r"(?:\*\*)?\[(SYSTEM|Internal CoT)\][^\n]*", re.IGNORECASE)

_MARKER_KINDS = {
    "system": SegmentKind.SYSTEM_NOTICE,
    "internal cot": SegmentKind.INTERNAL_REASONING,
}


def parse_segments(text: str) -> List[Segment]:
    """Splits a model text block into narrative, system notice and internal reasoning segments."""
    segments: List[Segment] = []
    if not text:
        return segments

    def add_narrative(fragment: str):
        if fragment.strip():
            segments.append(Segment(kind=SegmentKind.NARRATIVE, text=fragment.strip()))

    position = 0
    for match in _MARKER_RE.finditer(text):
        add_narrative(text[position:match.start()])
        kind = _MARKER_KINDS[match.group(1).lower()]
        segments.append(Segment(kind=kind, text=match.group(0).strip()))
        position = match.end()
    add_narrative(text[position:])
    return segments
