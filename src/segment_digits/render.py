"""SVG rendering of 7-segment patterns.

Rendering is lenient: a segment is lit only when its value equals 1 and any
other value draws it inactive. Only the pattern length is validated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from html import escape
from typing import Final

from .codec import check_length, encode

VIEWBOX: Final[str] = "0 0 300 300"
STROKE_WIDTH: Final[int] = 3

# One outline per segment, in codec order. Horizontal bars are centered on
# y=40/150/260, vertical bars on x=75/225.
SEGMENT_PATHS: Final[tuple[str, ...]] = (
    "M 100 25 L 200 25 L 215 40 L 200 55 L 100 55 L 85 40 Z",
    "M 75 45 L 90 60 L 90 130 L 75 145 L 60 130 L 60 60 Z",
    "M 225 45 L 240 60 L 240 130 L 225 145 L 210 130 L 210 60 Z",
    "M 100 135 L 200 135 L 215 150 L 200 165 L 100 165 L 85 150 Z",
    "M 75 155 L 90 170 L 90 240 L 75 255 L 60 240 L 60 170 Z",
    "M 225 155 L 240 170 L 240 240 L 225 255 L 210 240 L 210 170 Z",
    "M 100 245 L 200 245 L 215 260 L 200 275 L 100 275 L 85 260 Z",
)


@dataclass(frozen=True)
class RenderStyle:
    active_fill: str = "#ff2a2a"
    inactive_fill: str = "#f2f2f2"
    stroke: str = "#444444"


_DEFAULT_STYLE: Final[RenderStyle] = RenderStyle()


def render_svg(
    pattern: Sequence[object],
    transform: str | None = None,
    *,
    style: RenderStyle | None = None,
) -> str:
    check_length(pattern)
    st = style if style is not None else _DEFAULT_STYLE
    paths: list[str] = []
    for d, value in zip(SEGMENT_PATHS, pattern, strict=True):
        fill = st.active_fill if value == 1 else st.inactive_fill
        paths.append(
            f'<path d="{d}" fill="{escape(fill)}" stroke="{escape(st.stroke)}" '
            f'stroke-width="{STROKE_WIDTH}"/>'
        )
    body = "".join(paths)
    if transform:
        body = f'<g transform="{escape(transform)}">{body}</g>'
    return f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{VIEWBOX}">{body}</svg>'


def render_digit(
    digit: int, transform: str | None = None, *, style: RenderStyle | None = None
) -> str:
    return render_svg(encode(digit), transform, style=style)
