from __future__ import annotations

import re

import pytest

from segment_digits.codec import encode
from segment_digits.errors import InvalidPatternLength
from segment_digits.render import SEGMENT_PATHS, RenderStyle, render_digit, render_svg

_FILL = re.compile(r'fill="([^"]+)"')


def _fills(svg: str) -> list[str]:
    return _FILL.findall(svg)


def test_svg_envelope_and_paths() -> None:
    svg = render_svg(encode(8))
    assert svg.startswith('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 300 300">')
    assert svg.endswith("</svg>")
    assert svg.count("<path ") == 7
    assert svg.count('stroke-width="3"') == 7
    for d in SEGMENT_PATHS:
        assert f'd="{d}"' in svg


def test_fills_follow_pattern_in_segment_order() -> None:
    svg = render_svg(encode(1))
    on, off = RenderStyle().active_fill, RenderStyle().inactive_fill
    assert _fills(svg) == [off, off, on, off, off, on, off]


def test_rendering_is_lenient_about_values() -> None:
    # Only exactly 1 lights a segment
    svg = render_svg([2, 1, 0.5, 1.0, "x", None, -1])
    on, off = RenderStyle().active_fill, RenderStyle().inactive_fill
    assert _fills(svg) == [off, on, off, on, off, off, off]


def test_all_dark_pattern_renders() -> None:
    svg = render_svg([0] * 7)
    assert set(_fills(svg)) == {RenderStyle().inactive_fill}


@pytest.mark.parametrize("n", [0, 6, 8])
def test_render_rejects_wrong_length(n: int) -> None:
    with pytest.raises(InvalidPatternLength):
        render_svg([1] * n)


def test_transform_wraps_paths_in_group() -> None:
    svg = render_svg(encode(3), "rotate(10 150 150)")
    assert '<g transform="rotate(10 150 150)">' in svg
    assert svg.index("<g ") < svg.index("<path ")
    assert svg.endswith("</g></svg>")
    assert "<g" not in render_svg(encode(3))


def test_transform_is_escaped() -> None:
    svg = render_svg(encode(3), 'scale(2)" onload="x')
    assert 'onload="x"' not in svg
    assert "&quot;" in svg


def test_custom_style_and_render_digit() -> None:
    st = RenderStyle(active_fill="#00ff00", inactive_fill="#000000", stroke="#111111")
    svg = render_digit(7, style=st)
    on, off = "#00ff00", "#000000"
    assert _fills(svg) == [on, off, on, off, off, on, off]
    assert 'stroke="#111111"' in svg
