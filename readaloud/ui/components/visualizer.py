"""
Frequency-bar visualizer for the live session.

Bars are colored by a linear RGB interpolation between two fixed endpoints
as a function of their 0-255 amplitude.
"""

import numpy as np
import streamlit as st

from readaloud.services.audio.processor import AudioProcessor

START_COLOR = (19, 239, 147)
END_COLOR = (20, 154, 251)


def interpolate_color(
    start: tuple[int, ...], end: tuple[int, ...], factor: float
) -> tuple[int, ...]:
    """Blend *start* towards *end*; ``factor`` 0 gives start, 1 gives end."""
    return tuple(round(s + factor * (e - s)) for s, e in zip(start, end, strict=True))


def frequency_bins(pcm: bytes | None, bin_count: int = 64, sample_rate: int = 16000) -> np.ndarray:
    """Byte-scaled frequency magnitudes of the latest audio block."""
    return AudioProcessor(sample_rate=sample_rate).frequency_data(pcm or b"", bin_count)


def bar_colors(values) -> list[tuple[int, ...]]:
    return [interpolate_color(START_COLOR, END_COLOR, int(v) / 255) for v in values]


def bars_html(values, height: int = 160, bar_width: int = 10) -> str:
    """Render *values* as absolutely positioned bars inside one container."""
    bars = []
    for index, (value, color) in enumerate(zip(values, bar_colors(values), strict=True)):
        # Heights are doubled like the browser analyser view, clipped to the box
        bar_height = min(height, round(int(value) / 255 * height * 2))
        r, g, b = color
        bars.append(
            f'<div style="position:absolute;bottom:0;left:{index * bar_width}px;'
            f"width:{bar_width}px;height:{bar_height}px;"
            f'background:rgba({r},{g},{b},0.6)"></div>'
        )
    return (
        f'<div style="position:relative;width:100%;height:{height}px;overflow:hidden">'
        + "".join(bars)
        + "</div>"
    )


def render_visualizer(pcm: bytes | None, active: bool = True, height: int = 160) -> None:
    """Draw the bars for the latest block, or an empty box while inactive."""
    values = frequency_bins(pcm) if active else np.zeros(64, dtype=np.uint8)
    st.html(bars_html(values, height=height))
