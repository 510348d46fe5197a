from __future__ import annotations

import logging
import math
import random
from collections import deque
from dataclasses import dataclass
from numbers import Real
from typing import Any, Deque, List, Optional

from .surface import DrawingSurface, GradientStop, LinearGradient, StrokeStyle

logger = logging.getLogger(__name__)

SCALE_FLOOR = 60.0
SCALE_HEADROOM = 1.1
LINE_WIDTH = 2.0
FILL_TOP_OPACITY = 0.4


@dataclass(frozen=True)
class ChartColors:
    high: str = "#5cb85c"  # >= medium threshold
    medium: str = "#f0ad4e"  # low..medium
    low: str = "#d9534f"  # < low threshold


@dataclass(frozen=True)
class ChartThresholds:
    low: float = 20.0
    medium: float = 40.0


class TimeseriesChart:
    """Rolling line chart with an area fill, drawn on a ``DrawingSurface``.

    Keeps at most ``max_points`` samples. The first accepted value seeds a
    noisy history around itself so the chart never starts out empty.
    """

    def __init__(
        self,
        surface: DrawingSurface,
        *,
        max_points: int = 40,
        colors: Optional[ChartColors] = None,
        thresholds: Optional[ChartThresholds] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if max_points < 2:
            raise ValueError("max_points must be at least 2")
        self.surface = surface
        self.max_points = max_points
        self.colors = colors or ChartColors()
        self.thresholds = thresholds or ChartThresholds()
        if self.thresholds.low > self.thresholds.medium:
            raise ValueError("low threshold must not exceed medium threshold")
        self._rng = rng or random.Random()
        self._data: Deque[float] = deque(maxlen=max_points)
        self._initialized = False

    @property
    def samples(self) -> List[float]:
        return list(self._data)

    def push(self, value: Any) -> None:
        """Append a sample and redraw; anything but a finite real number is ignored."""
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            logger.debug("Ignoring chart sample %r", value)
            return
        sample = float(value)

        if not self._initialized:
            self._generate_initial_history(sample)
            self._initialized = True

        self._data.append(sample)
        self.draw()

    def _generate_initial_history(self, base_value: float) -> None:
        variation = max(5.0, base_value * 0.03)
        for _ in range(self.max_points - 1):
            noise = self._rng.uniform(-variation, variation)
            self._data.append(max(0.0, base_value + noise))

    def current_color(self) -> str:
        current = self._data[-1] if self._data else 0.0
        if current < self.thresholds.low:
            return self.colors.low
        if current < self.thresholds.medium:
            return self.colors.medium
        return self.colors.high

    def scale_ceiling(self) -> float:
        return max(SCALE_FLOOR, max(self._data, default=0.0)) * SCALE_HEADROOM

    def x_for(self, index: int) -> float:
        return index / (self.max_points - 1) * self.surface.width

    def y_for(self, value: float, ceiling: float) -> float:
        height = self.surface.height
        return height - (value / ceiling) * height

    def draw(self) -> None:
        surface = self.surface
        surface.clear()
        data = self._data
        if not data:
            return

        color = self.current_color()
        ceiling = self.scale_ceiling()

        surface.begin_path()
        surface.move_to(self.x_for(0), self.y_for(data[0], ceiling))
        for index in range(1, len(data)):
            surface.line_to(self.x_for(index), self.y_for(data[index], ceiling))
        surface.stroke(StrokeStyle(color=color, width=LINE_WIDTH, cap="round", join="round"))

        # Close the polyline down to the bottom edge for the area fill.
        surface.line_to(self.x_for(len(data) - 1), surface.height)
        surface.line_to(self.x_for(0), surface.height)
        surface.close_path()
        surface.fill(
            LinearGradient(
                x0=0.0,
                y0=0.0,
                x1=0.0,
                y1=surface.height,
                stops=(
                    GradientStop(0.0, color, FILL_TOP_OPACITY),
                    GradientStop(1.0, color, 0.0),
                ),
            )
        )
