from .surface import DrawingSurface, GradientStop, LinearGradient, StrokeStyle, SvgSurface
from .timeseries import ChartColors, ChartThresholds, TimeseriesChart

__all__ = [
    "ChartColors",
    "ChartThresholds",
    "DrawingSurface",
    "GradientStop",
    "LinearGradient",
    "StrokeStyle",
    "SvgSurface",
    "TimeseriesChart",
]
