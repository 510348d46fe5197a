from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

from jinja2 import Environment, select_autoescape


@dataclass(frozen=True)
class StrokeStyle:
    color: str
    width: float = 2.0
    cap: str = "round"
    join: str = "round"


@dataclass(frozen=True)
class GradientStop:
    offset: float
    color: str
    opacity: float = 1.0


@dataclass(frozen=True)
class LinearGradient:
    """Gradient between two points in surface coordinates."""

    x0: float
    y0: float
    x1: float
    y1: float
    stops: Tuple[GradientStop, ...] = ()


class DrawingSurface(Protocol):
    """Minimal 2D canvas the chart draws on.

    ``width`` and ``height`` are fixed and already in surface units.
    """

    width: float
    height: float

    def clear(self) -> None: ...

    def begin_path(self) -> None: ...

    def move_to(self, x: float, y: float) -> None: ...

    def line_to(self, x: float, y: float) -> None: ...

    def close_path(self) -> None: ...

    def stroke(self, style: StrokeStyle) -> None: ...

    def fill(self, gradient: LinearGradient) -> None: ...


_SVG_TEMPLATE = """\
<svg xmlns="http://www.w3.org/2000/svg" width="{{ width }}" height="{{ height }}" \
viewBox="0 0 {{ width }} {{ height }}">
{%- if gradients %}
<defs>
{%- for gradient in gradients %}
<linearGradient id="{{ gradient.id }}" gradientUnits="userSpaceOnUse" \
x1="{{ gradient.x0 }}" y1="{{ gradient.y0 }}" x2="{{ gradient.x1 }}" y2="{{ gradient.y1 }}">
{%- for stop in gradient.stops %}
<stop offset="{{ stop.offset }}" stop-color="{{ stop.color }}" stop-opacity="{{ stop.opacity }}"/>
{%- endfor %}
</linearGradient>
{%- endfor %}
</defs>
{%- endif %}
{%- for shape in shapes %}
{%- if shape.kind == "stroke" %}
<path d="{{ shape.d }}" fill="none" stroke="{{ shape.color }}" stroke-width="{{ shape.width }}" \
stroke-linecap="{{ shape.cap }}" stroke-linejoin="{{ shape.join }}"/>
{%- else %}
<path d="{{ shape.d }}" fill="url(#{{ shape.gradient_id }})" stroke="none"/>
{%- endif %}
{%- endfor %}
</svg>
"""

_environment = Environment(autoescape=select_autoescape(default=True, default_for_string=True))
_template = _environment.from_string(_SVG_TEMPLATE)


def _fmt(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


@dataclass
class SvgSurface:
    """Drawing surface that records commands and renders them as SVG."""

    width: float
    height: float
    _path: List[str] = field(default_factory=list, init=False, repr=False)
    _shapes: List[Dict[str, Any]] = field(default_factory=list, init=False, repr=False)
    _gradients: List[Dict[str, Any]] = field(default_factory=list, init=False, repr=False)

    def clear(self) -> None:
        self._path = []
        self._shapes = []
        self._gradients = []

    def begin_path(self) -> None:
        self._path = []

    def move_to(self, x: float, y: float) -> None:
        self._path.append(f"M{_fmt(x)} {_fmt(y)}")

    def line_to(self, x: float, y: float) -> None:
        self._path.append(f"L{_fmt(x)} {_fmt(y)}")

    def close_path(self) -> None:
        self._path.append("Z")

    def stroke(self, style: StrokeStyle) -> None:
        self._shapes.append(
            {
                "kind": "stroke",
                "d": " ".join(self._path),
                "color": style.color,
                "width": _fmt(style.width),
                "cap": style.cap,
                "join": style.join,
            }
        )

    def fill(self, gradient: LinearGradient) -> None:
        gradient_id = f"fill{len(self._gradients)}"
        self._gradients.append(
            {
                "id": gradient_id,
                "x0": _fmt(gradient.x0),
                "y0": _fmt(gradient.y0),
                "x1": _fmt(gradient.x1),
                "y1": _fmt(gradient.y1),
                "stops": [
                    {"offset": _fmt(stop.offset), "color": stop.color, "opacity": _fmt(stop.opacity)}
                    for stop in gradient.stops
                ],
            }
        )
        self._shapes.append({"kind": "fill", "d": " ".join(self._path), "gradient_id": gradient_id})

    @property
    def shapes(self) -> List[Dict[str, Any]]:
        return list(self._shapes)

    def render(self) -> str:
        return _template.render(
            width=_fmt(self.width),
            height=_fmt(self.height),
            shapes=self._shapes,
            gradients=self._gradients,
        )
