from __future__ import annotations

import math
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, TypeAdapter, field_validator

SCRAPE_INTERVAL_METRIC = "dayz_metricz_scrape_interval_seconds"


class InstanceStatus(BaseModel):
    """Public status of one server instance.

    ``values`` maps a metric name to its number. ``labels`` maps a metric name
    to ``{label key: [label values]}``; label values are always lists, even
    when the server sent a single scalar.
    """

    values: Dict[str, float] = Field(default_factory=dict)
    labels: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)

    @field_validator("values", mode="before")
    @classmethod
    def keep_finite_numbers(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        return {
            str(name): float(number)
            for name, number in value.items()
            if _is_finite_number(number)
        }

    @field_validator("labels", mode="before")
    @classmethod
    def wrap_label_values(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        normalized: Dict[str, Dict[str, List[str]]] = {}
        for metric, keys in value.items():
            if not isinstance(keys, Mapping):
                continue
            normalized[str(metric)] = {
                str(key): _as_string_list(items) for key, items in keys.items()
            }
        return normalized


Snapshot = Dict[str, InstanceStatus]

_SNAPSHOT_ADAPTER: TypeAdapter[Snapshot] = TypeAdapter(Snapshot)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _as_string_list(items: Any) -> List[str]:
    if items is None:
        return []
    if isinstance(items, (list, tuple)):
        return [str(item) for item in items]
    return [str(items)]


def parse_instance(raw: Any) -> InstanceStatus:
    """Normalize one ``GET {base}/{id}`` payload."""
    return InstanceStatus.model_validate(raw)


def parse_snapshot(raw: Any) -> Snapshot:
    """Normalize one ``GET {base}`` payload keyed by instance id."""
    return _SNAPSHOT_ADAPTER.validate_python(raw)


def get_label_first(
    status: Optional[InstanceStatus], metric_name: str, label_key: str
) -> Optional[str]:
    values = get_label_all(status, metric_name, label_key)
    return values[0] if values else None


def get_label_all(
    status: Optional[InstanceStatus], metric_name: str, label_key: str
) -> List[str]:
    if status is None:
        return []
    return list(status.labels.get(metric_name, {}).get(label_key, []))


def metric_value(
    snapshot: Mapping[str, InstanceStatus],
    metric_name: str,
    instance_id: Optional[str] = None,
) -> Optional[float]:
    """Pick the scalar a chart should plot from a snapshot.

    With ``instance_id`` only that instance is consulted; otherwise the first
    instance carrying ``metric_name`` wins.
    """
    if instance_id is not None:
        status = snapshot.get(instance_id)
        return status.values.get(metric_name) if status is not None else None
    for status in snapshot.values():
        if metric_name in status.values:
            return status.values[metric_name]
    return None
