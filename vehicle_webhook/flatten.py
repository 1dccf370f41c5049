# vehicle_webhook/flatten.py
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

Scalar = Union[int, float, str, bool, None]


@dataclass(frozen=True)
class FlatEntry:
    path: str
    value: Scalar
    unit: Optional[str] = None


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


def flatten_data(data: Mapping[str, Any], parent_key: Sequence[str] = ()) -> List[FlatEntry]:
    """
    Flatten a nested attribute tree into dotted-path entries.

    A nested mapping is read as a "value + unit" group: a string ``unit``
    field inside it is attached to every sibling entry instead of being
    emitted itself. Lists are never walked into.

    >>> flatten_data({"speed": {"value": 60, "unit": "mph"}})
    [FlatEntry(path='speed.value', value=60, unit='mph')]
    """
    entries: List[FlatEntry] = []

    for key, value in data.items():
        next_keys = [*parent_key, key]

        if _is_scalar(value):
            entries.append(FlatEntry(".".join(next_keys), value))
        elif isinstance(value, Mapping):
            unit = value.get("unit")
            if not isinstance(unit, str):
                unit = None

            for child_key, child_value in value.items():
                if child_key == "unit":
                    continue
                if _is_scalar(child_value):
                    entries.append(FlatEntry(".".join([*next_keys, child_key]), child_value, unit))
                elif isinstance(child_value, Mapping):
                    entries.extend(flatten_data({child_key: child_value}, next_keys))

    return entries
