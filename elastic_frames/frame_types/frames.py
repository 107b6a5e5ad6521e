"""
Frame types: flat, column-oriented results delivered to the visualization layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from elastic_frames.errors import QueryError
from elastic_frames.frame_types.query import EPOCH


class FieldType(str, Enum):
    """Column types of a frame."""
    TIME = "time"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    OTHER = "other"


def millis_to_datetime(value: Any) -> datetime:
    """Convert epoch milliseconds to a UTC datetime without float rounding."""
    return EPOCH + timedelta(milliseconds=int(value))


def format_time(value: datetime) -> str:
    """Render a datetime as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass
class Field:
    """A named, typed column."""
    name: str
    type: FieldType
    values: List[Any] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    display_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict."""
        if self.type == FieldType.TIME:
            values = [format_time(v) if v is not None else None for v in self.values]
        else:
            values = list(self.values)

        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "values": values,
        }
        if self.labels:
            data["labels"] = dict(self.labels)
        if self.display_name:
            data["config"] = {"displayNameFromDS": self.display_name}
        return data


@dataclass
class Frame:
    """An ordered set of equal-length fields tagged with the producing ref-id."""
    name: str
    ref_id: str
    fields: List[Field] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    def row_len(self) -> int:
        """
        Number of rows in the frame.

        Raises:
            ValueError: If the fields have different lengths
        """
        lengths = {len(f) for f in self.fields}
        if len(lengths) > 1:
            raise ValueError(f"frame {self.name!r} has fields of unequal length: {sorted(lengths)}")
        return lengths.pop() if lengths else 0

    def field_by_name(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field_by_type(self, field_type: FieldType) -> Optional[Field]:
        for f in self.fields:
            if f.type == field_type:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict."""
        data: Dict[str, Any] = {
            "name": self.name,
            "refId": self.ref_id,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.meta:
            data["meta"] = dict(self.meta)
        return data


@dataclass
class DataResponse:
    """Frames (or an error) produced for one ref-id."""
    frames: List[Frame] = field(default_factory=list)
    error: Optional[QueryError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frames": [f.to_dict() for f in self.frames],
            "error": self.error.message if self.error else None,
            "errorType": type(self.error).__name__ if self.error else None,
        }


@dataclass
class QueryDataResponse:
    """Results of a batch, keyed by ref-id in submission order."""
    responses: Dict[str, DataResponse] = field(default_factory=dict)

    def __getitem__(self, ref_id: str) -> DataResponse:
        return self.responses[ref_id]

    def __len__(self) -> int:
        return len(self.responses)

    def to_dict(self) -> Dict[str, Any]:
        return {ref_id: r.to_dict() for ref_id, r in self.responses.items()}
