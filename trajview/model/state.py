"""Dataclasses for payloads, requests and viewer sources."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import ClassVar, Dict, Generic, Optional, Tuple, TypeVar, Union

V = TypeVar("V")


@dataclass(frozen=True)
class StructurePayload:
    """Decoded structure text for a subject.

    Attributes
    ----------
    subject
        Project instance id the structure belongs to.
    text
        Decoded structure text.
    format
        Format tag the text was decoded as.
    label
        Display label, ``"{subject}.{format}"``.
    """

    subject: str
    text: str
    format: str
    label: str


@dataclass(frozen=True)
class TrajectoryPayload:
    """Raw coordinate data for a subject.

    Attributes
    ----------
    subject
        Project instance id the coordinates belong to.
    data
        Binary coordinate payload.
    format
        Coordinate format tag.
    label
        Display label, ``"{subject}.{format}"``.
    """

    subject: str
    data: bytes
    format: str
    label: str


@dataclass(frozen=True)
class TrajectoryRequest:
    """Frame range and atom selection requested for a trajectory.

    Empty strings are stored as ``None`` so that requests differing only in
    empty-vs-absent fields compare equal.

    Attributes
    ----------
    frame_range
        Frame range expression, e.g. ``"0-100"``.
    selection
        Atom selection expression, e.g. ``"protein"``.
    """

    frame_range: Optional[str] = None
    selection: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.frame_range:
            object.__setattr__(self, "frame_range", None)
        if not self.selection:
            object.__setattr__(self, "selection", None)

    def key_parts(self) -> Tuple[str, str]:
        """Return the ``(frame_range, selection)`` pair used in cache keys.

        Returns
        -------
        tuple
            Frame range and selection with absent values as empty strings.
        """
        return (self.frame_range or "", self.selection or "")

    def to_dict(self) -> Dict[str, object]:
        return {"frames": self.frame_range, "selection": self.selection}


@dataclass(frozen=True)
class LoadResult(Generic[V]):
    """Loader output for the current key.

    Attributes
    ----------
    value
        Cached value, if any.
    is_loading
        A fetch is in flight and no value is available yet.
    is_fetching
        A fetch is in flight, including background refreshes.
    error
        Error of the last failed fetch.
    generation
        Generation of the cache entry the result was read from.
    """

    value: Optional[V] = None
    is_loading: bool = False
    is_fetching: bool = False
    error: Optional[BaseException] = None
    generation: int = 0

    @property
    def enabled(self) -> bool:
        return self.generation > 0


DISABLED: LoadResult = LoadResult()


@dataclass(frozen=True)
class SourcePart:
    """One file handed to the rendering surface."""

    data: Union[str, bytes]
    format: str
    label: str

    def to_dict(self) -> Dict[str, object]:
        if isinstance(self.data, bytes):
            encoded = base64.b64encode(self.data).decode("ascii")
            return {"data_b64": encoded, "format": self.format, "label": self.label}
        return {"data": self.data, "format": self.format, "label": self.label}


@dataclass(frozen=True)
class NoSource:
    """Nothing to render."""

    kind: ClassVar[str] = "none"

    def to_dict(self) -> Dict[str, object]:
        return {"kind": self.kind}


@dataclass(frozen=True)
class StructureSource:
    """Static structure source.

    Attributes
    ----------
    data
        Structure text.
    format
        Model format tag.
    label
        Display label.
    """

    kind: ClassVar[str] = "structure"
    data: str
    format: str
    label: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "data": self.data,
            "format": self.format,
            "label": self.label,
        }


@dataclass(frozen=True)
class TrajectorySource:
    """Structure model plus coordinate frames.

    Attributes
    ----------
    model
        Structure part used as topology.
    coordinates
        Coordinate frames part.
    """

    kind: ClassVar[str] = "trajectory"
    model: SourcePart
    coordinates: SourcePart

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "model": self.model.to_dict(),
            "coordinates": self.coordinates.to_dict(),
        }


ViewerSource = Union[NoSource, StructureSource, TrajectorySource]

NO_SOURCE = NoSource()
