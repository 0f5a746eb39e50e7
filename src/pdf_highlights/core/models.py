"""
Highlight data model.

All geometry held by these entities is in base space: logical CSS pixels
at the page's natural, DPR-independent size, origin top-left.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .palette import normalize_color

# Owner key of a viewing session that is never persisted remotely
EPHEMERAL_OWNER = "temp"

# 1 = legacy rows whose base_size may be unreliable, 2 = base-space geometry
GEOMETRY_VERSION = 2
LEGACY_GEOMETRY_VERSION = 1


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return int(time.time() * 1000)


def new_highlight_id() -> str:
    return f"highlight-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Size"]:
        if not data:
            return None
        try:
            return cls(float(data.get("width") or 0), float(data.get("height") or 0))
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, origin at ``(x, y)``"""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        """Point-in-rectangle test, edges inclusive"""
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def scaled(self, sx: float, sy: float) -> "Rect":
        return Rect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def rounded(self) -> "Rect":
        return Rect(round(self.x), round(self.y), round(self.width), round(self.height))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rect":
        """
        Build a rect from ``{x, y, width, height}``.

        Older rows also carry fractional ``fx/fy/fw/fh`` keys next to the
        absolute ones; only the absolute keys are read.
        """
        return cls(
            float(data.get("x") or 0),
            float(data.get("y") or 0),
            float(data.get("width") or 0),
            float(data.get("height") or 0),
        )

    @classmethod
    def from_points(cls, x0: float, y0: float, x1: float, y1: float) -> "Rect":
        """Normalized rect spanning two corner points"""
        return cls(min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))


def bounding_rect(rects: List[Rect]) -> Rect:
    """Smallest rect enclosing all ``rects`` (which must not be empty)"""
    x0 = min(r.x for r in rects)
    y0 = min(r.y for r in rects)
    x1 = max(r.right for r in rects)
    y1 = max(r.bottom for r in rects)
    return Rect(x0, y0, x1 - x0, y1 - y0)


class HighlightKind(str, Enum):
    TEXT = "text"
    AREA = "area"


@dataclass
class Highlight:
    """A text or area highlight on one page of a document"""
    id: str
    owner_key: str
    page: int
    kind: HighlightKind
    rects: List[Rect]
    color: str
    base_size: Optional[Size]
    text: str = ""
    remote_id: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    synced: bool = False
    geometry_version: int = GEOMETRY_VERSION

    def __post_init__(self):
        self.kind = HighlightKind(self.kind)
        self.color = normalize_color(self.color)
        if self.page < 1:
            raise ValueError(f"Page numbers are 1-based, got {self.page}")
        if not self.rects:
            raise ValueError("A highlight needs at least one rectangle")
        if self.kind is HighlightKind.AREA and len(self.rects) != 1:
            raise ValueError("An area highlight has exactly one rectangle")

    @classmethod
    def create(cls, owner_key: str, page: int, kind: HighlightKind, rects: List[Rect],
               color: str, base_size: Size, text: str = "") -> "Highlight":
        """New client-side highlight with a freshly minted id"""
        return cls(
            id=new_highlight_id(),
            owner_key=owner_key,
            page=page,
            kind=kind,
            rects=list(rects),
            color=color,
            base_size=base_size,
            text=text or "",
        )

    @property
    def area(self) -> Optional[Rect]:
        return self.rects[0] if self.kind is HighlightKind.AREA else None

    @property
    def is_ephemeral(self) -> bool:
        return self.owner_key == EPHEMERAL_OWNER

    def with_changes(self, **changes: Any) -> "Highlight":
        return replace(self, **changes)

    def to_remote_payload(self) -> Dict[str, Any]:
        """Wire format of a remote save; geometry stays in base space"""
        if self.kind is HighlightKind.TEXT:
            position = {"rects": [r.to_dict() for r in self.rects]}
        else:
            position = {"area": self.rects[0].to_dict()}
        return {
            "reference_id": self.owner_key,
            "type": self.kind.value,
            "page_number": self.page,
            "content": self.text or "",
            "position": position,
            "color": self.color,
        }

    @classmethod
    def from_remote(cls, owner_key: str, annotation: Dict[str, Any]) -> Optional["Highlight"]:
        """
        Map a server annotation onto a local, already-synced highlight.

        Returns:
            The highlight, or None when the annotation carries no geometry
        """
        position = annotation.get("position") or {}
        raw_rects = position.get("rects") or []
        if raw_rects:
            kind = HighlightKind.TEXT
            rects = [Rect.from_dict(r) for r in raw_rects]
        elif position.get("area"):
            kind = HighlightKind.AREA
            rects = [Rect.from_dict(position["area"])]
        else:
            return None

        server_id = annotation.get("id") or annotation.get("remote_id")
        server_id = str(server_id) if server_id is not None else None
        return cls(
            id=server_id or new_highlight_id(),
            owner_key=owner_key,
            page=int(annotation.get("page_number") or annotation.get("page") or 1),
            kind=HighlightKind(annotation.get("type") or kind.value),
            rects=rects,
            color=annotation.get("color") or "",
            base_size=Size.from_dict(annotation.get("base_size")),
            text=annotation.get("content") or annotation.get("text") or "",
            remote_id=server_id,
            created_at=int(annotation.get("created_at") or now_ms()),
            synced=True,
            geometry_version=LEGACY_GEOMETRY_VERSION,
        )


def dedup_signature(highlight: Highlight) -> str:
    """
    Key under which two highlights on a page count as duplicates.

    Rects are rounded to integer pixels and sorted so that fragment order
    from text selection does not matter.
    """
    rect_parts = []
    for rect in highlight.rects:
        r = rect.rounded()
        rect_parts.append(f"{r.x}:{r.y}:{r.width}:{r.height}")
    rect_parts.sort()
    return "|".join([
        str(highlight.page),
        highlight.kind.value,
        highlight.color,
        *rect_parts,
        (highlight.text or "").strip(),
    ])


class SyncAction(str, Enum):
    SAVE = "save"
    DELETE = "delete"


class SyncStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


@dataclass
class SyncQueueItem:
    """A pending remote operation"""
    id: Optional[int]
    action: SyncAction
    payload: Optional[Dict[str, Any]] = None
    local_id: Optional[str] = None
    target_id: Optional[str] = None
    retry_count: int = 0
    last_error: Optional[str] = None
    status: SyncStatus = SyncStatus.PENDING
    timestamp: int = field(default_factory=now_ms)


@dataclass
class Bookmark:
    id: str
    owner_key: str
    page: int
    title: str
    created_at: int = field(default_factory=now_ms)

    @classmethod
    def create(cls, owner_key: str, page: int, title: str = "") -> "Bookmark":
        return cls(
            id=f"bookmark-{uuid.uuid4().hex}",
            owner_key=owner_key,
            page=page,
            title=title.strip() or f"Page {page}",
        )
