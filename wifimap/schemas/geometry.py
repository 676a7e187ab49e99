"""Room geometry schemas.

Rooms arrive from an upstream scanning pipeline already normalised into
metres. Everything here is immutable once built.
"""

import math
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Point3D(BaseModel):
    """Position or direction in room coordinates (x, y horizontal, z up)."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    model_config = ConfigDict(frozen=True)

    def __add__(self, other: "Point3D") -> "Point3D":
        return Point3D(x=self.x + other.x, y=self.y + other.y, z=self.z + other.z)

    def __sub__(self, other: "Point3D") -> "Point3D":
        return Point3D(x=self.x - other.x, y=self.y - other.y, z=self.z - other.z)

    def scaled(self, factor: float) -> "Point3D":
        return Point3D(x=self.x * factor, y=self.y * factor, z=self.z * factor)

    def dot(self, other: "Point3D") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.dot(self))

    def normalized(self) -> "Point3D":
        length = self.magnitude
        if length < 1e-10:
            return self
        return self.scaled(1.0 / length)

    def distance_to(self, other: "Point3D") -> float:
        return (self - other).magnitude

    def horizontal_distance_to(self, other: "Point3D") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def midpoint(self, other: "Point3D") -> "Point3D":
        return (self + other).scaled(0.5)

    def with_z(self, z: float) -> "Point3D":
        return Point3D(x=self.x, y=self.y, z=z)


class BoundingBox(BaseModel):
    """Axis-aligned box. Corners are reordered so that min <= max."""
    min: Point3D
    max: Point3D

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _order_corners(cls, data):
        if not isinstance(data, dict) or "min" not in data or "max" not in data:
            return data
        lo = Point3D.model_validate(data["min"])
        hi = Point3D.model_validate(data["max"])
        return {
            "min": Point3D(x=min(lo.x, hi.x), y=min(lo.y, hi.y), z=min(lo.z, hi.z)),
            "max": Point3D(x=max(lo.x, hi.x), y=max(lo.y, hi.y), z=max(lo.z, hi.z)),
        }

    @classmethod
    def from_extent(cls, width: float, depth: float, height: float,
                    origin: Optional[Point3D] = None) -> "BoundingBox":
        """Box of the given size anchored at origin (default: the frame origin)."""
        origin = origin or Point3D()
        return cls(min=origin, max=origin + Point3D(x=width, y=depth, z=height))

    @property
    def center(self) -> Point3D:
        return self.min.midpoint(self.max)

    @property
    def size(self) -> Point3D:
        return self.max - self.min

    @property
    def width(self) -> float:
        return self.max.x - self.min.x

    @property
    def depth(self) -> float:
        return self.max.y - self.min.y

    @property
    def height(self) -> float:
        return self.max.z - self.min.z

    @property
    def area(self) -> float:
        """Horizontal footprint in square metres."""
        return self.width * self.depth

    @property
    def volume(self) -> float:
        return self.area * self.height

    @property
    def is_degenerate(self) -> bool:
        return self.area <= 1e-9

    def contains(self, point: Point3D) -> bool:
        return (
            self.min.x <= point.x <= self.max.x and
            self.min.y <= point.y <= self.max.y and
            self.min.z <= point.z <= self.max.z
        )

    def contains_2d(self, point: Point3D) -> bool:
        return self.min.x <= point.x <= self.max.x and self.min.y <= point.y <= self.max.y

    def expanded(self, margin: float) -> "BoundingBox":
        pad = Point3D(x=margin, y=margin, z=margin)
        return BoundingBox(min=self.min - pad, max=self.max + pad)

    def intersects(self, other: "BoundingBox") -> bool:
        return not (
            other.min.x > self.max.x or other.max.x < self.min.x or
            other.min.y > self.max.y or other.max.y < self.min.y or
            other.min.z > self.max.z or other.max.z < self.min.z
        )

    def distance_to_point(self, point: Point3D) -> float:
        """Euclidean distance from the box surface to a point (0 inside)."""
        dx = max(self.min.x - point.x, 0.0, point.x - self.max.x)
        dy = max(self.min.y - point.y, 0.0, point.y - self.max.y)
        dz = max(self.min.z - point.z, 0.0, point.z - self.max.z)
        return math.sqrt(dx * dx + dy * dy + dz * dz)


class WallMaterial(str, Enum):
    DRYWALL = "drywall"
    CONCRETE = "concrete"
    GLASS = "glass"
    METAL = "metal"
    WOOD = "wood"
    BRICK = "brick"


class WallElement(BaseModel):
    """Straight wall segment standing on the floor between two endpoints."""
    id: str
    start: Point3D
    end: Point3D
    height: float = Field(2.5, gt=0, description="Wall height in meters")
    thickness: float = Field(0.1, ge=0, description="Wall thickness in meters")
    material: WallMaterial = WallMaterial.DRYWALL

    model_config = ConfigDict(frozen=True)

    @property
    def length(self) -> float:
        return self.start.horizontal_distance_to(self.end)

    @property
    def base_height(self) -> float:
        return min(self.start.z, self.end.z)

    @property
    def top_height(self) -> float:
        return self.base_height + self.height


class FurnitureType(str, Enum):
    TABLE = "table"
    DESK = "desk"
    DRESSER = "dresser"
    SHELF = "shelf"
    CABINET = "cabinet"
    COUNTER = "counter"
    NIGHTSTAND = "nightstand"
    SOFA = "sofa"
    CHAIR = "chair"
    BED = "bed"
    STOOL = "stool"
    APPLIANCE = "appliance"
    ELECTRONICS = "electronics"


# Furniture a router can sit on
ROUTER_SUITABLE_FURNITURE = frozenset({
    FurnitureType.TABLE, FurnitureType.DESK, FurnitureType.SHELF, FurnitureType.CABINET,
})

# Furniture that emits or reflects enough RF to matter for interference
INTERFERENCE_SOURCES = frozenset({FurnitureType.APPLIANCE, FurnitureType.ELECTRONICS})


class SurfaceAccessibility(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"


class PlacementSurface(BaseModel):
    """Flat surface on a furniture item a device could be set down on."""
    id: str
    center: Point3D
    area: float = Field(0.25, ge=0, description="Usable area in square meters")
    accessibility: SurfaceAccessibility = SurfaceAccessibility.GOOD
    power_proximity: Optional[float] = Field(None, ge=0, description="Distance to nearest outlet in meters")

    model_config = ConfigDict(frozen=True)


class FurnitureItem(BaseModel):
    id: str
    type: FurnitureType
    bounds: BoundingBox
    surfaces: List[PlacementSurface] = Field(default_factory=list)
    confidence: float = Field(1.0, ge=0, le=1)

    model_config = ConfigDict(frozen=True)

    @property
    def is_router_suitable(self) -> bool:
        return self.type in ROUTER_SUITABLE_FURNITURE

    @property
    def is_interference_source(self) -> bool:
        return self.type in INTERFERENCE_SOURCES


class OpeningType(str, Enum):
    DOOR = "door"
    WINDOW = "window"
    OPENING = "opening"


class Opening(BaseModel):
    """Door, window or open passage cut into a wall."""
    id: str
    type: OpeningType
    bounds: BoundingBox
    is_passable: bool = True

    model_config = ConfigDict(frozen=True)


class FloorPlan(BaseModel):
    bounds: BoundingBox
    area: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class RoomModel(BaseModel):
    """A scanned room. Every position it holds shares one coordinate frame."""
    id: str
    name: str = ""
    bounds: BoundingBox
    walls: List[WallElement] = Field(default_factory=list)
    furniture: List[FurnitureItem] = Field(default_factory=list)
    openings: List[Opening] = Field(default_factory=list)
    floor: Optional[FloorPlan] = None

    model_config = ConfigDict(frozen=True)

    @property
    def floor_area(self) -> float:
        if self.floor is not None:
            return self.floor.area
        return self.bounds.area

    @property
    def floor_height(self) -> float:
        return self.bounds.min.z

    @property
    def ceiling_height(self) -> float:
        return self.bounds.height
