from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .texture import TextureFormat


# Slot i of a screen atlas sits at grid cell (cx[i], cy[i]); the first n cells
# always form a compact block so the atlas only grows as far as needed.
DEFAULT_TILE_CX: Tuple[int, ...] = (0, 0, 1, 1, 0, 1, 2, 2, 2, 0, 1, 2, 3, 3, 3, 3, 0, 1, 2, 3)
DEFAULT_TILE_CY: Tuple[int, ...] = (0, 1, 0, 1, 2, 2, 0, 1, 2, 3, 3, 3, 0, 1, 2, 3, 4, 4, 4, 4)


@dataclass(frozen=True)
class TileGrid:
    cx: Tuple[int, ...] = DEFAULT_TILE_CX
    cy: Tuple[int, ...] = DEFAULT_TILE_CY

    def __post_init__(self) -> None:
        if len(self.cx) != len(self.cy):
            raise ValueError(f"tile grid cx/cy length mismatch: {len(self.cx)} vs {len(self.cy)}")
        if len(set(zip(self.cx, self.cy))) != len(self.cx):
            raise ValueError("tile grid has duplicate cells")

    @property
    def max_tiles(self) -> int:
        return len(self.cx)

    def position(self, tile_id: int) -> Tuple[int, int]:
        return self.cx[tile_id], self.cy[tile_id]

    def layout(self, tile_count: int) -> Tuple[int, int]:
        """(x_size, y_size) of the grid holding the first `tile_count` slots."""
        if tile_count < 1 or tile_count > self.max_tiles:
            raise ValueError(f"tile_count out of range: {tile_count} (max {self.max_tiles})")
        return max(self.cx[:tile_count]) + 1, max(self.cy[:tile_count]) + 1


@dataclass(frozen=True)
class TileAllocation:
    """Screen-relative atlas of one format: texture -> slot."""

    format: TextureFormat
    tile_of: Dict[str, int]
    tile_count: int
    x_size: int
    y_size: int
    positions: Tuple[Tuple[int, int], ...]  # slot -> (cx, cy)
    occupancy: Tuple[int, ...] = field(default_factory=tuple)  # slot -> liveness bitset

    def textures_on(self, tile_id: int) -> List[str]:
        return [name for name, t in self.tile_of.items() if t == tile_id]

    def validate(self) -> None:
        if self.tile_count != len(self.positions):
            raise ValueError(f"{self.format.value}: positions length {len(self.positions)} != tile_count {self.tile_count}")
        if self.tile_of and self.tile_count != max(self.tile_of.values()) + 1:
            raise ValueError(f"{self.format.value}: tile_count {self.tile_count} does not match assigned slots")
        for name, t in self.tile_of.items():
            if not 0 <= t < self.tile_count:
                raise ValueError(f"{self.format.value}: slot out of range for {name}: {t}")
        for cx, cy in self.positions:
            if cx >= self.x_size or cy >= self.y_size:
                raise ValueError(f"{self.format.value}: slot cell ({cx}, {cy}) outside {self.x_size}x{self.y_size} grid")


@dataclass(frozen=True)
class FixedTileInfo:
    width: int
    height: int
    offset_x: int
    offset_y: int

    def overlaps(self, other: "FixedTileInfo") -> bool:
        return (
            self.offset_x < other.offset_x + other.width
            and other.offset_x < self.offset_x + self.width
            and self.offset_y < other.offset_y + other.height
            and other.offset_y < self.offset_y + self.height
        )


@dataclass(frozen=True)
class FixedAtlas:
    """Fixed-size atlas of one format with shelf-packed rectangles."""

    format: TextureFormat
    tiles: Dict[str, FixedTileInfo]
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height
