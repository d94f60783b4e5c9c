from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping

from ..errors import ConfigurationError
from ..ir.lifetime import LifetimeRange, PersistentRange
from ..ir.texture import TextureFormat
from ..ir.tiles import TileAllocation, TileGrid
from .core import AllocationBundle, PlannerConfig

logger = logging.getLogger(__name__)


def first_fit_slots(names: List[str], lifetimes: Mapping[str, LifetimeRange]) -> Dict[str, int]:
    """
    Greedy interval-graph coloring.

    Textures are visited by `sort_order` (stable, so equal keys keep the
    declaration order) and each takes the lowest slot whose accumulated
    liveness does not intersect its own.
    """
    occupancy: List[int] = []
    slot_of: Dict[str, int] = {}
    for name in sorted(names, key=lambda n: lifetimes[n].sort_order):
        mask = lifetimes[name].live_mask()
        for slot, used in enumerate(occupancy):
            if used & mask == 0:
                occupancy[slot] = used | mask
                slot_of[name] = slot
                break
        else:
            occupancy.append(mask)
            slot_of[name] = len(occupancy) - 1
    return {n: slot_of[n] for n in names}


def allocate_screen_tiles(
    lifetimes: Mapping[str, LifetimeRange],
    formats: Mapping[str, TextureFormat],
    grid: TileGrid,
) -> Dict[TextureFormat, TileAllocation]:
    """
    Assign every screen-relative texture a slot in its format's shared atlas.

    `formats` decides both grouping and tie-break order (its iteration order).
    Raises ConfigurationError when a format needs more slots than `grid` has.
    """
    groups: Dict[TextureFormat, List[str]] = {}
    for name, fmt in formats.items():
        if isinstance(lifetimes[name], PersistentRange):
            raise ValueError(f"persistent texture '{name}' cannot live in a screen atlas")
        groups.setdefault(fmt, []).append(name)

    out: Dict[TextureFormat, TileAllocation] = {}
    for fmt, names in groups.items():
        tile_of = first_fit_slots(names, lifetimes)
        tile_count = max(tile_of.values()) + 1
        if tile_count > grid.max_tiles:
            raise ConfigurationError(
                f"format {fmt.value} needs {tile_count} tiles but the slot grid supports at most {grid.max_tiles}; "
                f"extend the grid table or reduce simultaneously live {fmt.value} textures"
            )
        occupancy = [0] * tile_count
        for name, t in tile_of.items():
            occupancy[t] |= lifetimes[name].live_mask()
        x_size, y_size = grid.layout(tile_count)
        out[fmt] = TileAllocation(
            format=fmt,
            tile_of=tile_of,
            tile_count=tile_count,
            x_size=x_size,
            y_size=y_size,
            positions=tuple(grid.position(t) for t in range(tile_count)),
            occupancy=tuple(occupancy),
        )
    return out


@dataclass(frozen=True)
class TileAllocStep:
    step_id: str = "tile_alloc"

    def run(self, bundle: AllocationBundle, *, config: PlannerConfig) -> AllocationBundle:
        if bundle.lifetimes is None:
            raise ValueError("tile_alloc step requires the lifetime step to run first")
        bundle.screen = allocate_screen_tiles(
            bundle.lifetimes, bundle.textures.screen, config.capabilities.tile_grid
        )
        for fmt, alloc in bundle.screen.items():
            logger.info("format %s: %d tiles (%dx%d grid)", fmt.value, alloc.tile_count, alloc.x_size, alloc.y_size)
            for name, t in alloc.tile_of.items():
                logger.info("  %s -> tile %d", name, t)
        return bundle
