from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..ir.texture import FixedTextureSpec, TextureFormat
from ..ir.tiles import FixedAtlas, FixedTileInfo
from .core import AllocationBundle, PlannerConfig

logger = logging.getLogger(__name__)


SizedName = Tuple[str, int, int]  # (name, width, height)


def shelf_pack(items: Sequence[SizedName], max_width: int) -> Tuple[Dict[str, FixedTileInfo], int, int]:
    """
    Place items left to right, opening a new shelf when the next item would
    cross `max_width`. Shelf height is the tallest item on it.

    Returns (rects, used_width, total_height). An item wider than `max_width`
    still gets a shelf of its own.
    """
    rects: Dict[str, FixedTileInfo] = {}
    x = 0
    y = 0
    shelf_h = 0
    used_w = 0
    for name, w, h in items:
        if x > 0 and x + w > max_width:
            y += shelf_h
            x = 0
            shelf_h = 0
        rects[name] = FixedTileInfo(width=w, height=h, offset_x=x, offset_y=y)
        x += w
        shelf_h = max(shelf_h, h)
        used_w = max(used_w, x)
    return rects, used_w, y + shelf_h


def pack_fixed_group(items: Sequence[SizedName], *, max_atlas_width: int = 8192) -> Tuple[Dict[str, FixedTileInfo], int, int]:
    """
    Search candidate shelf widths for the smallest-area layout.

    Items are sorted by height, then width, both descending. Ties on area go to
    the squarer atlas. The search ends as soon as everything fits on one
    shelf-height, since no wider candidate can beat that.
    """
    if not items:
        raise ValueError("pack_fixed_group requires at least one texture")
    ordered = sorted(items, key=lambda it: (-it[2], -it[1]))
    min_width = max(w for _, w, _ in ordered)
    min_height = max(h for _, _, h in ordered)
    upper = max(int(max_atlas_width), min_width)

    best: Optional[Tuple[int, int, Dict[str, FixedTileInfo], int, int]] = None
    for cand in range(min_width, upper + 1):
        rects, w, h = shelf_pack(ordered, cand)
        key = (w * h, max(w, h))
        if best is None or key < (best[0], best[1]):
            best = (key[0], key[1], rects, w, h)
        if h <= min_height:
            break
    assert best is not None
    return best[2], best[3], best[4]


def pack_fixed_textures(
    fixed: Mapping[str, FixedTextureSpec], *, max_atlas_width: int = 8192
) -> Dict[TextureFormat, FixedAtlas]:
    groups: Dict[TextureFormat, List[SizedName]] = {}
    for name, spec in fixed.items():
        spec.validate(name)
        groups.setdefault(spec.format, []).append((name, int(spec.width), int(spec.height)))

    out: Dict[TextureFormat, FixedAtlas] = {}
    for fmt, items in groups.items():
        rects, w, h = pack_fixed_group(items, max_atlas_width=max_atlas_width)
        # Keep declaration order in the result, not packing order.
        out[fmt] = FixedAtlas(format=fmt, tiles={n: rects[n] for n, _, _ in items}, width=w, height=h)
    return out


@dataclass(frozen=True)
class FixedPackStep:
    step_id: str = "fixed_pack"

    def run(self, bundle: AllocationBundle, *, config: PlannerConfig) -> AllocationBundle:
        bundle.fixed = pack_fixed_textures(
            bundle.textures.fixed, max_atlas_width=config.fixed_pack.max_atlas_width
        )
        for fmt, atlas in bundle.fixed.items():
            logger.info("fixed format %s: %dx%d atlas", fmt.value, atlas.width, atlas.height)
            for name, r in atlas.tiles.items():
                logger.info("  %s -> %dx%d at (%d, %d)", name, r.width, r.height, r.offset_x, r.offset_y)
        return bundle
