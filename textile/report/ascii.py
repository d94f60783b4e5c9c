from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from ..codegen.macros import CodegenOptions, atlas_images
from ..ir.lifetime import HistoryRange, LifetimeRange, PersistentRange, TransientRange
from ..ir.texture import TextureFormat
from ..ir.tiles import FixedAtlas, TileAllocation


RULE = "=" * 80
CELL = 5


def _cell(mark: str) -> str:
    return f" {mark} " if mark else " " * CELL


def render_lifetime_timeline(lifetimes: Mapping[str, LifetimeRange], pass_names: Sequence[str]) -> str:
    """
    One row per texture, one 5-char column per pass.

    Transient rows are sorted by first pass; history and persistent rows keep
    the input order.
    """
    width = max((len(n) for n in lifetimes), default=0) + 2
    total = len(pass_names)
    out: List[str] = [RULE, "TEXTURE LIFETIME VISUALIZATION", RULE, ""]
    out.append(" " * width + "│" + "".join(_cell(p[:3].ljust(3)) for p in pass_names))
    out.append("─" * width + "┼" + "─" * (total * CELL))

    transient = sorted(
        ((n, lt) for n, lt in lifetimes.items() if isinstance(lt, TransientRange)), key=lambda it: it[1].first
    )
    history = [(n, lt) for n, lt in lifetimes.items() if isinstance(lt, HistoryRange)]
    persistent = [(n, lt) for n, lt in lifetimes.items() if isinstance(lt, PersistentRange)]

    if transient:
        out.append("TRANSIENT TEXTURES:")
        for name, lt in transient:
            out.append(name.ljust(width) + "│" + "".join(_cell("███" if p in lt else "") for p in range(total)))
    if history:
        out.append("")
        out.append("HISTORY TEXTURES:")
        for name, lt in history:
            row = []
            for p in range(total):
                if p <= lt.last_read:
                    row.append(_cell("RRR"))
                elif p >= lt.first_write:
                    row.append(_cell("WWW"))
                else:
                    row.append(_cell(""))
            out.append(name.ljust(width) + "│" + "".join(row))
    if persistent:
        out.append("")
        out.append("PERSISTENT TEXTURES:")
        for name, lt in persistent:
            out.append(name.ljust(width) + "│" + _cell("PPP") * total + f" ({lt.width}x{lt.height})")
    out.append(RULE)
    return "\n".join(out) + "\n"


def _screen_grid(alloc: TileAllocation) -> List[str]:
    by_cell: Dict[tuple, int] = {pos: t for t, pos in enumerate(alloc.positions)}
    out: List[str] = []
    for y in range(alloc.y_size):
        top, mid, bottom = [], [], []
        for x in range(alloc.x_size):
            t = by_cell.get((x, y))
            if t is None:
                top.append(" " * 11)
                mid.append(" " * 11)
                bottom.append(" " * 11)
                continue
            names = alloc.textures_on(t)
            label = (names[0] if names else f"Tile{t}")[:8].ljust(8)
            top.append("┌────────┐ ")
            mid.append(f"│{label}│ ")
            bottom.append("└────────┘ ")
        out.extend(["".join(top).rstrip(), "".join(mid).rstrip(), "".join(bottom).rstrip()])
    return out


def render_atlas_packing(
    screen: Mapping[TextureFormat, TileAllocation],
    fixed: Optional[Mapping[TextureFormat, FixedAtlas]] = None,
    options: CodegenOptions = CodegenOptions(),
) -> str:
    images = {fmt: img for img, (_, fmt) in atlas_images(screen, {}, options).items()}
    fixed_images = {fmt: img for img, (_, fmt) in atlas_images({}, fixed, options).items()}

    out: List[str] = [RULE, "TEXTURE ATLAS PACKING VISUALIZATION", RULE, ""]
    for fmt, alloc in screen.items():
        out.append(f"Format: {fmt.value} ({alloc.tile_count} tiles) -> {images[fmt]}")
        out.append("─" * 60)
        out.extend(_screen_grid(alloc))
        out.append("")
        out.append("Textures:")
        for t in range(alloc.tile_count):
            out.append(f"  Tile {t}: {', '.join(alloc.textures_on(t))}")
        out.append("")

    for fmt, atlas in (fixed or {}).items():
        out.append(f"Fixed format: {fmt.value} ({atlas.width}x{atlas.height}) -> {fixed_images[fmt]}")
        out.append("─" * 60)
        for name, r in atlas.tiles.items():
            out.append(f"  {name}: {r.width}x{r.height} at ({r.offset_x}, {r.offset_y})")
        out.append("")
    out.append(RULE)
    return "\n".join(out) + "\n"
