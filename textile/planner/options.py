from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..errors import ConfigurationError
from ..ir.passes import DEFAULT_PASS_PREFIXES
from ..ir.texture import TextureCategory
from ..ir.tiles import TileGrid


DEFAULT_ATOMIC_OPS: Tuple[str, ...] = (
    "atomicAdd",
    "atomicMin",
    "atomicMax",
    "atomicAnd",
    "atomicOr",
    "atomicXor",
    "atomicExchange",
    "atomicCompSwap",
)


def _default_categories() -> Dict[str, TextureCategory]:
    return {
        "transient": TextureCategory.TRANSIENT,
        "history": TextureCategory.HISTORY,
        "persistent": TextureCategory.PERSISTENT,
    }


@dataclass(frozen=True)
class TextileCapabilities:
    """
    Everything the scanner, analyzer and allocator match against.

    Passed in rather than kept as module globals so that alternative setups
    (an extra texture category, a different slot grid) can coexist.
    """

    pass_prefixes: Tuple[str, ...] = DEFAULT_PASS_PREFIXES
    category_prefixes: Dict[str, TextureCategory] = field(default_factory=_default_categories)
    read_ops: Tuple[str, ...] = ("sample", "gather", "gatherTexel", "fetch", "load")
    write_ops: Tuple[str, ...] = ("store",)
    atomic_ops: Tuple[str, ...] = DEFAULT_ATOMIC_OPS
    tile_grid: TileGrid = field(default_factory=TileGrid)
    program_extensions: Tuple[str, ...] = (".csh", ".fsh", ".vsh", ".gsh", ".tcs", ".tes")

    def category_of(self, texture_name: str) -> TextureCategory:
        head = texture_name.split("_", 1)[0]
        if "_" in texture_name and head in self.category_prefixes:
            return self.category_prefixes[head]
        raise ConfigurationError(
            f"texture '{texture_name}' has no recognized category prefix "
            f"(expected one of: {', '.join(p + '_' for p in self.category_prefixes)})"
        )

    def all_ops(self) -> Tuple[str, ...]:
        return tuple(self.read_ops) + tuple(self.write_ops) + tuple(self.atomic_ops)


@dataclass(frozen=True)
class ScanOptions:
    max_workers: Optional[int] = None  # thread pool size; None lets the executor decide


@dataclass(frozen=True)
class FixedPackOptions:
    max_atlas_width: int = 8192
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlannerDebugOptions:
    dump_config: bool = True
    validate_after_each_step: bool = False
    dump_plan: bool = False
    dump_plan_dir: str = ".textile/plans"
    dump_plan_run_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
