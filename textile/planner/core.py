from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from ..ir.access import AccessSet
from ..ir.lifetime import LifetimeRange
from ..ir.passes import PassTimeline
from ..ir.texture import TextureConfig, TextureFormat
from ..ir.tiles import FixedAtlas, TileAllocation
from ..frontend.shader_file import ShaderFile
from .options import FixedPackOptions, PlannerDebugOptions, ScanOptions, TextileCapabilities


@dataclass(frozen=True)
class PlannerConfig:
    capabilities: TextileCapabilities = field(default_factory=TextileCapabilities)
    scan: ScanOptions = field(default_factory=ScanOptions)
    fixed_pack: FixedPackOptions = field(default_factory=FixedPackOptions)
    debug: PlannerDebugOptions = field(default_factory=PlannerDebugOptions)
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AllocationBundle:
    """
    The planner output bundle.

    Steps fill it top to bottom: accesses -> lifetimes -> screen/fixed atlases.
    Every attached value is immutable; steps replace fields, never edit them.
    """

    textures: TextureConfig
    timeline: PassTimeline
    pass_files: Tuple[ShaderFile, ...] = ()
    accesses: Optional[Tuple[AccessSet, ...]] = None
    lifetimes: Optional[Dict[str, LifetimeRange]] = None
    screen: Optional[Dict[TextureFormat, TileAllocation]] = None
    fixed: Optional[Dict[TextureFormat, FixedAtlas]] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        self.timeline.validate()
        self.textures.validate()
        if self.accesses is not None and len(self.accesses) != self.timeline.num_passes:
            raise ValueError(
                f"access table has {len(self.accesses)} entries for {self.timeline.num_passes} passes"
            )
        if self.lifetimes is not None:
            missing = [n for n in self.textures.names() if n not in self.lifetimes]
            if missing:
                raise ValueError(f"lifetimes missing for declared textures: {missing}")
        if self.screen is not None:
            for alloc in self.screen.values():
                alloc.validate()


class PlannerStep(Protocol):
    step_id: str

    def run(self, bundle: AllocationBundle, *, config: PlannerConfig) -> AllocationBundle: ...

