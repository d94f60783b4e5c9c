from .core import AllocationBundle, PlannerConfig, PlannerStep
from .fixed_pack import pack_fixed_textures
from .liveness import compute_lifetimes
from .options import FixedPackOptions, PlannerDebugOptions, ScanOptions, TextileCapabilities
from .pipeline import plan
from .scan import scan_file_access, scan_pass_accesses
from .tile_alloc import allocate_screen_tiles

__all__ = [
    "AllocationBundle",
    "PlannerConfig",
    "PlannerStep",
    "plan",
    "scan_file_access",
    "scan_pass_accesses",
    "compute_lifetimes",
    "allocate_screen_tiles",
    "pack_fixed_textures",
    "TextileCapabilities",
    "ScanOptions",
    "FixedPackOptions",
    "PlannerDebugOptions",
]
