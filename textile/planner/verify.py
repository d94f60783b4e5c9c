from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List

from ..ir.lifetime import TransientRange, mask_passes
from .core import AllocationBundle


@dataclass(frozen=True)
class VerifyError:
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VerifyReport:
    ok: bool
    errors: List[VerifyError] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, code: str, message: str, **context: Any) -> None:
        self.errors.append(VerifyError(code=code, message=message, context=dict(context)))
        self.ok = False


def verify_pass_accesses(bundle: AllocationBundle) -> VerifyReport:
    report = VerifyReport(ok=True)
    if bundle.accesses is None:
        report.stats["skipped"] = True
        return report
    if len(bundle.accesses) != bundle.timeline.num_passes:
        report.add_error(
            "access_table_size_mismatch",
            "access table length differs from pass count",
            accesses=len(bundle.accesses),
            num_passes=bundle.timeline.num_passes,
        )
    report.stats["num_passes"] = bundle.timeline.num_passes
    return report


def verify_transient_coverage(bundle: AllocationBundle) -> VerifyReport:
    """Every pass that touches a transient texture lies inside its range."""
    report = VerifyReport(ok=True)
    if bundle.lifetimes is None or bundle.accesses is None:
        report.stats["skipped"] = True
        return report
    checked = 0
    for name, lt in bundle.lifetimes.items():
        if not isinstance(lt, TransientRange):
            continue
        checked += 1
        for idx, acc in enumerate(bundle.accesses):
            if acc.touches(name) and idx not in lt:
                report.add_error(
                    "transient_access_outside_range",
                    "transient texture accessed outside its computed lifetime",
                    texture=name,
                    pass_index=idx,
                    range=[lt.first, lt.last],
                )
    report.stats["num_transient"] = checked
    return report


def verify_slot_aliasing(bundle: AllocationBundle) -> VerifyReport:
    """No two textures sharing a slot are live on the same pass."""
    report = VerifyReport(ok=True)
    if bundle.screen is None or bundle.lifetimes is None:
        report.stats["skipped"] = True
        return report
    total_tiles = 0
    for fmt, alloc in bundle.screen.items():
        total_tiles += alloc.tile_count
        for tile_id in range(alloc.tile_count):
            names = alloc.textures_on(tile_id)
            for a, b in combinations(names, 2):
                overlap = bundle.lifetimes[a].live_mask() & bundle.lifetimes[b].live_mask()
                if overlap:
                    report.add_error(
                        "slot_lifetime_overlap",
                        "textures sharing a slot are live at the same time",
                        format=fmt.value,
                        tile=tile_id,
                        textures=[a, b],
                        passes=mask_passes(overlap),
                    )
    report.stats["num_screen_tiles"] = total_tiles
    return report


def verify_fixed_overlap(bundle: AllocationBundle) -> VerifyReport:
    report = VerifyReport(ok=True)
    if bundle.fixed is None:
        report.stats["skipped"] = True
        return report
    for fmt, atlas in bundle.fixed.items():
        for name, r in atlas.tiles.items():
            if r.offset_x < 0 or r.offset_y < 0 or r.offset_x + r.width > atlas.width or r.offset_y + r.height > atlas.height:
                report.add_error(
                    "fixed_rect_out_of_bounds",
                    "fixed texture rectangle exceeds its atlas",
                    format=fmt.value,
                    texture=name,
                    atlas=[atlas.width, atlas.height],
                )
        for (a, ra), (b, rb) in combinations(atlas.tiles.items(), 2):
            if ra.overlaps(rb):
                report.add_error(
                    "fixed_rect_overlap",
                    "fixed texture rectangles overlap",
                    format=fmt.value,
                    textures=[a, b],
                )
    report.stats["num_fixed_atlases"] = len(bundle.fixed)
    return report


def verify_all(bundle: AllocationBundle) -> Dict[str, VerifyReport]:
    return {
        "pass_accesses": verify_pass_accesses(bundle),
        "transient_coverage": verify_transient_coverage(bundle),
        "slot_aliasing": verify_slot_aliasing(bundle),
        "fixed_overlap": verify_fixed_overlap(bundle),
    }
