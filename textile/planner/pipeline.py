from __future__ import annotations

import logging
from typing import List, Sequence

from ..frontend.shader_file import ShaderFile
from ..ir.passes import build_pass_timeline
from ..ir.texture import TextureConfig
from .core import AllocationBundle, PlannerConfig, PlannerStep
from .fixed_pack import FixedPackStep
from .instrument import DumpPlanInstrument, PlannerInstrument, TimingInstrument, VerifyInstrument, to_jsonable
from .liveness import LifetimeStep
from .scan import ScanStep
from .tile_alloc import TileAllocStep
from .verify import verify_all

logger = logging.getLogger(__name__)


def default_steps() -> List[PlannerStep]:
    return [ScanStep(), LifetimeStep(), TileAllocStep(), FixedPackStep()]


def plan(
    pass_files: Sequence[ShaderFile],
    textures: TextureConfig,
    *,
    config: PlannerConfig = PlannerConfig(),
) -> AllocationBundle:
    """
    Unified allocation entry: scan -> lifetime -> tile_alloc -> fixed_pack.

    `pass_files` must already be filtered to pass programs and fully expanded.
    Any ConfigurationError from a step aborts the whole plan.
    """
    textures.validate()
    caps = config.capabilities
    timeline = build_pass_timeline([f.name for f in pass_files], prefixes=caps.pass_prefixes)
    logger.info("pass timeline: %d passes from %d files", timeline.num_passes, len(pass_files))

    instruments: List[PlannerInstrument] = [TimingInstrument()]
    if config.debug.validate_after_each_step:
        instruments.append(VerifyInstrument(fail_fast=True))
    if config.debug.dump_plan:
        instruments.append(DumpPlanInstrument(dump_dir=config.debug.dump_plan_dir, run_id=config.debug.dump_plan_run_id))

    bundle = AllocationBundle(textures=textures, timeline=timeline, pass_files=tuple(pass_files))
    if config.debug.dump_config:
        bundle.meta["config_dump"] = to_jsonable(config)

    steps = default_steps()
    bundle.meta["planner_steps"] = [s.step_id for s in steps]
    for step in steps:
        for ins in instruments:
            ins.before_step(step.step_id, bundle)
        bundle = step.run(bundle, config=config)
        reports = verify_all(bundle) if config.debug.validate_after_each_step else None
        for ins in instruments:
            ins.after_step(step.step_id, bundle, verify=reports)

    bundle.validate()
    return bundle
