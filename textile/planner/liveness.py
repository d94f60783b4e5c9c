from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Sequence

from ..errors import ConfigurationError
from ..ir.access import AccessSet
from ..ir.lifetime import HistoryRange, LifetimeRange, PersistentRange, TransientRange, describe
from ..ir.texture import TextureCategory, TextureConfig
from .core import AllocationBundle, PlannerConfig
from .options import TextileCapabilities
from .scan import referenced_textures

logger = logging.getLogger(__name__)


def transient_lifetime(name: str, accesses: Sequence[AccessSet]) -> TransientRange:
    used = [i for i, acc in enumerate(accesses) if acc.touches(name)]
    if not used:
        raise ConfigurationError(f"transient texture '{name}' is declared but never read or written by any pass")
    return TransientRange(first=min(used), last=max(used))


def history_lifetime(name: str, accesses: Sequence[AccessSet]) -> HistoryRange:
    """
    Last frame's data is read up to `last_read`, this frame's is written from
    `first_write` on. Missing accesses fall back to the pipeline boundaries.
    """
    total = len(accesses)
    first_write = next((i for i, acc in enumerate(accesses) if name in acc.writes), total - 1)
    last_read = 0
    for i in range(min(first_write, total - 1), -1, -1):
        if name in accesses[i].reads:
            last_read = i
            break
    return HistoryRange(last_read=last_read, first_write=first_write, total=total)


def compute_lifetimes(
    accesses: Sequence[AccessSet],
    textures: TextureConfig,
    caps: TextileCapabilities,
) -> Dict[str, LifetimeRange]:
    """
    One LifetimeRange per declared texture, in declaration order (screen
    textures first, then fixed ones).
    """
    textures.validate()
    undeclared = sorted(n for n in referenced_textures(accesses) if not textures.is_declared(n))
    if undeclared:
        raise ConfigurationError(f"textures referenced by shaders but not declared in the config: {undeclared}")

    total = len(accesses)
    out: Dict[str, LifetimeRange] = {}
    for name in textures.screen:
        category = caps.category_of(name)
        if category == TextureCategory.TRANSIENT:
            out[name] = transient_lifetime(name, accesses)
        elif category == TextureCategory.HISTORY:
            out[name] = history_lifetime(name, accesses)
        else:
            raise ConfigurationError(
                f"screen texture '{name}' is {category.value}; screen textures must be transient or history"
            )

    for name, spec in textures.fixed.items():
        category = caps.category_of(name)
        if category != TextureCategory.PERSISTENT:
            raise ConfigurationError(f"fixed texture '{name}' is {category.value}; fixed textures must be persistent")
        out[name] = PersistentRange(total=total, width=int(spec.width), height=int(spec.height))
    return out


@dataclass(frozen=True)
class LifetimeStep:
    step_id: str = "lifetime"

    def run(self, bundle: AllocationBundle, *, config: PlannerConfig) -> AllocationBundle:
        if bundle.accesses is None:
            raise ValueError("lifetime step requires the scan step to run first")
        bundle.lifetimes = compute_lifetimes(bundle.accesses, bundle.textures, config.capabilities)
        for name, lt in bundle.lifetimes.items():
            logger.info("lifetime %s: %s", name, describe(lt))
        return bundle
