from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..ir.access import AccessSet
from ..ir.passes import PassTimeline
from ..frontend.comments import PLACEHOLDER_REGEX
from ..frontend.shader_file import ShaderFile
from .core import AllocationBundle, PlannerConfig
from .options import TextileCapabilities

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _accessor_regex(prefixes: Tuple[str, ...], ops: Tuple[str, ...]) -> "re.Pattern[str]":
    prefix_alt = "|".join(re.escape(p) for p in prefixes)
    # Longest first so `gatherTexel` is not shadowed by `gather`.
    op_alt = "|".join(re.escape(op) for op in sorted(set(ops), key=len, reverse=True))
    return re.compile(rf"\b((?:{prefix_alt})_[A-Za-z0-9_]+?)_({op_alt})\s*\(")


def accessor_regex(caps: TextileCapabilities) -> "re.Pattern[str]":
    return _accessor_regex(tuple(caps.category_prefixes.keys()), caps.all_ops())


def is_directive(line: str) -> bool:
    # Held comments look like `#__COMMENT_n__#` and must not hide the code after them.
    return PLACEHOLDER_REGEX.sub("", line).lstrip().startswith("#")


def scan_file_access(code: str, caps: TextileCapabilities) -> AccessSet:
    """
    Collect the virtual textures one program reads and writes.

    Purely lexical: calls inside disabled branches still count, which only
    ever widens a lifetime.
    """
    regex = accessor_regex(caps)
    read_ops = set(caps.read_ops) | set(caps.atomic_ops)
    write_ops = set(caps.write_ops) | set(caps.atomic_ops)

    reads: Set[str] = set()
    writes: Set[str] = set()
    for line in code.splitlines():
        if is_directive(line):
            continue
        for m in regex.finditer(line):
            name, op = m.group(1), m.group(2)
            if op in read_ops:
                reads.add(name)
            if op in write_ops:
                writes.add(name)
    return AccessSet(reads=frozenset(reads), writes=frozenset(writes))


def scan_pass_accesses(
    files: Sequence[ShaderFile],
    timeline: PassTimeline,
    caps: TextileCapabilities,
    *,
    max_workers: Optional[int] = None,
) -> Tuple[AccessSet, ...]:
    """
    Scan every pass program and union the results per pass index.

    Files are scanned concurrently; the per-pass union is commutative, so the
    table does not depend on scheduling.
    """
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        per_file = list(pool.map(lambda f: scan_file_access(f.code, caps), files))

    table: List[AccessSet] = [AccessSet() for _ in range(timeline.num_passes)]
    for f, acc in zip(files, per_file):
        idx = timeline.index_of(f.name)
        table[idx] = table[idx].union(acc)
        logger.debug("scanned %s (pass %d): reads=%s writes=%s", f.path, idx, sorted(acc.reads), sorted(acc.writes))
    return tuple(table)


def referenced_textures(accesses: Sequence[AccessSet]) -> Dict[str, List[int]]:
    """texture -> sorted pass indices where it is read or written."""
    out: Dict[str, List[int]] = {}
    for idx, acc in enumerate(accesses):
        for name in sorted(acc.names()):
            out.setdefault(name, []).append(idx)
    return out


@dataclass(frozen=True)
class ScanStep:
    step_id: str = "scan"

    def run(self, bundle: AllocationBundle, *, config: PlannerConfig) -> AllocationBundle:
        bundle.accesses = scan_pass_accesses(
            bundle.pass_files,
            bundle.timeline,
            config.capabilities,
            max_workers=config.scan.max_workers,
        )
        return bundle
