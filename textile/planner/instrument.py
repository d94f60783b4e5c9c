from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from ..ir.lifetime import describe
from .core import AllocationBundle
from .verify import VerifyReport, verify_all


class PlannerInstrument(Protocol):
    instrument_id: str

    def before_step(self, step_name: str, bundle: AllocationBundle) -> None: ...

    def after_step(
        self, step_name: str, bundle: AllocationBundle, *, verify: Optional[Dict[str, VerifyReport]] = None
    ) -> None: ...


@dataclass
class TimingInstrument:
    instrument_id: str = "timing_v0"
    _start_ns: Dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def before_step(self, step_name: str, bundle: AllocationBundle) -> None:
        _ = bundle
        self._start_ns[step_name] = time.perf_counter_ns()

    def after_step(self, step_name: str, bundle: AllocationBundle, *, verify=None) -> None:
        _ = verify
        t0 = self._start_ns.get(step_name)
        if t0 is None:
            return
        ms = (time.perf_counter_ns() - int(t0)) / 1e6
        bundle.meta = dict(bundle.meta)
        timings = dict(bundle.meta.get("timings_ms", {}))
        timings[step_name] = ms
        bundle.meta["timings_ms"] = timings


@dataclass
class VerifyInstrument:
    instrument_id: str = "verify_v0"
    fail_fast: bool = True

    def before_step(self, step_name: str, bundle: AllocationBundle) -> None:
        _ = (step_name, bundle)

    def after_step(self, step_name: str, bundle: AllocationBundle, *, verify=None) -> None:
        if verify is None:
            verify = verify_all(bundle)
        ok = all(r.ok for r in verify.values())
        bundle.meta = dict(bundle.meta)
        v = dict(bundle.meta.get("verify", {}))
        v[step_name] = {
            "ok": bool(ok),
            "reports": {
                k: {
                    "ok": bool(r.ok),
                    "errors": [{"code": e.code, "message": e.message, "context": dict(e.context)} for e in r.errors],
                    "stats": dict(r.stats),
                }
                for k, r in verify.items()
            },
        }
        bundle.meta["verify"] = v
        if self.fail_fast and not ok:
            codes = sorted({e.code for r in verify.values() for e in r.errors})
            raise ValueError(f"planner verify failed after step '{step_name}': {', '.join(codes)}")


def to_jsonable(obj: Any) -> Any:
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {(k.value if isinstance(k, Enum) else str(k)): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, frozenset, set)):
        items = sorted(obj) if isinstance(obj, (frozenset, set)) else obj
        return [to_jsonable(v) for v in items]
    return repr(obj)


def snapshot(bundle: AllocationBundle) -> Dict[str, Any]:
    """JSON-able summary of the current allocation state."""
    return {
        "passes": bundle.timeline.pass_names(),
        "files": dict(bundle.timeline.file_pass),
        "accesses": to_jsonable(bundle.accesses),
        "lifetimes": {n: describe(lt) for n, lt in (bundle.lifetimes or {}).items()},
        "screen": {
            fmt.value: {
                "tile_count": a.tile_count,
                "grid": [a.x_size, a.y_size],
                "tiles": dict(a.tile_of),
            }
            for fmt, a in (bundle.screen or {}).items()
        },
        "fixed": {
            fmt.value: {
                "size": [a.width, a.height],
                "tiles": {n: [r.offset_x, r.offset_y, r.width, r.height] for n, r in a.tiles.items()},
            }
            for fmt, a in (bundle.fixed or {}).items()
        },
    }


@dataclass
class DumpPlanInstrument:
    """
    Debug utility: dump a JSON snapshot of the bundle after each step.
    """

    instrument_id: str = "dump_plan_v0"
    dump_dir: str = ".textile/plans"
    run_id: Optional[str] = None
    _seq: int = field(default=0, init=False, repr=False)

    def before_step(self, step_name: str, bundle: AllocationBundle) -> None:
        _ = (step_name, bundle)

    def after_step(self, step_name: str, bundle: AllocationBundle, *, verify=None) -> None:
        _ = verify
        run_id = self.run_id or os.environ.get("TEXTILE_PLAN_RUN_ID") or "run"
        out_dir = Path(self.dump_dir) / str(run_id)
        out_dir.mkdir(parents=True, exist_ok=True)

        data = {"step": str(step_name), **snapshot(bundle)}
        fname = f"step_{self._seq:02d}_{step_name}.json"
        self._seq += 1
        (out_dir / fname).write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
