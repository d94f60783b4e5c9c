import json
import random

import pytest

from textile.errors import ConfigurationError
from textile.frontend.shader_file import ShaderFile
from textile.ir.texture import FixedTextureSpec, TextureConfig, TextureFormat
from textile.planner.core import PlannerConfig
from textile.planner.instrument import snapshot
from textile.planner.options import PlannerDebugOptions
from textile.planner.pipeline import plan


TEXTURES = TextureConfig(
    screen={
        "transient_a": TextureFormat.RGBA16F,
        "transient_b": TextureFormat.RGBA16F,
        "transient_c": TextureFormat.RGBA16F,
        "history_taa": TextureFormat.RGBA16F,
    },
    fixed={"persistent_lut": FixedTextureSpec(64, 64, TextureFormat.RGBA8)},
)


def _files():
    return [
        ShaderFile("begin0.csh", "void main() { transient_a_store(p, history_taa_sample(uv)); }"),
        ShaderFile("begin1.csh", "void main() { transient_c_store(p, transient_a_load(p)); }"),
        ShaderFile("deferred1.fsh", "void main() { transient_a_fetch(p); persistent_lut_sample(uv); }"),
        ShaderFile("composite1.fsh", "void main() { transient_b_store(p, transient_c_load(p)); }"),
        ShaderFile("composite1_a.csh", "void main() { transient_c_atomicAdd(p, 1u); }"),
        ShaderFile("composite2.fsh", "void main() { transient_b_load(p); history_taa_store(p, v); }"),
    ]


def test_plan_allocates_expected_slots():
    bundle = plan(_files(), TEXTURES)
    assert bundle.timeline.pass_names() == ["begin0", "begin1", "deferred1", "composite1", "composite2"]
    alloc = bundle.screen[TextureFormat.RGBA16F]
    # history_taa is live on {0, 4}; a: [0, 2], c: [1, 3], b: [3, 4]
    assert alloc.tile_of == {"history_taa": 0, "transient_c": 0, "transient_a": 1, "transient_b": 1}
    assert alloc.tile_count == 2
    assert bundle.fixed[TextureFormat.RGBA8].tiles["persistent_lut"].offset_x == 0
    assert bundle.meta["planner_steps"] == ["scan", "lifetime", "tile_alloc", "fixed_pack"]
    assert set(bundle.meta["timings_ms"]) == {"scan", "lifetime", "tile_alloc", "fixed_pack"}


def test_plan_is_deterministic_for_any_file_order():
    cfg = PlannerConfig(debug=PlannerDebugOptions(dump_config=True, validate_after_each_step=True))
    ref = plan(_files(), TEXTURES, config=cfg)
    rng = random.Random(0)
    for _ in range(5):
        files = _files()
        rng.shuffle(files)
        b = plan(files, TEXTURES, config=cfg)
        assert b.timeline.file_pass == ref.timeline.file_pass
        assert snapshot(b) == snapshot(ref)
        assert b.meta["config_dump"] == ref.meta["config_dump"]
        assert all(v["ok"] for v in b.meta["verify"].values())


def test_config_dump_is_jsonable():
    bundle = plan(_files(), TEXTURES)
    dumped = json.dumps(bundle.meta["config_dump"])
    assert '"transient": "transient"' in dumped
    assert bundle.meta["config_dump"]["fixed_pack"]["max_atlas_width"] == 8192


def test_dump_plan_instrument_writes_json_snapshots(tmp_path):
    cfg = PlannerConfig(
        debug=PlannerDebugOptions(dump_config=False, dump_plan=True, dump_plan_dir=str(tmp_path), dump_plan_run_id="r1")
    )
    bundle = plan(_files(), TEXTURES, config=cfg)
    assert "config_dump" not in bundle.meta

    files = sorted((tmp_path / "r1").glob("*.json"))
    assert [f.name for f in files] == [
        "step_00_scan.json",
        "step_01_lifetime.json",
        "step_02_tile_alloc.json",
        "step_03_fixed_pack.json",
    ]
    first = json.loads(files[0].read_text(encoding="utf-8"))
    assert first["step"] == "scan"
    assert first["lifetimes"] == {}
    last = json.loads(files[-1].read_text(encoding="utf-8"))
    assert last["screen"]["RGBA16F"]["tile_count"] == 2
    assert last["fixed"]["RGBA8"]["size"] == [64, 64]
    assert last["lifetimes"]["transient_a"] == "transient [0, 2]"


def test_dump_plan_run_id_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("TEXTILE_PLAN_RUN_ID", "from_env")
    cfg = PlannerConfig(debug=PlannerDebugOptions(dump_plan=True, dump_plan_dir=str(tmp_path)))
    plan(_files(), TEXTURES, config=cfg)
    assert (tmp_path / "from_env" / "step_00_scan.json").is_file()


def test_plan_rejects_unused_transient():
    textures = TextureConfig(screen={"transient_unused": TextureFormat.RGBA8})
    with pytest.raises(ConfigurationError, match="transient_unused"):
        plan([ShaderFile("begin0.csh", "void main() {}")], textures)
