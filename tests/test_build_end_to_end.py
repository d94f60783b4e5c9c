import json
import shutil

import pytest

from textile.build import BuildOptions, build_pack, insert_textile_include
from textile.cli import main
from textile.errors import ConfigurationError, MissingInputError
from textile.ir.lifetime import TransientRange
from textile.ir.texture import TextureFormat
from textile.planner.core import PlannerConfig
from textile.planner.options import TextileCapabilities


COMMON = """#ifndef INCLUDE_lib_common
#define INCLUDE_lib_common
float unusedHelper() { return 0.0; }
vec4 tonemap(vec4 c) { return c / (c + 1.0); }
#endif
"""

BEGIN0 = """#version 460 compatibility
#include "/lib/common.glsl"
layout(local_size_x = 8, local_size_y = 8) in;
void main() {
    ivec2 p = ivec2(gl_GlobalInvocationID.xy);
    /* seed the color buffer */
    transient_color_store(p, tonemap(history_taa_load(p)));
}
"""

COMPOSITE1 = """#version 460 compatibility
#include "/lib/common.glsl"
uniform float frameTime;
uniform float unusedUniform;
void main() {
    ivec2 p = ivec2(gl_FragCoord.xy);
    vec4 c = transient_color_fetch(p) * frameTime;
    transient_bloom_store(p, c);
    history_taa_store(p, persistent_lut_sample(vec2(0.5)) + transient_bloom_load(p));
}
"""

FINAL = """#version 460 compatibility
void main() {
    gl_FragColor = vec4(1.0);
}
"""

CONFIG = {
    "screen": {"transient_color": "RGBA16F", "transient_bloom": "RGBA16F", "history_taa": "RGBA16F"},
    "fixed": {"persistent_lut": {"width": 32, "height": 32, "format": "RGBA8"}},
}


def _identity(text):
    return text


@pytest.fixture
def pack(tmp_path):
    root = tmp_path / "shaders"
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "common.glsl").write_text(COMMON, encoding="utf-8")
    (root / "begin0.csh").write_text(BEGIN0, encoding="utf-8")
    (root / "composite1.fsh").write_text(COMPOSITE1, encoding="utf-8")
    (root / "final.fsh").write_text(FINAL, encoding="utf-8")
    (root / "textile.json").write_text(json.dumps(CONFIG), encoding="utf-8")
    return root


def test_insert_textile_include():
    assert insert_textile_include("#version 460\nvoid main() {}") == (
        '#version 460\n#include "/textile/Textile.glsl"\nvoid main() {}'
    )
    assert insert_textile_include("void main() {}") == '#include "/textile/Textile.glsl"\nvoid main() {}'


def test_build_pack(pack, tmp_path):
    out = tmp_path / "out"
    (out / "stale").mkdir(parents=True)
    result = build_pack(pack, out, BuildOptions(preprocess=_identity, write_report=True))

    assert not (out / "stale").exists()
    assert result.bundle.timeline.pass_names() == ["begin0", "composite1"]
    alloc = result.bundle.screen[TextureFormat.RGBA16F]
    assert alloc.tile_count == 3

    textile = (out / "textile" / "Textile.glsl").read_text(encoding="utf-8")
    assert textile == result.textile_source
    assert "#define transient_bloom_offset" in textile
    assert "#define persistent_lut_offset ivec2(0, 0)" in textile

    begin0 = (out / "begin0.csh").read_text(encoding="utf-8").splitlines()
    assert begin0[0] == "#version 460 compatibility"
    assert begin0[1] == '#include "/textile/Textile.glsl"'
    text = "\n".join(begin0)
    assert "/* seed the color buffer */" in text
    assert "unusedHelper" not in text
    assert "vec4 tonemap(vec4 c)" in text

    composite1 = (out / "composite1.fsh").read_text(encoding="utf-8")
    assert "uniform float frameTime;" in composite1
    assert "unusedUniform" not in composite1

    final = (out / "final.fsh").read_text(encoding="utf-8")
    assert "Textile.glsl" not in final

    report = (out / "textile" / "report.txt").read_text(encoding="utf-8")
    assert "TEXTURE LIFETIME VISUALIZATION" in report
    assert "Tile 0: history_taa" in report


def test_build_pack_with_explicit_config(pack, tmp_path):
    cfg = tmp_path / "elsewhere.json"
    shutil.move(str(pack / "textile.json"), str(cfg))
    result = build_pack(pack, tmp_path / "out", BuildOptions(config_path=cfg, preprocess=_identity))
    assert result.report is None
    assert not (tmp_path / "out" / "textile" / "report.txt").exists()


def test_failed_build_keeps_previous_output(pack, tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "keep.txt").write_text("x", encoding="utf-8")
    cfg = dict(CONFIG, screen=dict(CONFIG["screen"], transient_unused="RGBA8"))
    (pack / "textile.json").write_text(json.dumps(cfg), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="transient_unused"):
        build_pack(pack, out, BuildOptions(preprocess=_identity))
    assert (out / "keep.txt").is_file()


def test_missing_pack_directory(tmp_path):
    with pytest.raises(MissingInputError, match="input pack directory not found"):
        build_pack(tmp_path / "nope", tmp_path / "out")


def test_cli_reports_errors_with_exit_code(tmp_path, caplog):
    (tmp_path / "shaders").mkdir()
    assert main([str(tmp_path / "shaders"), str(tmp_path / "out"), "-q"]) == 1
    assert "texture config not found" in caplog.text


def test_cli_end_to_end(pack, tmp_path, monkeypatch):
    monkeypatch.setattr("textile.cli.Preprocessor", lambda command: _identity)
    out = tmp_path / "out"
    code = main(
        [
            str(pack),
            str(out),
            "--preprocessor",
            "cpp -P",
            "--validate",
            "--dump-plan",
            str(tmp_path / "plans"),
            "--run-id",
            "cli",
            "-q",
        ]
    )
    assert code == 0
    assert (out / "textile" / "Textile.glsl").is_file()
    assert (tmp_path / "plans" / "cli" / "step_03_fixed_pack.json").is_file()


def test_cli_rejects_bad_atlas_width(pack, tmp_path):
    with pytest.raises(SystemExit):
        main([str(pack), str(tmp_path / "out"), "--max-atlas-width", "0"])


def test_leading_comment_keeps_transient_live(tmp_path):
    root = tmp_path / "shaders"
    root.mkdir()
    (root / "begin0.csh").write_text(
        "void main() {\n    /* write result */ transient_a_store(p, vec4(1.0));\n}\n", encoding="utf-8"
    )
    (root / "composite1.fsh").write_text("void main() {\n    transient_b_store(p, vec4(0.0));\n}\n", encoding="utf-8")
    (root / "composite2.fsh").write_text("void main() {\n    vec4 c = transient_a_load(p);\n}\n", encoding="utf-8")
    cfg = {"screen": {"transient_a": "RGBA16F", "transient_b": "RGBA16F"}}
    (root / "textile.json").write_text(json.dumps(cfg), encoding="utf-8")

    result = build_pack(root, tmp_path / "out", BuildOptions(preprocess=_identity))

    assert result.bundle.lifetimes["transient_a"] == TransientRange(first=0, last=2)
    assert result.bundle.screen[TextureFormat.RGBA16F].tile_of == {"transient_a": 0, "transient_b": 1}
    begin0 = (tmp_path / "out" / "begin0.csh").read_text(encoding="utf-8")
    assert begin0.startswith('#include "/textile/Textile.glsl"\n')
    assert "/* write result */ transient_a_store" in begin0


def test_codegen_atomics_follow_capabilities(pack, tmp_path):
    caps = TextileCapabilities(atomic_ops=("atomicAdd",))
    options = BuildOptions(planner=PlannerConfig(capabilities=caps), preprocess=_identity)
    result = build_pack(pack, tmp_path / "out", options)
    assert "#define transient_color_atomicAdd(" in result.textile_source
    assert "atomicMin" not in result.textile_source


def test_transient_in_other_program_is_reported(pack, tmp_path, caplog):
    (pack / "final.fsh").write_text(
        "void main() {\n    gl_FragColor = transient_bloom_fetch(ivec2(0));\n}\n", encoding="utf-8"
    )
    build_pack(pack, tmp_path / "out", BuildOptions(preprocess=_identity))
    assert "final.fsh references transient texture transient_bloom outside the pass timeline" in caplog.text
    final = (tmp_path / "out" / "final.fsh").read_text(encoding="utf-8")
    assert final.startswith('#include "/textile/Textile.glsl"\n')


def test_cli_rejects_output_equal_to_input(pack, monkeypatch, caplog):
    monkeypatch.setattr("textile.cli.Preprocessor", lambda command: _identity)
    assert main([str(pack), str(pack), "--preprocessor", "cat", "-q"]) == 1
    assert "output root must not contain the input root" in caplog.text
    assert (pack / "begin0.csh").read_text(encoding="utf-8") == BEGIN0
