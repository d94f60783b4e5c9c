import pytest

from textile.errors import ConfigurationError, MissingInputError, PreprocessorError
from textile.frontend.includes import (
    PROTECT_MARKER,
    IncludeResolver,
    Preprocessor,
    expand_program,
    expand_programs,
    prepare_for_preprocessor,
    protect_directives,
)
from textile.frontend.io_context import IOContext
from textile.frontend.shader_file import ShaderFile


def _identity(text):
    return text


def _write(root, rel, text):
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


GUARDED_A = """#ifndef INCLUDE_lib_a
#define INCLUDE_lib_a
#define A_VALUE 1
float a() { return 1.0; }
#endif
"""


@pytest.fixture
def pack(tmp_path):
    root = tmp_path / "shaders"
    _write(root, "lib/a.glsl", GUARDED_A)
    _write(root, "lib/b.glsl", '#include "a.glsl"\nfloat b() { return a(); }\n')
    _write(root, "lib/plain.glsl", "float plain() { return 0.0; }\n")
    return root


def test_protect_directives_skips_includes_and_const_regions():
    src = "\n".join(["#version 460", '#include "x.glsl"', "/*const*/", "#define N 4", "/*const*/", "  #ifdef X"])
    out = protect_directives(src).split("\n")
    assert out == [PROTECT_MARKER + "#version 460", '#include "x.glsl"', "#define N 4", PROTECT_MARKER + "  #ifdef X"]


def test_prepare_strips_line_comments_except_options():
    f = ShaderFile("lib/util.glsl", "float x; // note\n")
    prepared, guarded = prepare_for_preprocessor(f)
    assert "note" not in prepared.code
    assert guarded is False

    opts = ShaderFile("lib/Options.glsl", "#define SETTING_X // [0 1 2]\n")
    prepared, _ = prepare_for_preprocessor(opts)
    assert "// [0 1 2]" in prepared.code


def test_prepare_keeps_include_guard_unprotected():
    prepared, guarded = prepare_for_preprocessor(ShaderFile("lib/a.glsl", GUARDED_A))
    assert guarded is True
    lines = prepared.code.split("\n")
    assert lines[0] == "#ifndef INCLUDE_lib_a"
    assert lines[1] == "#define INCLUDE_lib_a"
    assert lines[2] == PROTECT_MARKER + "#define A_VALUE 1"
    assert "#endif" in lines


def test_guarded_file_is_inlined_once(pack, tmp_path):
    io = IOContext(pack, tmp_path / "out")
    program = ShaderFile(
        "composite0.fsh",
        '#version 460\n#include "/lib/a.glsl"\n#include "/lib/b.glsl"\nvoid main() { b(); }\n',
    )
    out = expand_program(program, IncludeResolver(io), _identity)
    assert out.code.count("float a()") == 1
    assert "float b()" in out.code
    assert out.code.startswith("#version 460\n")
    assert PROTECT_MARKER not in out.code


def test_unguarded_file_is_inlined_every_time(pack, tmp_path):
    io = IOContext(pack, tmp_path / "out")
    program = ShaderFile("composite0.fsh", '#include "lib/plain.glsl"\n#include "/lib/plain.glsl"\n')
    out = expand_program(program, IncludeResolver(io), _identity)
    assert out.code.count("float plain()") == 2


def test_missing_include(pack, tmp_path):
    io = IOContext(pack, tmp_path / "out")
    program = ShaderFile("composite0.fsh", '#include "/lib/nope.glsl"\n')
    with pytest.raises(MissingInputError, match="lib/nope.glsl"):
        expand_program(program, IncludeResolver(io), _identity)


def test_include_cycle(tmp_path):
    root = tmp_path / "shaders"
    _write(root, "x.glsl", '#include "y.glsl"\n')
    _write(root, "y.glsl", '#include "x.glsl"\n')
    io = IOContext(root, tmp_path / "out")
    with pytest.raises(ConfigurationError, match="include cycle"):
        expand_program(ShaderFile("composite0.fsh", '#include "x.glsl"\n'), IncludeResolver(io), _identity)


def test_guarded_cycle_is_fine(tmp_path):
    root = tmp_path / "shaders"
    _write(root, "x.glsl", '#ifndef INCLUDE_x\n#define INCLUDE_x\n#include "y.glsl"\nfloat x;\n#endif\n')
    _write(root, "y.glsl", '#ifndef INCLUDE_y\n#define INCLUDE_y\n#include "x.glsl"\nfloat y;\n#endif\n')
    io = IOContext(root, tmp_path / "out")
    out = expand_program(ShaderFile("composite0.fsh", '#include "x.glsl"\n'), IncludeResolver(io), _identity)
    assert out.code.count("float x;") == 1
    assert out.code.count("float y;") == 1


def test_expand_programs_keeps_order(pack, tmp_path):
    io = IOContext(pack, tmp_path / "out")
    files = [ShaderFile(f"composite{i}.fsh", f'#include "/lib/a.glsl"\n// {i}\nvoid main() {{}}\n') for i in range(6)]
    out = expand_programs(files, io, preprocess=_identity, max_workers=3)
    assert [f.path for f in out] == [f.path for f in files]
    assert all(f.code.count("float a()") == 1 for f in out)


def test_preprocessor_failures():
    with pytest.raises(PreprocessorError, match="cannot run preprocessor"):
        Preprocessor(command=("textile-no-such-preprocessor",))("x")


def test_preprocessor_error_names_the_program(pack, tmp_path):
    def failing(_):
        raise PreprocessorError("boom")

    io = IOContext(pack, tmp_path / "out")
    with pytest.raises(PreprocessorError, match="composite0.fsh: boom"):
        expand_program(ShaderFile("composite0.fsh", "void main() {}\n"), IncludeResolver(io), failing)
