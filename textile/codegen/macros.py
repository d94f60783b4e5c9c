from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ..ir.texture import TextureFormat
from ..ir.tiles import FixedAtlas, TileAllocation
from ..planner.options import DEFAULT_ATOMIC_OPS


GENERATED_NAME = "Textile.glsl"


@dataclass(frozen=True)
class CodegenOptions:
    screen_size_expr: str = "ivec2(viewWidth, viewHeight)"
    include_guard: str = "INCLUDE_textile_Textile"
    atlas_prefix: str = "textile"
    atomic_ops: Tuple[str, ...] = DEFAULT_ATOMIC_OPS


HELPERS = """\
ivec2 _textile_texelPos(ivec2 texelPos, ivec2 tileOffset, ivec2 tileSize) {
    return clamp(texelPos, ivec2(0), tileSize - 1) + tileOffset;
}

vec2 _textile_sampleUV(vec2 uv, ivec2 tileOffset, ivec2 tileSize, ivec2 atlasSize) {
    vec2 tileSizeF = vec2(tileSize);
    vec2 texel = clamp(uv * tileSizeF, vec2(0.5), tileSizeF - 0.5);
    return (texel + vec2(tileOffset)) / vec2(atlasSize);
}

vec2 _textile_gatherUV(vec2 uv, ivec2 tileOffset, ivec2 tileSize, ivec2 atlasSize) {
    vec2 tileSizeF = vec2(tileSize);
    vec2 texel = clamp(uv * tileSizeF, vec2(1.0), tileSizeF - 1.0);
    return (texel + vec2(tileOffset)) / vec2(atlasSize);
}

vec2 _textile_gatherTexelUV(ivec2 texelPos, ivec2 tileOffset, ivec2 tileSize, ivec2 atlasSize) {
    vec2 texel = clamp(vec2(texelPos) + 1.0, vec2(1.0), vec2(tileSize) - 1.0);
    return (texel + vec2(tileOffset)) / vec2(atlasSize);
}
"""


def image_name(fmt: TextureFormat, *, fixed: bool, prefix: str = "textile") -> str:
    kind = f"{prefix}_fixed" if fixed else prefix
    return f"uimg_{kind}_{fmt.glsl_layout}"


def sampler_name(fmt: TextureFormat, *, fixed: bool, prefix: str = "textile") -> str:
    kind = f"{prefix}_fixed" if fixed else prefix
    return f"usam_{kind}_{fmt.glsl_layout}"


def _atomic_function(op: str) -> str:
    # atomicAdd -> imageAtomicAdd
    return "image" + op[0].upper() + op[1:]


def accessor_macros(name: str, *, image: str, sampler: str, atlas_size: str, atomic_ops: Tuple[str, ...]) -> List[str]:
    """Accessor macros of one texture; `<name>_offset` and `<name>_size` must already be defined."""
    off = f"{name}_offset"
    size = f"{name}_size"
    texel = f"_textile_texelPos(texelPos, {off}, {size})"
    lines = [
        f"#define {name}_sample(uv) texture({sampler}, _textile_sampleUV(uv, {off}, {size}, {atlas_size}))",
        f"#define {name}_gather(uv, comp) textureGather({sampler}, _textile_gatherUV(uv, {off}, {size}, {atlas_size}), comp)",
        f"#define {name}_gatherTexel(texelPos, comp) "
        f"textureGather({sampler}, _textile_gatherTexelUV(texelPos, {off}, {size}, {atlas_size}), comp)",
        f"#define {name}_fetch(texelPos) texelFetch({sampler}, {texel}, 0)",
        f"#define {name}_load(texelPos) imageLoad({image}, {texel})",
        f"#define {name}_store(texelPos, value) imageStore({image}, {texel}, value)",
    ]
    for op in atomic_ops:
        fn = _atomic_function(op)
        if op == "atomicCompSwap":
            lines.append(f"#define {name}_{op}(texelPos, compare, value) {fn}({image}, {texel}, compare, value)")
        else:
            lines.append(f"#define {name}_{op}(texelPos, value) {fn}({image}, {texel}, value)")
    return lines


def screen_format_block(alloc: TileAllocation, options: CodegenOptions) -> List[str]:
    fmt = alloc.format
    base = f"_{options.atlas_prefix}_{fmt.glsl_layout}"
    image = image_name(fmt, fixed=False, prefix=options.atlas_prefix)
    sampler = sampler_name(fmt, fixed=False, prefix=options.atlas_prefix)
    atlas_size = f"{base}_atlasSize"

    lines = [
        f"// {fmt.value}: {alloc.tile_count} tile(s) in a {alloc.x_size}x{alloc.y_size} grid",
        f"// atlas image: {image} / {sampler}, layout({fmt.glsl_layout}), "
        f"screen-relative size {alloc.x_size}.0 {alloc.y_size}.0",
        f"#define {atlas_size} (_textile_screenSize * ivec2({alloc.x_size}, {alloc.y_size}))",
    ]
    for t, (cx, cy) in enumerate(alloc.positions):
        lines.append(f"#define {base}_tile{t}_offset (_textile_screenSize * ivec2({cx}, {cy}))")
        lines.append(f"#define {base}_tile{t}_size _textile_screenSize")
    for name, t in alloc.tile_of.items():
        lines.append("")
        lines.append(f"#define {name}_offset {base}_tile{t}_offset")
        lines.append(f"#define {name}_size {base}_tile{t}_size")
        lines.extend(
            accessor_macros(name, image=image, sampler=sampler, atlas_size=atlas_size, atomic_ops=options.atomic_ops)
        )
    return lines


def fixed_format_block(atlas: FixedAtlas, options: CodegenOptions) -> List[str]:
    fmt = atlas.format
    base = f"_{options.atlas_prefix}_fixed_{fmt.glsl_layout}"
    image = image_name(fmt, fixed=True, prefix=options.atlas_prefix)
    sampler = sampler_name(fmt, fixed=True, prefix=options.atlas_prefix)
    atlas_size = f"{base}_atlasSize"

    lines = [
        f"// {fmt.value} (fixed): {len(atlas.tiles)} texture(s) in a {atlas.width}x{atlas.height} atlas",
        f"// atlas image: {image} / {sampler}, layout({fmt.glsl_layout}), absolute size {atlas.width} {atlas.height}",
        f"#define {atlas_size} ivec2({atlas.width}, {atlas.height})",
    ]
    for name, r in atlas.tiles.items():
        lines.append("")
        lines.append(f"#define {name}_offset ivec2({r.offset_x}, {r.offset_y})")
        lines.append(f"#define {name}_size ivec2({r.width}, {r.height})")
        lines.extend(
            accessor_macros(name, image=image, sampler=sampler, atlas_size=atlas_size, atomic_ops=options.atomic_ops)
        )
    return lines


def generate_textile_source(
    screen: Mapping[TextureFormat, TileAllocation],
    fixed: Optional[Mapping[TextureFormat, FixedAtlas]] = None,
    options: CodegenOptions = CodegenOptions(),
) -> str:
    """
    Render `Textile.glsl`: coordinate helpers plus every offset/size/accessor
    macro for the given atlases. Output only depends on the inputs' order.
    """
    lines: List[str] = [
        "// Generated by textile. Do not edit.",
        f"#ifndef {options.include_guard}",
        f"#define {options.include_guard}",
        "",
        f"#define _textile_screenSize {options.screen_size_expr}",
        "",
        HELPERS,
    ]
    for alloc in screen.values():
        lines.extend(screen_format_block(alloc, options))
        lines.append("")
    for atlas in (fixed or {}).values():
        lines.extend(fixed_format_block(atlas, options))
        lines.append("")
    lines.append("#endif")
    return "\n".join(lines) + "\n"


def atlas_images(
    screen: Mapping[TextureFormat, TileAllocation],
    fixed: Optional[Mapping[TextureFormat, FixedAtlas]] = None,
    options: CodegenOptions = CodegenOptions(),
) -> Dict[str, Tuple[str, TextureFormat]]:
    """image name -> (sampler name, format) for every atlas the macros address."""
    out: Dict[str, Tuple[str, TextureFormat]] = {}
    for fmt in screen:
        out[image_name(fmt, fixed=False, prefix=options.atlas_prefix)] = (
            sampler_name(fmt, fixed=False, prefix=options.atlas_prefix),
            fmt,
        )
    for fmt in fixed or {}:
        out[image_name(fmt, fixed=True, prefix=options.atlas_prefix)] = (
            sampler_name(fmt, fixed=True, prefix=options.atlas_prefix),
            fmt,
        )
    return out
