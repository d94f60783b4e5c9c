from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .codegen.macros import GENERATED_NAME, CodegenOptions, generate_textile_source
from .config import DEFAULT_CONFIG_NAME, load_texture_config
from .errors import MissingInputError
from .frontend.cleaner import clean_unused
from .frontend.comments import hold_comments, restore_comments
from .frontend.includes import Preprocess, expand_programs
from .frontend.io_context import IOContext
from .frontend.shader_file import ShaderFile
from .planner.core import AllocationBundle, PlannerConfig
from .ir.texture import TextureCategory
from .planner.options import TextileCapabilities
from .planner.pipeline import plan
from .planner.scan import scan_file_access
from .report.ascii import render_atlas_packing, render_lifetime_timeline

logger = logging.getLogger(__name__)


OUTPUT_DIR = "textile"
REPORT_NAME = "report.txt"
VERSION_LINE_REGEX = re.compile(r"^[\t ]*#version\b.*$", re.MULTILINE)


@dataclass(frozen=True)
class BuildOptions:
    config_path: Optional[Path] = None  # defaults to <input>/textile.json
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    codegen: CodegenOptions = field(default_factory=CodegenOptions)
    preprocess: Optional[Preprocess] = None  # defaults to the clang preprocessor
    write_report: bool = False
    max_workers: Optional[int] = None


@dataclass
class BuildResult:
    bundle: AllocationBundle
    programs: List[ShaderFile]
    textile_source: str
    written: List[Path] = field(default_factory=list)
    report: Optional[str] = None


def include_line() -> str:
    return f'#include "/{OUTPUT_DIR}/{GENERATED_NAME}"'


def insert_textile_include(code: str) -> str:
    """Put the generated include right after `#version`, or on top without one."""
    m = VERSION_LINE_REGEX.search(code)
    if m is None:
        return include_line() + "\n" + code
    return code[: m.end()] + "\n" + include_line() + code[m.end() :]


def _clean(file: ShaderFile) -> Tuple[ShaderFile, List[str]]:
    held, comments = hold_comments(file)
    return clean_unused(held), comments


def _finish(held: ShaderFile, comments: List[str], caps: TextileCapabilities) -> ShaderFile:
    out = restore_comments(held, comments)
    if scan_file_access(held.code, caps).names():
        out = out.with_code(insert_textile_include(out.code))
    return out


def transients_outside_passes(others: Sequence[ShaderFile], caps: TextileCapabilities) -> List[str]:
    """
    Transient textures referenced by non-pass programs.

    Those programs do not take part in lifetime analysis, so the slot of such a
    texture may already be reused by a later pass when they run.
    """
    found: List[str] = []
    for f in others:
        for name in sorted(scan_file_access(f.code, caps).names()):
            if caps.category_of(name) is TextureCategory.TRANSIENT:
                logger.warning("%s references transient texture %s outside the pass timeline", f.path, name)
                found.append(name)
    return found


def render_report(bundle: AllocationBundle, codegen: CodegenOptions) -> str:
    return (
        render_lifetime_timeline(bundle.lifetimes or {}, bundle.timeline.pass_names())
        + "\n"
        + render_atlas_packing(bundle.screen or {}, bundle.fixed, codegen)
    )


def build_pack(input_root: Path, output_root: Path, options: BuildOptions = BuildOptions()) -> BuildResult:
    """
    Process one shader pack end to end.

    Programs are expanded, cleaned and scanned with their comments held out;
    only pass programs feed the allocator. The output directory is cleared
    once planning has succeeded, so a failed build leaves it untouched.
    """
    input_root = Path(input_root)
    if not input_root.is_dir():
        raise MissingInputError(f"input pack directory not found: {input_root}")
    textures = load_texture_config(options.config_path or input_root / DEFAULT_CONFIG_NAME)
    caps = options.planner.capabilities

    io = IOContext(input_root, output_root)
    passes, others = io.discover_programs(extensions=caps.program_extensions, pass_prefixes=caps.pass_prefixes)
    programs: Sequence[ShaderFile] = passes + others

    expanded = expand_programs(programs, io, preprocess=options.preprocess, max_workers=options.max_workers)
    with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
        cleaned = list(pool.map(_clean, expanded))
    logger.info("expanded and cleaned %d programs", len(cleaned))

    held = [f for f, _ in cleaned]
    bundle = plan(held[: len(passes)], textures, config=options.planner)
    transients_outside_passes(held[len(passes) :], caps)
    codegen = replace(options.codegen, atomic_ops=tuple(caps.atomic_ops))
    source = generate_textile_source(bundle.screen or {}, bundle.fixed, codegen)

    with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
        finished = list(pool.map(lambda item: _finish(item[0], item[1], caps), cleaned))

    io.prepare_output()
    result = BuildResult(bundle=bundle, programs=finished, textile_source=source)
    for f in finished:
        result.written.append(io.write_file(f.path, f.code))
    result.written.append(io.write_file(f"{OUTPUT_DIR}/{GENERATED_NAME}", source))
    if options.write_report:
        result.report = render_report(bundle, codegen)
        result.written.append(io.write_file(f"{OUTPUT_DIR}/{REPORT_NAME}", result.report))
    logger.info("wrote %d files to %s", len(result.written), io.output_root)
    return result
