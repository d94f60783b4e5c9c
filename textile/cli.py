#!/usr/bin/env python
from __future__ import annotations

import argparse
import logging
import shlex
from pathlib import Path
from typing import List, Optional

from . import __version__
from .build import BuildOptions, build_pack
from .codegen.macros import CodegenOptions
from .errors import TextileError
from .frontend.includes import Preprocessor
from .planner.core import PlannerConfig
from .planner.options import FixedPackOptions, PlannerDebugOptions, ScanOptions

logger = logging.getLogger("textile")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="textile",
        description="Pack virtual textures of a shader pack into shared atlases and generate Textile.glsl.",
    )
    p.add_argument("input", type=Path, help="shader pack directory (the one holding the pass programs)")
    p.add_argument("output", type=Path, help="output directory; cleared before writing")
    p.add_argument("--config", type=Path, default=None, help="texture config JSON (default: <input>/textile.json)")
    p.add_argument("--report", action="store_true", help="also write textile/report.txt")
    p.add_argument("--preprocessor", default=None, help="preprocessor command line reading stdin (default: clang)")
    p.add_argument("--screen-size", default=CodegenOptions.screen_size_expr, help="GLSL ivec2 expression of the screen size")
    p.add_argument("--max-atlas-width", type=int, default=FixedPackOptions.max_atlas_width)
    p.add_argument("--jobs", type=int, default=None, help="worker threads (default: executor choice)")
    p.add_argument("--validate", action="store_true", help="verify the plan after every planner step")
    p.add_argument("--dump-plan", default=None, metavar="DIR", help="dump a JSON snapshot per planner step under DIR")
    p.add_argument("--run-id", default=None, help="subdirectory name for --dump-plan")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def options_from_args(args: argparse.Namespace) -> BuildOptions:
    if args.max_atlas_width <= 0:
        raise ValueError(f"--max-atlas-width must be positive, got {args.max_atlas_width}")
    debug = PlannerDebugOptions(
        validate_after_each_step=bool(args.validate),
        dump_plan=args.dump_plan is not None,
        dump_plan_dir=args.dump_plan or PlannerDebugOptions.dump_plan_dir,
        dump_plan_run_id=args.run_id,
    )
    planner = PlannerConfig(
        scan=ScanOptions(max_workers=args.jobs),
        fixed_pack=FixedPackOptions(max_atlas_width=args.max_atlas_width),
        debug=debug,
    )
    preprocess = Preprocessor(command=tuple(shlex.split(args.preprocessor))) if args.preprocessor else None
    return BuildOptions(
        config_path=args.config,
        planner=planner,
        codegen=CodegenOptions(screen_size_expr=args.screen_size),
        preprocess=preprocess,
        write_report=bool(args.report),
        max_workers=args.jobs,
    )


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        options = options_from_args(args)
    except ValueError as e:
        p.error(str(e))

    try:
        result = build_pack(args.input, args.output, options)
    except TextileError as e:
        logger.error("%s", e)
        return 1
    if result.report is not None and not args.quiet:
        print(result.report, end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
