from __future__ import annotations

import logging
import re
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..errors import ConfigurationError, MissingInputError, PreprocessorError
from ..ir.passes import file_stem
from .io_context import IOContext, resolve_include_path
from .shader_file import ShaderFile

logger = logging.getLogger(__name__)


PROTECT_MARKER = "//DONOTPROCESS"
CONST_FLAG = "/*const*/"
KEEP_LINE_COMMENTS = frozenset({"Options", "TextOptions"})

LINE_COMMENT_REGEX = re.compile(r"//.*$", re.MULTILINE)
PROTECT_REGEX = re.compile(r"^[\t ]*#(?!include)")
INCLUDE_LINE_REGEX = re.compile(r'^[\t ]*#include\s+(?:"([^"]+)"|(\S+))')
INCLUDE_GUARD_REGEX = re.compile(
    r"(?P<before>.*?)"
    r"(?P<open>#ifndef[ \t]+(?P<guard>INCLUDE_\S+)[ \t]*\n[ \t]*#define[ \t]+(?P=guard)\b[^\n]*\n)"
    r"(?P<body>.*)"
    r"(?P<close>#endif)"
    r"(?P<after>(?:(?!#endif).)*)",
    re.DOTALL,
)

Preprocess = Callable[[str], str]


def protect_directives(content: str) -> str:
    """
    Hide every directive except `#include` from the external preprocessor.

    Lines between a pair of `/*const*/` marker lines are left alone so their
    directives do get evaluated; the marker lines themselves are dropped.
    """
    out: List[str] = []
    in_const = False
    for line in content.split("\n"):
        if line == CONST_FLAG:
            in_const = not in_const
            continue
        if in_const:
            out.append(line)
        else:
            out.append(PROTECT_REGEX.sub(lambda m: PROTECT_MARKER + m.group(0), line))
    return "\n".join(out)


def prepare_for_preprocessor(file: ShaderFile) -> Tuple[ShaderFile, bool]:
    """Returns (prepared file, include-guarded?)."""
    code = file.code
    if file_stem(file.name) not in KEEP_LINE_COMMENTS:
        code = LINE_COMMENT_REGEX.sub("", code)

    m = INCLUDE_GUARD_REGEX.fullmatch(code)
    if m is None:
        return file.with_code(protect_directives(code)), False
    code = m.group("before") + m.group("open") + protect_directives(m.group("body")) + m.group("close") + m.group("after")
    return file.with_code(code), True


class IncludeResolver:
    """Inlines `#include` lines recursively; guarded files at most once per program."""

    def __init__(self, io: IOContext):
        self.io = io
        self._prepared: Dict[str, Tuple[ShaderFile, bool]] = {}
        self._lock = threading.Lock()

    def _load(self, rel_path: str, *, included_from: str) -> Tuple[ShaderFile, bool]:
        with self._lock:
            hit = self._prepared.get(rel_path)
        if hit is not None:
            return hit
        f = self.io.read_input(rel_path)
        if f is None:
            raise MissingInputError(f"included file not found: {rel_path} (included from {included_from})")
        prepared = prepare_for_preprocessor(f)
        with self._lock:
            return self._prepared.setdefault(rel_path, prepared)

    def _inline(self, file: ShaderFile, included: Set[str], stack: Tuple[str, ...]) -> str:
        out: List[str] = []
        for line in file.code.split("\n"):
            m = INCLUDE_LINE_REGEX.match(line)
            if m is None:
                out.append(line)
                continue
            target = resolve_include_path(file, m.group(1) or m.group(2))
            inc, guarded = self._load(target, included_from=file.path)
            if guarded and target in included:
                out.append("")
                continue
            if target in stack:
                raise ConfigurationError(f"include cycle: {' -> '.join(stack + (target,))}")
            if guarded:
                included.add(target)
            out.append(self._inline(inc, included, stack + (target,)))
        return "\n".join(out)

    def resolve(self, file: ShaderFile) -> ShaderFile:
        prepared, _ = prepare_for_preprocessor(file)
        return prepared.with_code(self._inline(prepared, set(), (file.path,)))


@dataclass(frozen=True)
class Preprocessor:
    """External C preprocessor, fed through stdin."""

    command: Tuple[str, ...] = ("clang", "-C", "-E", "-P", "-Wno-microsoft-include", "-")

    def __call__(self, text: str) -> str:
        try:
            proc = subprocess.run(list(self.command), input=text, capture_output=True, text=True, check=False)
        except OSError as e:
            raise PreprocessorError(f"cannot run preprocessor {self.command[0]!r}: {e}") from e
        if proc.returncode != 0:
            raise PreprocessorError(
                f"preprocessor exited with code {proc.returncode}: {proc.stderr.strip() or '(no output)'}"
            )
        if proc.stderr.strip():
            logger.warning("preprocessor: %s", proc.stderr.strip())
        return proc.stdout


def expand_program(file: ShaderFile, resolver: IncludeResolver, preprocess: Preprocess) -> ShaderFile:
    resolved = resolver.resolve(file)
    try:
        expanded = preprocess(resolved.code)
    except PreprocessorError as e:
        raise PreprocessorError(f"{file.path}: {e}") from e
    return file.with_code(expanded.replace(PROTECT_MARKER, ""))


def expand_programs(
    files: Sequence[ShaderFile],
    io: IOContext,
    *,
    preprocess: Optional[Preprocess] = None,
    max_workers: Optional[int] = None,
) -> List[ShaderFile]:
    """Include-resolve and preprocess every program; output keeps input order."""
    resolver = IncludeResolver(io)
    pp = preprocess or Preprocessor()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda f: expand_program(f, resolver, pp), files))
