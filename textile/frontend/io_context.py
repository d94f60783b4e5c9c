from __future__ import annotations

import logging
import posixpath
import shutil
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..ir.passes import DEFAULT_PASS_PREFIXES, is_pass_file
from .shader_file import ShaderFile

logger = logging.getLogger(__name__)


def resolve_include_path(including: ShaderFile, include: str) -> str:
    """
    Pack-relative path of an `#include` target.

    `/`-prefixed paths are relative to the pack root, anything else to the
    including file's directory.
    """
    include = include.strip().strip('"')
    if include.startswith("/"):
        rel = include.lstrip("/")
    else:
        rel = posixpath.join(including.directory, include)
    rel = posixpath.normpath(rel)
    if rel.startswith("../") or rel == "..":
        raise ConfigurationError(f"include escapes the pack root: {include!r} (from {including.path})")
    return rel


class IOContext:
    """Reads from the input pack root and writes to the output root."""

    def __init__(self, input_root: Path, output_root: Path):
        self.input_root = Path(input_root).resolve()
        self.output_root = Path(output_root).resolve()
        self._cache: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def read_file(self, rel_path: str) -> Optional[str]:
        """Text of a pack-relative file, or None when it does not exist. Cached."""
        key = posixpath.normpath(rel_path)
        with self._lock:
            if key in self._cache:
                return self._cache[key]
        p = self.input_root / key
        text = p.read_text(encoding="utf-8") if p.is_file() else None
        with self._lock:
            self._cache.setdefault(key, text)
            return self._cache[key]

    def read_input(self, rel_path: str) -> Optional[ShaderFile]:
        code = self.read_file(rel_path)
        if code is None:
            return None
        return ShaderFile(path=posixpath.normpath(rel_path), code=code)

    def discover_programs(
        self,
        *,
        extensions: Sequence[str] = (".csh", ".fsh", ".vsh", ".gsh", ".tcs", ".tes"),
        pass_prefixes: Sequence[str] = DEFAULT_PASS_PREFIXES,
    ) -> Tuple[List[ShaderFile], List[ShaderFile]]:
        """
        Program files directly under the pack root, split into
        (pass programs, other programs). Both lists are sorted by name.
        """
        passes: List[ShaderFile] = []
        others: List[ShaderFile] = []
        exts = {e.lower() for e in extensions}
        for p in sorted(self.input_root.iterdir()):
            if not p.is_file() or p.suffix.lower() not in exts:
                continue
            f = self.read_input(p.name)
            if f is None:
                continue
            if is_pass_file(p.name, prefixes=pass_prefixes):
                passes.append(f)
            else:
                others.append(f)
        logger.info("discovered %d pass programs and %d other programs", len(passes), len(others))
        return passes, others

    def prepare_output(self) -> None:
        """Empty the output root; every run regenerates it from scratch."""
        if self.output_root == self.input_root or self.output_root in self.input_root.parents:
            raise ConfigurationError(f"output root must not contain the input root: {self.output_root}")
        self.output_root.mkdir(parents=True, exist_ok=True)
        for child in self.output_root.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()

    def write_file(self, rel_path: str, text: str) -> Path:
        out = self.output_root / posixpath.normpath(rel_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
        logger.debug("wrote %s", out)
        return out
