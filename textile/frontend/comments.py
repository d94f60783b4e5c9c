from __future__ import annotations

import re
from typing import List, Tuple

from .shader_file import ShaderFile


LINE_COMMENT_REGEX = re.compile(r"//.*$", re.MULTILINE)
BLOCK_COMMENT_REGEX = re.compile(r"/\*.*?\*/", re.DOTALL)
PLACEHOLDER_REGEX = re.compile(r"#__COMMENT_([0-9]+)__#")


def hold_comments(file: ShaderFile) -> Tuple[ShaderFile, List[str]]:
    """
    Swap comments for `#__COMMENT_<n>__#` placeholders.

    Commented-out defines (`//#define ...`) stay in place: they are option
    toggles the shader loader still reads.
    """
    comments: List[str] = []

    def _hold(m: "re.Match[str]") -> str:
        comments.append(m.group(0))
        return f"#__COMMENT_{len(comments) - 1}__#"

    def _hold_line(m: "re.Match[str]") -> str:
        if m.group(0).startswith("//#define "):
            return m.group(0)
        return _hold(m)

    code = BLOCK_COMMENT_REGEX.sub(_hold, file.code)
    code = LINE_COMMENT_REGEX.sub(_hold_line, code)
    return file.with_code(code), comments


def restore_comments(file: ShaderFile, comments: List[str]) -> ShaderFile:
    def _restore(m: "re.Match[str]") -> str:
        # A held line comment may itself contain a block-comment placeholder.
        return PLACEHOLDER_REGEX.sub(_restore, comments[int(m.group(1))])

    return file.with_code(PLACEHOLDER_REGEX.sub(_restore, file.code))
