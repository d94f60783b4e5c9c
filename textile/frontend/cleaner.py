from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .shader_file import ShaderFile


IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

TOKEN_DELIMITER_REGEX = re.compile(r"\s+|(?=[{}()\[\];,.\-!])|(?<=[{}()\[\];,.\-!])")
FUNCTION_HEADER_REGEX = re.compile(rf"^[\t ]*({IDENT})\s+({IDENT})\s*(\([\s\w,]*?\))\s*\{{", re.MULTILINE)
DEFINE_REGEX = re.compile(rf"^[\t ]*#define[\t ]+({IDENT})(.*)$")
UNIFORM_REGEX = re.compile(rf"^[\t ]*uniform\s+({IDENT})\s+({IDENT})\s*;.*$", re.MULTILINE)

KEEP_FUNCTION_PREFIXES: Tuple[str, ...] = ("colors2",)
REMOVABLE_DEFINE_PREFIXES: Tuple[str, ...] = ("_textile_", "history_", "transient_", "persistent_")
SETTING_PREFIX = "SETTING_"
CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "return", "else", "do"})


def count_tokens(code: str) -> Counter:
    return Counter(TOKEN_DELIMITER_REGEX.split(code))


@dataclass(frozen=True)
class _Function:
    name: str
    start: int
    end: int  # exclusive, one past the closing brace


def _find_functions(code: str) -> List[_Function]:
    out = []
    for m in FUNCTION_HEADER_REGEX.finditer(code):
        if m.group(1) in CONTROL_KEYWORDS or m.group(2) in CONTROL_KEYWORDS:
            continue
        depth = 1
        i = m.end()
        while i < len(code) and depth > 0:
            c = code[i]
            if c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
            i += 1
        out.append(_Function(name=m.group(2), start=m.start(), end=i))
    return out


def remove_unused_functions(code: str, *, keep_prefixes: Sequence[str] = KEEP_FUNCTION_PREFIXES) -> str:
    """
    Blank out function definitions nobody calls.

    Removing a function releases the tokens in its body, so the pass repeats
    until nothing else becomes unreferenced. `main` is always kept.
    """
    counts = count_tokens(code)
    funcs = _find_functions(code)
    for f in funcs:
        counts[f.name] -= 1  # its own header

    remaining = [f for f in funcs if f.name != "main" and not any(f.name.startswith(p) for p in keep_prefixes)]
    removed: List[_Function] = []
    changed = True
    while changed:
        changed = False
        for f in list(remaining):
            if counts[f.name] >= 1:
                continue
            body_counts = count_tokens(code[f.start : f.end])
            body_counts[f.name] -= 1
            counts.subtract(body_counts)
            remaining.remove(f)
            removed.append(f)
            changed = True

    chars = list(code)
    for f in removed:
        chars[f.start : f.end] = " " * (f.end - f.start)
    return "".join(chars)


def _has_detection_pair(lines: List[str], idx: int, name: str) -> bool:
    return (
        idx + 2 < len(lines)
        and lines[idx + 1].split() == ["#ifdef", name]
        and lines[idx + 2].strip() == "#endif"
    )


def remove_unused_defines(
    code: str,
    *,
    is_final: bool = False,
    prefixes: Sequence[str] = REMOVABLE_DEFINE_PREFIXES,
) -> str:
    """
    Drop `#define`s with a removable prefix that nothing references.

    A boolean `SETTING_` define (no body) is followed by an `#ifdef`/`#endif`
    pair that only exists so the shader loader detects the option; it needs
    one reference besides that pair and is removed together with it.
    """
    counts = count_tokens(code)
    lines = code.split("\n")

    candidates = []
    for idx, line in enumerate(lines):
        m = DEFINE_REGEX.match(line)
        if m is None:
            continue
        name = m.group(1)
        counts[name] -= 1
        if any(name.startswith(p) for p in prefixes) or (not is_final and name.startswith(SETTING_PREFIX)):
            candidates.append((idx, m))

    changed = True
    while changed:
        changed = False
        for item in list(candidates):
            idx, m = item
            name, rest = m.group(1), m.group(2)
            boolean_setting = name.startswith(SETTING_PREFIX) and not rest.strip() and _has_detection_pair(lines, idx, name)
            required = 2 if boolean_setting else 1
            if counts[name] >= required:
                continue
            lines[idx] = ""
            if boolean_setting:
                for j in (idx + 1, idx + 2):
                    counts.subtract(count_tokens(lines[j]))
                    lines[j] = ""
            define_counts = count_tokens(m.group(0))
            define_counts[name] -= 1
            counts.subtract(define_counts)
            candidates.remove(item)
            changed = True

    return "\n".join(line for line in lines if line.strip())


def remove_unused_uniforms(code: str) -> str:
    counts = count_tokens(code)
    return UNIFORM_REGEX.sub(lambda m: "" if counts[m.group(2)] < 2 else m.group(0), code)


def clean_unused(file: ShaderFile) -> ShaderFile:
    code = remove_unused_functions(file.code)
    code = remove_unused_defines(code, is_final=file.name.lower() == "final.fsh")
    code = remove_unused_uniforms(code)
    return file.with_code("\n".join(line for line in code.split("\n") if line.strip()))
