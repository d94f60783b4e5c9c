from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError


DEFAULT_PASS_PREFIXES: Tuple[str, ...] = ("begin", "prepare", "deferred", "composite")


@lru_cache(maxsize=None)
def _pass_name_regex(prefixes: Tuple[str, ...]) -> "re.Pattern[str]":
    alt = "|".join(re.escape(p) for p in prefixes)
    return re.compile(rf"({alt})(\d+)(?:_([a-z]))?")


@dataclass(frozen=True, order=True)
class PassKey:
    """
    Sort key of one pipeline pass: stage prefix rank first, then the number.

    Letter-suffixed variants (`composite3_a`) share the key of `composite3`.
    """

    prefix_rank: int
    number: int
    prefix: str = field(compare=False)

    @property
    def name(self) -> str:
        return f"{self.prefix}{self.number}"


def file_stem(file_name: str) -> str:
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    return base.split(".", 1)[0]


def parse_pass_name(stem: str, *, prefixes: Sequence[str] = DEFAULT_PASS_PREFIXES) -> Tuple[PassKey, Optional[str]]:
    """
    Parse `<prefix><number>[_<letter>]`.

    Returns (key, letter); raises ConfigurationError for non-pass names. Callers
    are expected to filter those out with `is_pass_file` first.
    """
    prefixes = tuple(prefixes)
    m = _pass_name_regex(prefixes).fullmatch(stem)
    if m is None:
        raise ConfigurationError(f"not a pass program name: {stem!r} (known prefixes: {', '.join(prefixes)})")
    prefix, num, letter = m.groups()
    return PassKey(prefix_rank=prefixes.index(prefix), number=int(num), prefix=prefix), letter


def is_pass_file(file_name: str, *, prefixes: Sequence[str] = DEFAULT_PASS_PREFIXES) -> bool:
    return _pass_name_regex(tuple(prefixes)).fullmatch(file_stem(file_name)) is not None


@dataclass(frozen=True)
class PassTimeline:
    keys: Tuple[PassKey, ...]
    file_pass: Dict[str, int] = field(default_factory=dict)  # file name -> pass index

    @property
    def num_passes(self) -> int:
        return len(self.keys)

    def pass_names(self) -> List[str]:
        return [k.name for k in self.keys]

    def index_of(self, file_name: str) -> int:
        if file_name not in self.file_pass:
            raise KeyError(f"file not in pass timeline: {file_name}")
        return self.file_pass[file_name]

    def files_of(self, pass_index: int) -> List[str]:
        return sorted(f for f, i in self.file_pass.items() if i == pass_index)

    def validate(self) -> None:
        if list(self.keys) != sorted(set(self.keys)):
            raise ValueError("pass keys must be strictly increasing")
        for f, i in self.file_pass.items():
            if not 0 <= i < len(self.keys):
                raise ValueError(f"pass index out of range for {f}: {i} (num_passes={len(self.keys)})")
        used = set(self.file_pass.values())
        if used != set(range(len(self.keys))):
            raise ValueError("every pass index must have at least one file")


def build_pass_timeline(file_names: Iterable[str], *, prefixes: Sequence[str] = DEFAULT_PASS_PREFIXES) -> PassTimeline:
    """
    Assign each pass program a contiguous pass index.

    The result only depends on the set of names, not on their order.
    """
    parsed: Dict[str, PassKey] = {}
    for name in file_names:
        key, _ = parse_pass_name(file_stem(name), prefixes=prefixes)
        parsed[name] = key

    keys = tuple(sorted(set(parsed.values())))
    index = {k: i for i, k in enumerate(keys)}
    timeline = PassTimeline(keys=keys, file_pass={f: index[k] for f, k in sorted(parsed.items())})
    timeline.validate()
    return timeline
