from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ShaderFile:
    path: str  # POSIX path relative to the pack root
    code: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def directory(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""

    def with_code(self, code: str) -> "ShaderFile":
        return replace(self, code=code)
