from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator


class TextureFormat(Enum):
    # Floating point / normalized
    RGBA32F = "RGBA32F"
    RGBA16F = "RGBA16F"
    RG32F = "RG32F"
    RG16F = "RG16F"
    R11F_G11F_B10F = "R11F_G11F_B10F"
    R32F = "R32F"
    R16F = "R16F"
    RGBA16 = "RGBA16"
    RGB10_A2 = "RGB10_A2"
    RGBA8 = "RGBA8"
    RG16 = "RG16"
    RG8 = "RG8"
    R16 = "R16"
    R8 = "R8"
    RGBA16_SNORM = "RGBA16_SNORM"
    RGBA8_SNORM = "RGBA8_SNORM"
    RG16_SNORM = "RG16_SNORM"
    RG8_SNORM = "RG8_SNORM"
    R16_SNORM = "R16_SNORM"
    R8_SNORM = "R8_SNORM"

    # Signed integer
    RGBA32I = "RGBA32I"
    RGBA16I = "RGBA16I"
    RGBA8I = "RGBA8I"
    RG32I = "RG32I"
    RG16I = "RG16I"
    RG8I = "RG8I"
    R32I = "R32I"
    R16I = "R16I"
    R8I = "R8I"

    # Unsigned integer
    RGBA32UI = "RGBA32UI"
    RGBA16UI = "RGBA16UI"
    RGB10_A2UI = "RGB10_A2UI"
    RGBA8UI = "RGBA8UI"
    RG32UI = "RG32UI"
    RG16UI = "RG16UI"
    RG8UI = "RG8UI"
    R32UI = "R32UI"
    R16UI = "R16UI"
    R8UI = "R8UI"

    @property
    def is_unsigned_integer(self) -> bool:
        return self.value.endswith("UI")

    @property
    def is_signed_integer(self) -> bool:
        return self.value.endswith("I") and not self.value.endswith("UI")

    @property
    def glsl_layout(self) -> str:
        """Image layout qualifier, e.g. `rgba16f`, `r11f_g11f_b10f`."""
        return self.value.lower()

    @property
    def sampler_prefix(self) -> str:
        if self.is_unsigned_integer:
            return "u"
        if self.is_signed_integer:
            return "i"
        return ""

    @classmethod
    def parse(cls, name: str) -> "TextureFormat":
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise ValueError(f"unknown texture format: {name!r}") from None


class TextureCategory(Enum):
    TRANSIENT = "transient"
    HISTORY = "history"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class FixedTextureSpec:
    """Absolute-size texture, independent of screen resolution."""

    width: int
    height: int
    format: TextureFormat

    def validate(self, name: str) -> None:
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ValueError(f"fixed texture '{name}' must have positive size, got {self.width}x{self.height}")


@dataclass(frozen=True)
class TextureConfig:
    """
    Declared virtual textures.

    Both maps keep declaration order; allocation tie-breaks follow it, so the
    order must come from the config file and never from a set.
    """

    screen: Dict[str, TextureFormat] = field(default_factory=dict)
    fixed: Dict[str, FixedTextureSpec] = field(default_factory=dict)

    def names(self) -> Iterator[str]:
        yield from self.screen.keys()
        yield from self.fixed.keys()

    def format_of(self, name: str) -> TextureFormat:
        if name in self.screen:
            return self.screen[name]
        if name in self.fixed:
            return self.fixed[name].format
        raise KeyError(f"texture not declared: {name}")

    def is_declared(self, name: str) -> bool:
        return name in self.screen or name in self.fixed

    def validate(self) -> None:
        dup = set(self.screen.keys()) & set(self.fixed.keys())
        if dup:
            raise ValueError(f"textures declared as both screen and fixed: {sorted(dup)}")
        for name, spec in self.fixed.items():
            spec.validate(name)
