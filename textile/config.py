from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .errors import ConfigurationError, MissingInputError
from .ir.texture import FixedTextureSpec, TextureConfig, TextureFormat


DEFAULT_CONFIG_NAME = "textile.json"


def _parse_format(value: Any, *, where: str) -> TextureFormat:
    try:
        return TextureFormat.parse(value)
    except ValueError as e:
        raise ConfigurationError(f"{where}: {e}") from None


def texture_config_from_dict(data: Mapping[str, Any]) -> TextureConfig:
    """
    Build a TextureConfig from decoded JSON:

        {"screen": {"transient_x": "RGBA16F"},
         "fixed": {"persistent_lut": {"width": 64, "height": 64, "format": "RGBA8"}}}

    Key order is kept; it decides allocation tie-breaks.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"texture config must be a JSON object, got {type(data).__name__}")
    unknown = sorted(set(data.keys()) - {"screen", "fixed"})
    if unknown:
        raise ConfigurationError(f"unknown texture config sections: {unknown}")

    screen: Dict[str, TextureFormat] = {}
    for name, fmt in dict(data.get("screen") or {}).items():
        screen[str(name)] = _parse_format(fmt, where=f"screen.{name}")

    fixed: Dict[str, FixedTextureSpec] = {}
    for name, spec in dict(data.get("fixed") or {}).items():
        if not isinstance(spec, Mapping):
            raise ConfigurationError(f"fixed.{name}: expected an object with width/height/format")
        missing = [k for k in ("width", "height", "format") if k not in spec]
        if missing:
            raise ConfigurationError(f"fixed.{name}: missing {', '.join(missing)}")
        try:
            width, height = int(spec["width"]), int(spec["height"])
        except (TypeError, ValueError):
            raise ConfigurationError(f"fixed.{name}: width/height must be integers") from None
        fixed[str(name)] = FixedTextureSpec(
            width=width,
            height=height,
            format=_parse_format(spec["format"], where=f"fixed.{name}"),
        )

    cfg = TextureConfig(screen=screen, fixed=fixed)
    try:
        cfg.validate()
    except ValueError as e:
        raise ConfigurationError(str(e)) from None
    return cfg


def load_texture_config(path: Union[str, Path]) -> TextureConfig:
    p = Path(path)
    if not p.is_file():
        raise MissingInputError(f"texture config not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"invalid JSON in {p}: {e}") from None
    return texture_config_from_dict(data)
