"""
termviz configuration.

Provides:
- Lenient parsers for user-supplied option strings (bad values -> None)
- The immutable VisualizerConfig handed to the pipeline
- Loading from JSON file and environment
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from termviz.spectrograph import DEFAULT_GLYPH, Colors
from termviz.spectrum import DEFAULT_MAX_DB, DEFAULT_MIN_DB

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Config file could not be read or parsed."""


def parse_glyph(value: Optional[str]) -> Optional[str]:
    """Accept exactly one printable character."""
    if isinstance(value, str) and len(value) == 1 and value.isprintable():
        return value
    return None


def parse_colour(value: Optional[str]) -> Optional[str]:
    """
    Map "r,g,b" (0-255 each) onto the 6x6x6 cube of the 256-colour palette.

    Returns:
        The ANSI foreground escape, or None if the value is malformed
    """
    if not isinstance(value, str):
        return None
    parts = value.split(",")
    if len(parts) != 3:
        return None
    try:
        rgb = [int(p.strip()) for p in parts]
    except ValueError:
        return None
    if not all(0 <= c <= 255 for c in rgb):
        return None

    r, g, b = (int(c / 255.0 * 5.0 + 0.5) for c in rgb)
    code = 16 + (36 * r) + (6 * g) + b
    return Colors.FOREGROUND_256.format(code)


def parse_range(value: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse "low,high" decibel bounds; requires integers with low < high."""
    if not isinstance(value, str):
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        low, high = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        return None
    if low >= high:
        return None
    return float(low), float(high)


def parse_size(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse "WxH" into non-negative integers."""
    if not isinstance(value, str):
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        return None
    if width < 0 or height < 0:
        return None
    return width, height


def _as_int(value: Any) -> Any:
    """JSON numbers like 60.0 -> 60; anything else unchanged."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class VisualizerConfig:
    """Everything the pipeline and its collaborators need, fixed at startup."""

    # Rendering
    glyph: str = DEFAULT_GLYPH
    fixed_size: Optional[Tuple[int, int]] = None  # (width, height); None = follow terminal
    db_range: Tuple[float, float] = (DEFAULT_MIN_DB, DEFAULT_MAX_DB)
    font_colour: Optional[str] = None  # ANSI prefix written once at startup

    # Capture
    apps: Tuple[str, ...] = field(default_factory=tuple)  # lower-cased source filters
    device: Optional[str] = None
    channel: int = 0
    sample_rate: Optional[int] = None  # None = device default
    block_size: int = 1024

    # Reproduce the original build, which only transformed half of each block
    half_window: bool = False

    def __post_init__(self):
        if parse_glyph(self.glyph) is None:
            object.__setattr__(self, "glyph", DEFAULT_GLYPH)
        low, high = self.db_range
        if not low < high:
            object.__setattr__(self, "db_range", (DEFAULT_MIN_DB, DEFAULT_MAX_DB))
        object.__setattr__(self, "apps", tuple(a.lower() for a in self.apps))

    @property
    def min_db(self) -> float:
        return self.db_range[0]

    @property
    def max_db(self) -> float:
        return self.db_range[1]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisualizerConfig":
        """
        Create from a dictionary (e.g. a JSON config file).

        Accepts the same string forms as the command line for `size`,
        `range` and `colour`; invalid values fall back to defaults.
        """
        kwargs: Dict[str, Any] = {}

        glyph = parse_glyph(data.get("text", data.get("glyph")))
        if glyph is not None:
            kwargs["glyph"] = glyph

        size = data.get("size", data.get("fixed_size"))
        if isinstance(size, (list, tuple)) and len(size) == 2:
            size = "x".join(str(_as_int(v)) for v in size)
        fixed_size = parse_size(size)
        if fixed_size is not None:
            kwargs["fixed_size"] = fixed_size

        db_range = data.get("range", data.get("db_range"))
        if isinstance(db_range, (list, tuple)) and len(db_range) == 2:
            db_range = ",".join(str(_as_int(v)) for v in db_range)
        parsed_range = parse_range(db_range)
        if parsed_range is not None:
            kwargs["db_range"] = parsed_range

        colour = parse_colour(data.get("colour"))
        if colour is not None:
            kwargs["font_colour"] = colour

        apps = data.get("apps")
        if isinstance(apps, list):
            kwargs["apps"] = tuple(str(a) for a in apps)

        for key in ("channel", "sample_rate", "block_size"):
            value = data.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                kwargs[key] = value

        if isinstance(data.get("device"), (str, int)):
            kwargs["device"] = str(data["device"])
        if isinstance(data.get("half_window"), bool):
            kwargs["half_window"] = data["half_window"]

        return cls(**kwargs)

    @classmethod
    def from_env(cls, base: Optional["VisualizerConfig"] = None) -> "VisualizerConfig":
        """Overlay TERMVIZ_* environment variables on `base` (or defaults)."""
        config = base if base is not None else cls()
        overrides: Dict[str, Any] = {}

        glyph = parse_glyph(os.environ.get("TERMVIZ_TEXT"))
        if glyph is not None:
            overrides["glyph"] = glyph
        size = parse_size(os.environ.get("TERMVIZ_SIZE"))
        if size is not None:
            overrides["fixed_size"] = size
        db_range = parse_range(os.environ.get("TERMVIZ_RANGE"))
        if db_range is not None:
            overrides["db_range"] = db_range
        colour = parse_colour(os.environ.get("TERMVIZ_COLOUR"))
        if colour is not None:
            overrides["font_colour"] = colour

        return replace(config, **overrides) if overrides else config

    @classmethod
    def load(cls, path: Path) -> "VisualizerConfig":
        """Load configuration from JSON file; a missing file gives defaults."""
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")

        logger.debug(f"Loaded config from {path}")
        return cls.from_dict(data)


# Default config file location
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "termviz" / "config.json"


def load_config(path: Optional[Path] = None) -> VisualizerConfig:
    """Load configuration from file or return defaults."""
    if path is None:
        path = DEFAULT_CONFIG_PATH
    return VisualizerConfig.load(path)
