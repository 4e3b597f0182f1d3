"""Emulator configuration.

`load_config` accepts None, a dictionary or a path to a YAML file and
returns a validated `Chip8Config`, filling missing values from DEFAULTS.
"""

from dataclasses import asdict, dataclass
from pathlib import Path

import yaml

DEFAULTS = {
    "instructions_per_frame": 10,   # "speed": steps run per timer tick
    "frame_interval_ms": 1000 / 60,
    "memory_size": 4096,            # 4095 leaves 0xFFF unaddressable
    "sound_timer_operand": "x",     # Fx18 reads Vx ("x") or the low nibble register ("n")
    "key_wait_mode": "release",     # Fx0A resumes on key release or on key press
    "scale": 10,
    "seed": None,
}

SOUND_TIMER_OPERANDS = ("x", "n")
KEY_WAIT_MODES = ("release", "press")

MIN_MEMORY_SIZE = 0x202
MAX_MEMORY_SIZE = 0x10000


class ConfigError(ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


@dataclass
class Chip8Config:
    instructions_per_frame: int = DEFAULTS["instructions_per_frame"]
    frame_interval_ms: float = DEFAULTS["frame_interval_ms"]
    memory_size: int = DEFAULTS["memory_size"]
    sound_timer_operand: str = DEFAULTS["sound_timer_operand"]
    key_wait_mode: str = DEFAULTS["key_wait_mode"]
    scale: int = DEFAULTS["scale"]
    seed: int = DEFAULTS["seed"]

    @property
    def frame_interval(self):
        """Frame interval in seconds, the unit pyglet's clock works in."""
        return self.frame_interval_ms / 1000.0

    def to_dict(self):
        return asdict(self)


def _convert_types(cfg):
    """Normalize value types in-place. Raises ConfigError on conversion failure."""
    try:
        cfg["instructions_per_frame"] = int(cfg["instructions_per_frame"])
        cfg["frame_interval_ms"] = float(cfg["frame_interval_ms"])
        cfg["memory_size"] = int(cfg["memory_size"])
        cfg["sound_timer_operand"] = str(cfg["sound_timer_operand"]).lower()
        cfg["key_wait_mode"] = str(cfg["key_wait_mode"]).lower()
        cfg["scale"] = int(cfg["scale"])
        if cfg["seed"] is not None:
            cfg["seed"] = int(cfg["seed"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Bad types in config: {e}") from e


def _validate_cfg(cfg):
    if cfg["instructions_per_frame"] < 1:
        raise ConfigError("instructions_per_frame must be at least 1")

    if cfg["frame_interval_ms"] <= 0:
        raise ConfigError("frame_interval_ms must be positive")

    if not MIN_MEMORY_SIZE <= cfg["memory_size"] <= MAX_MEMORY_SIZE:
        raise ConfigError(
            f"memory_size ({cfg['memory_size']}) out of range "
            f"({MIN_MEMORY_SIZE}..{MAX_MEMORY_SIZE})"
        )

    if cfg["sound_timer_operand"] not in SOUND_TIMER_OPERANDS:
        raise ConfigError(f"sound_timer_operand must be one of {SOUND_TIMER_OPERANDS}")

    if cfg["key_wait_mode"] not in KEY_WAIT_MODES:
        raise ConfigError(f"key_wait_mode must be one of {KEY_WAIT_MODES}")

    if cfg["scale"] < 1:
        raise ConfigError("scale must be at least 1")


def _read_yaml(path):
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} does not contain a mapping")
    return data


def load_config(source=None):
    """Load and validate configuration.

    Accepts:
      - None -> defaults
      - dict -> overlay DEFAULTS with provided dict
      - str or Path -> load YAML and overlay DEFAULTS
      - Chip8Config -> revalidated copy
    """
    if source is None:
        data = {}
    elif isinstance(source, Chip8Config):
        data = source.to_dict()
    elif isinstance(source, dict):
        data = source
    elif isinstance(source, (str, Path)):
        data = _read_yaml(source)
    else:
        raise ConfigError("Unsupported config input")

    unknown = set(data) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    cfg = dict(DEFAULTS)
    cfg.update(data)
    _convert_types(cfg)
    _validate_cfg(cfg)
    return Chip8Config(**cfg)
