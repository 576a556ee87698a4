import json
import math
import logging
import re
from dataclasses import dataclass, field, asdict, replace

logger = logging.getLogger(__name__)

# =========================================================
# Fabric configuration snapshot
# - Frozen dataclasses, swapped wholesale between steps
# - Defaults for every optional field
# - Theme palette + custom color parsing
# =========================================================

# ---------------------------
# Palette
# ---------------------------
THEMES = {
    "neon":   (0, 255, 242),
    "matrix": (0, 255, 70),
    "sunset": (255, 100, 50),
}
SHAPES = ("circle", "oval", "square", "diamond", "star")

HEX_COLOR_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


class ConfigError(ValueError):
    pass


# ---------------------------
# Snapshot sections
# ---------------------------
@dataclass(frozen=True)
class GridConfig:
    spacing: float = 35.0
    stiffness: float = 0.2
    damping: float = 0.92


@dataclass(frozen=True)
class ForceConfig:
    strength: float = 10.0             # positive pulls, negative pushes
    radius: float = 280.0
    divergence: float = 0.0            # radius anisotropy, 0..2
    activation_latency: float = 0.0    # ms the pointer must rest before the field acts


@dataclass(frozen=True)
class PulsingConfig:
    enabled: bool = False
    speed: float = 1.0
    depth: float = 0.1


@dataclass(frozen=True)
class SignalConfig:
    enabled: bool = False
    speed: float = 15.0                # units per step
    randomness: float = 0.0


@dataclass(frozen=True)
class MotionConfig:
    enabled: bool = False
    speed_threshold: float = 0.5
    displacement_threshold: float = 0.6


@dataclass(frozen=True)
class ParticleConfig:
    base_size: float = 1.2
    base_opacity: float = 0.4
    size_variance: float = 0.0
    opacity_variance: float = 0.0
    shape: str = "circle"
    color: str = None                  # "#rrggbb" overrides the theme for points


@dataclass(frozen=True)
class RenderConfig:
    lines: bool = True
    points: bool = True
    motion: MotionConfig = field(default_factory=MotionConfig)
    particles: ParticleConfig = field(default_factory=ParticleConfig)
    color_scheme: str = "neon"


@dataclass(frozen=True)
class FabricConfig:
    grid: GridConfig = field(default_factory=GridConfig)
    force: ForceConfig = field(default_factory=ForceConfig)
    pulsing: PulsingConfig = field(default_factory=PulsingConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def to_dict(self):
        return asdict(self)

    def with_changes(self, **sections):
        """Copy with whole sections replaced, e.g. ``cfg.with_changes(grid=GridConfig(...))``."""
        return replace(self, **sections)


# Initial settings of the interactive demo
DEFAULT_CONFIG = FabricConfig(pulsing=PulsingConfig(enabled=False, speed=1.0, depth=0.35))


# ---------------------------
# Boundary: mapping -> snapshot
# ---------------------------
REQUIRED = {
    "grid": ("spacing", "stiffness", "damping"),
    "force": ("strength", "radius"),
}


def _section(data, name):
    sec = data.get(name) or {}
    if not isinstance(sec, dict):
        raise ConfigError(f"section '{name}' must be a mapping, got {type(sec).__name__}")
    for key in REQUIRED.get(name, ()):
        if key not in sec:
            raise ConfigError(f"missing required field '{name}.{key}'")
    return sec


def _mapping(sec, key, where):
    value = sec.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{where}.{key}' must be a mapping, got {type(value).__name__}")
    return value


def _number(sec, key, default, where):
    value = sec.get(key, default)
    if value is None:
        if default is None:
            raise ConfigError(f"'{where}.{key}' is required")
        return default
    if isinstance(value, bool):
        raise ConfigError(f"'{where}.{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{where}.{key}' must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ConfigError(f"'{where}.{key}' must be finite, got {value!r}")
    return number


def _flag(sec, key, default, where):
    value = sec.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{where}.{key}' must be true or false, got {value!r}")
    return value


def config_from_dict(data):
    """Resolve a nested mapping into a complete FabricConfig.

    Optional fields fall back to their documented defaults. Missing required
    fields (grid spacing/stiffness/damping, force strength/radius), a
    non-positive spacing, non-finite numbers, flags that are not JSON booleans,
    nested sections that are not mappings or unknown shape/scheme names raise
    ConfigError.
    """
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")

    g = _section(data, "grid")
    grid = GridConfig(
        spacing=_number(g, "spacing", None, "grid"),
        stiffness=_number(g, "stiffness", None, "grid"),
        damping=_number(g, "damping", None, "grid"),
    )
    if grid.spacing <= 0:
        raise ConfigError(f"grid.spacing must be positive, got {grid.spacing}")

    f = _section(data, "force")
    force = ForceConfig(
        strength=_number(f, "strength", None, "force"),
        radius=_number(f, "radius", None, "force"),
        divergence=_number(f, "divergence", 0.0, "force"),
        activation_latency=_number(f, "activation_latency", 0.0, "force"),
    )

    p = _section(data, "pulsing")
    pulsing = PulsingConfig(
        enabled=_flag(p, "enabled", False, "pulsing"),
        speed=_number(p, "speed", 1.0, "pulsing"),
        depth=_number(p, "depth", 0.1, "pulsing"),
    )

    s = _section(data, "signal")
    signal = SignalConfig(
        enabled=_flag(s, "enabled", False, "signal"),
        speed=_number(s, "speed", 15.0, "signal"),
        randomness=_number(s, "randomness", 0.0, "signal"),
    )

    r = _section(data, "render")
    m = _mapping(r, "motion", "render")
    motion = MotionConfig(
        enabled=_flag(m, "enabled", False, "render.motion"),
        speed_threshold=_number(m, "speed_threshold", 0.5, "render.motion"),
        displacement_threshold=_number(m, "displacement_threshold", 0.6, "render.motion"),
    )
    pa = _mapping(r, "particles", "render")
    shape = pa.get("shape", "circle")
    if shape not in SHAPES:
        raise ConfigError(f"unknown particle shape {shape!r} (expected one of {', '.join(SHAPES)})")
    particles = ParticleConfig(
        base_size=_number(pa, "base_size", 1.2, "render.particles"),
        base_opacity=_number(pa, "base_opacity", 0.4, "render.particles"),
        size_variance=_number(pa, "size_variance", 0.0, "render.particles"),
        opacity_variance=_number(pa, "opacity_variance", 0.0, "render.particles"),
        shape=shape,
        color=pa.get("color"),
    )
    scheme = r.get("color_scheme", "neon")
    if scheme not in THEMES:
        raise ConfigError(f"unknown color scheme {scheme!r} (expected one of {', '.join(THEMES)})")
    render = RenderConfig(
        lines=_flag(r, "lines", True, "render"),
        points=_flag(r, "points", True, "render"),
        motion=motion,
        particles=particles,
        color_scheme=scheme,
    )

    return FabricConfig(grid=grid, force=force, pulsing=pulsing, signal=signal, render=render)


def load_config(path):
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: invalid JSON ({e})") from e
    cfg = config_from_dict(data)
    logger.info("Loaded configuration from %s", path)
    return cfg


# ---------------------------
# Colors
# ---------------------------
def parse_hex_color(text):
    """'#ff00aa' / 'FF00AA' -> (255, 0, 170); None when it does not parse."""
    if not isinstance(text, str):
        return None
    m = HEX_COLOR_RE.match(text.strip())
    if not m:
        return None
    return tuple(int(h, 16) for h in m.groups())


def theme_color(scheme):
    return THEMES.get(scheme, THEMES["neon"])


def resolve_color(render_cfg):
    """Point color: explicit particle color when it parses, theme color otherwise."""
    custom = render_cfg.particles.color
    if custom:
        rgb = parse_hex_color(custom)
        if rgb is not None:
            return rgb
        logger.debug("Ignoring unparsable particle color %r", custom)
    return theme_color(render_cfg.color_scheme)
