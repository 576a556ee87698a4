import math
import logging
from collections import deque
import numpy as np

logger = logging.getLogger(__name__)

# =========================================================
# Pointer force field
# - Activation latency + pulsing strength
# - Finite propagation speed via pointer history
# - Angular "divergence" noise on the interaction radius
# =========================================================

# ---------------------------
# Config
# ---------------------------
HISTORY_CAP = 500              # pointer samples kept for delayed propagation
STEP_SECONDS = 0.016           # nominal frame length used to convert delay to phase
PHASE_RATE = 1.25              # phase units per second at pulsing speed 1
MIN_SIGNAL_SPEED = 1.0
MIN_RADIUS_FACTOR = 0.1
OFFSCREEN = (-1000.0, -1000.0)

# propagation-noise coefficients
# (wave, frequency, offset, weight)
SIGNAL_ANGULAR = ((np.sin, 3.5, 0.0, 1.0), (np.cos, 5.2, 1.2, 0.7))
SIGNAL_SPATIAL_WEIGHT = 0.5
SIGNAL_NOISE_SCALE = 0.3

# divergence lobes: (wave, angle freq, phase freq, offset, weight)
DIVERGENCE_LOBES = (
    (np.sin, 3.0, 1.0, 0.0, 1.0),
    (np.cos, 5.0, -0.7, 1.5, 0.7),
    (np.sin, 7.3, 0.2, 3.0, 0.4),
)
DIVERGENCE_NORM = 2.1


class PointerSource:
    """Cursor/touch position with a most-recent-first history."""

    __slots__ = ("x", "y", "history", "last_move")

    def __init__(self, x=OFFSCREEN[0], y=OFFSCREEN[1]):
        self.x = float(x)
        self.y = float(y)
        self.history = deque(maxlen=HISTORY_CAP)
        self.last_move = -math.inf

    @property
    def position(self):
        return (self.x, self.y)

    def move(self, x, y, now):
        self.x = float(x)
        self.y = float(y)
        self.last_move = now

    def record(self, enabled):
        """Push the live position when propagation is on, else collapse to it."""
        if enabled:
            self.history.appendleft((self.x, self.y))
        elif len(self.history) > 1:
            self.history.clear()
            self.history.append((self.x, self.y))

    def delayed(self, delay):
        """Pointer positions ``delay`` steps ago, saturating at the oldest sample.

        ``delay`` is an int array; returns an (N, 2) float array.
        """
        if not self.history:
            return np.tile(np.array(self.position, dtype=float), (len(delay), 1))
        hist = np.array(self.history, dtype=float)
        return hist[np.minimum(delay, len(hist) - 1)]


# ---------------------------
# Strength
# ---------------------------
def active_strength(force_cfg, pointer, now):
    latency = force_cfg.activation_latency / 1000.0
    if latency > 0 and (now - pointer.last_move) < latency:
        return 0.0
    return force_cfg.strength


def pulsed(strength, pulsing_cfg, phase):
    # works for scalar or array phase
    if not pulsing_cfg.enabled:
        return strength
    return strength + strength * pulsing_cfg.depth * np.sin(phase)


# ---------------------------
# Propagation
# ---------------------------
def signal_speed(signal_cfg, angle, seed):
    """Per-point propagation speed, perturbed by direction and point seed."""
    speed = np.full(np.shape(seed), float(signal_cfg.speed))
    if signal_cfg.randomness <= 0:
        return speed
    angular = np.zeros_like(speed)
    for wave, freq, offset, weight in SIGNAL_ANGULAR:
        angular += wave(angle * freq + offset) * weight
    spatial = (seed - 0.5) * 2
    noise = (angular + spatial * SIGNAL_SPATIAL_WEIGHT) * SIGNAL_NOISE_SCALE
    return np.maximum(MIN_SIGNAL_SPEED, speed * (1 + noise * signal_cfg.randomness))


def propagation_delay(dist, speed):
    """Whole steps for the signal to cover ``dist``, clipped to the history span."""
    with np.errstate(divide="ignore", invalid="ignore"):
        steps = np.floor(dist / speed)
    steps = np.nan_to_num(steps, nan=0.0, posinf=HISTORY_CAP, neginf=0.0)
    return np.clip(steps, 0, HISTORY_CAP).astype(np.intp)


# ---------------------------
# Radius
# ---------------------------
def effective_radius(force_cfg, angle, phase):
    radius = float(force_cfg.radius)
    if force_cfg.divergence <= 0:
        return np.full(np.shape(angle), radius)
    shape = np.zeros(np.shape(angle))
    for wave, af, pf, off, w in DIVERGENCE_LOBES:
        shape += wave(angle * af + phase * pf + off) * w
    shape /= DIVERGENCE_NORM
    return radius * np.maximum(MIN_RADIUS_FACTOR, 1 + shape * force_cfg.divergence)


# ---------------------------
# Field
# ---------------------------
def apply_field(grid, pointer, cfg, phase, now):
    """Displace every free point toward (or away from) the pointer.

    Runs after integration and the restoring pull. With signal delay on,
    each point reacts to where the pointer was ``dist / speed`` steps ago.
    """
    base_strength = active_strength(cfg.force, pointer, now)
    pointer.record(cfg.signal.enabled)

    free = ~grid.pinned
    p = grid.pos[free]
    if p.shape[0] == 0:
        return

    tx, ty = pointer.position
    strength = pulsed(base_strength, cfg.pulsing, phase)

    if cfg.signal.enabled:
        dx = p[:, 0] - tx
        dy = p[:, 1] - ty
        dist = np.hypot(dx, dy)
        speed = signal_speed(cfg.signal, np.arctan2(dy, dx), grid.seed[free])
        delay = propagation_delay(dist, speed)
        target = pointer.delayed(delay)
        tx, ty = target[:, 0], target[:, 1]
        if cfg.pulsing.enabled:
            retarded = phase - delay * STEP_SECONDS * PHASE_RATE * cfg.pulsing.speed
            strength = pulsed(base_strength, cfg.pulsing, retarded)
        else:
            strength = base_strength

    hx = p[:, 0] - tx
    hy = p[:, 1] - ty
    dist = np.hypot(hx, hy)
    angle = np.arctan2(hy, hx)
    radius = effective_radius(cfg.force, angle, phase)

    inside = dist < radius
    pull = np.zeros_like(dist)
    pull[inside] = (1 - dist[inside] / radius[inside]) ** 2
    force = pull * strength
    p[:, 0] -= np.cos(angle) * force
    p[:, 1] -= np.sin(angle) * force
    grid.pos[free] = p
