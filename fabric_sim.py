import math
import logging

from fabric_config import DEFAULT_CONFIG
from fabric_grid import FabricGrid
from fabric_field import PointerSource, apply_field, PHASE_RATE
from fabric_render import render_frame

logger = logging.getLogger(__name__)

MAX_DT = 0.1                   # seconds; larger gaps (backgrounded window) are clamped


def clamp_dt(dt):
    if dt is None or math.isnan(dt) or dt <= 0.0:
        return 0.0
    return min(dt, MAX_DT)


class FabricSimulation:
    """Spacetime fabric engine: lattice, pointer and the current config snapshot.

    The host calls ``rebuild`` on resize, ``set_pointer`` on pointer motion,
    ``set_config`` whenever settings change, and ``step`` + ``render`` once
    per frame.
    """

    def __init__(self, config=DEFAULT_CONFIG):
        self.config = config
        self.grid = FabricGrid()
        self.pointer = PointerSource()
        self.width = 0
        self.height = 0
        self.phase = 0.0
        self.clock = 0.0           # simulation seconds, drives activation latency
        self.steps = 0

    # ---------------------------
    # Inputs
    # ---------------------------
    def rebuild(self, width, height):
        if not (width > 0 and height > 0):
            logger.warning("Ignoring rebuild to non-positive viewport %sx%s", width, height)
            return False
        self.width, self.height = width, height
        return self.grid.rebuild(width, height, self.config.grid.spacing)

    def set_pointer(self, x, y):
        self.pointer.move(x, y, self.clock)

    def set_config(self, config):
        old_spacing = self.config.grid.spacing
        self.config = config
        if config.grid.spacing != old_spacing and self.width > 0 and self.height > 0:
            logger.info("Spacing changed %.1f -> %.1f, regridding", old_spacing, config.grid.spacing)
            self.grid.rebuild(self.width, self.height, config.grid.spacing)

    # ---------------------------
    # Frame
    # ---------------------------
    def step(self, dt):
        """Advance the clock and phase by ``dt`` seconds, then run one physics step."""
        dt = clamp_dt(dt)
        cfg = self.config
        self.clock += dt
        self.phase += dt * PHASE_RATE * cfg.pulsing.speed
        self.advance(self.phase)

    def advance(self, phase):
        cfg = self.config
        grid = self.grid
        grid.integrate(cfg.grid.damping)
        grid.restore()
        apply_field(grid, self.pointer, cfg, phase, self.clock)
        grid.relax(cfg.grid.stiffness)
        grid.sanitize()
        self.steps += 1

    def render(self, surface):
        return render_frame(surface, self.grid, self.pointer, self.config, self.width, self.height)
