import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pytest

from fabric_config import FabricConfig, GridConfig, ForceConfig
from fabric_grid import FabricGrid
from fabric_render import Canvas
from fabric_sim import FabricSimulation


class RecordingCanvas(Canvas):
    """Keeps every primitive instead of drawing it."""

    def __init__(self):
        self.calls = []
        self.clears = 0

    def clear(self):
        self.clears += 1
        self.calls = []

    def line(self, color, start, end, width=1):
        self.calls.append(("line", color, start, end, width))

    def circle(self, color, center, radius):
        self.calls.append(("circle", color, center, radius))

    def ellipse(self, color, center, rx, ry):
        self.calls.append(("ellipse", color, center, rx, ry))

    def rect(self, color, center, half):
        self.calls.append(("rect", color, center, half))

    def polygon(self, color, points):
        self.calls.append(("polygon", color, points))

    def kinds(self):
        return [c[0] for c in self.calls]

    def count(self, kind):
        return sum(1 for c in self.calls if c[0] == kind)


def make_grid(points, links=(), rest=None):
    """Hand-built grid from explicit point positions and link index pairs."""
    g = FabricGrid()
    pos = np.array(points, dtype=float).reshape(-1, 2)
    g.pos = pos.copy()
    g.old = pos.copy()
    g.base = pos.copy()
    g.pinned = np.zeros(len(pos), dtype=bool)
    g.seed = np.full(len(pos), 0.5)
    g.links = np.array(links, dtype=np.intp).reshape(-1, 2)
    if rest is None:
        d = g.pos[g.links[:, 1]] - g.pos[g.links[:, 0]]
        rest = np.hypot(d[:, 0], d[:, 1])
    g.rest = np.array(rest, dtype=float).reshape(-1)
    g.cols, g.rows = len(pos), 1
    return g


@pytest.fixture
def canvas():
    return RecordingCanvas()


@pytest.fixture
def demo_config():
    return FabricConfig(
        grid=GridConfig(spacing=35, stiffness=0.2, damping=0.92),
        force=ForceConfig(strength=10, radius=280),
    )


@pytest.fixture
def sim(demo_config):
    s = FabricSimulation(demo_config)
    s.rebuild(400, 300)
    return s
