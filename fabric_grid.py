import math
import logging
import numpy as np

logger = logging.getLogger(__name__)

# =========================================================
# Fabric lattice (mass points + right/down links)
# - Arena storage: point arrays, links as index pairs
# - Verlet integration with rest-position memory
# - Position-based link relaxation
# =========================================================

# ---------------------------
# Config
# ---------------------------
PADDING = 150.0                # lattice margin beyond the viewport on every side
ELASTICITY = 0.015             # pull toward rest position per step
RELAX_ITERATIONS = 3
POS_CLAMP = 1e6                # clamp positions to huge but finite range

rng = np.random.default_rng()


class FabricGrid:
    """Regular lattice of mass points joined to their right and lower neighbours.

    Point state lives in parallel arrays indexed by point id:
    ``pos``/``old``/``base`` are (N, 2) float arrays, ``pinned`` is a bool
    mask and ``seed`` a fixed per-point random value in [0, 1). ``links`` is
    an (M, 2) array of point ids with matching ``rest`` lengths.
    """

    def __init__(self):
        self.cols = 0
        self.rows = 0
        self.spacing = 0.0
        self.pos = np.zeros((0, 2), dtype=float)
        self.old = np.zeros((0, 2), dtype=float)
        self.base = np.zeros((0, 2), dtype=float)
        self.pinned = np.zeros(0, dtype=bool)
        self.seed = np.zeros(0, dtype=float)
        self.links = np.zeros((0, 2), dtype=np.intp)
        self.rest = np.zeros(0, dtype=float)

    def __len__(self):
        return self.pos.shape[0]

    @property
    def link_count(self):
        return self.links.shape[0]

    # ---------------------------
    # Build
    # ---------------------------
    def rebuild(self, width, height, spacing):
        """Replace every point and link with a fresh lattice covering the viewport.

        Returns False (and leaves the lattice alone) for a non-positive
        width, height or spacing.
        """
        if not (width > 0 and height > 0 and spacing > 0):
            logger.debug("Ignoring rebuild of %sx%s at spacing %s", width, height, spacing)
            return False

        cols = int(math.ceil((width + PADDING * 2) / spacing))
        rows = int(math.ceil((height + PADDING * 2) / spacing))
        x0 = y0 = -PADDING

        # grid positions, row-major
        cc, rr = np.meshgrid(np.arange(cols), np.arange(rows))
        pos = np.empty((rows * cols, 2), dtype=float)
        pos[:, 0] = x0 + cc.ravel() * spacing
        pos[:, 1] = y0 + rr.ravel() * spacing

        # links: structural (right & down)
        idx = np.arange(rows * cols).reshape(rows, cols)
        right = np.stack([idx[:, :-1].ravel(), idx[:, 1:].ravel()], axis=1)
        down = np.stack([idx[:-1, :].ravel(), idx[1:, :].ravel()], axis=1)
        links = np.concatenate([right, down]).astype(np.intp)

        self.cols, self.rows, self.spacing = cols, rows, float(spacing)
        self.pos = pos
        self.old = pos.copy()
        self.base = pos.copy()
        self.pinned = np.zeros(rows * cols, dtype=bool)
        self.seed = rng.random(rows * cols)
        self.links = links
        self.rest = np.full(links.shape[0], float(spacing))

        logger.info("Built lattice %dx%d (%d points, %d links) at spacing %.1f",
                    cols, rows, len(self), self.link_count, spacing)
        return True

    def index(self, col, row):
        return row * self.cols + col

    # ---------------------------
    # Solver
    # ---------------------------
    def integrate(self, damping):
        free = ~self.pinned
        vel = (self.pos[free] - self.old[free]) * damping
        self.old[free] = self.pos[free]
        self.pos[free] += vel

    def restore(self, elasticity=ELASTICITY):
        free = ~self.pinned
        self.pos[free] += (self.base[free] - self.pos[free]) * elasticity

    def relax(self, stiffness, iterations=RELAX_ITERATIONS):
        """Project every link toward its rest length, equal mass on both ends.

        Each pass evaluates all links against the same positions and then
        applies the accumulated half-corrections. Zero-length links are
        skipped.
        """
        if self.link_count == 0:
            return
        i, j = self.links[:, 0], self.links[:, 1]
        free = (~self.pinned).astype(float)[:, None]
        for _ in range(iterations):
            delta = self.pos[j] - self.pos[i]
            dist = np.hypot(delta[:, 0], delta[:, 1])
            ok = dist > 0.0
            diff = np.zeros_like(dist)
            diff[ok] = (self.rest[ok] - dist[ok]) / dist[ok] * stiffness
            offset = delta * (diff * 0.5)[:, None]

            shift = np.zeros_like(self.pos)
            np.add.at(shift, i, -offset)
            np.add.at(shift, j, offset)
            self.pos += shift * free

    def sanitize(self):
        # keeps draw coordinates valid if a wild configuration blows up
        if not np.all(np.isfinite(self.pos)):
            logger.warning("Non-finite positions in lattice, resetting them to rest")
            bad = ~np.isfinite(self.pos)
            self.pos[bad] = self.base[bad]
            self.old[bad] = self.base[bad]
        np.clip(self.pos, -POS_CLAMP, POS_CLAMP, out=self.pos)

    # ---------------------------
    # Motion metrics
    # ---------------------------
    def speeds(self):
        d = self.pos - self.old
        return np.hypot(d[:, 0], d[:, 1])

    def displacements(self):
        return np.abs(self.pos - self.base).sum(axis=1)

    # ---------------------------
    # Pins
    # ---------------------------
    def nearest(self, x, y):
        if len(self) == 0:
            return -1
        dx = self.pos[:, 0] - x
        dy = self.pos[:, 1] - y
        return int(np.argmin(dx*dx + dy*dy))

    def pin(self, i, flag=True):
        self.pinned[i] = flag
        if flag:
            # pinned points keep no implicit velocity
            self.old[i] = self.pos[i]

    def toggle_pin(self, i):
        self.pin(i, not self.pinned[i])
        return bool(self.pinned[i])
