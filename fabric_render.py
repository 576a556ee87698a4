import math
import pygame
import numpy as np

from fabric_config import resolve_color, theme_color

# =========================================================
# Fabric renderer
# - Links: first-endpoint culling, motion or proximity alpha
# - Points: seeded size/opacity variance, five shapes
# - Any surface with the Canvas methods can be drawn into
# =========================================================

# ---------------------------
# Config
# ---------------------------
BG_COLOR = (0, 0, 0)
LINK_MARGIN = 100.0
POINT_MARGIN = 20.0
LINK_ALPHA = 0.1
LINK_GLOW = 0.6
LINK_REACH = 1.5               # link glow extends to 1.5x the interaction radius
POINT_GROW = 2.0
POINT_GLOW = 0.6
MOTION_GAIN = 8.0
MOTION_KNEE = 0.8              # fraction of the speed threshold where fade-in starts
MOTION_FLOOR = 0.05
MOTION_GROW = 1.5
MIN_SIZE = 0.1
OVAL_RATIO = 0.6
STAR_TIP = 1.5
STAR_WAIST = 0.1
CURVE_STEPS = 6


def clamp(x, lo, hi):
    return lo if x < lo else (hi if x > hi else x)

def rgba(rgb, alpha):
    return (rgb[0], rgb[1], rgb[2], int(round(clamp(alpha, 0.0, 1.0) * 255)))


# ---------------------------
# Drawing surfaces
# ---------------------------
class Canvas:
    """Drawing surface the renderer talks to. Colors are RGBA 0..255 tuples."""

    def clear(self):
        pass

    def line(self, color, start, end, width=1):
        raise NotImplementedError

    def circle(self, color, center, radius):
        raise NotImplementedError

    def ellipse(self, color, center, rx, ry):
        raise NotImplementedError

    def rect(self, color, center, half):
        raise NotImplementedError

    def polygon(self, color, points):
        raise NotImplementedError


class PygameCanvas(Canvas):
    """Draws onto an SRCALPHA layer and composites it over ``target`` on present()."""

    def __init__(self, target, background=BG_COLOR):
        self.target = target
        self.background = background
        self.layer = pygame.Surface(target.get_size(), pygame.SRCALPHA)

    def resize(self, size):
        self.layer = pygame.Surface(size, pygame.SRCALPHA)

    def clear(self):
        if self.layer.get_size() != self.target.get_size():
            self.resize(self.target.get_size())
        self.target.fill(self.background)
        self.layer.fill((0, 0, 0, 0))

    def line(self, color, start, end, width=1):
        pygame.draw.line(self.layer, color, start, end, width)

    def circle(self, color, center, radius):
        pygame.draw.circle(self.layer, color, center, max(1.0, radius))

    def ellipse(self, color, center, rx, ry):
        rect = pygame.Rect(0, 0, max(1, int(round(rx * 2))), max(1, int(round(ry * 2))))
        rect.center = (int(round(center[0])), int(round(center[1])))
        pygame.draw.ellipse(self.layer, color, rect)

    def rect(self, color, center, half):
        side = max(1, int(round(half * 2)))
        r = pygame.Rect(0, 0, side, side)
        r.center = (int(round(center[0])), int(round(center[1])))
        pygame.draw.rect(self.layer, color, r)

    def polygon(self, color, points):
        pygame.draw.polygon(self.layer, color, points)

    def present(self):
        self.target.blit(self.layer, (0, 0))


# ---------------------------
# Shapes
# ---------------------------
def quad_curve(p0, c, p1, steps=CURVE_STEPS):
    pts = []
    for k in range(1, steps + 1):
        t = k / steps
        u = 1.0 - t
        pts.append((u*u*p0[0] + 2*u*t*c[0] + t*t*p1[0],
                    u*u*p0[1] + 2*u*t*c[1] + t*t*p1[1]))
    return pts

def star_points(x, y, size):
    tip = size * STAR_TIP
    w = size * STAR_WAIST
    tips = [(0.0, -tip), (tip, 0.0), (0.0, tip), (-tip, 0.0)]
    waists = [(w, -w), (w, w), (-w, w), (-w, -w)]
    pts = [tips[0]]
    for k in range(4):
        pts.extend(quad_curve(tips[k], waists[k], tips[(k + 1) % 4]))
    return [(x + px, y + py) for px, py in pts[:-1]]

def diamond_points(x, y, size):
    # square of half-side `size` turned by 45 degrees
    r = size * math.sqrt(2.0)
    return [(x, y - r), (x + r, y), (x, y + r), (x - r, y)]

def draw_particle(canvas, shape, color, x, y, size):
    if shape == "oval":
        canvas.ellipse(color, (x, y), size, size * OVAL_RATIO)
    elif shape == "square":
        canvas.rect(color, (x, y), size)
    elif shape == "diamond":
        canvas.polygon(color, diamond_points(x, y, size))
    elif shape == "star":
        canvas.polygon(color, star_points(x, y, size))
    else:
        canvas.circle(color, (x, y), size)


# ---------------------------
# Passes
# ---------------------------
def in_view(xy, width, height, margin):
    return ((xy[:, 0] >= -margin) & (xy[:, 0] <= width + margin) &
            (xy[:, 1] >= -margin) & (xy[:, 1] <= height + margin))

def motion_alpha(speed, disp, motion_cfg):
    """Fade-in alpha for moving elements, NaN where the element is hidden."""
    thr = motion_cfg.speed_threshold
    still = (speed < thr) & (disp < motion_cfg.displacement_threshold)
    alpha = np.minimum(1.0, (speed - thr * MOTION_KNEE) * MOTION_GAIN)
    alpha[still | (alpha < MOTION_FLOOR)] = np.nan
    return alpha

def proximity(xy, pointer, reach):
    """1 at the pointer falling to 0 at `reach`, 0 beyond."""
    d = np.hypot(xy[:, 0] - pointer.x, xy[:, 1] - pointer.y)
    f = np.zeros_like(d)
    if reach > 0:
        near = d < reach
        f[near] = 1.0 - d[near] / reach
    return f

def draw_links(canvas, grid, pointer, cfg, width, height):
    if grid.link_count == 0:
        return 0
    rgb = theme_color(cfg.render.color_scheme)
    i, j = grid.links[:, 0], grid.links[:, 1]
    p1, p2 = grid.pos[i], grid.pos[j]

    keep = in_view(p1, width, height, LINK_MARGIN)
    motion = cfg.render.motion
    if motion.enabled:
        speeds, disps = grid.speeds(), grid.displacements()
        alpha = motion_alpha(np.maximum(speeds[i], speeds[j]),
                             np.maximum(disps[i], disps[j]), motion)
        keep &= ~np.isnan(alpha)
    else:
        mid = (p1 + p2) * 0.5
        alpha = LINK_ALPHA + proximity(mid, pointer, cfg.force.radius * LINK_REACH) * LINK_GLOW

    drawn = 0
    for k in np.flatnonzero(keep):
        canvas.line(rgba(rgb, alpha[k]), tuple(p1[k].tolist()), tuple(p2[k].tolist()), 1)
        drawn += 1
    return drawn

def draw_points(canvas, grid, pointer, cfg, width, height):
    if len(grid) == 0:
        return 0
    parts = cfg.render.particles
    rgb = resolve_color(cfg.render)
    pos = grid.pos

    keep = in_view(pos, width, height, POINT_MARGIN)
    centered = grid.seed - 0.5
    size = np.maximum(MIN_SIZE, parts.base_size + centered * parts.size_variance * 2)
    alpha = parts.base_opacity + centered * parts.opacity_variance

    motion = cfg.render.motion
    if motion.enabled:
        m = motion_alpha(grid.speeds(), grid.displacements(), motion)
        keep &= ~np.isnan(m)
        m = np.nan_to_num(m)
        alpha = alpha * m
        size = size + m * MOTION_GROW
    else:
        f = proximity(pos, pointer, cfg.force.radius)
        size = size + f * POINT_GROW
        alpha = alpha + f * POINT_GLOW
    alpha = np.clip(alpha, 0.0, 1.0)

    drawn = 0
    for k in np.flatnonzero(keep):
        x, y = pos[k].tolist()
        draw_particle(canvas, parts.shape, rgba(rgb, alpha[k]), x, y, float(size[k]))
        drawn += 1
    return drawn

def render_frame(canvas, grid, pointer, cfg, width, height):
    """Clear the canvas and draw links, then points. Returns (links, points) drawn."""
    canvas.clear()
    links = draw_links(canvas, grid, pointer, cfg, width, height) if cfg.render.lines else 0
    points = draw_points(canvas, grid, pointer, cfg, width, height) if cfg.render.points else 0
    return links, points
