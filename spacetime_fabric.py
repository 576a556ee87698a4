import sys
import argparse
import logging
import pygame
from dataclasses import replace

from fabric_config import DEFAULT_CONFIG, THEMES, SHAPES, ConfigError, load_config
from fabric_render import PygameCanvas, clamp
from fabric_sim import FabricSimulation

logger = logging.getLogger(__name__)

# =========================================================
# Spacetime Fabric (interactive driver)
# - Pointer / touch moves the mass across the lattice
# - Resizable window rebuilds the lattice
# - Keyboard toggles for pulsing, signal delay, render modes
# =========================================================

# ---------------------------
# Config
# ---------------------------
WIDTH, HEIGHT = 1100, 700
FPS = 60
TEXT_COLOR = (220, 220, 220)

SPACING_RANGE = (20.0, 80.0)
SPACING_STEP = 5.0
STRENGTH_RANGE = (-20.0, 40.0)
STRENGTH_STEP = 1.0
PICK_RADIUS = 48.0


def setup_logging(level=logging.INFO):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


# ---------------------------
# Helpers
# ---------------------------
def draw_text(surface, text, x, y, font):
    surface.blit(font.render(text, True, TEXT_COLOR), (x, y))

def cycle(options, current):
    options = list(options)
    i = options.index(current) if current in options else -1
    return options[(i + 1) % len(options)]


class FabricDriver:
    """Host glue: forwards frame ticks, pointer motion and resizes to the engine."""

    def __init__(self, sim):
        self.sim = sim
        self.paused = False

    def on_frame(self, dt):
        if not self.paused:
            self.sim.step(dt)

    def on_pointer_move(self, x, y):
        self.sim.set_pointer(x, y)

    def on_resize(self, w, h):
        self.sim.rebuild(w, h)

    # ---------------------------
    # Config edits (whole snapshot replaced each time)
    # ---------------------------
    def update(self, **sections):
        self.sim.set_config(self.sim.config.with_changes(**sections))

    def toggle_pulsing(self):
        p = self.sim.config.pulsing
        self.update(pulsing=replace(p, enabled=not p.enabled))

    def toggle_signal(self):
        s = self.sim.config.signal
        self.update(signal=replace(s, enabled=not s.enabled))

    def toggle_motion(self):
        r = self.sim.config.render
        self.update(render=replace(r, motion=replace(r.motion, enabled=not r.motion.enabled)))

    def toggle_lines(self):
        r = self.sim.config.render
        self.update(render=replace(r, lines=not r.lines))

    def toggle_points(self):
        r = self.sim.config.render
        self.update(render=replace(r, points=not r.points))

    def next_scheme(self):
        r = self.sim.config.render
        self.update(render=replace(r, color_scheme=cycle(THEMES, r.color_scheme)))

    def next_shape(self):
        r = self.sim.config.render
        parts = replace(r.particles, shape=cycle(SHAPES, r.particles.shape))
        self.update(render=replace(r, particles=parts))

    def nudge_spacing(self, sign):
        g = self.sim.config.grid
        spacing = clamp(g.spacing + sign * SPACING_STEP, *SPACING_RANGE)
        if spacing != g.spacing:
            self.update(grid=replace(g, spacing=spacing))

    def nudge_strength(self, sign):
        f = self.sim.config.force
        self.update(force=replace(f, strength=clamp(f.strength + sign * STRENGTH_STEP, *STRENGTH_RANGE)))

    def toggle_pin_near(self, x, y):
        grid = self.sim.grid
        i = grid.nearest(x, y)
        if i < 0:
            return None
        dx, dy = grid.pos[i, 0] - x, grid.pos[i, 1] - y
        if dx*dx + dy*dy > PICK_RADIUS * PICK_RADIUS:
            return None
        return grid.toggle_pin(i)


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Interactive spacetime fabric simulation")
    ap.add_argument("--width", type=int, default=WIDTH)
    ap.add_argument("--height", type=int, default=HEIGHT)
    ap.add_argument("--fps", type=int, default=FPS)
    ap.add_argument("--config", help="JSON file with a configuration snapshot")
    ap.add_argument("--log-level", default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap.parse_args(argv)


# ---------------------------
# Main
# ---------------------------
def main(argv=None):
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level))

    config = DEFAULT_CONFIG
    if args.config:
        try:
            config = load_config(args.config)
        except (OSError, ConfigError) as e:
            logger.error("Could not load %s: %s", args.config, e)
            return 2

    pygame.init()
    screen = pygame.display.set_mode((args.width, args.height), pygame.RESIZABLE)
    pygame.display.set_caption("Spacetime Fabric")
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("consolas", 16)

    sim = FabricSimulation(config)
    driver = FabricDriver(sim)
    canvas = PygameCanvas(screen)
    driver.on_resize(*screen.get_size())

    show_hud = True
    fps_ema = 0.0
    ema_alpha = 0.12
    drawn = (0, 0)

    running = True
    while running:
        dt_ms = clock.tick(args.fps)
        dt = dt_ms / 1000.0

        # Events
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False

            elif event.type == pygame.VIDEORESIZE:
                screen = pygame.display.set_mode(event.size, pygame.RESIZABLE)
                canvas = PygameCanvas(screen)
                driver.on_resize(*event.size)

            elif event.type == pygame.MOUSEMOTION:
                driver.on_pointer_move(*event.pos)

            elif event.type == pygame.FINGERMOTION:
                # touch coordinates are normalised to 0..1
                w, h = screen.get_size()
                driver.on_pointer_move(event.x * w, event.y * h)

            elif event.type == pygame.MOUSEBUTTONDOWN:
                mods = pygame.key.get_mods()
                if event.button == 2 or (event.button == 1 and mods & (pygame.KMOD_SHIFT | pygame.KMOD_CTRL)):
                    pinned = driver.toggle_pin_near(*event.pos)
                    if pinned is not None:
                        logger.debug("Pin %s near %s", "set" if pinned else "cleared", event.pos)

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_SPACE:
                    driver.paused = not driver.paused
                elif event.key == pygame.K_r:
                    driver.on_resize(*screen.get_size())
                elif event.key == pygame.K_p:
                    driver.toggle_pulsing()
                elif event.key == pygame.K_s:
                    driver.toggle_signal()
                elif event.key == pygame.K_m:
                    driver.toggle_motion()
                elif event.key == pygame.K_l:
                    driver.toggle_lines()
                elif event.key == pygame.K_n:
                    driver.toggle_points()
                elif event.key == pygame.K_c:
                    driver.next_scheme()
                elif event.key == pygame.K_x:
                    driver.next_shape()
                elif event.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
                    driver.nudge_spacing(+1)
                elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
                    driver.nudge_spacing(-1)
                elif event.key == pygame.K_RIGHTBRACKET:
                    driver.nudge_strength(+1)
                elif event.key == pygame.K_LEFTBRACKET:
                    driver.nudge_strength(-1)
                elif event.key == pygame.K_h:
                    show_hud = not show_hud

        # Physics + draw
        driver.on_frame(dt)
        drawn = sim.render(canvas)
        canvas.present()

        # HUD
        inst_fps = 1000.0 / max(1, dt_ms)
        fps_ema = (1 - ema_alpha) * fps_ema + ema_alpha * inst_fps

        if show_hud:
            cfg = sim.config
            draw_text(screen,
                      f"M={cfg.force.strength:+.0f}  R={cfg.force.radius:.0f}  spacing={cfg.grid.spacing:.0f}  "
                      f"pulse={'ON' if cfg.pulsing.enabled else 'OFF'}  signal={'ON' if cfg.signal.enabled else 'OFF'}  "
                      f"motion={'ON' if cfg.render.motion.enabled else 'OFF'}  FPS~{fps_ema:5.1f}",
                      10, 10, font)
            draw_text(screen,
                      f"grid={sim.grid.cols}x{sim.grid.rows}  links={drawn[0]}  points={drawn[1]}  "
                      f"scheme={cfg.render.color_scheme}  shape={cfg.render.particles.shape}"
                      f"{'  [PAUSED]' if driver.paused else ''}",
                      10, 30, font)
            draw_text(screen,
                      "Space=pause  R=regrid  P=pulse  S=signal  M=motion  L=lines  N=points  C=colors  X=shape  "
                      "+/-=spacing  [/]=mass  Shift+LMB/MMB=pin  H=hud  Esc=quit",
                      10, 50, font)

        pygame.display.flip()

    pygame.quit()
    return 0

if __name__ == "__main__":
    sys.exit(main())
