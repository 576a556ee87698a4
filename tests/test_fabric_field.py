import math

import numpy as np
import pytest

from fabric_config import FabricConfig, ForceConfig, PulsingConfig, SignalConfig
from fabric_field import (
    HISTORY_CAP, PointerSource, active_strength, apply_field, effective_radius,
    propagation_delay, pulsed, signal_speed,
)
from conftest import make_grid


def field_config(strength=10.0, radius=100.0, divergence=0.0, latency=0.0,
                 pulsing=None, signal=None):
    return FabricConfig(
        force=ForceConfig(strength=strength, radius=radius, divergence=divergence,
                          activation_latency=latency),
        pulsing=pulsing or PulsingConfig(),
        signal=signal or SignalConfig(),
    )


# ---------------------------
# Pointer history
# ---------------------------
def test_history_is_capped():
    p = PointerSource()
    for k in range(HISTORY_CAP + 250):
        p.move(k, 0, now=0.0)
        p.record(True)
    assert len(p.history) == HISTORY_CAP
    assert p.history[0] == (HISTORY_CAP + 249, 0)


def test_history_collapses_when_disabled():
    p = PointerSource()
    for k in range(20):
        p.move(k, k, now=0.0)
        p.record(True)
    p.record(False)
    assert list(p.history) == [(19.0, 19.0)]


def test_disabled_history_never_grows():
    p = PointerSource()
    for _ in range(10):
        p.record(False)
    assert len(p.history) <= 1


def test_delayed_saturates_at_oldest_sample():
    p = PointerSource()
    for k in range(5):
        p.move(k * 10, 0, now=0.0)
        p.record(True)
    got = p.delayed(np.array([0, 2, 4, 400]))
    assert got[:, 0].tolist() == [40.0, 20.0, 0.0, 0.0]


# ---------------------------
# Strength
# ---------------------------
def test_activation_latency_suppresses_recent_motion():
    cfg = ForceConfig(strength=10, radius=100, activation_latency=500)
    p = PointerSource()
    p.move(0, 0, now=1.0)
    assert active_strength(cfg, p, now=1.2) == 0.0
    assert active_strength(cfg, p, now=1.6) == 10


def test_latency_zero_is_always_active():
    cfg = ForceConfig(strength=-4, radius=100)
    p = PointerSource()
    p.move(0, 0, now=3.0)
    assert active_strength(cfg, p, now=3.0) == -4


def test_pulsed_modulates_around_base():
    on = PulsingConfig(enabled=True, depth=0.5)
    assert pulsed(10.0, on, math.pi / 2) == pytest.approx(15.0)
    assert pulsed(10.0, on, -math.pi / 2) == pytest.approx(5.0)
    assert pulsed(10.0, PulsingConfig(enabled=False, depth=0.5), math.pi / 2) == 10.0


# ---------------------------
# Propagation speed
# ---------------------------
def test_signal_speed_without_randomness_is_nominal():
    angle = np.linspace(-math.pi, math.pi, 50)
    seed = np.linspace(0, 0.99, 50)
    speed = signal_speed(SignalConfig(enabled=True, speed=15), angle, seed)
    assert np.all(speed == 15)


def test_signal_speed_floor():
    angle = np.linspace(-math.pi, math.pi, 200)
    seed = np.zeros(200)
    speed = signal_speed(SignalConfig(enabled=True, speed=2, randomness=10), angle, seed)
    assert speed.min() >= 1.0
    assert not np.allclose(speed, speed[0])


def test_propagation_delay_floors_and_clips():
    d = propagation_delay(np.array([0.0, 14.9, 15.0, 1e9]), np.array([15.0, 15.0, 15.0, 1.0]))
    assert d.tolist() == [0, 0, 1, HISTORY_CAP]
    assert propagation_delay(np.array([5.0]), np.array([0.0])).tolist() == [HISTORY_CAP]


# ---------------------------
# Radius
# ---------------------------
def test_radius_without_divergence_is_constant():
    angle = np.linspace(-math.pi, math.pi, 73)
    for phase in (0.0, 1.3, 250.0):
        r = effective_radius(ForceConfig(strength=1, radius=280, divergence=0), angle, phase)
        assert np.all(r == 280)


def test_radius_divergence_varies_but_never_collapses():
    angle = np.linspace(-math.pi, math.pi, 721)
    cfg = ForceConfig(strength=1, radius=200, divergence=2.0)
    r = effective_radius(cfg, angle, 0.7)
    assert r.min() >= 200 * 0.1 - 1e-9
    assert r.max() > 200
    assert r.min() < 200


# ---------------------------
# Field application
# ---------------------------
def test_field_pulls_toward_pointer():
    g = make_grid([(50, 0), (0, 60), (500, 0)])
    p = PointerSource(0, 0)
    apply_field(g, p, field_config(strength=10, radius=100), phase=0.0, now=0.0)
    # pull = (1 - 0.5)^2 * 10 = 2.5 along -x
    assert g.pos[0] == pytest.approx((47.5, 0.0))
    assert g.pos[1] == pytest.approx((0.0, 60 - (0.4 ** 2) * 10))
    # outside the radius
    assert tuple(g.pos[2]) == (500, 0)


def test_negative_strength_pushes_away():
    g = make_grid([(50, 0)])
    apply_field(g, PointerSource(0, 0), field_config(strength=-10, radius=100), 0.0, 0.0)
    assert g.pos[0] == pytest.approx((52.5, 0.0))


def test_field_skips_pinned_points():
    g = make_grid([(50, 0)])
    g.pin(0)
    apply_field(g, PointerSource(0, 0), field_config(), 0.0, 0.0)
    assert tuple(g.pos[0]) == (50, 0)


def test_delayed_propagation_targets_past_pointer():
    g = make_grid([(100, 0)])
    p = PointerSource()
    # pointer sat at (100, 50) for a while, then jumped to (0, 0)
    for _ in range(20):
        p.move(100, 50, now=0.0)
        p.record(True)
    p.move(0, 0, now=0.0)
    cfg = field_config(strength=10, radius=200,
                       signal=SignalConfig(enabled=True, speed=10))
    apply_field(g, p, cfg, phase=0.0, now=1.0)
    # delay = 10 steps -> the point still feels the mass straight below it
    assert g.pos[0, 0] == pytest.approx(100.0)
    assert g.pos[0, 1] > 0.0


def test_live_pointer_used_without_delay():
    g = make_grid([(100, 0)])
    p = PointerSource()
    for _ in range(20):
        p.move(100, 50, now=0.0)
        p.record(True)
    p.move(0, 0, now=0.0)
    apply_field(g, p, field_config(strength=10, radius=200), phase=0.0, now=1.0)
    assert g.pos[0, 0] < 100.0
    assert g.pos[0, 1] == pytest.approx(0.0)
    assert len(p.history) <= 1


def test_retarded_phase_with_pulsing():
    g = make_grid([(150, 0)])
    p = PointerSource(0, 0)
    for _ in range(30):
        p.record(True)
    pulsing = PulsingConfig(enabled=True, speed=1.0, depth=1.0)
    cfg = field_config(strength=10, radius=300, pulsing=pulsing,
                       signal=SignalConfig(enabled=True, speed=15))
    phase = 10 * 0.016 * 1.25 + math.pi / 2
    apply_field(g, p, cfg, phase=phase, now=0.0)
    # 10 steps late: sin(pi/2) -> strength doubles
    expected = (1 - 150 / 300) ** 2 * 20
    assert g.pos[0] == pytest.approx((150 - expected, 0.0))
