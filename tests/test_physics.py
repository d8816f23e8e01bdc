import math

import numpy as np
import pytest

from galaxy.constants import BRIGHTNESS_MAX, BRIGHTNESS_MIN
from galaxy.data_models import Star
from galaxy.particle_store import ParticleStore
from galaxy.physics import (
    ForceIntegrator,
    accumulate_brightness,
    circular_orbit_velocity,
    escape_velocity,
)

G = 6.674e-11


def reference_step(store, dt, G, softening, distance_epsilon, brightness_step):
    """Plain double loop over pairs, one particle at a time."""
    pos = store.positions.copy()
    vel = store.velocities.copy()
    bright = store.brightness.copy()
    m = store.masses
    n = len(m)
    out_pos = pos.copy()
    for i in range(n):
        vx, vy = vel[i]
        b = bright[i]
        for j in range(n):
            if i == j:
                continue
            dx = pos[j, 0] - pos[i, 0]
            dy = pos[j, 1] - pos[i, 1]
            d2 = dx * dx + dy * dy + softening
            dp = math.sqrt(dx * dx + dy * dy) + distance_epsilon
            f = G * m[j] * m[i] / d2
            vx += f / m[i] * (dx / dp) * dt
            vy += f / m[i] * (dy / dp) * dt
            b = min(BRIGHTNESS_MAX, max(BRIGHTNESS_MIN, b + brightness_step))
        vel[i] = (vx, vy)
        bright[i] = b
        out_pos[i] = (pos[i, 0] + vx * dt / 2, pos[i, 1] + vy * dt / 2)
    return out_pos, vel, bright


def random_store(n, seed=0):
    rng = np.random.default_rng(seed)
    return ParticleStore(
        positions=rng.uniform(-10, 10, (n, 2)),
        velocities=rng.uniform(-1, 1, (n, 2)),
        masses=rng.uniform(1, 5, n),
        brightness=rng.uniform(0.1, 1.0, n),
        opacity=rng.uniform(0.0, 1.0, n),
    )


@pytest.mark.parametrize("workers", [1, 3])
def test_update_matches_pairwise_loop(workers):
    store = random_store(7, seed=4)
    expected = reference_step(store, 0.01, 1.0, 0.05, 0.001, 0.02)
    with ForceIntegrator(G=1.0, softening=0.05, distance_epsilon=0.001,
                         brightness_step=0.02, workers=workers, block_elements=14) as integ:
        integ.update(store, 0.01)
    np.testing.assert_allclose(store.positions, expected[0], rtol=1e-12, atol=1e-14)
    np.testing.assert_allclose(store.velocities, expected[1], rtol=1e-12, atol=1e-14)
    np.testing.assert_allclose(store.brightness, expected[2], rtol=1e-12)


def test_brightness_stays_clamped_and_never_decreases():
    store = random_store(40, seed=1)
    with ForceIntegrator(G=1.0, brightness_step=0.01, workers=2) as integ:
        for _ in range(5):
            before = store.brightness.copy()
            integ.update(store, 0.01)
            assert np.all(store.brightness >= BRIGHTNESS_MIN)
            assert np.all(store.brightness <= BRIGHTNESS_MAX)
            assert np.all(store.brightness >= before)
    assert np.all(store.brightness == BRIGHTNESS_MAX)


def test_brightness_huge_step_is_clamped():
    store = random_store(5, seed=2)
    with ForceIntegrator(G=1.0, brightness_step=1e6, workers=1) as integ:
        integ.update(store, 0.01)
    assert np.all(store.brightness == BRIGHTNESS_MAX)


@pytest.mark.parametrize("start,partners,step", [
    (0.1, 3, 0.3),
    (0.5, 0, 0.3),
    (0.95, 4, 0.01),
    (0.1, 10, 0.0),
    (1.0, 2, 0.1),
])
def test_accumulate_brightness_matches_sequential_clamp(start, partners, step):
    expected = start
    for _ in range(partners):
        expected = min(BRIGHTNESS_MAX, max(BRIGHTNESS_MIN, expected + step))
    values = np.array([start])
    accumulate_brightness(values, partners, step)
    assert values[0] == pytest.approx(expected)


def test_mass_and_opacity_untouched_and_read_only():
    store = random_store(20, seed=3)
    masses = store.masses.copy()
    opacity = store.opacity.copy()
    with ForceIntegrator(G=1.0, workers=2) as integ:
        for _ in range(3):
            integ.update(store, 0.05)
    assert np.array_equal(store.masses, masses)
    assert np.array_equal(store.opacity, opacity)
    with pytest.raises(ValueError):
        store.masses[0] = 1.0
    with pytest.raises(ValueError):
        store.opacity[0] = 0.5


def test_reset_positions_keeps_mass_and_opacity():
    store = random_store(12, seed=5)
    initial = store.copy()
    with ForceIntegrator(G=1.0, workers=1) as integ:
        for _ in range(4):
            integ.update(store, 0.1)
    store.positions[:] = initial.positions
    store.velocities[:] = initial.velocities
    assert np.array_equal(store.masses, initial.masses)
    assert np.array_equal(store.opacity, initial.opacity)


def test_three_body_coincident_particle_stays_finite():
    v_circ = math.sqrt(G * 1e13 / 100)
    store = ParticleStore.from_stars([
        Star(position=(0.0, 0.0), velocity=(0.0, 0.0), mass=1e13),
        Star(position=(100.0, 0.0), velocity=(0.0, v_circ), mass=1.0),
        Star(position=(0.0, 0.0), velocity=(0.0, 0.0), mass=1.0),
    ])
    with ForceIntegrator(G=G, workers=1) as integ:
        integ.update(store, 0.5)

    p2 = store[2]
    assert all(math.isfinite(c) for c in (*p2.position, *p2.velocity))
    # coincident with the central mass: no direction, so no pull from it;
    # only the orbiter at +x contributes a tiny pull
    assert p2.position[1] == 0.0
    assert p2.velocity[1] == 0.0
    assert 0.0 <= p2.velocity[0] < 1e-12
    assert 0.0 <= p2.position[0] < 1e-12

    # the orbiter is pulled toward the centre
    p1 = store[1]
    assert p1.velocity[0] < 0.0


def test_symmetric_pair_accelerates_toward_each_other():
    r = 5.0
    store = ParticleStore.from_stars([
        Star(position=(-r, 0.0), velocity=(0.0, 0.0), mass=3.0),
        Star(position=(r, 0.0), velocity=(0.0, 0.0), mass=3.0),
    ])
    with ForceIntegrator(G=1.0, workers=2) as integ:
        integ.update(store, 0.1)
    v0, v1 = store.velocities
    assert v0[0] > 0.0
    assert v1[0] < 0.0
    assert v0[0] == -v1[0]
    assert v0[1] == 0.0 and v1[1] == 0.0
    assert store.positions[0, 0] == -store.positions[1, 0]


def test_single_tick_is_deterministic():
    base = random_store(300, seed=9)
    a, b = base.copy(), base.copy()
    with ForceIntegrator(G=1.0, workers=4) as integ:
        integ.update(a, 0.01)
        integ.update(b, 0.01)
    assert np.array_equal(a.positions, b.positions)
    assert np.array_equal(a.velocities, b.velocities)
    assert np.array_equal(a.brightness, b.brightness)


def test_result_independent_of_partitioning():
    base = random_store(250, seed=10)
    a, b = base.copy(), base.copy()
    with ForceIntegrator(G=1.0, workers=1) as serial:
        serial.update(a, 0.01)
    with ForceIntegrator(G=1.0, workers=5, block_elements=250 * 7) as parallel:
        parallel.update(b, 0.01)
    np.testing.assert_allclose(a.positions, b.positions, rtol=1e-13, atol=0)
    np.testing.assert_allclose(a.velocities, b.velocities, rtol=1e-13, atol=0)
    np.testing.assert_allclose(a.brightness, b.brightness, rtol=1e-13)


def test_orbit_follows_vis_viva_for_half_step_integration():
    # Positions advance by v * dt / 2, so the traced orbit is a Kepler orbit for
    # half the gravitational parameter, travelled at half the stored speed.
    M = 1e13
    r0 = 100.0
    v0 = circular_orbit_velocity(G, M, r0)
    store = ParticleStore.from_stars([
        Star(position=(0.0, 0.0), velocity=(0.0, 0.0), mass=M),
        Star(position=(r0, 0.0), velocity=(0.0, v0), mass=1.0),
    ])
    gm_eff = G * (M + 1.0) / 2.0
    radii, speeds = [], []
    with ForceIntegrator(G=G, workers=1) as integ:
        for _ in range(10000):
            integ.update(store, 0.02)
            rel = store.positions[1] - store.positions[0]
            radii.append(math.hypot(*rel))
            speeds.append(math.hypot(*(store.velocities[1] - store.velocities[0])) / 2.0)

    radii = np.array(radii)
    speeds = np.array(speeds)
    r_peri, r_apo = radii.min(), radii.max()
    assert r_apo == pytest.approx(r0, rel=0.02)
    a = (r_peri + r_apo) / 2.0
    for idx in (radii.argmin(), radii.argmax()):
        expected = gm_eff * (2.0 / radii[idx] - 1.0 / a)
        assert speeds[idx] ** 2 == pytest.approx(expected, rel=0.03)


def test_escape_velocity_tracked_only_on_request():
    store = ParticleStore.from_stars([
        Star(position=(0.0, 0.0), velocity=(0.0, 0.0), mass=4.0),
        Star(position=(3.0, 4.0), velocity=(0.0, 0.0), mass=2.0),
    ])
    with ForceIntegrator(G=1.0, workers=1) as plain:
        plain.update(store.copy(), 0.01)
        assert plain.escape_velocities is None

    with ForceIntegrator(G=1.0, distance_epsilon=1e-4, workers=1,
                         track_escape_velocity=True) as tracking:
        tracking.update(store, 0.01)
    d = 5.0 + 1e-4
    assert tracking.escape_velocities[0] == pytest.approx(math.sqrt(2.0 * 2.0 / d))
    assert tracking.escape_velocities[1] == pytest.approx(math.sqrt(2.0 * 4.0 / d))


def test_single_particle_only_clamps_brightness():
    store = ParticleStore.from_stars([Star(position=(1.0, 2.0), velocity=(3.0, 4.0), mass=1.0, brightness=0.4)])
    with ForceIntegrator(G=1.0, workers=2) as integ:
        integ.update(store, 1.0)
    assert store[0].velocity == (3.0, 4.0)
    assert store[0].position == (2.5, 4.0)
    assert store[0].brightness == 0.4


def test_update_rejects_bad_time_step():
    store = random_store(3)
    with ForceIntegrator(workers=1) as integ:
        with pytest.raises(ValueError):
            integ.update(store, -1.0)
        with pytest.raises(ValueError):
            integ.update(store, float("nan"))


def test_orbital_speed_helpers():
    assert circular_orbit_velocity(G, 1e13, 100.0) == pytest.approx(math.sqrt(G * 1e13 / 100.0))
    assert circular_orbit_velocity(G, 1e13, 0.0) == 0.0
    speeds = circular_orbit_velocity(1.0, 4.0, np.array([1.0, 4.0, -1.0]))
    np.testing.assert_allclose(speeds, [2.0, 1.0, 0.0])

    assert escape_velocity(1.0, 2.0, 1.0) == pytest.approx(2.0)
    assert escape_velocity(1.0, 2.0, 0.0) == 0.0
    assert escape_velocity(1.0, 0.0, 1.0) == 0.0
