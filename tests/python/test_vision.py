from __future__ import annotations

from pygame.math import Vector2
from pytest import approx

from cardodge.sim.core.config import SensorConfig
from cardodge.sim.core.field import EmptyField, GridObstacleField
from cardodge.sim.systems.vision import ray_angles, ray_limit, sense


def _three_ray_config(**overrides) -> SensorConfig:
    values = dict(sample_count=3, field_of_view_start=-90, field_of_view_stop=90, depth_of_vision=120, body_radius=10)
    values.update(overrides)
    return SensorConfig(**values)


def test_clear_field_reads_all_zero():
    config = SensorConfig()

    reading = sense(Vector2(100.0, 50.0), 0.0, EmptyField(), config)

    assert reading == tuple([0.0] * config.sample_count)


def test_obstacle_at_body_radius_reads_one_on_that_ray_only():
    config = _three_ray_config()
    field = GridObstacleField([(110, 100)])

    reading = sense(Vector2(100.0, 100.0), 0.0, field, config)

    assert reading == (0.0, 1.0, 0.0)


def test_reading_follows_the_heading():
    config = _three_ray_config()
    field = GridObstacleField([(100, 110)])

    reading = sense(Vector2(100.0, 100.0), 90.0, field, config)

    assert reading == (0.0, 1.0, 0.0)


def test_reading_scales_with_distance():
    config = _three_ray_config()
    field = GridObstacleField([(170, 100)])

    reading = sense(Vector2(100.0, 100.0), 0.0, field, config)

    assert reading[1] == approx(1.0 - 60.0 / 120.0)


def test_obstacle_past_search_limit_is_not_seen():
    config = _three_ray_config()
    field = GridObstacleField([(230, 100)])

    assert sense(Vector2(100.0, 100.0), 0.0, field, config) == (0.0, 0.0, 0.0)


def test_closer_obstacle_reads_higher():
    config = _three_ray_config()
    near = sense(Vector2(100.0, 100.0), 0.0, GridObstacleField([(130, 100)]), config)[1]
    far = sense(Vector2(100.0, 100.0), 0.0, GridObstacleField([(190, 100)]), config)[1]

    assert 0.0 < far < near < 1.0


def test_ray_angles_span_the_field_of_view():
    config = SensorConfig(sample_count=5, field_of_view_start=-90, field_of_view_stop=90)

    assert ray_angles(config, 0.0) == [-90.0, -45.0, 0.0, 45.0, 90.0]
    assert ray_angles(config, 30.0) == [-60.0, -15.0, 30.0, 75.0, 120.0]


def test_single_ray_uses_field_of_view_start():
    config = SensorConfig(sample_count=1, field_of_view_start=-30, field_of_view_stop=30)

    assert ray_angles(config, 10.0) == [-20.0]


def test_taper_shortens_edge_rays():
    plain = _three_ray_config()
    tapered = _three_ray_config(taper=True)

    assert [ray_limit(plain, index) for index in range(3)] == [130, 130, 130]
    assert [ray_limit(tapered, index) for index in range(3)] == [0, 86, 86]


def test_sample_hook_sees_every_scanned_point():
    config = SensorConfig(sample_count=1, field_of_view_start=0, field_of_view_stop=0, depth_of_vision=10, body_radius=10)
    samples = []

    sense(Vector2(0.0, 0.0), 0.0, EmptyField(), config, on_sample=lambda x, y: samples.append((x, y)))

    assert samples == [(10, 0), (12, 0), (14, 0), (16, 0), (18, 0)]
