from __future__ import annotations

from typing import List, Tuple

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.config import DrivingConfig
from ..core.field import ObstacleField
from ..utils.math2d import _clamp_value, _direction_from_degrees, _rotate_about, _round_half_up, _wrap_degrees

# Offsets at heading 0, screen y pointing down:
#   p6         p5   p4   p3
#    +--------------------+
#    |          +         |  p2 (nose)
#    +--------------------+
#   p7         p8   p9   p1
_BOTTOM_Y = 6.0
_TOP_Y = -8.0
_FRONT_X = 12.0
_REAR_X = -9.0
HIT_TEST_OFFSETS: Tuple[Vector2, ...] = (
    Vector2(_FRONT_X, _BOTTOM_Y),
    Vector2(_FRONT_X + 2.0, (_BOTTOM_Y + _TOP_Y) / 2.0),
    Vector2(_FRONT_X, _TOP_Y),
    Vector2(_FRONT_X / 2.0, _TOP_Y),
    Vector2(0.0, _TOP_Y),
    Vector2(_REAR_X, _TOP_Y),
    Vector2(_REAR_X, _BOTTOM_Y),
    Vector2(0.0, _BOTTOM_Y),
    Vector2(_FRONT_X / 2.0, _BOTTOM_Y),
)

_MAX_FORWARD_HEADING = 90.0
_MIN_RETURN_HEADING = 270.0


def integrate(agent: Agent, steering: float, throttle: float, config: DrivingConfig) -> None:
    if agent.eliminated:
        return
    speed = config.base_speed + _clamp_value(throttle * config.speed_amplifier, 0.0, 1.0)
    agent.heading = _wrap_degrees(agent.heading + steering * config.steering_amplifier)
    cos, sin = _direction_from_degrees(agent.heading)
    agent.position.x += cos * speed
    agent.position.y += sin * speed


def update_fitness(agent: Agent) -> float:
    agent.fitness = agent.position.x
    return agent.fitness


def footprint(agent: Agent) -> List[Vector2]:
    origin = agent.position
    return [_rotate_about(offset, origin, agent.heading) for offset in HIT_TEST_OFFSETS]


def collides(agent: Agent, field: ObstacleField) -> bool:
    for point in footprint(agent):
        if field.is_obstacle(_round_half_up(point.x), _round_half_up(point.y)):
            return True
    return False


def heading_out_of_range(agent: Agent) -> bool:
    return _MAX_FORWARD_HEADING < agent.heading < _MIN_RETURN_HEADING


def behind_viewport(agent: Agent, viewport_left: float) -> bool:
    return agent.position.x < viewport_left


def check_elimination(agent: Agent, field: ObstacleField, viewport_left: float) -> bool:
    """Eliminate ``agent`` on collision, wrong-way heading or falling off the viewport."""

    if agent.eliminated:
        return True
    if collides(agent, field) or heading_out_of_range(agent) or behind_viewport(agent, viewport_left):
        agent.eliminate()
    return agent.eliminated
