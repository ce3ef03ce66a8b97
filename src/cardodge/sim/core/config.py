from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml

from .errors import ConfigurationError

STEERING_OUTPUT = 0
THROTTLE_OUTPUT = 1
OUTPUT_COUNT = 2


@dataclass
class NetworkConfig:
    hidden_layers: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for size in self.hidden_layers:
            if int(size) < 1:
                raise ConfigurationError(f"hidden layer sizes must be >= 1, got {self.hidden_layers}")


@dataclass
class SensorConfig:
    """Ray-cast vision settings.

    Field-of-view angles are degrees relative to the agent heading. Moving one
    edge past the other drags the other edge along, so start <= stop always holds.
    """

    sample_count: int = 17
    field_of_view_start: float = -140.0
    field_of_view_stop: float = 140.0
    depth_of_vision: int = 120
    body_radius: int = 10
    taper: bool = False

    def __post_init__(self) -> None:
        if self.field_of_view_start > self.field_of_view_stop:
            self.field_of_view_stop = self.field_of_view_start
        self.validate()

    def validate(self) -> None:
        if int(self.sample_count) < 1:
            raise ConfigurationError(f"sample_count must be >= 1, got {self.sample_count}")
        if int(self.depth_of_vision) < 1:
            raise ConfigurationError(f"depth_of_vision must be >= 1, got {self.depth_of_vision}")
        if int(self.body_radius) < 0:
            raise ConfigurationError(f"body_radius must be >= 0, got {self.body_radius}")

    def set_field_of_view_start(self, value: float) -> None:
        if value > self.field_of_view_stop:
            self.field_of_view_stop = value
        self.field_of_view_start = value

    def set_field_of_view_stop(self, value: float) -> None:
        if value < self.field_of_view_start:
            self.field_of_view_start = value
        self.field_of_view_stop = value

    def set_depth_of_vision(self, value: int) -> None:
        if int(value) < 1:
            raise ConfigurationError(f"depth_of_vision must be >= 1, got {value}")
        self.depth_of_vision = int(value)

    @property
    def angle_step(self) -> float:
        if self.sample_count <= 1:
            return 0.0
        return (self.field_of_view_stop - self.field_of_view_start) / (self.sample_count - 1)


@dataclass
class DrivingConfig:
    base_speed: float = 1.5
    steering_amplifier: float = 15.0
    speed_amplifier: float = 10.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.base_speed <= 0:
            raise ConfigurationError(f"base_speed must be > 0, got {self.base_speed}")


@dataclass
class EvolutionConfig:
    mutation_rate: float = 25.0
    mutation_magnitude: float = 0.5
    initial_weight_range: float = 0.5

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not 0.0 <= self.mutation_rate <= 100.0:
            raise ConfigurationError(f"mutation_rate must be within [0, 100], got {self.mutation_rate}")
        if self.mutation_magnitude < 0:
            raise ConfigurationError(f"mutation_magnitude must be >= 0, got {self.mutation_magnitude}")


@dataclass
class TrackConfig:
    visible_length: int = 788
    road_width: int = 117
    field_height: int = 103
    viewport_start: int = 30
    start_offset: int = 50
    pothole_width: int = 44
    pothole_height: int = 16
    pothole_threshold: int = 60
    potholes: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.visible_length < 1 or self.field_height < 1:
            raise ConfigurationError("track dimensions must be >= 1")
        if self.pothole_width <= 8 or self.pothole_height <= 0:
            raise ConfigurationError(
                f"pothole size must be wider than 8 and taller than 0, got {self.pothole_width}x{self.pothole_height}"
            )

    @property
    def lane_width(self) -> int:
        return self.road_width // 4

    def start_position(self) -> tuple[float, float]:
        lane = self.lane_width
        return float(self.visible_length // 2 + self.start_offset), float(2 * lane - lane // 2)


@dataclass
class SimulationConfig:
    population_size: int = 20
    seed: int = 111
    config_version: str = "v1"
    network: NetworkConfig = field(default_factory=NetworkConfig)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    driving: DrivingConfig = field(default_factory=DrivingConfig)
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)
    track: TrackConfig = field(default_factory=TrackConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if int(self.population_size) <= 0:
            raise ConfigurationError(f"population_size must be > 0, got {self.population_size}")
        self.network.validate()
        self.sensor.validate()
        self.driving.validate()
        self.evolution.validate()
        self.track.validate()

    @property
    def layer_sizes(self) -> List[int]:
        return [int(self.sensor.sample_count), *[int(size) for size in self.network.hidden_layers], OUTPUT_COUNT]

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    tick_interval: float = 0.01
    broadcast_interval: int = 2
    model_dir: str = "models"


def load_config(raw: dict) -> SimulationConfig:
    try:
        network = NetworkConfig(**(raw.get("network") or {}))
        sensor = SensorConfig(**(raw.get("sensor") or {}))
        driving = DrivingConfig(**(raw.get("driving") or {}))
        evolution = EvolutionConfig(**(raw.get("evolution") or {}))
        track = TrackConfig(**(raw.get("track") or {}))
        sim_values = {k: v for k, v in raw.items() if k not in {"network", "sensor", "driving", "evolution", "track"}}
        return SimulationConfig(
            network=network, sensor=sensor, driving=driving, evolution=evolution, track=track, **sim_values
        )
    except TypeError as exc:
        raise ConfigurationError(f"Unknown configuration key: {exc}") from exc
