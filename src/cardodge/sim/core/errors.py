from __future__ import annotations


class CarDodgeError(Exception):
    """Base class for errors raised by the simulation core."""


class ConfigurationError(CarDodgeError, ValueError):
    """A setting was rejected when the configuration was built."""


class DimensionMismatch(CarDodgeError, ValueError):
    """Network input length differs from the first layer size."""


class TopologyMismatch(CarDodgeError, ValueError):
    """Two genomes with different layer sizes were asked to exchange weights."""


class CorruptModel(CarDodgeError, ValueError):
    """A serialized model disagrees with its own framing or with the target network."""
