from __future__ import annotations

import struct
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError, CorruptModel, DimensionMismatch, TopologyMismatch
from .rng import DeterministicRng

_UINT32 = struct.Struct("<I")
_FLOAT32 = np.dtype("<f4")


class FeedforwardNetwork:
    """Fixed-topology tanh network used as an agent's genome.

    Parameters are stored as float32 so a saved model reloads bit-for-bit. The
    canonical parameter order, shared by mutation and serialization, is: for each
    layer transition, the weight matrix row-major (one row per output neuron)
    followed by the bias vector.
    """

    def __init__(
        self,
        network_id: int,
        layer_sizes: Sequence[int],
        weights: Optional[Sequence[np.ndarray]] = None,
        biases: Optional[Sequence[np.ndarray]] = None,
    ):
        sizes = [int(size) for size in layer_sizes]
        if len(sizes) < 2 or any(size < 1 for size in sizes):
            raise ConfigurationError(f"a network needs >= 2 layers of size >= 1, got {list(layer_sizes)}")
        self.id = network_id
        self._layer_sizes: Tuple[int, ...] = tuple(sizes)
        shapes = list(zip(sizes[1:], sizes[:-1]))

        if weights is None:
            self._weights = [np.zeros(shape, dtype=_FLOAT32) for shape in shapes]
        else:
            if len(weights) != len(shapes):
                raise TopologyMismatch(f"expected {len(shapes)} weight matrices, got {len(weights)}")
            self._weights = []
            for matrix, shape in zip(weights, shapes):
                array = np.array(matrix, dtype=_FLOAT32)
                if array.shape != shape:
                    raise TopologyMismatch(f"weight matrix shape {array.shape} does not match layers {shape}")
                self._weights.append(array)

        if biases is None:
            self._biases = [np.zeros(rows, dtype=_FLOAT32) for rows, _ in shapes]
        else:
            if len(biases) != len(shapes):
                raise TopologyMismatch(f"expected {len(shapes)} bias vectors, got {len(biases)}")
            self._biases = []
            for vector, (rows, _) in zip(biases, shapes):
                array = np.array(vector, dtype=_FLOAT32)
                if array.shape != (rows,):
                    raise TopologyMismatch(f"bias vector shape {array.shape} does not match layer size {rows}")
                self._biases.append(array)

    @classmethod
    def random(
        cls, network_id: int, layer_sizes: Sequence[int], rng: DeterministicRng, weight_range: float = 0.5
    ) -> "FeedforwardNetwork":
        network = cls(network_id, layer_sizes)
        for array in network.parameters():
            flat = array.reshape(-1)
            for index in range(flat.size):
                flat[index] = rng.next_range(-weight_range, weight_range)
        return network

    @property
    def layer_sizes(self) -> Tuple[int, ...]:
        return self._layer_sizes

    @property
    def input_size(self) -> int:
        return self._layer_sizes[0]

    @property
    def weights(self) -> List[np.ndarray]:
        return self._weights

    @property
    def parameter_count(self) -> int:
        return sum(array.size for array in self.parameters())

    def parameters(self) -> Iterator[np.ndarray]:
        for matrix, vector in zip(self._weights, self._biases):
            yield matrix
            yield vector

    def infer(self, inputs: Sequence[float]) -> np.ndarray:
        values = np.asarray(inputs, dtype=np.float64)
        if values.ndim != 1 or values.shape[0] != self.input_size:
            raise DimensionMismatch(f"network {self.id} expects {self.input_size} inputs, got {values.shape}")
        for matrix, vector in zip(self._weights, self._biases):
            values = np.tanh(matrix.astype(np.float64) @ values + vector.astype(np.float64))
        return values

    def mutate(self, rate_percent: float, magnitude: float, rng: DeterministicRng) -> int:
        """Perturb each parameter with probability ``rate_percent / 100``.

        One chance draw is consumed per parameter in canonical order, plus one
        offset draw for each parameter that mutates. Returns the number mutated.
        """

        chance = rate_percent / 100.0
        mutated = 0
        for array in self.parameters():
            flat = array.reshape(-1)
            for index in range(flat.size):
                if rng.next_float() < chance:
                    flat[index] = float(flat[index]) + rng.next_range(-magnitude, magnitude)
                    mutated += 1
        return mutated

    def copy_into(self, other: "FeedforwardNetwork") -> None:
        if other._layer_sizes != self._layer_sizes:
            raise TopologyMismatch(
                f"cannot copy network {self.id} {self._layer_sizes} into {other.id} {other._layer_sizes}"
            )
        for source, target in zip(self.parameters(), other.parameters()):
            np.copyto(target, source)

    def same_parameters(self, other: "FeedforwardNetwork") -> bool:
        if other._layer_sizes != self._layer_sizes:
            return False
        return all(np.array_equal(a, b) for a, b in zip(self.parameters(), other.parameters()))

    def to_bytes(self) -> bytes:
        header = [_UINT32.pack(len(self._layer_sizes))]
        header.extend(_UINT32.pack(size) for size in self._layer_sizes)
        header.append(_UINT32.pack(self.parameter_count))
        payload = [array.astype(_FLOAT32, copy=False).tobytes(order="C") for array in self.parameters()]
        return b"".join(header + payload)

    @classmethod
    def decode(cls, data: bytes, offset: int = 0, network_id: int = 0) -> Tuple["FeedforwardNetwork", int]:
        """Read one network record starting at ``offset``; returns it with the offset just past it."""

        layer_count, offset = _read_uint32(data, offset)
        if layer_count < 2:
            raise CorruptModel(f"model declares {layer_count} layers, need at least 2")
        sizes = []
        for _ in range(layer_count):
            size, offset = _read_uint32(data, offset)
            if size < 1:
                raise CorruptModel("model declares an empty layer")
            sizes.append(size)
        declared, offset = _read_uint32(data, offset)
        expected = sum(rows * cols + rows for rows, cols in zip(sizes[1:], sizes[:-1]))
        if declared != expected:
            raise CorruptModel(f"model declares {declared} parameters but layers {sizes} need {expected}")
        end = offset + expected * _FLOAT32.itemsize
        if end > len(data):
            raise CorruptModel(f"model truncated: need {end} bytes, have {len(data)}")
        flat = np.frombuffer(data, dtype=_FLOAT32, count=expected, offset=offset)

        network = cls(network_id, sizes)
        cursor = 0
        for array in network.parameters():
            array.reshape(-1)[:] = flat[cursor : cursor + array.size]
            cursor += array.size
        return network, end

    @classmethod
    def from_bytes(cls, data: bytes, network_id: int = 0) -> "FeedforwardNetwork":
        network, end = cls.decode(data, 0, network_id)
        if end != len(data):
            raise CorruptModel(f"{len(data) - end} trailing bytes after model")
        return network

    def load_bytes(self, data: bytes) -> None:
        loaded = FeedforwardNetwork.from_bytes(data, self.id)
        if loaded.layer_sizes != self._layer_sizes:
            raise CorruptModel(f"model layers {loaded.layer_sizes} do not match network {self._layer_sizes}")
        loaded.copy_into(self)


def _read_uint32(data: bytes, offset: int) -> Tuple[int, int]:
    end = offset + _UINT32.size
    if end > len(data):
        raise CorruptModel(f"model truncated at byte {offset}")
    return _UINT32.unpack_from(data, offset)[0], end
