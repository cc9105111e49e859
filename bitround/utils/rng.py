"""Explicit random source for stochastic rounding and bit-fault injection.

Every random draw goes through a RandomSource so that callers decide the
seeding policy. Wrapping a seeded ``torch.Generator`` makes results
reproducible; passing nothing falls back to torch's default generator.

Uniform samples are float64 whatever the dtype of the tensor they are used
on. A half or bfloat16 sample is too coarse near zero to compare against a
small probability without bias.
"""

from typing import Optional, Sequence, Union

import torch
from torch import Tensor

Shape = Union[int, Sequence[int], torch.Size]


def _as_shape(shape: Shape) -> tuple:
    if isinstance(shape, int):
        return (shape,)
    return tuple(shape)


class RandomSource:
    """Uniform sample provider backed by an optional torch.Generator.

    Args:
        generator: Generator to draw from. If None, torch's process-wide
            default generator is used.

    Example:
        >>> source = RandomSource.from_seed(0)
        >>> source.uniform(3).shape
        torch.Size([3])
    """

    def __init__(self, generator: Optional[torch.Generator] = None):
        self.generator = generator

    @classmethod
    def from_seed(cls, seed: int, device: Union[str, torch.device] = "cpu") -> "RandomSource":
        generator = torch.Generator(device=device)
        generator.manual_seed(seed)
        return cls(generator)

    @property
    def device(self) -> Optional[torch.device]:
        return None if self.generator is None else self.generator.device

    def uniform(
        self,
        shape: Shape,
        dtype: torch.dtype = torch.float64,
        device: Optional[Union[str, torch.device]] = None,
    ) -> Tensor:
        """Samples uniform on [0, 1), float64 unless dtype says otherwise."""
        device = device if device is not None else self.device
        return torch.rand(_as_shape(shape), generator=self.generator, dtype=dtype, device=device)

    def uniform_int(
        self,
        low: int,
        high: int,
        shape: Shape,
        device: Optional[Union[str, torch.device]] = None,
    ) -> Tensor:
        """int64 samples uniform on the inclusive range [low, high]."""
        if high < low:
            raise ValueError(f"Empty integer range [{low}, {high}]")
        device = device if device is not None else self.device
        return torch.randint(
            low, high + 1, _as_shape(shape),
            generator=self.generator, dtype=torch.int64, device=device,
        )

    def __repr__(self) -> str:
        if self.generator is None:
            return "RandomSource(default)"
        return f"RandomSource(device={self.generator.device})"


def as_random_source(source: Union[None, torch.Generator, RandomSource]) -> RandomSource:
    """Coerce None, a torch.Generator or a RandomSource to a RandomSource."""
    if source is None:
        return RandomSource()
    if isinstance(source, RandomSource):
        return source
    if isinstance(source, torch.Generator):
        return RandomSource(source)
    raise TypeError(f"Expected a torch.Generator or RandomSource, got {type(source).__name__}")
