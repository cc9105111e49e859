"""IntegerRound module - rounds activations to integers inside a model.

Useful for emulating fixed-point or reduced-precision datapaths: place it
after a scaling step and the activations flowing through it take integer
values, with the chosen rounding policy and optional bit faults.
"""

from typing import Any, Mapping, Optional, Union

import torch
import torch.nn as nn
from torch import Tensor

from ..quant.base import RoundingConfig
from ..quant.integer import IntegerQuantizer
from ..utils.rng import RandomSource


class IntegerRound(nn.Module):
    """Round every element of the input to an integer.

    In training mode the rounding uses a Straight-Through Estimator (STE) so
    gradients flow as if the module was identity. In eval mode it applies
    plain integer quantization.

    Args:
        options: Rounding options (mapping or RoundingConfig). Default: round
            to nearest even, no bit flips
        seed: If given, the module draws from its own torch.Generator seeded
            with this value, so stochastic rounding and bit faults are
            reproducible. If None, torch's default generator is used.
        enabled: If False, the module is identity (useful for
            debugging/comparison). Default: True

    Shape:
        - Input: any shape
        - Output: same shape as input

    Example:
        >>> layer = IntegerRound({"round": 5}, seed=0)
        >>> x = torch.randn(8, 16) * 10
        >>> y = layer(x)
        >>> torch.equal(y, torch.round(y))
        True
    """

    def __init__(
        self,
        options: Union[None, Mapping[str, Any], RoundingConfig] = None,
        seed: Optional[int] = None,
        enabled: bool = True,
    ) -> None:
        super().__init__()
        self.seed = seed
        self.enabled = enabled
        source = RandomSource.from_seed(seed) if seed is not None else None
        self.quantizer = IntegerQuantizer(options, generator=source)

    @property
    def config(self) -> RoundingConfig:
        return self.quantizer.config

    def reset_generator(self) -> None:
        """Reseed the module's generator, replaying the same random draws."""
        if self.seed is not None:
            self.quantizer.source.generator.manual_seed(self.seed)

    def forward(self, x: Tensor) -> Tensor:
        if not self.enabled:
            return x
        if self.training:
            return self.quantizer.quantize_ste(x)
        return self.quantizer.quantize(x)

    def extra_repr(self) -> str:
        config = self.config
        parts = [f"round={config.mode.name}"]
        if config.flip:
            parts.append(f"flip=True, p={config.p}, t={config.t}")
        if config.accum:
            parts.append(f"accum={self.quantizer.accum_quantizer!r}")
        parts.append(f"seed={self.seed}")
        parts.append(f"enabled={self.enabled}")
        return ", ".join(parts)
