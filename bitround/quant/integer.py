"""Integer quantization with optional bit-fault injection.

This module composes the rounding engine and the bit-fault injector into the
public call surface. Options follow :class:`RoundingConfig`; a plain dict with
any subset of its fields is accepted as well.
"""

import logging
from typing import Any, Mapping, Optional, Union

import torch
from torch import Tensor

from ..utils.rng import RandomSource, as_random_source
from .base import RoundingConfig, SignificandQuantizer
from .bitflip import inject
from .formats import make_accum_quantizer
from .rounding import round_integers

logger = logging.getLogger(__name__)

Options = Union[None, Mapping[str, Any], RoundingConfig]
RandomLike = Union[None, torch.Generator, RandomSource]


def _as_float_tensor(x) -> Tensor:
    x = torch.as_tensor(x)
    if not x.is_floating_point():
        x = x.to(torch.get_default_dtype())
    return x


class IntegerQuantizer:
    """Quantizer that rounds tensors to integers per a RoundingConfig.

    The config is validated once, at construction. The accumulation quantizer
    for ``accum`` is built from the config unless one is passed explicitly.

    Example:
        >>> quantizer = IntegerQuantizer(RoundingConfig(round=5), generator=RandomSource.from_seed(0))
        >>> y = quantizer.quantize(torch.tensor([0.25, 1.0, -2.75]))
    """

    def __init__(
        self,
        config: Options = None,
        generator: RandomLike = None,
        quantizer: Optional[SignificandQuantizer] = None,
    ):
        """Initialize integer quantizer.

        Args:
            config: Rounding options. If None, uses defaults (round to
                nearest even, no bit flips).
            generator: torch.Generator or RandomSource for the random draws.
                If None, torch's default generator is used.
            quantizer: Significand quantizer for stochastic rounding. If None,
                one is built from config.accum.
        """
        self.config = RoundingConfig.from_options(config)
        self.source = as_random_source(generator)
        if quantizer is None:
            quantizer = make_accum_quantizer(self.config.accum, self.config.aparams)
        self.accum_quantizer = quantizer

    @property
    def mode(self):
        return self.config.mode

    def quantize(self, x) -> Tensor:
        """Round x to integers, then inject bit faults if enabled."""
        x = _as_float_tensor(x)
        logger.debug("integer quantize: mode=%s shape=%s", self.mode.name, tuple(x.shape))
        y = round_integers(x, self.mode, source=self.source, quantizer=self.accum_quantizer)
        return inject(y, self.config, source=self.source)

    def quantize_ste(self, x: Tensor) -> Tensor:
        """Quantize with STE for training.

        Forward returns the quantized values; backward treats quantization
        as identity.
        """
        y = self.quantize(x.detach())
        # x - x.detach() is zero for finite x, so the forward value is exactly y
        return y + (x - x.detach())

    def __repr__(self) -> str:
        return f"IntegerQuantizer({self.config}, quantizer={self.accum_quantizer!r})"


def integer_quantize(
    x,
    options: Options = None,
    generator: RandomLike = None,
    quantizer: Optional[SignificandQuantizer] = None,
) -> Tensor:
    """Round a tensor to integer values.

    Modes (options["round"]):
        1: nearest, ties to even (default)
        2: toward +inf
        3: toward -inf
        4: toward zero
        5: stochastic, up with probability equal to the fractional part
        6: stochastic, up or down with equal probability

    For stochastic rounding, exact integers are not changed. If
    options["flip"] is set, each element of the rounded result has, with
    probability options["p"], one randomly chosen bit of its magnitude
    flipped; magnitudes are assumed to lie in [0, 2^options["t"] - 1].

    Args:
        x: Tensor or array-like of real values, any shape. Non-floating
            input is promoted to the default dtype.
        options: Mapping or RoundingConfig. Missing fields take defaults.
        generator: torch.Generator or RandomSource for the random draws
        quantizer: Overrides the accumulation quantizer built from
            options["accum"]

    Returns:
        New integer-valued tensor with the same shape as x

    Raises:
        ConfigError: If the options are invalid.
    """
    return IntegerQuantizer(options, generator=generator, quantizer=quantizer).quantize(x)


def integer_quantize_ste(
    x: Tensor,
    options: Options = None,
    generator: RandomLike = None,
    quantizer: Optional[SignificandQuantizer] = None,
) -> Tensor:
    """Integer quantization with Straight-Through Estimator (STE).

    The STE pattern used:
        x_q = quantize(x).detach() + (x - x.detach())

    This gives:
        Forward: x_q (integer values, bit faults included)
        Backward: gradient flows to x as if quantization was identity

    Args:
        x: Input tensor, typically requiring grad
        options: Mapping or RoundingConfig
        generator: torch.Generator or RandomSource for the random draws
        quantizer: Overrides the accumulation quantizer

    Returns:
        Tensor with integer values and identity gradient
    """
    return IntegerQuantizer(options, generator=generator, quantizer=quantizer).quantize_ste(x)
