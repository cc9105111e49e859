"""Bit-fault injection for integer-valued tensors.

Emulates hardware bit errors: each element is selected independently with
probability p, and each selected element gets one bit of its magnitude
flipped. Magnitudes are assumed to lie in [0, 2^t - 1] and the flipped bit
is drawn uniformly from the t - 1 low-order positions.
"""

import logging
import numbers
from typing import Optional

import torch
from torch import Tensor

from ..utils.rng import RandomSource, as_random_source
from .base import ConfigError, RoundingConfig
from .rounding import positive_zero, signum

logger = logging.getLogger(__name__)


def check_bit_range(y: Tensor, t: int) -> None:
    """Raise ValueError if any magnitude of y does not fit in t bits."""
    mag = y.abs()
    bad = ~torch.isfinite(mag) | (mag >= 2.0 ** t)
    if bad.any():
        raise ValueError(
            f"{int(bad.sum())} of {y.numel()} magnitudes do not fit in t={t} bits"
        )


def inject_bit_flips(
    y: Tensor,
    p: float = 0.5,
    t: Optional[int] = None,
    source: Optional[RandomSource] = None,
    check_range: bool = False,
) -> Tensor:
    """Flip one random bit in the magnitude of randomly selected elements.

    Draw order: one float64 uniform sample per element (row-major), then
    one bit index per selected element (row-major). An element is selected when its
    sample is below p, so p=0 selects nothing and p=1 selects everything.

    The bit index b is uniform on {1, ..., t-1} and bit b-1 of the magnitude
    is flipped. The sign of the element is kept, with zero counted as
    positive, and a flip that clears the magnitude gives +0.0.

    Magnitudes that do not fit in t bits are the caller's responsibility
    unless check_range is set, in which case they raise ValueError before
    any random draw.

    Args:
        y: Integer-valued floating point tensor
        p: Per-element selection probability. Default: 0.5
        t: Bit width of the magnitudes, >= 2
        source: Random source. Default: torch's default generator
        check_range: Validate magnitudes against t first. Default: False

    Returns:
        New tensor with the same shape and dtype as y
    """
    if isinstance(t, bool) or not isinstance(t, int) or t < 2:
        raise ConfigError(f"t must be an int >= 2 for bit flips, got {t!r}")
    if isinstance(p, bool) or not isinstance(p, numbers.Real):
        raise ConfigError(f"p must be a real number, got {p!r}")
    if not 0.0 <= p <= 1.0:
        raise ConfigError(f"p must be in [0, 1], got {p}")
    if check_range:
        check_bit_range(y, t)
    source = as_random_source(source)

    selected = source.uniform(y.shape).to(y.device) < p
    n_flips = int(selected.sum())
    logger.debug("bit flips: %d of %d elements selected (p=%s, t=%d)", n_flips, y.numel(), p, t)

    if n_flips == 0:
        return y.clone()

    bits = source.uniform_int(1, t - 1, n_flips).to(y.device)
    masks = torch.ones_like(bits) << (bits - 1)

    out = y.reshape(-1).clone()
    selected = selected.reshape(-1)
    picked = out[selected]
    flipped = torch.bitwise_xor(picked.abs().to(torch.int64), masks)
    out[selected] = positive_zero(signum(picked) * flipped.to(y.dtype))
    return out.reshape(y.shape)


def inject(y: Tensor, config: RoundingConfig, source: Optional[RandomSource] = None) -> Tensor:
    """Apply the bit-fault settings of config to y.

    Returns y itself when config.flip is not set.
    """
    if not config.flip:
        return y
    return inject_bit_flips(
        y, p=config.p, t=config.t, source=source, check_range=config.check_range
    )
