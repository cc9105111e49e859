"""Rounding engine: maps real tensors to integer-valued tensors.

Each rounding mode is a pure function of its input. The stochastic modes also
take a RandomSource and an optional SignificandQuantizer. Results keep the
input's dtype and shape; the input is never modified.
"""

import logging
from typing import Callable, Dict, Optional

import torch
from torch import Tensor

from ..utils.rng import RandomSource, as_random_source
from .base import RoundingMode, SignificandQuantizer

logger = logging.getLogger(__name__)


def signum(x: Tensor) -> Tensor:
    """Sign of x with zero counted as positive."""
    return torch.where(x < 0, -torch.ones_like(x), torch.ones_like(x))


def positive_zero(y: Tensor) -> Tensor:
    """Replace -0.0 by +0.0, leaving every other value alone."""
    return torch.where(y == 0, torch.zeros_like(y), y)


def round_nearest_even(x: Tensor) -> Tensor:
    """Round to the nearest integer, breaking ties to the even neighbour.

    0.5 -> 0, 1.5 -> 2, 2.5 -> 2, -1.5 -> -2. Zero results are +0.0.
    """
    # torch.round rounds half to even, so |x| never rounds below zero
    return positive_zero(signum(x) * torch.round(x.abs()))


def round_up(x: Tensor) -> Tensor:
    return positive_zero(torch.ceil(x))


def round_down(x: Tensor) -> Tensor:
    return positive_zero(torch.floor(x))


def round_toward_zero(x: Tensor) -> Tensor:
    return positive_zero(torch.where(x >= 0, torch.floor(x), torch.ceil(x)))


def stochastic_round(
    x: Tensor,
    mode: RoundingMode = RoundingMode.STOCHASTIC_PROPORTIONAL,
    source: Optional[RandomSource] = None,
    quantizer: Optional[SignificandQuantizer] = None,
) -> Tensor:
    """Round magnitudes up or down at random.

    In STOCHASTIC_PROPORTIONAL mode a magnitude k + f rounds up to k + 1 with
    probability f, so the expected result equals x. In STOCHASTIC_EQUAL mode
    it rounds up with probability 1/2 whatever f is.

    One float64 uniform draw is taken per element with a nonzero fraction,
    in row-major order, and compared against the fraction in float64.
    Exact integers are returned unchanged and consume no draw. Zero results
    are +0.0.

    If a quantizer is given, the fractions and the draws are rounded through
    it before they are compared. Elements whose fraction rounds to zero are
    then rounded down in magnitude without a draw.

    Args:
        x: Floating point input tensor
        mode: One of the two stochastic modes
        source: Random source. Default: torch's default generator
        quantizer: Significand quantizer for the comparison operands.
            Default: None (full working precision)

    Returns:
        Integer-valued tensor with the same shape and dtype as x
    """
    mode = RoundingMode(mode)
    if not mode.is_stochastic:
        raise ValueError(f"stochastic_round needs a stochastic mode, got {mode.name}")
    source = as_random_source(source)

    # Flattened row-major, so the k-th draw goes to the k-th fractional element
    flat = x.reshape(-1)
    y = flat.abs()
    low = torch.floor(y)
    frac = y - low
    if quantizer is not None:
        frac = quantizer(frac)

    draw = frac != 0
    n_draws = int(draw.sum())
    logger.debug("%s: %d of %d elements drawn", mode.name, n_draws, x.numel())
    if n_draws == 0:
        # Exact integers stay as they are; anything else was a fraction lost to the quantizer
        return positive_zero(signum(flat) * low).reshape(x.shape)

    rnd = source.uniform(n_draws).to(x.device)
    if quantizer is not None:
        rnd = quantizer(rnd)

    if mode is RoundingMode.STOCHASTIC_PROPORTIONAL:
        up = rnd <= frac[draw].to(rnd.dtype)
    else:
        up = rnd <= 0.5

    rounded = low.clone()
    rounded[draw] = torch.where(up, torch.ceil(y[draw]), low[draw])
    return positive_zero(signum(flat) * rounded).reshape(x.shape)


_DETERMINISTIC: Dict[RoundingMode, Callable[[Tensor], Tensor]] = {
    RoundingMode.NEAREST_EVEN: round_nearest_even,
    RoundingMode.TOWARD_POS_INF: round_up,
    RoundingMode.TOWARD_NEG_INF: round_down,
    RoundingMode.TOWARD_ZERO: round_toward_zero,
}


def round_integers(
    x: Tensor,
    mode: RoundingMode = RoundingMode.NEAREST_EVEN,
    source: Optional[RandomSource] = None,
    quantizer: Optional[SignificandQuantizer] = None,
) -> Tensor:
    """Round every element of x to an integer using the given mode.

    Args:
        x: Floating point input tensor of any shape
        mode: Rounding mode. Default: NEAREST_EVEN
        source: Random source for the stochastic modes
        quantizer: Significand quantizer for the stochastic modes

    Returns:
        New integer-valued tensor with the same shape and dtype as x
    """
    mode = RoundingMode(mode)
    if mode.is_stochastic:
        return stochastic_round(x, mode, source=source, quantizer=quantizer)
    return _DETERMINISTIC[mode](x)
