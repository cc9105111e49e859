"""Finite-precision floating point formats and the significand quantizer.

Stochastic rounding can be told to accumulate in a low-precision format
(``accum``). Both the fractional parts and the random draws are then rounded
to that format before they are compared, the way narrow accumulation hardware
would see them.

A format is described by its significand precision ``t`` (including the
implicit bit) and its maximum exponent ``emax``:

    format      aliases        t    emax
    fp8-e4m3    q43            4       7
    fp8-e5m2    q52            3      15
    bfloat16    b, bf16        8     127
    half        h, fp16       11      15
    tf32        t             11     127
    single      s, fp32       24     127
    double      d, fp64       53    1023
    custom      c         aparams[0] aparams[1]
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence, Union

import torch
from torch import Tensor

from .base import ConfigError, SignificandQuantizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FloatFormat:
    """Binary floating point format.

    Args:
        name: Format name, used in reprs and error messages
        t: Number of significand bits, including the implicit bit
        emax: Maximum exponent; the minimum normal exponent is 1 - emax
        subnormal: If True, values below the normal range keep gradual
            underflow. If False they are flushed to zero. Default: True
    """
    name: str
    t: int
    emax: int
    subnormal: bool = True

    def __post_init__(self):
        if self.t < 1:
            raise ConfigError(f"{self.name}: t must be >= 1, got {self.t}")
        if self.emax < 1:
            raise ConfigError(f"{self.name}: emax must be >= 1, got {self.emax}")

    @property
    def emin(self) -> int:
        return 1 - self.emax

    @property
    def xmin(self) -> float:
        """Smallest positive normal number."""
        return math.ldexp(1.0, self.emin)

    @property
    def xmax(self) -> float:
        """Largest finite number."""
        return math.ldexp(2.0 - math.ldexp(1.0, 1 - self.t), self.emax)


_BUILTIN_FORMATS = {
    "fp8-e4m3": FloatFormat("fp8-e4m3", t=4, emax=7),
    "fp8-e5m2": FloatFormat("fp8-e5m2", t=3, emax=15),
    "bfloat16": FloatFormat("bfloat16", t=8, emax=127),
    "half": FloatFormat("half", t=11, emax=15),
    "tf32": FloatFormat("tf32", t=11, emax=127),
    "single": FloatFormat("single", t=24, emax=127),
    "double": FloatFormat("double", t=53, emax=1023),
}

_ALIASES = {
    "q43": "fp8-e4m3",
    "q52": "fp8-e5m2",
    "b": "bfloat16",
    "bf16": "bfloat16",
    "h": "half",
    "fp16": "half",
    "t": "tf32",
    "s": "single",
    "fp32": "single",
    "d": "double",
    "fp64": "double",
}


def available_formats() -> list:
    """Names accepted by :func:`resolve_format`, aliases included."""
    return sorted(set(_BUILTIN_FORMATS) | set(_ALIASES) | {"c", "custom"})


def resolve_format(accum: Any, aparams: Union[int, Sequence[int]] = 0) -> FloatFormat:
    """Turn an ``accum`` descriptor into a FloatFormat.

    Args:
        accum: FloatFormat instance, or the name of a built-in format
        aparams: (t, emax) pair, required for the custom format and
            ignored for the built-in ones

    Returns:
        The resolved FloatFormat
    """
    if isinstance(accum, FloatFormat):
        return accum
    if not isinstance(accum, str):
        raise ConfigError(f"accum must be a format name or FloatFormat, got {accum!r}")

    name = accum.lower()
    if name in ("c", "custom"):
        if isinstance(aparams, (str, bytes)) or not isinstance(aparams, Sequence) or len(aparams) != 2:
            raise ConfigError(f"custom accum format needs aparams=(t, emax), got {aparams!r}")
        try:
            t, emax = int(aparams[0]), int(aparams[1])
        except (TypeError, ValueError):
            raise ConfigError(f"aparams must hold two integers, got {aparams!r}") from None
        return FloatFormat("custom", t=t, emax=emax)

    name = _ALIASES.get(name, name)
    if name not in _BUILTIN_FORMATS:
        raise ConfigError(
            f"Unknown accum format '{accum}' (expected one of {available_formats()})"
        )
    if aparams:
        logger.debug("aparams %r ignored for built-in format %s", aparams, name)
    return _BUILTIN_FORMATS[name]


def _native_covers(dtype: torch.dtype, fmt: FloatFormat) -> bool:
    """True if every value of dtype is already representable in fmt."""
    finfo = torch.finfo(dtype)
    native_t = 1 - round(math.log2(finfo.eps))
    native_emax = int(math.floor(math.log2(finfo.max)))
    return fmt.subnormal and fmt.t >= native_t and fmt.emax >= native_emax


def _ldexp(x: Tensor, exp: Tensor) -> Tensor:
    # Split the scaling so 2**exp cannot overflow float64 on its own
    exp = exp.to(x.dtype)
    half = torch.div(exp, 2, rounding_mode="floor")
    return torch.ldexp(torch.ldexp(x, half), exp - half)


def chop(x: Tensor, fmt: FloatFormat) -> Tensor:
    """Round x to the nearest value of fmt, breaking ties to even.

    Magnitudes beyond the largest finite value of fmt become infinite.
    NaN and infinities pass through unchanged.

    Args:
        x: Input tensor of any shape
        fmt: Target format

    Returns:
        New tensor with the same shape and dtype as x
    """
    x = torch.as_tensor(x)
    if not x.is_floating_point():
        x = x.to(torch.get_default_dtype())
    if x.numel() == 0 or _native_covers(x.dtype, fmt):
        return x.clone()

    xd = x.to(torch.float64)
    # xd = m * 2**e with 0.5 <= |m| < 1, so the leading bit has weight 2**(e-1)
    _, e = torch.frexp(xd)
    e = e.to(torch.int64) - 1
    if fmt.subnormal:
        e = torch.clamp(e, min=fmt.emin)
    shift = fmt.t - 1 - e

    # torch.round breaks ties to even
    y = _ldexp(torch.round(_ldexp(xd, shift)), -shift)
    y = torch.where(torch.isfinite(xd), y, xd)

    if not fmt.subnormal:
        y = torch.where(y.abs() < fmt.xmin, y * 0.0, y)
    y = torch.where(y.abs() > fmt.xmax, torch.sign(y) * math.inf, y)
    return y.to(x.dtype)


class ChopQuantizer(SignificandQuantizer):
    """Significand quantizer rounding to a FloatFormat.

    Example:
        >>> q = ChopQuantizer(resolve_format("bfloat16"))
        >>> q(torch.tensor([0.1]))
        tensor([0.1001])
    """

    def __init__(self, fmt: FloatFormat):
        self.fmt = fmt

    def quantize(self, x: Tensor) -> Tensor:
        return chop(x, self.fmt)

    def __repr__(self) -> str:
        return f"ChopQuantizer({self.fmt.name}, t={self.fmt.t}, emax={self.fmt.emax})"


def make_accum_quantizer(accum: Any, aparams: Union[int, Sequence[int]] = 0):
    """Build the quantizer for an ``accum`` option, or None for full precision."""
    if not isinstance(accum, (str, FloatFormat)) and not accum:
        return None
    return ChopQuantizer(resolve_format(accum, aparams))
