"""Base classes for integer rounding configurations and operations.

This module provides the rounding mode enumeration, the options record that
drives :func:`bitround.quant.integer_quantize`, and the pluggable significand
quantizer used to emulate finite-precision accumulation in stochastic rounding.
"""

import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Any, Mapping, Optional, Sequence, Union

from torch import Tensor


class ConfigError(ValueError):
    """Raised when a rounding configuration is invalid."""


class RoundingMode(IntEnum):
    """Supported integer rounding modes."""
    NEAREST_EVEN = 1             # Round to nearest, ties to even
    TOWARD_POS_INF = 2           # Ceiling
    TOWARD_NEG_INF = 3           # Floor
    TOWARD_ZERO = 4              # Truncation
    STOCHASTIC_PROPORTIONAL = 5  # Up with probability equal to the fraction
    STOCHASTIC_EQUAL = 6         # Up or down with probability 1/2

    @property
    def is_stochastic(self) -> bool:
        return self in (RoundingMode.STOCHASTIC_PROPORTIONAL, RoundingMode.STOCHASTIC_EQUAL)


@dataclass
class RoundingConfig:
    """Options record for integer rounding and bit-fault injection.

    Args:
        round: Rounding mode, an int in 1..6 or a RoundingMode. Default: 1
        flip: If True, flip one random bit of each selected element of the
            rounded result. Default: False
        p: Per-element probability of a bit flip when flip is set. Default: 0.5
        t: Bit width of the magnitudes, assumed to lie in [0, 2^t - 1].
            Required when flip is set.
        accum: 0 for full working precision, otherwise a format descriptor
            (name or FloatFormat) that stochastic-rounding fractions and
            random draws are rounded to before comparison. Default: 0
        aparams: Format parameters (t, emax) for a custom accum format.
            Default: 0 (none)
        check_range: If True, bit-fault injection rejects magnitudes that do
            not fit in t bits instead of leaving it to the caller. Default: False
    """
    round: Union[int, RoundingMode] = 1
    flip: bool = False
    p: float = 0.5
    t: Optional[int] = None
    accum: Any = 0
    aparams: Union[int, Sequence[int]] = 0
    check_range: bool = False

    @property
    def mode(self) -> RoundingMode:
        try:
            return RoundingMode(self.round)
        except ValueError:
            raise ConfigError(
                f"Unsupported value of round: {self.round!r} (expected 1..6)"
            ) from None

    def validate(self) -> None:
        """Validate configuration parameters."""
        if isinstance(self.round, bool):
            raise ConfigError(f"round must be an int in 1..6, got {self.round!r}")
        _ = self.mode
        if isinstance(self.p, bool) or not isinstance(self.p, numbers.Real):
            raise ConfigError(f"p must be a real number, got {self.p!r}")
        if not 0.0 <= self.p <= 1.0:
            raise ConfigError(f"p must be in [0, 1], got {self.p}")
        if self.flip:
            if isinstance(self.t, bool) or not isinstance(self.t, int):
                raise ConfigError(f"t must be an int when flip is set, got {self.t!r}")
            if self.t < 2:
                raise ConfigError(f"t must be >= 2 when flip is set, got {self.t}")
        if self.accum:
            # Imported lazily: formats depends on this module for ConfigError
            from .formats import resolve_format
            resolve_format(self.accum, self.aparams)

    @classmethod
    def from_options(
        cls, options: Union[None, Mapping[str, Any], "RoundingConfig"] = None
    ) -> "RoundingConfig":
        """Build a validated config from an options mapping.

        Missing fields take their defaults. The argument is never modified.

        Example:
            >>> RoundingConfig.from_options({"round": 5}).mode
            <RoundingMode.STOCHASTIC_PROPORTIONAL: 5>
        """
        if options is None:
            config = cls()
        elif isinstance(options, RoundingConfig):
            config = replace(options)
        elif isinstance(options, Mapping):
            known = {f.name for f in fields(cls)}
            unknown = sorted(set(options) - known)
            if unknown:
                raise ConfigError(f"Unknown rounding options: {', '.join(unknown)}")
            config = cls(**options)
        else:
            raise ConfigError(
                f"options must be a mapping or RoundingConfig, got {type(options).__name__}"
            )
        config.validate()
        return config


class SignificandQuantizer(ABC):
    """Abstract strategy that rounds values to a finite-precision format.

    Stochastic rounding passes its fractional parts and random draws through
    a significand quantizer to model low-precision accumulation hardware.
    Implementations must preserve shape and must not modify their input.
    """

    @abstractmethod
    def quantize(self, x: Tensor) -> Tensor:
        """Round x to the target format.

        Args:
            x: Floating point tensor

        Returns:
            New tensor with the same shape and dtype as x
        """
        pass

    def __call__(self, x: Tensor) -> Tensor:
        return self.quantize(x)


class IdentityQuantizer(SignificandQuantizer):
    """No-op quantizer, equivalent to full working precision."""

    def quantize(self, x: Tensor) -> Tensor:
        return x.clone()

    def __repr__(self) -> str:
        return "IdentityQuantizer()"
