"""Integer rounding, accumulation formats and bit-fault injection.

This module provides a unified interface for emulating low-precision
integer arithmetic:
- Rounding modes 1-6: nearest-even, directed and stochastic rounding
- Accumulation formats: stochastic rounding with low-precision comparisons
- Bit faults: random single-bit flips in the rounded magnitudes

Usage:
    # Functional API (recommended for most users)
    from bitround.quant import integer_quantize, integer_quantize_ste

    # Class-based API (for repeated calls with one config and generator)
    from bitround.quant import RoundingConfig, IntegerQuantizer
"""

# Base classes and configuration
from .base import (
    ConfigError,
    IdentityQuantizer,
    RoundingConfig,
    RoundingMode,
    SignificandQuantizer,
)

# Accumulation formats
from .formats import (
    ChopQuantizer,
    FloatFormat,
    available_formats,
    chop,
    make_accum_quantizer,
    resolve_format,
)

# Rounding engine
from .rounding import (
    round_down,
    round_integers,
    round_nearest_even,
    round_toward_zero,
    round_up,
    signum,
    stochastic_round,
)

# Bit-fault injection
from .bitflip import check_bit_range, inject, inject_bit_flips

# Public call surface
from .integer import IntegerQuantizer, integer_quantize, integer_quantize_ste

__all__ = [
    # Base
    "ConfigError",
    "IdentityQuantizer",
    "RoundingConfig",
    "RoundingMode",
    "SignificandQuantizer",
    # Formats
    "ChopQuantizer",
    "FloatFormat",
    "available_formats",
    "chop",
    "make_accum_quantizer",
    "resolve_format",
    # Rounding
    "round_down",
    "round_integers",
    "round_nearest_even",
    "round_toward_zero",
    "round_up",
    "signum",
    "stochastic_round",
    # Bit faults
    "check_bit_range",
    "inject",
    "inject_bit_flips",
    # Call surface
    "IntegerQuantizer",
    "integer_quantize",
    "integer_quantize_ste",
]
