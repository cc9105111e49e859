"""BitRound: integer rounding and bit-fault emulation for PyTorch."""

__version__ = "0.1.0"

from . import quant
from . import nn
from . import utils
