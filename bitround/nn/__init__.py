"""Neural network modules for integer-rounded activations."""

from .integer_round import IntegerRound

__all__ = [
    "IntegerRound",
]
