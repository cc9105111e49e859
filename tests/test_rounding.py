"""Tests for the deterministic rounding modes."""

import pytest
import torch

from bitround.quant import (
    RoundingMode,
    round_down,
    round_integers,
    round_nearest_even,
    round_toward_zero,
    round_up,
    signum,
)


class TestRoundNearestEven:
    """Tests for mode 1, round to nearest with ties to even."""

    def test_ties_go_to_even(self):
        """Halfway values should round to the even neighbour."""
        x = torch.tensor([0.5, 1.5, 2.5, 3.5, -0.5, -1.5])
        y = round_nearest_even(x)

        expected = torch.tensor([0.0, 2.0, 2.0, 4.0, 0.0, -2.0])
        assert torch.equal(y, expected)

    def test_non_ties_round_to_nearest(self):
        """Values off the midpoint should round to the closer integer."""
        x = torch.tensor([0.49, 0.51, 2.4, 2.6, -2.4, -2.6])
        y = round_nearest_even(x)

        expected = torch.tensor([0.0, 1.0, 2.0, 3.0, -2.0, -3.0])
        assert torch.equal(y, expected)

    def test_small_tie_never_negative(self):
        """0.5 must round to 0, never to -1."""
        y = round_nearest_even(torch.tensor([0.5, -0.5]))
        assert (y == 0).all()

    def test_zero_maps_to_zero(self):
        """Zero input should stay zero."""
        y = round_nearest_even(torch.zeros(4))
        assert (y == 0).all()

    def test_large_ties(self):
        """Ties far from zero should still go to even."""
        x = torch.tensor([1000.5, 1001.5, -1000.5], dtype=torch.float64)
        y = round_nearest_even(x)

        expected = torch.tensor([1000.0, 1002.0, -1000.0], dtype=torch.float64)
        assert torch.equal(y, expected)


class TestDirectedRounding:
    """Tests for modes 2, 3 and 4."""

    def test_negative_one_and_a_half(self):
        """-1.5 should go to -1 (up), -2 (down), -1 (toward zero)."""
        x = torch.tensor([-1.5])

        assert round_up(x).item() == -1.0
        assert round_down(x).item() == -2.0
        assert round_toward_zero(x).item() == -1.0

    def test_round_up(self):
        """Mode 2 should be the ceiling."""
        x = torch.tensor([-2.7, -0.2, 0.0, 0.2, 2.7])
        assert torch.equal(round_up(x), torch.tensor([-2.0, -0.0, 0.0, 1.0, 3.0]))

    def test_round_down(self):
        """Mode 3 should be the floor."""
        x = torch.tensor([-2.7, -0.2, 0.0, 0.2, 2.7])
        assert torch.equal(round_down(x), torch.tensor([-3.0, -1.0, 0.0, 0.0, 2.0]))

    def test_toward_zero_is_elementwise(self):
        """Mode 4 should branch per element, not once for the whole tensor."""
        x = torch.tensor([[-2.7, 2.7], [-0.3, 0.3]])
        y = round_toward_zero(x)

        expected = torch.tensor([[-2.0, 2.0], [0.0, 0.0]])
        assert torch.equal(y, expected)

    def test_integers_unchanged(self):
        """Exact integers should pass through every directed mode."""
        x = torch.arange(-5.0, 6.0)
        for fn in (round_up, round_down, round_toward_zero):
            assert torch.equal(fn(x), x)


class TestRoundIntegersDispatch:
    """Tests for the round_integers dispatcher."""

    @pytest.mark.parametrize("mode", [1, 2, 3, 4])
    def test_accepts_int_modes(self, mode):
        """Plain ints should dispatch like the matching RoundingMode."""
        x = torch.randn(5, 7) * 10
        assert torch.equal(round_integers(x, mode), round_integers(x, RoundingMode(mode)))

    def test_default_mode_is_nearest_even(self):
        """Default mode should be round to nearest even."""
        x = torch.tensor([2.5, 3.5])
        assert torch.equal(round_integers(x), torch.tensor([2.0, 4.0]))

    def test_invalid_mode_raises(self):
        """Modes outside 1..6 should raise."""
        with pytest.raises(ValueError):
            round_integers(torch.ones(3), 7)

    @pytest.mark.parametrize("mode", [1, 2, 3, 4])
    def test_input_not_modified(self, mode):
        """Rounding should never modify its input in place."""
        x = torch.randn(16) * 5
        x_copy = x.clone()
        round_integers(x, mode)

        assert torch.equal(x, x_copy)

    @pytest.mark.parametrize("mode", [1, 2, 3, 4])
    def test_empty_input(self, mode):
        """Empty input should give empty output of the same shape."""
        x = torch.empty(0, 3)
        y = round_integers(x, mode)

        assert y.shape == (0, 3)

    @pytest.mark.parametrize("mode", [1, 2, 3, 4])
    def test_zero_results_are_positive(self, mode):
        """Results equal to zero should be +0.0, also for negative inputs."""
        x = torch.tensor([-0.3, -0.5, -0.0, 0.0, 0.3])
        y = round_integers(x, mode)

        zeros = y == 0
        assert zeros.any()
        assert not torch.signbit(y[zeros]).any()


class TestSignum:
    """Tests for the zero-as-positive sign helper."""

    def test_zero_is_positive(self):
        """signum(0) should be +1."""
        assert torch.equal(signum(torch.tensor([0.0, -0.0])), torch.tensor([1.0, 1.0]))

    def test_nonzero_signs(self):
        """Nonzero values should keep their sign."""
        x = torch.tensor([-3.0, -1e-8, 1e-8, 3.0])
        assert torch.equal(signum(x), torch.tensor([-1.0, -1.0, 1.0, 1.0]))
