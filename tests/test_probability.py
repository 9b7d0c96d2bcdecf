"""Tests for win probabilities and the help table."""

import pytest

from fair_dice import Die, HelpTableGenerator, ProbabilityCalculator


class TestWinProbability:
    def test_classic_cycle(self, die_a, die_b, die_c) -> None:
        assert ProbabilityCalculator.calculate_win_probability(die_a, die_b) > 0.5
        assert ProbabilityCalculator.calculate_win_probability(die_b, die_c) > 0.5
        assert ProbabilityCalculator.calculate_win_probability(die_c, die_a) > 0.5

    def test_exact_value(self, die_a, die_b) -> None:
        assert ProbabilityCalculator.calculate_win_probability(die_a, die_b) == pytest.approx(20 / 36)

    def test_ties_are_not_wins(self) -> None:
        die = Die([1, 2, 3])
        assert ProbabilityCalculator.calculate_win_probability(die, die) == pytest.approx(3 / 9)
        assert ProbabilityCalculator.calculate_tie_probability(die, die) == pytest.approx(3 / 9)

    @pytest.mark.parametrize("faces_a, faces_b", [
        ([2, 2, 4, 4, 9, 9], [1, 1, 6, 6, 8, 8]),
        ([1, 2, 3], [2, 3, 4, 5]),
        ([3, 3, 3], [3, 3]),
        ([-5, 0, 10], [0]),
    ])
    def test_win_loss_tie_sum_to_one(self, faces_a, faces_b) -> None:
        a, b = Die(faces_a), Die(faces_b)
        total = (
            ProbabilityCalculator.calculate_win_probability(a, b)
            + ProbabilityCalculator.calculate_win_probability(b, a)
            + ProbabilityCalculator.calculate_tie_probability(a, b)
        )
        assert total == pytest.approx(1.0)

    def test_loss_is_counterpart_win(self, die_a, die_c) -> None:
        assert ProbabilityCalculator.calculate_loss_probability(die_a, die_c) == pytest.approx(
            ProbabilityCalculator.calculate_win_probability(die_c, die_a)
        )


class TestProbabilityMatrix:
    def test_diagonal_is_none(self, classic_dice) -> None:
        matrix = ProbabilityCalculator.matrix(classic_dice)
        for i in range(3):
            assert matrix.probability(i, i) is None

    def test_off_diagonal_cells(self, classic_dice) -> None:
        matrix = ProbabilityCalculator.matrix(classic_dice)
        assert matrix.probability(0, 1) == pytest.approx(20 / 36)
        assert matrix.probability(1, 0) == pytest.approx(16 / 36)

    def test_classic_set_is_nontransitive(self, classic_dice) -> None:
        assert ProbabilityCalculator.matrix(classic_dice).is_nontransitive()

    def test_ordered_set_is_transitive(self) -> None:
        dice = [Die([1, 1]), Die([2, 2]), Die([3, 3])]
        assert not ProbabilityCalculator.matrix(dice).is_nontransitive()

    def test_best_counter(self, classic_dice) -> None:
        matrix = ProbabilityCalculator.matrix(classic_dice)
        # C beats A, A beats B, B beats C
        assert matrix.best_counter(0) == 2
        assert matrix.best_counter(1) == 0
        assert matrix.best_counter(2) == 1


class TestHelpTable:
    def test_table_contents(self, classic_dice) -> None:
        table = HelpTableGenerator.generate_table(ProbabilityCalculator.matrix(classic_dice))
        assert "2,2,4,4,9,9" in table
        assert "0.5556" in table
        assert "0.4444" in table
        assert table.count(HelpTableGenerator.SELF_MARKER) == 3
