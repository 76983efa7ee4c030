"""Inventory divergence arithmetic."""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.divergence import (
    compute_divergence,
    percentage_divergence,
    summarize,
)


class TestPercentageDivergence:

    @pytest.mark.parametrize(
        "system, counted, expected",
        [
            (100, 90, Decimal("-10.00")),
            (100, 110, Decimal("10.00")),
            (3, 4, Decimal("33.33")),
            (3, 5, Decimal("66.67")),
            (50, 50, Decimal("0.00")),
        ],
    )
    def test_relative_to_system_balance(self, system, counted, expected):
        assert percentage_divergence(system, counted) == expected

    def test_no_system_stock_but_counted(self):
        assert percentage_divergence(0, 7) == Decimal("100.00")

    def test_nothing_anywhere(self):
        assert percentage_divergence(0, 0) == Decimal("0.00")

    def test_negative_system_balance_counts_as_no_stock(self):
        assert percentage_divergence(-2, 3) == Decimal("100.00")


class TestComputeDivergence:

    def test_difference_is_counted_minus_system(self):
        eq = uuid4()
        divergence = compute_divergence(eq, 20, 15)

        assert divergence.equipment_type_id == eq
        assert divergence.difference == -5
        assert divergence.percentage == Decimal("-25.00")


class TestSummarize:

    def test_largest_and_smallest_by_magnitude(self):
        divergences = [
            compute_divergence(uuid4(), 10, 2),
            compute_divergence(uuid4(), 10, 13),
            compute_divergence(uuid4(), 10, 10),
        ]
        summary = summarize(4, divergences)

        assert summary.total_items == 4
        assert summary.items_with_divergence == 2
        assert summary.items_without_divergence == 2
        assert summary.largest_divergence == 8
        assert summary.smallest_divergence == 3

    def test_no_divergence(self):
        summary = summarize(3, [])

        assert summary.items_with_divergence == 0
        assert summary.items_without_divergence == 3
        assert summary.largest_divergence == 0
        assert summary.smallest_divergence == 0
