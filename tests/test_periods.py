"""Quarter labels, target overlap and proration."""

from datetime import date

import pandas as pd
import pytest

from salescrm.sales_targets import (
    available_periods,
    default_period,
    prorate_target,
    quarter_range,
    targets_overlapping,
)
from salescrm.sales_targets.periods import months_between, period_label


def _targets(*ranges):
    return pd.DataFrame([
        {'id': f"t{i}", 'period_start': start, 'period_end': end}
        for i, (start, end) in enumerate(ranges)
    ])


class TestQuarters:
    def test_q1_2026(self):
        assert quarter_range("Q1 2026") == (date(2026, 1, 1), date(2026, 3, 31))

    def test_q4_ends_on_december_31(self):
        assert quarter_range("Q4 2025") == (date(2025, 10, 1), date(2025, 12, 31))

    @pytest.mark.parametrize("label", ["2026", "Q5 2026", "", None])
    def test_invalid_label_raises(self, label):
        with pytest.raises(ValueError):
            quarter_range(label)

    def test_period_label(self):
        assert period_label("2026-05-20") == "Q2 2026"
        assert period_label(None) is None


class TestProration:
    def test_full_quarter(self):
        monthly, quarterly = prorate_target(900_000, date(2026, 1, 1), date(2026, 3, 31))
        assert monthly == pytest.approx(300_000)
        assert quarterly == pytest.approx(900_000)

    def test_partial_single_month_counts_share_of_days(self):
        # 14 of February's 28 days
        monthly, quarterly = prorate_target(100, "2026-02-01", "2026-02-14")
        assert monthly == pytest.approx(200)
        assert quarterly == pytest.approx(600)

    def test_partial_first_and_last_month(self):
        months = months_between(date(2026, 1, 16), date(2026, 3, 15))
        assert months == pytest.approx(16 / 31 + 1 + 15 / 31)

    def test_non_positive_amount(self):
        assert prorate_target(0, date(2026, 1, 1), date(2026, 3, 31)) == (0.0, 0.0)

    def test_missing_dates_raise(self):
        with pytest.raises(ValueError):
            months_between(None, date(2026, 1, 31))


class TestTargetPeriods:
    def test_overlapping_includes_targets_spanning_the_quarter_start(self):
        targets = _targets(
            ("2025-12-01", "2026-01-31"),
            ("2026-04-01", "2026-06-30"),
            ("2026-02-01", "2026-02-28"),
        )
        result = targets_overlapping(targets, "Q1 2026")
        assert sorted(result['id']) == ['t0', 't2']

    def test_overlapping_with_invalid_period_keeps_everything(self):
        targets = _targets(("2026-04-01", "2026-06-30"))
        assert len(targets_overlapping(targets, "all")) == 1

    def test_available_periods_newest_first(self):
        targets = _targets(
            ("2025-10-01", "2025-12-31"),
            ("2026-04-01", "2026-06-30"),
            ("2026-01-01", "2026-03-31"),
        )
        assert available_periods(targets) == ["Q2 2026", "Q1 2026", "Q4 2025"]

    def test_default_period_has_most_targets(self):
        targets = _targets(
            ("2026-01-01", "2026-03-31"),
            ("2026-01-15", "2026-03-31"),
            ("2026-04-01", "2026-06-30"),
        )
        assert default_period(targets, "Q3 2026") == "Q1 2026"

    def test_default_period_tie_goes_to_newest(self):
        targets = _targets(("2026-01-01", "2026-03-31"), ("2026-04-01", "2026-06-30"))
        assert default_period(targets) == "Q2 2026"

    def test_default_period_without_targets_uses_fallback(self):
        assert default_period(pd.DataFrame(), "Q1 2026") == "Q1 2026"
