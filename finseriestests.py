import io
import json
import logging
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

from dateutil import tz

import finseries

from finseries.cache import ResultCache, compute_fingerprint
from finseries.cli import FinSeriesCLI
from finseries.dashboard import (
    category_breakdown, comparison, compute_dashboard_metrics, forecast, main_balance,
    month_label, next_due_date, recent_transactions, spent_percent, upcoming_obligations
)
from finseries.debts import (
    UNBOUNDED, compute_debt_stats, format_months, get_progress, simulate_payoff, sort_debts
)
from finseries.logging_setup import _parse_level
from finseries.logic import (
    DAY_BUCKET_INDEX, build_period, compute_comparison_series, compute_series, period_bounds,
    previous_reference
)
from finseries.models import Debt, RecurringObligation, Transaction, to_local_date
from finseries.storage import list_snapshots, load_snapshot, snapshot_from_dict


def tx(t_id, kind, amount, t_date, category=None):
    return Transaction(id=t_id, kind=kind, amount=amount, date=t_date, category=category)


def recurring(r_id, frequency, start, last=None, amount=50.0):
    return RecurringObligation(
        id=r_id, desc=f"Bill {r_id}", amount=amount, kind="expense",
        frequency=frequency, start_date=start, last_processed=last
    )


class TestModels(unittest.TestCase):
    def test_plain_date_string_is_not_shifted(self):
        self.assertEqual(to_local_date("2024-03-01"), date(2024, 3, 1))

    def test_naive_datetime_keeps_calendar_date(self):
        self.assertEqual(to_local_date(datetime(2024, 3, 1, 23, 30)), date(2024, 3, 1))
        self.assertEqual(to_local_date("2024-03-01T23:30:00"), date(2024, 3, 1))

    def test_unparseable_dates_become_none(self):
        for value in (None, "", "   ", "not-a-date", "2024-13-45", 20240301):
            self.assertIsNone(to_local_date(value), value)

    def test_transaction_normalizes_on_construction(self):
        t = Transaction(id="1", kind="income", amount="12.5", date="2024-02-29")
        self.assertEqual(t.date, date(2024, 2, 29))
        self.assertEqual(t.amount, 12.5)
        self.assertEqual(t.signed_amount, 12.5)

    def test_transaction_is_immutable(self):
        t = tx("1", "expense", 10, date(2024, 1, 1))
        with self.assertRaises(AttributeError):
            t.amount = 20

    def test_transfer_has_no_signed_amount(self):
        self.assertEqual(tx("1", "transfer", 99, date(2024, 1, 1)).signed_amount, 0.0)

    @patch("finseries.models.tz.tzlocal", return_value=tz.tzoffset("PST", -8 * 3600))
    def test_offset_timestamps_convert_to_local_date(self, _tzlocal):
        self.assertEqual(to_local_date(datetime(2024, 3, 1, 2, 0, tzinfo=tz.UTC)), date(2024, 2, 29))
        self.assertEqual(to_local_date("2024-03-01T02:00:00Z"), date(2024, 2, 29))
        self.assertEqual(to_local_date("2024-03-01T10:00:00+00:00"), date(2024, 3, 1))
        self.assertEqual(to_local_date("2024-03-01"), date(2024, 3, 1))
        self.assertEqual(tx("1", "income", 10, "2024-03-01T02:00:00Z").date, date(2024, 2, 29))

    def test_non_finite_amounts_are_rejected(self):
        for value in (float("nan"), float("inf"), float("-inf"), "NaN", "Infinity"):
            with self.assertRaises(ValueError):
                tx("1", "income", value, date(2024, 1, 1))
            with self.assertRaises(ValueError):
                Debt(id="1", name="x", amount=10, initial_amount=value)
            with self.assertRaises(ValueError):
                Debt(id="1", name="x", amount=10, minimum_payment=value)


class TestPeriodBucketer(unittest.TestCase):
    def test_day_period(self):
        period = build_period("day", date(2024, 3, 15))
        self.assertEqual(len(period.buckets), 24)
        self.assertEqual(period.buckets[0].label, "0:00")
        self.assertEqual(period.buckets[23].label, "23:00")
        self.assertEqual(period.start_at, datetime(2024, 3, 15, 0, 0, 0))
        self.assertEqual(period.end_at, datetime(2024, 3, 15, 23, 59, 59, 999000))

    def test_week_period_starts_on_sunday(self):
        period = build_period("week", date(2024, 3, 13))  # Wednesday
        self.assertEqual(period.start, date(2024, 3, 10))
        self.assertEqual(period.end, date(2024, 3, 16))
        self.assertEqual([b.label for b in period.buckets], ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"])

    def test_week_period_on_sunday_and_saturday(self):
        self.assertEqual(period_bounds("week", date(2024, 3, 10)), (date(2024, 3, 10), date(2024, 3, 16)))
        self.assertEqual(period_bounds("week", date(2024, 3, 16)), (date(2024, 3, 10), date(2024, 3, 16)))

    def test_month_period_lengths(self):
        self.assertEqual(len(build_period("month", date(2024, 2, 10)).buckets), 29)
        self.assertEqual(len(build_period("month", date(2023, 2, 10)).buckets), 28)
        self.assertEqual(len(build_period("month", date(2024, 4, 30)).buckets), 30)
        period = build_period("month", date(2024, 1, 31))
        self.assertEqual(len(period.buckets), 31)
        self.assertEqual(period.buckets[0].date, date(2024, 1, 1))
        self.assertEqual(period.buckets[-1].label, "31")

    def test_year_period(self):
        period = build_period("year", date(2024, 6, 1))
        self.assertEqual(len(period.buckets), 12)
        self.assertEqual((period.buckets[0].month, period.buckets[0].year), (1, 2024))
        self.assertEqual(period.buckets[11].label, "Dec")
        self.assertEqual((period.start, period.end), (date(2024, 1, 1), date(2024, 12, 31)))

    def test_buckets_are_contiguous(self):
        for granularity in ("week", "month"):
            period = build_period(granularity, date(2024, 12, 31))
            days = [b.date for b in period.buckets]
            self.assertEqual(days[0], period.start)
            self.assertEqual(days[-1], period.end)
            for a, b in zip(days, days[1:]):
                self.assertEqual((b - a).days, 1)

    def test_previous_reference(self):
        self.assertEqual(previous_reference("day", date(2024, 3, 1)), date(2024, 2, 29))
        self.assertEqual(previous_reference("week", date(2024, 3, 13)), date(2024, 3, 6))
        self.assertEqual(previous_reference("month", date(2024, 3, 31)), date(2024, 2, 29))
        self.assertEqual(previous_reference("year", date(2024, 2, 29)), date(2023, 2, 28))

    def test_unknown_granularity(self):
        with self.assertRaises(ValueError):
            build_period("quarter", date(2024, 1, 1))


class TestSeriesAggregator(unittest.TestCase):
    def test_month_bucketing_scenario(self):
        transactions = [
            tx("1", "income", 100, date(2024, 3, 1)),
            tx("2", "expense", 40, date(2024, 3, 10)),
            tx("3", "expense", 10, date(2024, 2, 20)),
        ]
        series = compute_series(transactions, "month", date(2024, 3, 15))

        self.assertEqual(series.baseline, -10)
        self.assertEqual(series[0].balance, 90)
        self.assertEqual(series[9].balance, 50)
        for bucket in series.buckets[9:]:
            self.assertEqual(bucket.balance, 50)
        self.assertEqual(series.total_income, 100)
        self.assertEqual(series.total_expense, 40)
        self.assertEqual(len(series), 31)

    def test_empty_input(self):
        series = compute_series([], "year", date(2024, 1, 1))
        self.assertEqual(series.baseline, 0)
        for bucket in series:
            self.assertEqual((bucket.income, bucket.expense, bucket.balance), (0, 0, 0))

    def test_day_collapses_into_fixed_bucket(self):
        transactions = [
            tx("1", "income", 30, date(2024, 3, 15)),
            tx("2", "expense", 5, date(2024, 3, 15)),
            tx("3", "income", 20, date(2024, 3, 14)),
            tx("4", "income", 1000, date(2024, 3, 16)),
        ]
        series = compute_series(transactions, "day", date(2024, 3, 15))
        self.assertEqual(series.baseline, 20)
        self.assertEqual(series[DAY_BUCKET_INDEX].income, 30)
        self.assertEqual(series[DAY_BUCKET_INDEX].expense, 5)
        self.assertEqual(series[DAY_BUCKET_INDEX - 1].balance, 20)
        self.assertEqual(series[23].balance, 45)

    def test_week_and_year_classification(self):
        transactions = [
            tx("1", "expense", 12, date(2024, 3, 10)),
            tx("2", "income", 50, date(2024, 3, 16)),
            tx("3", "income", 70, date(2024, 11, 2)),
        ]
        week = compute_series(transactions, "week", date(2024, 3, 13))
        self.assertEqual(week[0].expense, 12)
        self.assertEqual(week[6].income, 50)

        year = compute_series(transactions, "year", date(2024, 7, 4))
        self.assertEqual(year[2].income, 50)
        self.assertEqual(year[2].expense, 12)
        self.assertEqual(year[10].income, 70)
        self.assertEqual(year.closing_balance, 108)

    def test_running_balance_invariant(self):
        transactions = [
            tx(str(i), "income" if i % 3 == 0 else "expense", 10 + i, date(2024, 1 + i % 12, 1 + i % 28))
            for i in range(60)
        ]
        transactions.append(tx("old", "income", 500, date(2023, 6, 1)))
        series = compute_series(transactions, "year", date(2024, 5, 5))

        running = series.baseline
        for bucket in series:
            running += bucket.income - bucket.expense
            self.assertAlmostEqual(bucket.balance, running)

        in_period = [t for t in transactions if date(2024, 1, 1) <= t.date <= date(2024, 12, 31)]
        self.assertAlmostEqual(series.total_income, sum(t.amount for t in in_period if t.kind == "income"))
        self.assertAlmostEqual(series.total_expense, sum(t.amount for t in in_period if t.kind == "expense"))
        self.assertEqual(series.baseline, 500)

    def test_transfers_are_ignored(self):
        transactions = [
            tx("1", "transfer", 300, date(2024, 3, 2)),
            tx("2", "transfer", 300, date(2024, 2, 2)),
        ]
        series = compute_series(transactions, "month", date(2024, 3, 1))
        self.assertEqual(series.baseline, 0)
        self.assertEqual(series.total_income + series.total_expense, 0)

    def test_unparseable_dates_are_excluded_and_reported(self):
        transactions = [
            tx("good", "income", 10, "2024-03-05"),
            tx("bad", "income", 999, "not-a-date"),
        ]
        with self.assertLogs("finseries.logic", level="WARNING"):
            series = compute_series(transactions, "month", date(2024, 3, 5))
        self.assertEqual(series.skipped, ["bad"])
        self.assertEqual(series.total_income, 10)

    def test_comparison_series_are_independent(self):
        transactions = [
            tx("1", "income", 100, date(2024, 2, 10)),
            tx("2", "expense", 30, date(2024, 3, 10)),
        ]
        current, previous = compute_comparison_series(transactions, "month", date(2024, 3, 15))
        self.assertEqual(previous.period.start, date(2024, 2, 1))
        self.assertEqual(previous.total_income, 100)
        self.assertEqual(current.baseline, 100)
        self.assertEqual(current.closing_balance, 70)
        self.assertIsNot(current.buckets, previous.buckets)


class TestDashboardMetrics(unittest.TestCase):
    def setUp(self):
        self.transactions = [
            tx("1", "income", 2000, date(2024, 3, 1), "Salary"),
            tx("2", "expense", 300, date(2024, 3, 5), "Food"),
            tx("3", "expense", 150, date(2024, 3, 12), "Transport"),
            tx("4", "income", 2000, date(2024, 2, 1), "Salary"),
            tx("5", "expense", 600, date(2024, 2, 10), "Food"),
        ]

    def test_comparison_rules(self):
        self.assertEqual(vars(comparison(100, 0, False)), {"percent": 100, "trend": "up", "is_good": True})
        self.assertEqual(vars(comparison(0, 100, False)), {"percent": 100, "trend": "down", "is_good": False})
        flat = comparison(50, 50, False)
        self.assertEqual((flat.percent, flat.trend), (0, "flat"))
        self.assertEqual(vars(comparison(0, 0, True)), {"percent": 0, "trend": "flat", "is_good": True})
        self.assertFalse(comparison(100, 0, True).is_good)
        self.assertTrue(comparison(80, 100, True).is_good)

    def test_comparison_with_negative_previous(self):
        result = comparison(50, -100, False)
        self.assertEqual((result.percent, result.trend, result.is_good), (150, "up", True))

    def test_forecast(self):
        f = forecast(450, 2000, date(2024, 3, 15))
        self.assertAlmostEqual(f.daily_average, 30)
        self.assertAlmostEqual(f.projected, 930)
        self.assertEqual(f.days_remaining, 16)
        self.assertFalse(f.is_over_income)
        self.assertAlmostEqual(f.progress, 450 / 930 * 100)

    def test_forecast_without_income_is_never_over_income(self):
        f = forecast(500, 0, date(2024, 3, 10))
        self.assertGreater(f.projected, 0)
        self.assertFalse(f.is_over_income)

    def test_forecast_without_spend(self):
        f = forecast(0, 0, date(2024, 3, 1))
        self.assertEqual((f.projected, f.daily_average, f.progress), (0, 0, 0))

    def test_compute_dashboard_metrics(self):
        m = compute_dashboard_metrics(self.transactions, [], date(2024, 3, 15))

        self.assertEqual((m.income, m.expenses, m.net), (2000, 450, 1550))
        self.assertEqual(vars(m.comparison["income"]), {"percent": 0, "trend": "flat", "is_good": True})
        self.assertEqual(vars(m.comparison["expenses"]), {"percent": 25, "trend": "down", "is_good": True})
        self.assertEqual(vars(m.comparison["net"]), {"percent": 11, "trend": "up", "is_good": True})
        self.assertAlmostEqual(m.forecast.projected, 930)
        self.assertEqual(m.main_balance, 2950)
        self.assertEqual(m.spent_percent, 23)
        self.assertEqual(m.month_label, "15 MAR 24")
        self.assertEqual([t.id for t in m.recent_transactions], ["3", "2", "1", "5", "4"])
        self.assertEqual(m.upcoming_obligations, [])

    def test_accepts_datetime_now(self):
        m = compute_dashboard_metrics(self.transactions, [], datetime(2024, 3, 15, 18, 45))
        self.assertEqual(m.income, 2000)

    def test_previous_month_across_year_boundary(self):
        transactions = [tx("1", "expense", 40, date(2023, 12, 31)), tx("2", "expense", 20, date(2024, 1, 2))]
        m = compute_dashboard_metrics(transactions, [], date(2024, 1, 5))
        self.assertEqual(vars(m.comparison["expenses"]), {"percent": 50, "trend": "down", "is_good": True})

    def test_main_balance_is_full_history(self):
        transactions = self.transactions + [tx("6", "expense", 50, date(2019, 1, 1)),
                                            tx("7", "transfer", 5000, date(2024, 3, 2))]
        self.assertEqual(main_balance(transactions), 2900)

    def test_unparseable_dates_are_reported(self):
        transactions = self.transactions + [tx("bad", "income", 1, "??")]
        with self.assertLogs("finseries.dashboard", level="WARNING"):
            m = compute_dashboard_metrics(transactions, [], date(2024, 3, 15))
        self.assertEqual(m.skipped, ["bad"])
        self.assertEqual(m.main_balance, 2950)

    def test_spent_percent(self):
        self.assertEqual(spent_percent(0, 0), 0)
        self.assertEqual(spent_percent(10, 0), 100)
        self.assertEqual(spent_percent(50, 200), 25)

    def test_month_label(self):
        self.assertEqual(month_label(date(2024, 3, 2)), "2 MAR 24")
        self.assertEqual(month_label(date(2005, 12, 31)), "31 DEC 05")

    def test_recent_transactions_limit(self):
        self.assertEqual(len(recent_transactions(self.transactions, limit=2)), 2)

    def test_category_breakdown(self):
        shares = category_breakdown(self.transactions, date(2024, 3, 20))
        self.assertEqual([(s.name, s.amount, s.percent) for s in shares],
                         [("Food", 300, 67), ("Transport", 150, 33)])
        self.assertEqual(category_breakdown([], date(2024, 3, 20)), [])


class TestUpcomingObligations(unittest.TestCase):
    def test_month_end_start_clamps(self):
        self.assertEqual(next_due_date(recurring("r", "monthly", date(2024, 1, 31)), date(2024, 2, 25)),
                         date(2024, 2, 29))
        self.assertEqual(next_due_date(recurring("r", "monthly", date(2024, 1, 31)), date(2024, 3, 1)),
                         date(2024, 3, 31))

    def test_yearly_leap_day(self):
        self.assertEqual(next_due_date(recurring("r", "yearly", date(2020, 2, 29)), date(2025, 2, 25)),
                         date(2025, 2, 28))

    def test_daily_due_today(self):
        self.assertEqual(next_due_date(recurring("r", "daily", date(2020, 1, 1)), date(2024, 3, 15)),
                         date(2024, 3, 15))

    def test_future_start_is_next_due(self):
        self.assertEqual(next_due_date(recurring("r", "weekly", date(2024, 4, 1)), date(2024, 3, 15)),
                         date(2024, 4, 1))

    def test_last_processed_steps_one_interval(self):
        obligation = recurring("r", "weekly", date(2024, 1, 6), last=date(2024, 3, 9))
        self.assertEqual(next_due_date(obligation, date(2024, 3, 9)), date(2024, 3, 16))
        obligation = recurring("r", "monthly", date(2023, 1, 1), last=date(2024, 1, 10))
        self.assertEqual(next_due_date(obligation, date(2024, 3, 15)), date(2024, 4, 10))

    def test_missing_start_date(self):
        self.assertIsNone(next_due_date(recurring("r", "monthly", "garbage"), date(2024, 3, 15)))

    def test_lookahead_window_and_order(self):
        obligations = [
            recurring("rent", "monthly", date(2024, 1, 20)),
            recurring("gym", "weekly", date(2024, 3, 22)),
            recurring("tax", "yearly", date(2023, 6, 30)),
            recurring("coffee", "daily", date(2024, 3, 1)),
        ]
        upcoming = upcoming_obligations(obligations, date(2024, 3, 15))
        self.assertEqual([(u.obligation.id, u.days_until_due) for u in upcoming],
                         [("coffee", 0), ("rent", 5), ("gym", 7)])
        self.assertEqual(upcoming[1].next_due, date(2024, 3, 20))

    def test_bad_obligations_are_skipped(self):
        obligations = [recurring("nodate", "monthly", None), recurring("ok", "daily", date(2024, 3, 1))]
        with self.assertLogs("finseries.dashboard", level="WARNING"):
            upcoming = upcoming_obligations(obligations, date(2024, 3, 15))
        self.assertEqual([u.obligation.id for u in upcoming], ["ok"])

    def test_dates_past_calendar_end_are_skipped(self):
        obligations = [
            recurring("edge", "daily", date(2020, 1, 1), last=date(9999, 12, 31)),
            recurring("ok", "weekly", date(2024, 3, 18)),
        ]
        with self.assertLogs("finseries.dashboard", level="WARNING"):
            m = compute_dashboard_metrics([], obligations, date(2024, 3, 15))
        self.assertEqual([u.obligation.id for u in m.upcoming_obligations], ["ok"])


class TestDebts(unittest.TestCase):
    def test_debt_stats_scenario(self):
        debts = [
            Debt(id="1", name="Card", amount=200, initial_amount=1000),
            Debt(id="2", name="Loan", amount=0, initial_amount=500),
        ]
        stats = compute_debt_stats(debts)
        self.assertEqual(stats.total_debt, 200)
        self.assertEqual(stats.total_original, 1500)
        self.assertEqual(stats.total_paid, 1300)
        self.assertEqual(stats.total_progress, 87)
        self.assertEqual([d.id for d in stats.active_debts], ["1"])
        self.assertEqual(stats.get_progress(debts[0]), 80)

    def test_empty_debts(self):
        stats = compute_debt_stats([])
        self.assertEqual((stats.total_debt, stats.total_original, stats.total_progress), (0, 0, 0))

    def test_initial_amount_falls_back_to_amount(self):
        stats = compute_debt_stats([Debt(id="1", name="IOU", amount=300)])
        self.assertEqual(stats.total_original, 300)
        self.assertEqual(stats.total_progress, 0)

    def test_progress_stays_in_range(self):
        cases = [
            (Debt(id="a", name="a", amount=0, initial_amount=0), 100),
            (Debt(id="b", name="b", amount=50, initial_amount=0), 0),
            (Debt(id="c", name="c", amount=1500, initial_amount=1000), 0),
            (Debt(id="d", name="d", amount=-20, initial_amount=100), 100),
            (Debt(id="e", name="e", amount=10, initial_amount=-5), 0),
            (Debt(id="g", name="g", amount=250, initial_amount=1000), 75),
        ]
        for debt, expected in cases:
            progress = get_progress(debt)
            self.assertGreaterEqual(progress, 0, debt)
            self.assertLessEqual(progress, 100, debt)
            self.assertEqual(progress, expected, debt)

    def test_total_progress_is_clamped(self):
        debts = [Debt(id="1", name="x", amount=900, initial_amount=100)]
        self.assertEqual(compute_debt_stats(debts).total_progress, 0)

    def test_payoff_scenario(self):
        debts = [
            Debt(id="1", name="Card", amount=700, initial_amount=1000, minimum_payment=60),
            Debt(id="2", name="Loan", amount=500, initial_amount=500, minimum_payment=40),
        ]
        projection = simulate_payoff(debts, 100)
        self.assertEqual(projection.total_balance, 1200)
        self.assertEqual(projection.total_min_payment, 100)
        self.assertEqual(projection.months_to_payoff, 6)
        self.assertEqual(projection.baseline_months, 12)
        self.assertEqual(projection.months_saved, 6)

    def test_payoff_without_extra_saves_nothing(self):
        projection = simulate_payoff([Debt(id="1", name="x", amount=1200, minimum_payment=100)], 0)
        self.assertEqual(projection.months_to_payoff, 12)
        self.assertEqual(projection.months_saved, 0)

    def test_payoff_zero_denominator_is_unbounded(self):
        projection = simulate_payoff([Debt(id="1", name="x", amount=500)], 0)
        self.assertEqual(projection.months_to_payoff, UNBOUNDED)
        self.assertTrue(projection.is_unbounded)
        self.assertEqual(projection.months_saved, 0)
        self.assertEqual(format_months(projection.months_to_payoff), "∞")

    def test_payoff_extra_without_minimum(self):
        projection = simulate_payoff([Debt(id="1", name="x", amount=500)], 100)
        self.assertEqual(projection.months_to_payoff, 5)
        self.assertEqual(projection.baseline_months, UNBOUNDED)
        self.assertEqual(projection.months_saved, UNBOUNDED)

    def test_payoff_ignores_settled_debts(self):
        debts = [Debt(id="1", name="x", amount=0, minimum_payment=300),
                 Debt(id="2", name="y", amount=400, minimum_payment=100)]
        self.assertEqual(simulate_payoff(debts, 0).months_to_payoff, 4)

    def test_negative_extra_payment_counts_as_zero(self):
        debts = [Debt(id="1", name="x", amount=1200, minimum_payment=100)]
        projection = simulate_payoff(debts, -50)
        self.assertEqual(projection.extra_payment, 0)
        self.assertEqual(projection.months_to_payoff, 12)
        self.assertEqual(projection.months_saved, 0)

    def test_total_progress_survives_overflowing_totals(self):
        debts = [Debt(id=str(i), name="huge", amount=1e308, initial_amount=1e308) for i in range(2)]
        stats = compute_debt_stats(debts)
        self.assertEqual(stats.total_progress, 0)
        self.assertEqual(stats.get_progress(debts[0]), 0)

    def test_format_months(self):
        self.assertEqual(format_months(5.2), "6")
        self.assertEqual(format_months(5.8, int), "5")
        self.assertEqual(format_months(UNBOUNDED, int), "∞")

    def test_sort_debts(self):
        debts = [
            Debt(id="a", name="a", amount=100, initial_amount=400, priority=2, date=date(2024, 1, 5)),
            Debt(id="b", name="b", amount=300, initial_amount=300, date=date(2024, 2, 1)),
            Debt(id="c", name="c", amount=50, initial_amount=100, priority=0),
        ]
        self.assertEqual([d.id for d in sort_debts(debts)], ["c", "a", "b"])
        self.assertEqual([d.id for d in sort_debts(debts, "amount")], ["b", "a", "c"])
        self.assertEqual([d.id for d in sort_debts(debts, "progress")], ["a", "c", "b"])
        self.assertEqual([d.id for d in sort_debts(debts, "date")], ["b", "a", "c"])
        with self.assertRaises(ValueError):
            sort_debts(debts, "name")


class TestResultCache(unittest.TestCase):
    def test_fingerprint_is_stable_and_input_sensitive(self):
        a = [tx("1", "income", 10, date(2024, 1, 1))]
        b = [tx("1", "income", 11, date(2024, 1, 1))]
        self.assertEqual(compute_fingerprint(a, "month"), compute_fingerprint(list(a), "month"))
        self.assertNotEqual(compute_fingerprint(a, "month"), compute_fingerprint(b, "month"))

    def test_cache_hits_and_misses(self):
        cache = ResultCache(maxsize=2)
        transactions = [tx("1", "income", 10, date(2024, 1, 1))]
        first = cache.call(compute_series, transactions, "month", date(2024, 1, 1))
        second = cache.call(compute_series, transactions, "month", date(2024, 1, 1))
        self.assertIs(first, second)
        self.assertEqual((cache.hits, cache.misses), (1, 1))

        cache.call(compute_series, transactions, "year", date(2024, 1, 1))
        cache.call(compute_series, transactions, "week", date(2024, 1, 1))
        self.assertEqual(len(cache), 2)

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            ResultCache(maxsize=0)

    def test_exported_from_package(self):
        self.assertIs(finseries.ResultCache, ResultCache)
        cache = finseries.ResultCache()
        stats = cache.call(finseries.compute_debt_stats, [Debt(id="1", name="x", amount=5, initial_amount=10)])
        self.assertEqual(stats.total_progress, 50)


SNAPSHOT = {
    "transactions": [
        {"id": "t1", "type": "income", "amount": 100, "category": "Salary", "date": "2024-03-01"},
        {"id": "t2", "type": "expense", "amount": 40, "category": "Food", "date": "2024-03-10"},
        {"id": "t3", "type": "expense", "amount": 10, "date": "2024-02-20"},
        {"id": "t4", "type": "refund", "amount": 5, "date": "2024-02-20"},
        {"id": "t5", "type": "income", "amount": 7, "date": "someday"},
    ],
    "debts": [
        {"id": "d1", "name": "Card", "amount": 200, "initialAmount": 1000, "minimumPayment": 50},
        {"id": "d2", "name": "Loan", "amount": 0, "initialAmount": 500},
    ],
    "recurringTransactions": [
        {"id": "r1", "type": "expense", "desc": "Rent", "amount": 800, "category": "Housing",
         "startDate": "2024-01-18", "frequency": "monthly"},
        {"id": "r2", "type": "expense", "desc": "Odd", "amount": 1, "startDate": "2024-01-01",
         "frequency": "hourly"},
    ],
}


class TestLogging(unittest.TestCase):
    def test_level_names_and_numbers(self):
        self.assertEqual(_parse_level("debug"), logging.DEBUG)
        self.assertEqual(_parse_level(" Warning "), logging.WARNING)
        self.assertEqual(_parse_level(logging.ERROR), logging.ERROR)

    @patch.dict("os.environ", {"FINSERIES_LOG_LEVEL": "error"})
    def test_environment_sets_default_level(self):
        self.assertEqual(_parse_level(None), logging.ERROR)
        self.assertEqual(_parse_level("bogus"), logging.ERROR)

    @patch.dict("os.environ", {"FINSERIES_LOG_LEVEL": "bogus"})
    def test_unknown_levels_fall_back_to_info(self):
        self.assertEqual(_parse_level(None), logging.INFO)
        self.assertEqual(_parse_level("bogus"), logging.INFO)


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self.tmp.name)
        (self.directory / "test_snapshot.json").write_text(json.dumps(SNAPSHOT))

    def tearDown(self):
        self.tmp.cleanup()

    def test_snapshot_from_dict_skips_invalid_records(self):
        with self.assertLogs("finseries.storage", level="WARNING"):
            snapshot = snapshot_from_dict(SNAPSHOT)
        self.assertEqual([t.id for t in snapshot.transactions], ["t1", "t2", "t3", "t5"])
        self.assertIsNone(snapshot.transactions[-1].date)
        self.assertEqual(snapshot.skipped, ["transactions:t4", "recurringTransactions:r2"])
        self.assertEqual(snapshot.debts[0].initial_amount, 1000)
        self.assertEqual(snapshot.debts[0].minimum_payment, 50)
        self.assertEqual(snapshot.obligations[0].start_date, date(2024, 1, 18))

    def test_load_snapshot_feeds_engine(self):
        snapshot = load_snapshot("test_snapshot", directory=self.directory)
        series = compute_series(snapshot.transactions, "month", date(2024, 3, 15))
        self.assertEqual(series.baseline, -10)
        self.assertEqual(series.closing_balance, 50)
        self.assertEqual(series.skipped, ["t5"])

    def test_list_and_missing_snapshots(self):
        self.assertEqual(list_snapshots(self.directory), ["test_snapshot"])
        self.assertEqual(list_snapshots(self.directory / "nope"), [])
        with self.assertRaises(FileNotFoundError):
            load_snapshot("missing", directory=self.directory)

    def test_non_finite_amounts_are_skipped(self):
        raw = json.loads(
            '{"transactions": ['
            '{"id": "t1", "type": "income", "amount": 100, "date": "2024-03-01"},'
            '{"id": "t2", "type": "expense", "amount": NaN, "date": "2024-03-02"}],'
            ' "debts": ['
            '{"id": "d1", "name": "x", "amount": Infinity, "initialAmount": Infinity},'
            '{"id": "d2", "name": "y", "amount": 200, "initialAmount": 1000}]}'
        )
        with self.assertLogs("finseries.storage", level="WARNING"):
            snapshot = snapshot_from_dict(raw)
        self.assertEqual(snapshot.skipped, ["transactions:t2", "debts:d1"])

        series = compute_series(snapshot.transactions, "month", date(2024, 3, 15))
        self.assertEqual(series.closing_balance, 100)
        self.assertEqual(main_balance(snapshot.transactions), 100)
        stats = compute_debt_stats(snapshot.debts)
        self.assertEqual((stats.total_debt, stats.total_progress), (200, 80))


class TestCLI(unittest.TestCase):
    def setUp(self):
        snapshot = snapshot_from_dict(SNAPSHOT)
        self.cli = FinSeriesCLI(snapshot=snapshot, today=date(2024, 3, 15))

    def run_command(self, line):
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            self.cli.onecmd(line)
        return out.getvalue()

    def test_series_command(self):
        output = self.run_command("series month 2024-03-15")
        self.assertIn("Opening balance: $-10.00", output)
        self.assertIn("Closing balance: $50.00", output)

    def test_series_rejects_bad_granularity(self):
        self.assertIn("Invalid input", self.run_command("series decade"))

    def test_dashboard_command(self):
        output = self.run_command("dashboard")
        self.assertIn("15 MAR 24", output)
        self.assertIn("Rent", output)

    def test_debts_and_payoff_commands(self):
        self.assertIn("(87%)", self.run_command("debts --sort amount"))
        self.assertIn("Debt free in 4 months", self.run_command("payoff"))
        self.assertIn("Invalid input", self.run_command("payoff lots"))


if __name__ == "__main__":
    unittest.main()
