import cmd
from datetime import date

from finseries.dashboard import category_breakdown, compute_dashboard_metrics
from finseries.debts import compute_debt_stats, format_months, simulate_payoff, sort_debts, SORT_KEYS
from finseries.logging_setup import configure_logging
from finseries.logic import compute_series, previous_reference
from finseries.models import GRANULARITIES
from finseries.storage import Snapshot, list_snapshots, load_snapshot


class FinSeriesCLI(cmd.Cmd):
    prompt = "(finseries) "

    def __init__(self, snapshot: Snapshot = None, today: date = None):
        super().__init__()
        self.intro = "Finance series shell. Type 'help' for commands."
        self.snapshot = snapshot or Snapshot()
        self.today = today

    def _today(self) -> date:
        return self.today or date.today()

    # ===== DATA =====
    def do_load(self, arg):
        """Load a snapshot: load [name]"""
        name = arg.strip()
        if not name:
            saves = list_snapshots()
            if not saves:
                print("No snapshots available")
                return
            print("Available snapshots:")
            for i, snap in enumerate(saves, 1):
                print(f"{i}. {snap}")
            return

        try:
            self.snapshot = load_snapshot(name)
        except (OSError, ValueError) as e:
            print(f"Error loading snapshot: {e}")
            return
        print(f"✓ Loaded {len(self.snapshot.transactions)} transactions, "
              f"{len(self.snapshot.debts)} debts, {len(self.snapshot.obligations)} recurring")
        if self.snapshot.skipped:
            print(f"  Skipped {len(self.snapshot.skipped)} invalid records")

    # ===== SERIES =====
    def do_series(self, arg):
        """Show a bucketed series: series <day|week|month|year> [YYYY-MM-DD] [--previous]"""
        try:
            granularity, reference, previous = self._parse_series_args(arg)
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        if previous:
            reference = previous_reference(granularity, reference)
        series = compute_series(self.snapshot.transactions, granularity, reference)

        print(f"\n{' ' + granularity.capitalize() + ' Series ':-^50}")
        print(f"Period: {series.period.start} .. {series.period.end}")
        print(f"Opening balance: ${series.baseline:,.2f}")
        for bucket in series:
            if bucket.income or bucket.expense:
                print(f"  {bucket.label:>6}  +{bucket.income:>10.2f}  -{bucket.expense:>10.2f}  = {bucket.balance:>12,.2f}")
        print(f"\nTotals: income ${series.total_income:,.2f}, expense ${series.total_expense:,.2f}")
        print(f"Closing balance: ${series.closing_balance:,.2f}")
        if series.skipped:
            print(f"Note: {len(series.skipped)} transaction(s) excluded for unparseable dates")

    # ===== DASHBOARD =====
    def do_dashboard(self, arg):
        """Month-to-date dashboard: dashboard [YYYY-MM-DD]"""
        try:
            today = self._parse_date(arg) or self._today()
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        m = compute_dashboard_metrics(self.snapshot.transactions, self.snapshot.obligations, today)
        print(f"\n{' ' + m.month_label + ' ':-^50}")
        for name, value in (("Income", m.income), ("Expenses", m.expenses), ("Net", m.net)):
            c = m.comparison[name.lower()]
            mark = "good" if c.is_good else "bad"
            print(f"  {name + ':':<10}${value:>12,.2f}  {c.trend} {c.percent}% ({mark})")
        print(f"  Balance:  ${m.main_balance:>12,.2f}")
        print(f"  Spent {m.spent_percent}% of income")

        f = m.forecast
        print("\nForecast:")
        print(f"  Daily average: ${f.daily_average:,.2f}")
        print(f"  Projected:     ${f.projected:,.2f} ({f.days_remaining} days remaining)")
        if f.is_over_income:
            print("  Warning: projected spend exceeds income")

        shares = category_breakdown(self.snapshot.transactions, today)
        if shares:
            print("\nBy Category:")
            for share in shares:
                print(f"  {share.name}: ${share.amount:,.2f} ({share.percent}%)")

        if m.upcoming_obligations:
            print("\nUpcoming:")
            for u in m.upcoming_obligations:
                when = "today" if u.days_until_due == 0 else f"in {u.days_until_due}d"
                print(f"  {u.next_due} ({when}) {u.obligation.desc}: ${u.obligation.amount:,.2f}")

    # ===== DEBTS =====
    def do_debts(self, arg):
        """Debt summary: debts [--sort priority|amount|progress|date]"""
        args = arg.split()
        sort_by = "priority"
        if len(args) >= 2 and args[0] == "--sort":
            sort_by = args[1]
        if sort_by not in SORT_KEYS:
            print(f"Invalid input: sort must be one of {'/'.join(SORT_KEYS)}")
            return

        stats = compute_debt_stats(self.snapshot.debts)
        if not stats.active_debts:
            print("No active debts")
        for d in sort_debts(stats.active_debts, sort_by):
            print(f"  {d.name}: ${d.amount:,.2f} ({stats.get_progress(d):.0f}% paid)")
        print(f"\nTotal debt: ${stats.total_debt:,.2f} of ${stats.total_original:,.2f}")
        print(f"Paid: ${stats.total_paid:,.2f} ({stats.total_progress}%)")

    def do_payoff(self, arg):
        """Payoff projection: payoff [extra monthly payment]"""
        try:
            extra = float(arg.strip() or 0)
        except ValueError:
            print("Invalid input: extra payment must be a number")
            return

        stats = compute_debt_stats(self.snapshot.debts)
        projection = simulate_payoff(stats.active_debts, extra)
        print(f"Balance ${projection.total_balance:,.2f}, minimum ${projection.total_min_payment:,.2f}/month")
        print(f"Debt free in {format_months(projection.months_to_payoff)} months")
        if extra > 0:
            print(f"Saves {format_months(projection.months_saved, int)} months")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        print("Goodbye!")
        return True

    # ===== HELPERS =====
    @staticmethod
    def _parse_date(arg):
        text = arg.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text)
        except ValueError:
            raise ValueError("Date must be in YYYY-MM-DD format")

    def _parse_series_args(self, arg):
        args = arg.split()
        if not args:
            raise ValueError("Missing granularity")
        granularity = args[0].lower()
        if granularity not in GRANULARITIES:
            raise ValueError(f"Granularity must be one of {'/'.join(GRANULARITIES)}")

        reference = self._today()
        previous = False
        for token in args[1:]:
            if token == "--previous":
                previous = True
            elif token.startswith("--"):
                raise ValueError(f"Unknown flag: {token}")
            else:
                reference = self._parse_date(token)
        return granularity, reference, previous


def main():
    configure_logging()
    FinSeriesCLI().cmdloop()


if __name__ == "__main__":
    main()
