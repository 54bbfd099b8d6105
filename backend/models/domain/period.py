"""
Period domain model - one funding cycle (calendar month)
"""
import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

PERIOD_KEY_PATTERN = re.compile(r'^(\d{4})-(\d{2})$')

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]


@dataclass(frozen=True)
class Period:
    """
    Funding period identified by year + month.

    Key format: "YYYY-MM" (e.g. "2025-03"). This is the value stored in
    video_submissions.submission_month, monthly_rankings.month and
    funding_disbursements.funding_month.
    """
    year: int
    month: int

    def __post_init__(self):
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month!r} (expected 1-12)")
        if not isinstance(self.year, int) or not 2000 <= self.year <= 9999:
            raise ValueError(f"Invalid year: {self.year!r}")

    @classmethod
    def of(cls, year: int, month: int) -> 'Period':
        return cls(year=int(year), month=int(month))

    @classmethod
    def from_key(cls, key: str) -> 'Period':
        """
        Parse a "YYYY-MM" period key.

        Raises:
            ValueError: if the key is malformed or the month is out of range
        """
        match = PERIOD_KEY_PATTERN.match((key or '').strip())
        if not match:
            raise ValueError(f"Invalid period {key!r} (expected YYYY-MM)")
        return cls(year=int(match.group(1)), month=int(match.group(2)))

    @classmethod
    def current(cls, now: Optional[datetime] = None) -> 'Period':
        now = now or datetime.now(timezone.utc)
        return cls(year=now.year, month=now.month)

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def label(self) -> str:
        """Human readable label, e.g. 'March 2025'"""
        return f"{self.month_name} {self.year}"

    def date_range(self) -> Tuple[datetime, datetime]:
        """First and last instant of the month (UTC)."""
        last_day = calendar.monthrange(self.year, self.month)[1]
        start = datetime(self.year, self.month, 1, tzinfo=timezone.utc)
        end = datetime(self.year, self.month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
        return start, end

    def to_dict(self) -> dict:
        return {
            'month': self.key,
            'year': self.year,
            'monthNumber': self.month,
            'monthName': self.month_name,
        }

    def __str__(self) -> str:
        return self.key
