"""
Command line calendar showing business days and holidays of a locale.

Inspired by the tcal CLI of trading_calendars.
"""

from __future__ import annotations

import logging
import sys
from calendar import monthrange
from datetime import date, datetime
from typing import Callable, List, Optional

import click

from .api import holiday_engine
from .business import BusinessCalendar
from .engine import DEFAULT_LOCALE
from .errors import CalendarError
from .plugins import PluginRegistry
from .rules import CustomParams, HolidayRule, RuleType


MONTHS = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

WEEKDAYS = ['Mo', 'Tu', 'We', 'Th', 'Fr', 'Sa', 'Su']


def render_month(calendar: BusinessCalendar, year: int, month: int, print_year: bool = False) -> str:
    """
    Render a single month calendar.

    Args:
        calendar: Business calendar covering the month
        year: Year to render
        month: Month to render (1-12)
        print_year: Whether to include year in title

    Returns:
        String representation of the month
    """
    lines = []

    title = MONTHS[month - 1]
    if print_year:
        title += f' {year}'
    lines.append(f'{title:^28}'.rstrip())

    # each day column is 4 characters wide
    header = ''.join(f' {day} ' for day in WEEKDAYS)
    lines.append(header.rstrip())

    last_day = monthrange(year, month)[1]
    first_date = date(year, month, 1)
    current_line = ' ' * (4 * first_date.weekday())

    for day in range(1, last_day + 1):
        d = date(year, month, day)

        if calendar.is_business(d):
            day_str = f' {day:2} '
        else:
            day_str = f'[{day:2}]'

        current_line += day_str

        if d.weekday() == 6:
            lines.append(current_line)
            current_line = ''

    if current_line:
        lines.append(current_line)

    return '\n'.join(lines)


def concat_months(month_strings: List[str], width: int = 28) -> str:
    """
    Concatenate multiple month strings horizontally.

    Args:
        month_strings: List of month string representations
        width: Width of each month column

    Returns:
        Horizontally concatenated months
    """
    as_lines = [s.splitlines() for s in month_strings]
    max_lines = max(len(lines) for lines in as_lines)

    for lines in as_lines:
        missing_lines = max_lines - len(lines)
        if missing_lines:
            lines.extend([' ' * width] * missing_lines)

    rows = []
    for row_parts in zip(*as_lines):
        row_parts = [part.ljust(width) for part in row_parts]
        rows.append('   '.join(row_parts))

    return '\n'.join(row.rstrip() for row in rows)


def render_year(calendar: BusinessCalendar, year: int) -> str:
    """
    Render a full year calendar (3 months per row).

    Args:
        calendar: Business calendar covering the year
        year: Year to render

    Returns:
        String representation of the full year
    """
    month_strings = []
    for row in range(4):
        month_strings.append([render_month(calendar, year, row * 3 + col + 1) for col in range(3)])

    output = [f'{year:^88}'.rstrip()]
    output.append('\n\n'.join(concat_months(ms, 28) for ms in month_strings))
    return '\n'.join(output)


def render_holiday_list(engine, year: int, locale: str) -> str:
    """One line per holiday occurrence: ISO date, name and an [observed] marker."""
    lines = []
    for occ in engine.resolve(year, locale):
        line = f'{occ.date.isoformat()}  {occ.name}'
        if occ.observed:
            line += f' [observed, actual {occ.original_date.isoformat()}]'
        lines.append(line)
    return '\n'.join(lines)


def _one_off(day: date) -> Callable[[int], List[date]]:
    def calculate(year: int) -> List[date]:
        return [day] if day.year == year else []
    return calculate


@click.command()
@click.argument('year', type=int, required=False)
@click.argument('month', type=click.IntRange(1, 12), required=False)
@click.option('-l', '--locale', default=DEFAULT_LOCALE, show_default=True,
              help='Locale code (e.g., en-US, en-GB, de-DE, zh-CN, tr-TR)')
@click.option('--list', 'list_holidays', is_flag=True,
              help='List the holidays of the year instead of drawing the calendar')
@click.option('--add-holiday', multiple=True, type=str,
              help='Add custom holiday (format: YYYY-MM-DD)')
@click.option('-v', '--verbose', count=True, help='-v for info logs, -vv for debug logs')
def main(year: Optional[int], month: Optional[int], locale: str, list_holidays: bool,
         add_holiday: tuple, verbose: int):
    """
    Display a calendar showing business days and holidays.

    Business days are shown as regular numbers.
    Holidays/weekends are shown in brackets [like this].

    Examples:

        # Show the US calendar for 2026
        hcal -l en-US 2026

        # Show January 2026 for Germany
        hcal -l de-DE 2026 1

        # List the Chinese festivals of 2024
        hcal -l zh-CN --list 2024

        # Add a custom holiday
        hcal -l en-GB --add-holiday 2026-05-15 2026 5
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG if verbose > 1 else logging.INFO,
                            format='%(levelname)s %(name)s: %(message)s')

    if year is None:
        year = date.today().year

    try:
        engine = holiday_engine(PluginRegistry())

        for raw in dict.fromkeys(add_holiday):
            day = datetime.strptime(raw, '%Y-%m-%d').date()
            engine.register_rule(HolidayRule(
                id=f'custom-{day.isoformat()}',
                name='Custom holiday',
                type=RuleType.CUSTOM,
                locale=locale,
                params=CustomParams(calculate=_one_off(day)),
            ))

        if list_holidays:
            output = render_holiday_list(engine, year, locale)
        else:
            calendar = BusinessCalendar(engine, locale, date(year, 1, 1), date(year, 12, 31))
            if month is not None:
                output = render_month(calendar, year, month, print_year=True)
            else:
                output = render_year(calendar, year)

        click.echo(output)

    except (CalendarError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
