"""Date utility functions for matchcast."""

from datetime import date


def season_start_year(day: date | None = None) -> int:
    """Calendar year in which the football season containing ``day`` began.

    Seasons roll over on 1 July.
    """

    today = day or date.today()
    return today.year if today >= date(today.year, 7, 1) else today.year - 1


def format_season(start_year: int) -> str:
    """Render a season label such as ``"2026/27"``."""

    if not isinstance(start_year, int) or isinstance(start_year, bool):
        raise TypeError("argument `start_year` must be an integer")
    return f"{start_year}/{(start_year + 1) % 100:02d}"


def get_current_season() -> str:
    """
    Get the current football season label.

    Returns:
        The season label, e.g. ``"2026/27"`` for any date between 1 July
        2026 and 30 June 2027.
    """
    return format_season(season_start_year(date.today()))
