"""
Study time formatting helpers shared by progress, sessions and dashboards.
Inputs are minutes; averages come back in hours.
"""


def minutes_to_hours(minutes) -> float:
    if not minutes:
        return 0.0
    return round(minutes / 60, 1)


def format_study_time(minutes) -> str:
    """Format minutes as hours with one decimal, e.g. ``2.5h``"""
    if not minutes:
        return "0.0h"
    return f"{minutes_to_hours(minutes):.1f}h"


def avg_study_time_per_day(total_minutes, days) -> float:
    """Average hours per study day"""
    if not days or days <= 0:
        return 0
    return minutes_to_hours((total_minutes or 0) / days)


def avg_study_time_per_session(total_minutes, sessions) -> float:
    if not sessions or sessions <= 0:
        return 0
    return minutes_to_hours((total_minutes or 0) / sessions)


def study_time_breakdown(minutes) -> dict:
    minutes = minutes or 0
    total_hours = minutes_to_hours(minutes)
    total_days = int(minutes // (60 * 24))
    remaining_hours = round((minutes % (60 * 24)) / 60, 1)

    if total_days > 0:
        formatted_with_days = f"{total_days}d {remaining_hours}h"
    else:
        formatted_with_days = format_study_time(minutes)

    return {
        "total_minutes": minutes,
        "total_hours": total_hours,
        "total_days": total_days,
        "remaining_hours": remaining_hours,
        "formatted": format_study_time(minutes),
        "formatted_with_days": formatted_with_days,
    }
