from datetime import datetime
from valet_quotes.core.enums import Season

TIME_OF_DAY_FACTORS = {
    "morning": 0.9,    # 06:00-12:00
    "afternoon": 1.0,  # 12:00-18:00
    "evening": 1.2,    # 18:00-22:00
    "night": 1.1,      # 22:00-06:00
}

# Indexed by datetime.weekday(), Monday first
DAY_OF_WEEK_FACTORS = (0.8, 0.8, 0.9, 1.0, 1.3, 1.4, 1.1)

SEASON_FACTORS = {
    Season.SPRING: 1.0,
    Season.SUMMER: 1.2,
    Season.FALL: 1.1,
    Season.WINTER: 0.9,
}


def time_of_day(now: datetime) -> str:
    hour = now.hour
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def current_season(now: datetime) -> Season:
    month = now.month
    if 3 <= month <= 5:
        return Season.SPRING
    if 6 <= month <= 8:
        return Season.SUMMER
    if 9 <= month <= 11:
        return Season.FALL
    return Season.WINTER


def demand_multiplier(now: datetime) -> float:
    return (
        TIME_OF_DAY_FACTORS[time_of_day(now)]
        * DAY_OF_WEEK_FACTORS[now.weekday()]
        * SEASON_FACTORS[current_season(now)]
    )
