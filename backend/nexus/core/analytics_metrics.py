"""Analytics Metrics — site traffic (GA4) and organic search (Search Console) read models.

Invariants:
    - Reports cover a trailing window of ANALYTICS_WINDOW_DAYS ending today (UTC),
      inclusive on both ends, as ISO dates
    - Count totals are plain sums; bounce_rate and position are means over the
      days that reported, 0 for an empty range
    - Search ctr total = clicks / impressions, 0 when impressions == 0

Design Decisions:
    - Rows arrive already validated (schemas/provider_responses.py); the mappers
      only coerce GA4's string-typed metric values
"""

from dataclasses import dataclass
from datetime import date, timedelta

ANALYTICS_WINDOW_DAYS = 28

# runReport metric order; map_ga4_row reads metricValues by position
GA4_METRICS = ("sessions", "activeUsers", "screenPageViews", "bounceRate")


def report_window(today: date, days: int = ANALYTICS_WINDOW_DAYS) -> tuple[str, str]:
    return (today - timedelta(days=days)).isoformat(), today.isoformat()


def _int(value: str | None) -> int:
    try:
        return int(float(value or 0))
    except ValueError:
        return 0


def _float(value: str | None) -> float:
    try:
        return float(value or 0)
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class TrafficDay:
    date: str
    sessions: int
    active_users: int
    page_views: int
    bounce_rate: float

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "sessions": self.sessions,
            "active_users": self.active_users,
            "page_views": self.page_views,
            "bounce_rate": self.bounce_rate,
        }


def map_ga4_row(dimensions: list[str | None], metrics: list[str | None]) -> TrafficDay:
    padded = list(metrics) + [None] * (len(GA4_METRICS) - len(metrics))
    sessions, users, views, bounce = padded[:len(GA4_METRICS)]
    return TrafficDay(
        date=(dimensions[0] if dimensions else None) or "",
        sessions=_int(sessions),
        active_users=_int(users),
        page_views=_int(views),
        bounce_rate=_float(bounce),
    )


def traffic_totals(days: list[TrafficDay]) -> dict:
    return {
        "sessions": sum(d.sessions for d in days),
        "active_users": sum(d.active_users for d in days),
        "page_views": sum(d.page_views for d in days),
        "bounce_rate": (
            sum(d.bounce_rate for d in days) / len(days) if days else 0.0
        ),
    }


@dataclass(frozen=True)
class SearchDay:
    date: str
    clicks: int
    impressions: int
    ctr: float
    position: float

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "position": self.position,
        }


def search_totals(days: list[SearchDay]) -> dict:
    clicks = sum(d.clicks for d in days)
    impressions = sum(d.impressions for d in days)
    return {
        "clicks": clicks,
        "impressions": impressions,
        "ctr": clicks / impressions if impressions else 0.0,
        "position": sum(d.position for d in days) / len(days) if days else 0.0,
    }
