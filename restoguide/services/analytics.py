"""
Admin dashboard analytics.

A request covers a period (``30d`` style, or explicit from/to dates) and is
compared against the equally long period right before it. Timelines are
bucketed by day, week or month depending on the period length, and buckets
with no activity are filled with zeroes so charts get a continuous series.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select

from restoguide.constants import STATUS_ACTIVE, STATUS_PENDING, STATUS_SUSPENDED
from restoguide.db import (
    AuditLogRow,
    Database,
    EstablishmentRow,
    ReviewRow,
    UserRow,
    utcnow,
)
from restoguide.services import iso

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30
_PERIOD_RE = re.compile(r"^\s*(\d+)\s*d?\s*$")


def parse_period(
    period: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime, datetime, datetime]:
    """Return ``(start, end, prev_start, prev_end)``; ``end`` is exclusive."""
    if date_from and date_to:
        start = datetime.combine(date_from, time.min)
        end = datetime.combine(date_to, time.min) + timedelta(days=1)
    else:
        match = _PERIOD_RE.match(period or "")
        days = int(match.group(1)) if match and int(match.group(1)) > 0 else DEFAULT_PERIOD_DAYS
        end = now or utcnow()
        start = datetime.combine((end - timedelta(days=days)).date(), time.min)
    duration = end - start
    return start, end, start - duration, start


def aggregation_for(start: datetime, end: datetime) -> str:
    days = (end - start).days
    if days <= 30:
        return "day"
    if days <= 90:
        return "week"
    return "month"


def change_percent(current: int, previous: int) -> Optional[float]:
    if previous == 0:
        return None if current > 0 else 0
    return round((current - previous) / previous * 100, 1)


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def bucket_for(moment: datetime, start: datetime, aggregation: str) -> date:
    """The first day of the bucket ``moment`` falls in, aligned to ``start``."""
    first = start.date()
    day = moment.date()
    if aggregation == "week":
        return first + timedelta(days=((day - first).days // 7) * 7)
    if aggregation == "month":
        months = (day.year - first.year) * 12 + day.month - first.month
        key = _add_months(first, months)
        if key > day:
            key = _add_months(first, months - 1)
        return key
    return day


def bucket_keys(start: datetime, end: datetime, aggregation: str) -> list[date]:
    last = (end - timedelta(microseconds=1)).date()
    current = start.date()
    keys = []
    step = 0
    while current <= last:
        keys.append(current)
        step += 1
        if aggregation == "month":
            current = _add_months(start.date(), step)
        elif aggregation == "week":
            current = start.date() + timedelta(days=7 * step)
        else:
            current = start.date() + timedelta(days=step)
    return keys


def fill_date_gaps(
    buckets: dict[date, dict],
    start: datetime,
    end: datetime,
    aggregation: str,
    extra_fields: Iterable[str] = (),
) -> list[dict]:
    extra_fields = list(extra_fields)
    timeline = []
    for key in bucket_keys(start, end, aggregation):
        row = buckets.get(key)
        entry = {"date": key.isoformat(), "count": row["count"] if row else 0}
        for name in extra_fields:
            entry[name] = row.get(name) if row else None
        timeline.append(entry)
    return timeline


def build_timeline(
    moments: Iterable[datetime], start: datetime, end: datetime, aggregation: str
) -> list[dict]:
    counts = Counter(bucket_for(moment, start, aggregation) for moment in moments)
    return fill_date_gaps(
        {key: {"count": count} for key, count in counts.items()}, start, end, aggregation
    )


class AnalyticsService:
    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _count_between(session, model, start: datetime, end: datetime, *conditions) -> int:
        return session.execute(
            select(func.count())
            .select_from(model)
            .where(model.created_at >= start, model.created_at < end, *conditions)
        ).scalar_one()

    @staticmethod
    def _count(session, model, *conditions) -> int:
        return session.execute(
            select(func.count()).select_from(model).where(*conditions)
        ).scalar_one()

    def overview(self, period=None, date_from=None, date_to=None) -> dict:
        start, end, prev_start, prev_end = parse_period(period, date_from, date_to)
        live_review = ReviewRow.is_deleted.is_(False)
        with self.db.Session() as session:
            users_new = self._count_between(session, UserRow, start, end)
            users_prev = self._count_between(session, UserRow, prev_start, prev_end)
            est_new = self._count_between(session, EstablishmentRow, start, end)
            est_prev = self._count_between(session, EstablishmentRow, prev_start, prev_end)
            reviews_new = self._count_between(session, ReviewRow, start, end, live_review)
            reviews_prev = self._count_between(
                session, ReviewRow, prev_start, prev_end, live_review
            )
            average_rating = session.execute(
                select(func.avg(ReviewRow.rating)).where(live_review)
            ).scalar()
            moderation_actions = session.execute(
                select(func.count())
                .select_from(AuditLogRow)
                .where(
                    AuditLogRow.action.like("moderate_%"),
                    AuditLogRow.created_at >= start,
                    AuditLogRow.created_at < end,
                )
            ).scalar_one()
            return {
                "period": {"from": iso(start), "to": iso(end)},
                "users": {
                    "total": self._count(session, UserRow),
                    "new_in_period": users_new,
                    "change_percent": change_percent(users_new, users_prev),
                },
                "establishments": {
                    "total": self._count(session, EstablishmentRow),
                    "active": self._count(
                        session, EstablishmentRow, EstablishmentRow.status == STATUS_ACTIVE
                    ),
                    "pending": self._count(
                        session, EstablishmentRow, EstablishmentRow.status == STATUS_PENDING
                    ),
                    "suspended": self._count(
                        session,
                        EstablishmentRow,
                        EstablishmentRow.status == STATUS_SUSPENDED,
                    ),
                    "new_in_period": est_new,
                    "change_percent": change_percent(est_new, est_prev),
                },
                "reviews": {
                    "total": self._count(session, ReviewRow, live_review),
                    "new_in_period": reviews_new,
                    "change_percent": change_percent(reviews_new, reviews_prev),
                    "average_rating": round(float(average_rating), 2)
                    if average_rating is not None
                    else 0.0,
                },
                "moderation": {
                    "pending_count": self._count(
                        session, EstablishmentRow, EstablishmentRow.status == STATUS_PENDING
                    ),
                    "actions_in_period": moderation_actions,
                },
            }

    def users(self, period=None, date_from=None, date_to=None) -> dict:
        start, end, prev_start, prev_end = parse_period(period, date_from, date_to)
        aggregation = aggregation_for(start, end)
        with self.db.Session() as session:
            moments = session.execute(
                select(UserRow.created_at).where(
                    UserRow.created_at >= start, UserRow.created_at < end
                )
            ).scalars().all()
            roles = session.execute(
                select(UserRow.role, func.count()).group_by(UserRow.role)
            ).all()
            previous = self._count_between(session, UserRow, prev_start, prev_end)
            total = self._count(session, UserRow)
        return {
            "registration_timeline": build_timeline(moments, start, end, aggregation),
            "role_distribution": [{"role": role, "count": count} for role, count in roles],
            "total": total,
            "new_in_period": len(moments),
            "change_percent": change_percent(len(moments), previous),
            "aggregation": aggregation,
        }

    def establishments(self, period=None, date_from=None, date_to=None) -> dict:
        start, end, prev_start, prev_end = parse_period(period, date_from, date_to)
        aggregation = aggregation_for(start, end)
        est = EstablishmentRow
        with self.db.Session() as session:
            moments = session.execute(
                select(est.created_at).where(est.created_at >= start, est.created_at < end)
            ).scalars().all()
            statuses = session.execute(
                select(est.status, func.count()).group_by(est.status)
            ).all()
            cities = session.execute(
                select(est.city, func.count())
                .group_by(est.city)
                .order_by(func.count().desc())
            ).all()
            categories = Counter()
            for values in session.execute(select(est.categories)).scalars():
                categories.update(values or [])
            previous = self._count_between(session, est, prev_start, prev_end)
            total = self._count(session, est)
            active = self._count(session, est, est.status == STATUS_ACTIVE)
        return {
            "creation_timeline": build_timeline(moments, start, end, aggregation),
            "status_distribution": [{"status": s, "count": c} for s, c in statuses],
            "city_distribution": [{"city": city, "count": c} for city, c in cities],
            "category_distribution": [
                {"category": name, "count": count}
                for name, count in categories.most_common()
            ],
            "total": total,
            "active": active,
            "new_in_period": len(moments),
            "change_percent": change_percent(len(moments), previous),
            "aggregation": aggregation,
        }

    def reviews(self, period=None, date_from=None, date_to=None) -> dict:
        start, end, prev_start, prev_end = parse_period(period, date_from, date_to)
        aggregation = aggregation_for(start, end)
        live = ReviewRow.is_deleted.is_(False)
        with self.db.Session() as session:
            rows = session.execute(
                select(ReviewRow.created_at, ReviewRow.rating).where(
                    live, ReviewRow.created_at >= start, ReviewRow.created_at < end
                )
            ).all()
            ratings = dict(
                session.execute(
                    select(ReviewRow.rating, func.count())
                    .where(live)
                    .group_by(ReviewRow.rating)
                ).all()
            )
            total = self._count(session, ReviewRow, live)
            responded = self._count(
                session, ReviewRow, live, ReviewRow.partner_response.is_not(None)
            )
            average = session.execute(select(func.avg(ReviewRow.rating)).where(live)).scalar()
            previous = self._count_between(session, ReviewRow, prev_start, prev_end, live)

        grouped: dict[date, list[int]] = {}
        for created_at, rating in rows:
            grouped.setdefault(bucket_for(created_at, start, aggregation), []).append(rating)
        buckets = {
            key: {"count": len(values), "average_rating": round(sum(values) / len(values), 2)}
            for key, values in grouped.items()
        }
        return {
            "review_timeline": fill_date_gaps(
                buckets, start, end, aggregation, ["average_rating"]
            ),
            "rating_distribution": {str(star): ratings.get(star, 0) for star in range(1, 6)},
            "response_stats": {
                "total_reviews": total,
                "with_response": responded,
                "response_rate": round(responded / total * 100, 1) if total else 0.0,
            },
            "total": total,
            "new_in_period": len(rows),
            "change_percent": change_percent(len(rows), previous),
            "average_rating": round(float(average), 2) if average is not None else 0.0,
            "aggregation": aggregation,
        }
