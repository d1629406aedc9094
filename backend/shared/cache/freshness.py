"""
Freshness policy: maps a cache entry's age and scope to serve-or-refetch.

Date-scoped entries use a TTL that depends on where the date sits relative
to the server's current day:

    past    finished matches, stable         (default 24h)
    today   scores change constantly          (default 5 min)
    future  schedules rarely change           (default 4h)

The live pool is refreshed by the reconciler, so its TTL never drops below
one reconciler interval; reads in between serve the latest tick.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from shared.config import Settings, get_settings
from shared.models.domain import CacheEntry, ScopeKey
from shared.models.enums import DateClass, ScopeKind
from shared.utils.dates import today_in, utcnow


@dataclass(frozen=True)
class FreshnessPolicy:
    past: timedelta = timedelta(hours=24)
    today: timedelta = timedelta(minutes=5)
    future: timedelta = timedelta(hours=4)
    live: timedelta = timedelta(seconds=210)
    league: timedelta = timedelta(hours=4)
    fixture: timedelta = timedelta(hours=1)
    server_timezone: str = "UTC"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "FreshnessPolicy":
        s = settings or get_settings()
        return cls(
            past=timedelta(seconds=s.ttl_past_s),
            today=timedelta(seconds=s.ttl_today_s),
            future=timedelta(seconds=s.ttl_future_s),
            # the reconciler rewrites the live pool once per interval
            live=timedelta(seconds=max(s.ttl_live_s, s.reconciler_interval_s + s.upstream_timeout_s)),
            league=timedelta(seconds=s.ttl_league_s),
            fixture=timedelta(seconds=s.ttl_fixture_s),
            server_timezone=s.server_timezone,
        )

    def date_class(self, d: date, now: Optional[datetime] = None) -> DateClass:
        today = today_in(self.server_timezone, now)
        if d < today:
            return DateClass.PAST
        if d == today:
            return DateClass.TODAY
        return DateClass.FUTURE

    def max_age_for_date(self, d: date, now: Optional[datetime] = None) -> timedelta:
        return {
            DateClass.PAST: self.past,
            DateClass.TODAY: self.today,
            DateClass.FUTURE: self.future,
        }[self.date_class(d, now)]

    def max_age(self, scope: ScopeKey, now: Optional[datetime] = None) -> timedelta:
        if scope.kind in (ScopeKind.DATE, ScopeKind.MULTI_WINDOW):
            return self.max_age_for_date(date.fromisoformat(scope.discriminator), now)
        if scope.kind == ScopeKind.LIVE:
            return self.live
        if scope.kind == ScopeKind.LEAGUE:
            return self.league
        return self.fixture

    def is_fresh(self, entry: CacheEntry, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (now - entry.written_at) < self.max_age(entry.scope, now)
