"""
Daily Spoonacular quota ledger.

One ``QuotaRecord`` per UTC day, created lazily on first use. A new upstream
call is allowed only while ``limit - request_count`` is strictly greater
than the configured buffer, so a small reserve is never spent by ordinary
traffic. Counters only grow through ``F()`` updates.
"""

import datetime as dt
import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import StoreUnavailable
from .models import QuotaEndpointUsage, QuotaRecord

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 150
DEFAULT_BUFFER = 10


@dataclass(frozen=True)
class Allowance:
    allowed: bool
    remaining: int


def utc_day(now=None) -> dt.date:
    return (now or timezone.now()).astimezone(dt.timezone.utc).date()


def next_reset(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day + dt.timedelta(days=1), dt.time.min, tzinfo=dt.timezone.utc)


class QuotaLedger:
    """Counts upstream calls per UTC day and per endpoint."""

    def __init__(self, limit: int | None = None, buffer: int | None = None):
        cfg = getattr(settings, "RECIPE_CACHE", {}) or {}
        self.limit = limit if limit is not None else cfg.get("DAILY_QUOTA_LIMIT", DEFAULT_DAILY_LIMIT)
        self.buffer = buffer if buffer is not None else cfg.get("QUOTA_BUFFER", DEFAULT_BUFFER)

    def __repr__(self) -> str:
        return f"<QuotaLedger limit={self.limit} buffer={self.buffer}>"

    def _today_record(self, now=None) -> QuotaRecord:
        day = utc_day(now)
        # get_or_create swallows the IntegrityError of a concurrent insert and re-reads.
        record, created = QuotaRecord.objects.get_or_create(
            day=day,
            defaults={"limit": self.limit, "reset_at": next_reset(day)},
        )
        if created:
            logger.info("Started quota record for %s (limit %s)", day, self.limit)
        return record

    def check_allowance(self, now=None) -> Allowance:
        """
        Whether one more upstream call may be made today.
        Fails closed: if the ledger can't be read, nothing is allowed.
        """
        try:
            record = self._today_record(now)
        except DatabaseError as exc:
            logger.warning("Quota ledger unavailable, refusing upstream calls: %s", exc)
            return Allowance(allowed=False, remaining=0)

        remaining = record.remaining
        return Allowance(allowed=remaining > self.buffer, remaining=remaining)

    def record_usage(self, endpoint: str, now=None) -> None:
        """Atomically add one call for ``endpoint`` to today's totals."""
        now = now or timezone.now()
        try:
            with transaction.atomic():
                record = self._today_record(now)
                QuotaRecord.objects.filter(pk=record.pk).update(
                    request_count=F("request_count") + 1,
                    updated_at=now,
                )
                usage, _ = QuotaEndpointUsage.objects.get_or_create(quota=record, endpoint=endpoint)
                QuotaEndpointUsage.objects.filter(pk=usage.pk).update(count=F("count") + 1)
        except DatabaseError as exc:
            raise StoreUnavailable(f"Could not record quota usage for {endpoint}: {exc}") from exc

    def status(self, now=None) -> dict:
        """Read-only view of today's usage (does not create the record)."""
        day = utc_day(now)
        try:
            record = QuotaRecord.objects.filter(day=day).first()
            endpoints = record.per_endpoint_count if record else {}
        except DatabaseError as exc:
            raise StoreUnavailable(f"Could not read quota status: {exc}") from exc

        limit = record.limit if record else self.limit
        used = record.request_count if record else 0
        remaining = max(0, limit - used)
        return {
            "date": day.isoformat(),
            "used": used,
            "limit": limit,
            "remaining": remaining,
            "buffer": self.buffer,
            "can_make_requests": remaining > self.buffer,
            "endpoints": endpoints,
            "reset_at": (record.reset_at if record else next_reset(day)).isoformat(),
        }

    def prune(self, retention_days: int, now=None) -> int:
        """Delete quota records older than ``retention_days`` days."""
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        cutoff = utc_day(now) - dt.timedelta(days=retention_days)
        try:
            _, per_model = QuotaRecord.objects.filter(day__lt=cutoff).delete()
        except DatabaseError as exc:
            raise StoreUnavailable(f"Could not prune quota records: {exc}") from exc
        # delete() also counts cascaded endpoint rows; report days only
        return per_model.get(QuotaRecord._meta.label, 0)
