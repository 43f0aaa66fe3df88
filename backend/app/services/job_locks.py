"""
Named leases for singleton background jobs.

acquire() is a single conditional UPDATE, so two workers racing for the same
lease cannot both win. A lease that outlives ``locked_until`` (worker killed
mid-run) is taken over by the next tick.
"""
import logging
from datetime import datetime, timedelta

from django.db.models import Q

from app.models.coordination import JobLock
from app.utils import store_errors, utcnow

logger = logging.getLogger(__name__)


def acquire(name: str, holder: str, ttl: timedelta, now: datetime | None = None) -> bool:
    now = now or utcnow()
    with store_errors(f"acquire lease {name}"):
        JobLock.objects.get_or_create(name=name)
        taken = (
            JobLock.objects
            .filter(name=name)
            .filter(Q(locked_until__isnull=True) | Q(locked_until__lte=now))
            .update(holder=holder, locked_until=now + ttl, acquired_at=now)
        )
    if taken:
        logger.debug("Lease %s acquired by %s until %s", name, holder, now + ttl)
    return taken == 1


def release(name: str, holder: str) -> None:
    with store_errors(f"release lease {name}"):
        JobLock.objects.filter(name=name, holder=holder).update(holder="", locked_until=None)
