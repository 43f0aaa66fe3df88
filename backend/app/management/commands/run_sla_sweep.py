"""
Run one SLA breach sweep now — the cron-equivalent entry point.

Usage:
    python manage.py run_sla_sweep
    python manage.py run_sla_sweep --window 45   # override SLA window (minutes)

Uses the same singleton lease as the scheduled job; if a sweep is already
in flight this run is skipped.
"""
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from app.services.sla_sweep import run_sweep


class Command(BaseCommand):
    help = "Reassign leads whose SLA window elapsed without a logged outcome"

    def add_arguments(self, parser):
        parser.add_argument(
            "--window", type=int, default=None,
            help="SLA window in minutes (default: SLA_WINDOW_MINUTES)",
        )

    def handle(self, *args, **options):
        window = timedelta(minutes=options["window"]) if options["window"] else None
        result = run_sweep(window, holder="manage.py")
        if result is None:
            raise CommandError("An SLA sweep is already running; skipped")

        for outcome in result.errors:
            self.stderr.write(f"  {outcome.lead_id}: {outcome.detail}")
        self.stdout.write(self.style.SUCCESS(result.summary()))
