"""
Management command to register the periodic SLA sweep with django-q.

Usage:
    python manage.py setup_sla_sweep

This creates (or updates) a Schedule entry that runs run_scheduled_sweep()
every SLA_SWEEP_INTERVAL_MINUTES.  Safe to run multiple times — it uses
update_or_create.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django_q.models import Schedule


class Command(BaseCommand):
    help = "Register the periodic SLA breach sweep task with django-q"

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes", type=int, default=settings.SLA_SWEEP_INTERVAL_MINUTES,
            help="Tick interval in minutes (default: SLA_SWEEP_INTERVAL_MINUTES)",
        )

    def handle(self, *args, **options):
        minutes = options["minutes"]
        schedule, created = Schedule.objects.update_or_create(
            name="sla_breach_sweep",
            defaults={
                "func": "app.services.sla_sweep.run_scheduled_sweep",
                "schedule_type": Schedule.MINUTES,
                "minutes": minutes,
                "repeats": -1,  # run forever
            },
        )
        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(
            f"{verb} periodic task: {schedule.name} (every {minutes} minutes)"
        ))
