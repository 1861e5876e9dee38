import time
from django.core.management.base import BaseCommand, CommandError
from django.db import connections
from django.db.utils import OperationalError


class Command(BaseCommand):
    """Django command to wait for database to be available"""

    def add_arguments(self, parser):
        parser.add_argument(
            "--timeout",
            type=int,
            default=60,
            help="Give up after this many seconds (0 waits forever)",
        )
        parser.add_argument("--database", default="default")

    def handle(self, *args, **options):
        timeout = options["timeout"]
        alias = options["database"]
        self.stdout.write(f"Waiting for database '{alias}'...")

        start_time = time.monotonic()
        attempt = 1

        while True:
            try:
                connections[alias].ensure_connection()
                break
            except OperationalError:
                elapsed_time = time.monotonic() - start_time
                if timeout and elapsed_time >= timeout:
                    raise CommandError(
                        f"Database unavailable after {attempt} attempts "
                        f"({elapsed_time:.1f}s)"
                    )
                self.stdout.write(
                    f"Database unavailable (attempt {attempt}, "
                    f"{elapsed_time:.1f}s elapsed), waiting 1 second..."
                )
                time.sleep(1)
                attempt += 1

        total_time = time.monotonic() - start_time
        self.stdout.write(
            self.style.SUCCESS(
                f"Database available! Connected in {total_time:.2f} seconds "
                f"(after {attempt} attempts)"
            )
        )
