from django.core.management.base import BaseCommand

from networking.tasks import reconcile_counters


class Command(BaseCommand):
    help = "Recount followers/following counters from follow edges"

    def add_arguments(self, parser):
        parser.add_argument("--batch-size", type=int, default=500)

    def handle(self, *args, **options):
        fixed = reconcile_counters(batch_size=options["batch_size"])
        self.stdout.write(self.style.SUCCESS(f"Corrected {fixed} profiles"))
