# Recalculate Ratings Management Command
from django.core.management.base import BaseCommand

from delivery.models import User
from delivery.signals import compute_rating


class Command(BaseCommand):
    help = 'Recalculates user rating aggregates from the reviews they received.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report the changes without saving them.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        self.stdout.write('Recalculating user ratings...')
        updates = []
        count = 0
        changed = 0

        for user in User.objects.all().iterator(chunk_size=batch_size):
            new_avg, new_count = compute_rating(user.id)

            if user.avg_rating != new_avg or user.review_count != new_count:
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] User {user.id}: rating {user.avg_rating} -> {new_avg}, '
                        f'count {user.review_count} -> {new_count}'
                    )
                user.avg_rating = new_avg
                user.review_count = new_count
                updates.append(user)
                changed += 1

            if len(updates) >= batch_size:
                if not dry_run:
                    User.objects.bulk_update(updates, ['avg_rating', 'review_count'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} users...')

        if updates and not dry_run:
            User.objects.bulk_update(updates, ['avg_rating', 'review_count'])

        self.stdout.write(f'Processed {count} users total, {changed} changed.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))
