"""
Signal receivers that keep user rating aggregates in sync with reviews.

``User.avg_rating`` and ``User.review_count`` are derived from the reviews a
user has received. They are recomputed whenever a review is written or
removed (reviews are only removed through cascades or the admin).
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Avg, Count
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Review, User

logger = logging.getLogger(__name__)


def compute_rating(user_id):
    """
    Aggregate the reviews received by a user.

    Returns:
        tuple: (avg_rating: Decimal, review_count: int)
    """
    stats = Review.objects.filter(subject_id=user_id).aggregate(
        avg=Avg('rating'),
        count=Count('id'),
    )
    if not stats['count']:
        return Decimal('0.00'), 0
    return Decimal(str(stats['avg'])).quantize(Decimal('0.01')), stats['count']


def refresh_user_rating(user_id):
    """
    Recompute and store a user's rating aggregates under a row lock.

    Returns:
        User or None: The updated user, or None if it no longer exists
    """
    with transaction.atomic():
        user = User.objects.select_for_update().filter(pk=user_id).first()
        if user is None:
            return None
        user.avg_rating, user.review_count = compute_rating(user_id)
        user.save(update_fields=['avg_rating', 'review_count'])
    return user


@receiver(post_save, sender=Review)
def update_rating_on_review_save(sender, instance, created, **kwargs):
    """
    Update the subject's rating when a review is written.

    Runs inside the review's transaction; a failure here rolls the review
    back with it.
    """
    if not created:
        return

    user = refresh_user_rating(instance.subject_id)
    if user is not None:
        logger.info(
            f"Updated rating for review {instance.id}: "
            f"subject={user.id}, avg={user.avg_rating}, count={user.review_count}"
        )


@receiver(post_delete, sender=Review)
def update_rating_on_review_delete(sender, instance, **kwargs):
    """Update the subject's rating after a review is removed."""
    user = refresh_user_rating(instance.subject_id)
    if user is not None:
        logger.info(
            f"Updated rating after deleting review {instance.id}: "
            f"subject={user.id}, avg={user.avg_rating}, count={user.review_count}"
        )
