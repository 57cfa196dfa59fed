"""
Review gate: participants rating each other once a match is completed.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from delivery.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from delivery.models import Match, Review
from delivery.services.matches import get_match

logger = logging.getLogger(__name__)

User = get_user_model()

MIN_RATING = 1
MAX_RATING = 5


def get_review(review_id):
    try:
        return Review.objects.select_related('author', 'subject', 'match').get(pk=review_id)
    except Review.DoesNotExist:
        raise NotFound(f'Review with ID {review_id} does not exist.')


def create_review(match_id, author, subject_id, rating, comment=''):
    """
    Review the other participant of a completed match.

    Args:
        match_id: Completed match being reviewed
        author: User writing the review
        subject_id: User being reviewed; None means the other participant
        rating: Integer from 1 to 5
        comment: Optional written feedback

    Returns:
        Review: The stored review

    Raises:
        ValidationError: Rating is not an integer from 1 to 5
        NotFound: Match does not exist
        InvalidState: Match is not COMPLETED
        Forbidden: Author and subject are not the two participants
        Conflict: Author already reviewed this match
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError({'rating': f'Rating must be an integer between {MIN_RATING} and {MAX_RATING}.'})

    match = get_match(match_id)

    if match.status != Match.Status.COMPLETED:
        raise InvalidState('Only completed matches can be reviewed.')

    if subject_id is None:
        subject_id = match.other_participant_id(author.id)

    participants = {match.requester_id, match.courier_id}
    if author.id not in participants or subject_id not in participants or author.id == subject_id:
        raise Forbidden('Only the requester and courier of this match can review each other.')

    if Review.objects.filter(match=match, author=author).exists():
        raise Conflict('You have already reviewed this match.')

    try:
        with transaction.atomic():
            review = Review.objects.create(
                match=match,
                author=author,
                subject_id=subject_id,
                rating=rating,
                comment=(comment or '').strip(),
            )
    except IntegrityError:
        raise Conflict('You have already reviewed this match.')

    logger.info(
        f"Review created. Review ID: {review.id}, Match ID: {match.id}, "
        f"Author ID: {author.id}, Subject ID: {subject_id}, Rating: {rating}"
    )
    return review


def list_reviews_for_user(user_id):
    """
    Reviews received by a user, newest first.

    Raises:
        NotFound: User does not exist
    """
    if not User.objects.filter(pk=user_id).exists():
        raise NotFound(f'User with ID {user_id} does not exist.')

    return (
        Review.objects.select_related('author', 'subject', 'match')
        .filter(subject_id=user_id)
        .order_by('-created_at', '-id')
    )
