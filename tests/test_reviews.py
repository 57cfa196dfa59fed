"""
Tests for the review gate and the rating aggregates kept on each user.

Test Coverage:
- Reviewing a completed match (happy path, defaults)
- Duplicate reviews, outsiders, unfinished matches
- Rating validation
- Listing reviews received by a user
- avg_rating/review_count maintained by signals
"""

from decimal import Decimal

import pytest

from delivery.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from delivery.models import Match, Review
from delivery.services import matches, offers, reviews


@pytest.fixture
def complete_another_match(make_order):
    """Run a fresh order through to a completed match between two users."""
    def _complete(requester, courier):
        order = make_order(requester)
        offer = offers.create_offer(order.id, courier, Decimal('5.00'))
        match = matches.accept_offer(offer.id, requester)
        matches.advance_match(match.id, courier, Match.Status.IN_PROGRESS)
        matches.advance_match(match.id, courier, Match.Status.DELIVERED)
        return matches.advance_match(match.id, requester, Match.Status.COMPLETED)
    return _complete


@pytest.mark.django_db
class TestCreateReview:

    def test_requester_reviews_courier(self, completed_match, requester, courier):
        review = reviews.create_review(completed_match.id, requester, courier.id, 5, comment='  Fast!  ')

        assert review.author == requester
        assert review.subject_id == courier.id
        assert review.rating == 5
        assert review.comment == 'Fast!'

    def test_subject_defaults_to_other_participant(self, completed_match, requester, courier):
        review = reviews.create_review(completed_match.id, courier, None, 4)
        assert review.subject_id == requester.id

    def test_both_participants_can_review(self, completed_match, requester, courier):
        reviews.create_review(completed_match.id, requester, courier.id, 5)
        reviews.create_review(completed_match.id, courier, requester.id, 3)

        assert completed_match.reviews.count() == 2

    def test_duplicate_review_conflicts(self, completed_match, requester, courier):
        reviews.create_review(completed_match.id, requester, courier.id, 5)

        with pytest.raises(Conflict):
            reviews.create_review(completed_match.id, requester, courier.id, 1)

        assert Review.objects.count() == 1

    def test_outsider_forbidden(self, completed_match, courier, outsider):
        with pytest.raises(Forbidden):
            reviews.create_review(completed_match.id, outsider, courier.id, 5)

    def test_outsider_as_subject_forbidden(self, completed_match, requester, outsider):
        with pytest.raises(Forbidden):
            reviews.create_review(completed_match.id, requester, outsider.id, 5)

    def test_self_review_forbidden(self, completed_match, requester):
        with pytest.raises(Forbidden):
            reviews.create_review(completed_match.id, requester, requester.id, 5)

    @pytest.mark.parametrize('status', [Match.Status.PENDING, Match.Status.IN_PROGRESS, Match.Status.DELIVERED])
    def test_unfinished_match_rejected(self, match, requester, courier, status):
        for target in (Match.Status.IN_PROGRESS, Match.Status.DELIVERED):
            if match.status == status:
                break
            match = matches.advance_match(match.id, courier, target)

        with pytest.raises(InvalidState):
            reviews.create_review(match.id, requester, courier.id, 5)

    def test_cancelled_match_rejected(self, match, requester, courier):
        matches.advance_match(match.id, requester, Match.Status.CANCELLED)

        with pytest.raises(InvalidState):
            reviews.create_review(match.id, requester, courier.id, 5)

    @pytest.mark.parametrize('rating', [0, 6, -1, True, 4.5, '5', None])
    def test_invalid_rating_rejected(self, completed_match, requester, courier, rating):
        with pytest.raises(ValidationError):
            reviews.create_review(completed_match.id, requester, courier.id, rating)

    def test_unknown_match(self, requester, courier):
        with pytest.raises(NotFound):
            reviews.create_review(999999, requester, courier.id, 5)


@pytest.mark.django_db
class TestListReviews:

    def test_reviews_received_newest_first(self, completed_match, complete_another_match, requester, courier):
        older = reviews.create_review(completed_match.id, requester, courier.id, 5)
        second_match = complete_another_match(requester, courier)
        newer = reviews.create_review(second_match.id, requester, courier.id, 3)
        reviews.create_review(second_match.id, courier, requester.id, 4)

        assert list(reviews.list_reviews_for_user(courier.id)) == [newer, older]

    def test_user_without_reviews(self, outsider):
        assert list(reviews.list_reviews_for_user(outsider.id)) == []

    def test_unknown_user(self):
        with pytest.raises(NotFound):
            reviews.list_reviews_for_user(999999)

    def test_get_review(self, completed_match, requester, courier):
        review = reviews.create_review(completed_match.id, requester, courier.id, 5)

        assert reviews.get_review(review.id) == review
        with pytest.raises(NotFound):
            reviews.get_review(999999)


@pytest.mark.django_db
class TestRatingAggregates:

    def test_rating_updated_on_review(self, completed_match, requester, courier):
        reviews.create_review(completed_match.id, requester, courier.id, 4)
        courier.refresh_from_db()

        assert courier.avg_rating == Decimal('4.00')
        assert courier.review_count == 1

    def test_rating_is_average_of_received_reviews(self, completed_match, complete_another_match, requester, courier):
        reviews.create_review(completed_match.id, requester, courier.id, 5)
        second_match = complete_another_match(requester, courier)
        reviews.create_review(second_match.id, requester, courier.id, 4)
        courier.refresh_from_db()
        requester.refresh_from_db()

        assert courier.avg_rating == Decimal('4.50')
        assert courier.review_count == 2
        assert requester.review_count == 0

    def test_rating_recomputed_on_delete(self, completed_match, requester, courier):
        review = reviews.create_review(completed_match.id, requester, courier.id, 2)
        review.delete()
        courier.refresh_from_db()

        assert courier.avg_rating == Decimal('0.00')
        assert courier.review_count == 0
