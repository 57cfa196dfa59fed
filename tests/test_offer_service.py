"""
Tests for the offer store.
"""

from decimal import Decimal

import pytest

from delivery.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from delivery.models import Offer
from delivery.services import matches, offers, orders


@pytest.mark.django_db
class TestCreateOffer:

    def test_offer_is_pending(self, order, courier):
        offer = offers.create_offer(order.id, courier, '9.75', note='  After my 3pm class  ')

        assert offer.status == Offer.Status.PENDING
        assert offer.proposed_price == Decimal('9.75')
        assert offer.note == 'After my 3pm class'

    def test_self_offer_forbidden(self, order, requester):
        with pytest.raises(Forbidden):
            offers.create_offer(order.id, requester, Decimal('5.00'))
        assert not Offer.objects.exists()

    def test_offer_on_matched_order_rejected(self, match, order, other_courier):
        with pytest.raises(InvalidState):
            offers.create_offer(order.id, other_courier, Decimal('5.00'))

    def test_offer_on_cancelled_order_rejected(self, order, requester, courier):
        orders.cancel_order(order.id, requester)

        with pytest.raises(InvalidState):
            offers.create_offer(order.id, courier, Decimal('5.00'))

    @pytest.mark.parametrize('price', ['0', '-1', 'NaN', 'free', None])
    def test_invalid_price_rejected(self, order, courier, price):
        with pytest.raises(ValidationError):
            offers.create_offer(order.id, courier, price)

    def test_second_pending_offer_conflicts(self, offer, order, courier):
        with pytest.raises(Conflict):
            offers.create_offer(order.id, courier, Decimal('8.00'))

    def test_can_offer_again_after_withdrawing(self, offer, order, courier):
        offers.withdraw_offer(offer.id, courier)
        again = offers.create_offer(order.id, courier, Decimal('8.00'))

        assert again.status == Offer.Status.PENDING
        assert order.offers.count() == 2

    def test_unknown_order(self, courier):
        with pytest.raises(NotFound):
            offers.create_offer(31337, courier, Decimal('5.00'))


@pytest.mark.django_db
class TestWithdrawAndUpdateOffer:

    def test_courier_can_withdraw(self, offer, courier):
        withdrawn = offers.withdraw_offer(offer.id, courier)
        assert withdrawn.status == Offer.Status.WITHDRAWN

    def test_other_user_cannot_withdraw(self, offer, requester):
        with pytest.raises(Forbidden):
            offers.withdraw_offer(offer.id, requester)

    def test_cannot_withdraw_twice(self, offer, courier):
        offers.withdraw_offer(offer.id, courier)
        with pytest.raises(InvalidState):
            offers.withdraw_offer(offer.id, courier)

    def test_cannot_withdraw_accepted_offer(self, match, offer, courier):
        with pytest.raises(InvalidState):
            offers.withdraw_offer(offer.id, courier)

    def test_update_price_and_note(self, offer, courier):
        updated = offers.update_offer(offer.id, courier, {'proposed_price': '11.00', 'note': 'Bringing a cart'})

        assert updated.proposed_price == Decimal('11.00')
        assert updated.note == 'Bringing a cart'

    def test_update_by_other_user_forbidden(self, offer, other_courier):
        with pytest.raises(Forbidden):
            offers.update_offer(offer.id, other_courier, {'note': 'Mine now'})

    def test_update_rejected_offer(self, order, offer, courier, other_courier, requester):
        rival = offers.create_offer(order.id, other_courier, Decimal('7.00'))
        matches.accept_offer(rival.id, requester)

        with pytest.raises(InvalidState):
            offers.update_offer(offer.id, courier, {'note': 'Still interested'})

    def test_unknown_offer(self, courier):
        with pytest.raises(NotFound):
            offers.withdraw_offer(8080, courier)


@pytest.mark.django_db
class TestListOffers:

    def test_offers_in_submission_order(self, order, courier, other_courier, outsider):
        submitted = [
            offers.create_offer(order.id, courier, Decimal('9.00')),
            offers.create_offer(order.id, other_courier, Decimal('7.00')),
            offers.create_offer(order.id, outsider, Decimal('8.00')),
        ]

        assert list(offers.list_offers_for_order(order.id)) == submitted

    def test_unknown_order(self):
        with pytest.raises(NotFound):
            list(offers.list_offers_for_order(5150))

    def test_other_offers_rejected_after_accept(self, order, requester, courier, other_courier, outsider):
        chosen = offers.create_offer(order.id, courier, Decimal('9.00'))
        offers.create_offer(order.id, other_courier, Decimal('7.00'))
        offers.create_offer(order.id, outsider, Decimal('8.00'))

        matches.accept_offer(chosen.id, requester)

        statuses = {o.id: o.status for o in offers.list_offers_for_order(order.id)}
        assert statuses.pop(chosen.id) == Offer.Status.ACCEPTED
        assert set(statuses.values()) == {Offer.Status.REJECTED}
        assert len(statuses) == 2

    def test_list_offers_for_courier(self, make_order, requester, courier, other_courier):
        first_order = make_order(requester)
        second_order = make_order(requester)
        mine_old = offers.create_offer(first_order.id, courier, Decimal('5.00'))
        offers.create_offer(first_order.id, other_courier, Decimal('6.00'))
        mine_new = offers.create_offer(second_order.id, courier, Decimal('7.00'))

        assert list(offers.list_offers_for_courier(courier)) == [mine_new, mine_old]
