"""
API tests for accepting offers and driving a match through delivery.
"""

from decimal import Decimal

import pytest

from delivery.models import Match, Offer, Order
from delivery.services import matches, offers


MATCHES_URL = '/api/matches/'


def status_url(match_id):
    return f'{MATCHES_URL}{match_id}/status/'


@pytest.mark.django_db
class TestAcceptOfferEndpoint:

    def test_requester_accepts_offer(self, api_client, authenticate, requester, order, offer, other_courier):
        rival = offers.create_offer(order.id, other_courier, Decimal('9.00'))
        authenticate(api_client, requester)

        response = api_client.post(MATCHES_URL, {'offer': offer.id}, format='json')

        assert response.status_code == 201
        assert response.data['status'] == 'pending'
        assert response.data['offer'] == offer.id
        assert response.data['courier']['id'] == offer.courier_id
        order.refresh_from_db()
        rival.refresh_from_db()
        assert order.status == Order.Status.MATCHED
        assert rival.status == Offer.Status.REJECTED

    def test_requires_authentication(self, api_client, offer):
        response = api_client.post(MATCHES_URL, {'offer': offer.id}, format='json')
        assert response.status_code == 401

    def test_courier_cannot_accept(self, api_client, authenticate, courier, offer):
        authenticate(api_client, courier)
        response = api_client.post(MATCHES_URL, {'offer': offer.id}, format='json')

        assert response.status_code == 403
        assert response.data['code'] == 'forbidden'

    def test_second_accept_rejected(self, api_client, authenticate, requester, order, match, other_courier):
        late_offer = Offer.objects.create(order=order, courier=other_courier, proposed_price=Decimal('2.00'))
        authenticate(api_client, requester)

        response = api_client.post(MATCHES_URL, {'offer': late_offer.id}, format='json')

        assert response.status_code == 400
        assert response.data['code'] == 'invalid_state'
        assert Match.objects.filter(order=order).count() == 1

    def test_unknown_offer(self, api_client, authenticate, requester):
        authenticate(api_client, requester)
        response = api_client.post(MATCHES_URL, {'offer': 999999}, format='json')

        assert response.status_code == 404

    def test_missing_offer_field(self, api_client, authenticate, requester):
        authenticate(api_client, requester)
        response = api_client.post(MATCHES_URL, {}, format='json')

        assert response.status_code == 400
        assert 'offer' in response.data


@pytest.mark.django_db
class TestMatchStatusEndpoint:

    def test_full_delivery_flow(self, api_client, authenticate, requester, courier, order, match):
        authenticate(api_client, courier)
        assert api_client.put(status_url(match.id), {'status': 'in_progress'}, format='json').status_code == 200
        assert api_client.put(status_url(match.id), {'status': 'delivered'}, format='json').status_code == 200

        authenticate(api_client, requester)
        response = api_client.put(status_url(match.id), {'status': 'completed'}, format='json')

        assert response.status_code == 200
        assert response.data['status'] == 'completed'
        order.refresh_from_db()
        assert order.status == Order.Status.COMPLETED

    def test_completed_match_is_final(self, api_client, authenticate, requester, completed_match):
        authenticate(api_client, requester)
        response = api_client.put(status_url(completed_match.id), {'status': 'cancelled'}, format='json')

        assert response.status_code == 400
        assert response.data['code'] == 'invalid_state'

    def test_wrong_role(self, api_client, authenticate, requester, match):
        authenticate(api_client, requester)
        response = api_client.put(status_url(match.id), {'status': 'in_progress'}, format='json')

        assert response.status_code == 403
        assert response.data['code'] == 'forbidden'

    def test_non_participant(self, api_client, authenticate, outsider, match):
        authenticate(api_client, outsider)
        response = api_client.put(status_url(match.id), {'status': 'cancelled'}, format='json')

        assert response.status_code == 403

    def test_invalid_transition(self, api_client, authenticate, courier, match):
        authenticate(api_client, courier)
        response = api_client.put(status_url(match.id), {'status': 'delivered'}, format='json')

        assert response.status_code == 400
        assert response.data['code'] == 'invalid_transition'

    def test_unknown_status_value(self, api_client, authenticate, courier, match):
        authenticate(api_client, courier)
        response = api_client.put(status_url(match.id), {'status': 'lost'}, format='json')

        assert response.status_code == 400
        assert 'status' in response.data

    def test_cancel_reopens_order(self, api_client, authenticate, courier, order, match):
        authenticate(api_client, courier)
        response = api_client.put(status_url(match.id), {'status': 'cancelled'}, format='json')

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == Order.Status.OPEN

    def test_unknown_match(self, api_client, authenticate, courier):
        authenticate(api_client, courier)
        response = api_client.put(status_url(999999), {'status': 'in_progress'}, format='json')

        assert response.status_code == 404

    def test_requires_authentication(self, api_client, match):
        response = api_client.put(status_url(match.id), {'status': 'in_progress'}, format='json')
        assert response.status_code == 401


@pytest.mark.django_db
class TestMatchListings:

    def test_my_matches(self, api_client, authenticate, courier, outsider, match):
        authenticate(api_client, courier)
        response = api_client.get(MATCHES_URL)

        assert response.status_code == 200
        assert [m['id'] for m in response.data['results']] == [match.id]

        authenticate(api_client, outsider)
        assert api_client.get(MATCHES_URL).data['results'] == []

    def test_match_detail_is_public(self, api_client, match):
        response = api_client.get(f'{MATCHES_URL}{match.id}/')

        assert response.status_code == 200
        assert response.data['order'] == match.order_id

    def test_matches_for_order_include_cancelled(self, api_client, requester, courier, other_courier, order, match):
        matches.advance_match(match.id, courier, Match.Status.CANCELLED)
        new_offer = offers.create_offer(order.id, other_courier, Decimal('8.00'))
        second = matches.accept_offer(new_offer.id, requester)

        response = api_client.get(f'{MATCHES_URL}order/{order.id}/')

        assert response.status_code == 200
        assert [m['id'] for m in response.data] == [second.id, match.id]
        assert [m['status'] for m in response.data] == ['pending', 'cancelled']

    def test_matches_for_offer(self, api_client, offer, match):
        response = api_client.get(f'{MATCHES_URL}offer/{offer.id}/')

        assert response.status_code == 200
        assert [m['id'] for m in response.data] == [match.id]

    def test_matches_for_unknown_order(self, api_client):
        response = api_client.get(f'{MATCHES_URL}order/999999/')
        assert response.status_code == 404
