"""
Shared fixtures for the delivery marketplace test suite.
"""

import itertools
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from delivery.models import Match
from delivery.services import matches, offers, orders

User = get_user_model()


ORDER_DETAILS = {
    'description': 'Two boxes of textbooks',
    'pickup_location': 'Main Library, north entrance',
    'dropoff_location': 'Dorm B, room 214',
    'price_offered': Decimal('12.50'),
}


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticate():
    """Return a helper that puts a bearer token for ``user`` on ``client``."""
    def _authenticate(client, user):
        token = str(RefreshToken.for_user(user).access_token)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client
    return _authenticate


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make_user(username=None, **extra):
        username = username or f'user{next(counter)}'
        return User.objects.create_user(
            username=username,
            email=f'{username}@campus.edu',
            password='testpass123',
            **extra
        )
    return _make_user


@pytest.fixture
def requester(make_user):
    return make_user('requester')


@pytest.fixture
def courier(make_user):
    return make_user('courier')


@pytest.fixture
def other_courier(make_user):
    return make_user('othercourier')


@pytest.fixture
def outsider(make_user):
    return make_user('outsider')


@pytest.fixture
def make_order(db):
    def _make_order(requester, **overrides):
        return orders.create_order(requester, {**ORDER_DETAILS, **overrides})
    return _make_order


@pytest.fixture
def order(make_order, requester):
    return make_order(requester)


@pytest.fixture
def offer(order, courier):
    return offers.create_offer(order.id, courier, Decimal('10.00'))


@pytest.fixture
def match(offer, requester):
    return matches.accept_offer(offer.id, requester)


@pytest.fixture
def completed_match(match, requester, courier):
    matches.advance_match(match.id, courier, Match.Status.IN_PROGRESS)
    matches.advance_match(match.id, courier, Match.Status.DELIVERED)
    return matches.advance_match(match.id, requester, Match.Status.COMPLETED)
