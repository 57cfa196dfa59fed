"""
Tests for the API exception handler.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import NotAuthenticated
from rest_framework.test import APIRequestFactory

from delivery.exceptions import (
    Conflict,
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
    delivery_exception_handler,
)


def _context():
    return {'request': APIRequestFactory().get('/api/orders/'), 'view': None}


def test_domain_errors_map_to_status_and_code():
    cases = [
        (NotFound('Order with ID 1 does not exist.'), 404, 'not_found'),
        (Forbidden(), 403, 'forbidden'),
        (InvalidState(), 400, 'invalid_state'),
        (InvalidTransition(), 400, 'invalid_transition'),
        (ValidationError({'rating': 'Out of range.'}), 400, 'validation_error'),
        (Conflict(), 409, 'conflict'),
    ]
    for exc, expected_status, expected_code in cases:
        response = delivery_exception_handler(exc, _context())
        assert response.status_code == expected_status
        assert response.data['code'] == expected_code


def test_detail_message_is_kept():
    response = delivery_exception_handler(NotFound('Match with ID 7 does not exist.'), _context())
    assert response.data['detail'] == 'Match with ID 7 does not exist.'


def test_field_errors_are_kept():
    response = delivery_exception_handler(ValidationError({'body': 'Message body cannot be blank.'}), _context())
    assert response.data['body'] == 'Message body cannot be blank.'


def test_model_validation_error_becomes_400():
    exc = DjangoValidationError({'courier': ['Requesters cannot make offers on their own orders.']})
    response = delivery_exception_handler(exc, _context())

    assert response.status_code == 400
    assert response.data == {'courier': ['Requesters cannot make offers on their own orders.']}


def test_framework_errors_have_no_domain_code():
    response = delivery_exception_handler(NotAuthenticated(), _context())

    assert response.status_code == 401
    assert 'code' not in response.data


def test_unhandled_exceptions_are_left_to_django():
    assert delivery_exception_handler(RuntimeError('boom'), _context()) is None
