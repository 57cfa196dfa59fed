"""
Error kinds raised by the marketplace services.

Every failed precondition raises exactly one of these. They are DRF
``APIException`` subclasses, so views let them propagate and the response
status follows from the error kind:

- NotFound -> 404
- Forbidden -> 403
- InvalidState, InvalidTransition, ValidationError -> 400
- Conflict -> 409
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DeliveryError(APIException):
    """Base class for marketplace errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be completed.'
    default_code = 'delivery_error'


class NotFound(DeliveryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'The requested resource does not exist.'
    default_code = 'not_found'


class Forbidden(DeliveryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidState(DeliveryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The resource is not in a state that permits this operation.'
    default_code = 'invalid_state'


class InvalidTransition(DeliveryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The requested status change is not allowed.'
    default_code = 'invalid_transition'


class Conflict(DeliveryError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


class ValidationError(DeliveryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_error'


def delivery_exception_handler(exc, context):
    """
    DRF exception handler for the marketplace API.

    Adds a machine-readable ``code`` to domain errors, turns model-level
    Django validation errors into 400 responses and logs each handled
    domain error.

    Args:
        exc: The raised exception
        context: DRF handler context (holds the view and request)

    Returns:
        Response or None: None lets DRF re-raise unhandled exceptions
    """
    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else {'detail': exc.messages}
        logger.warning(f"Model validation failed: {detail}")
        return Response(detail, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is not None and isinstance(exc, DeliveryError):
        request = context.get('request')
        user = getattr(request, 'user', None)
        logger.warning(
            f"{type(exc).__name__}: {exc.detail}. "
            f"User ID: {getattr(user, 'id', None)}, "
            f"Path: {getattr(request, 'path', '')}"
        )
        response.data['code'] = exc.default_code

    return response
