"""
Order store: posting, editing, cancelling and listing delivery requests.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from delivery.exceptions import Forbidden, InvalidState, NotFound, ValidationError
from delivery.models import Match, Offer, Order

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('description', 'pickup_location', 'dropoff_location', 'price_offered')


def _clean_details(details, partial=False):
    """
    Validate order details and return the normalised subset.

    Raises:
        ValidationError: On blank text fields or a non-positive price
    """
    cleaned = {}
    errors = {}

    for field in ('description', 'pickup_location', 'dropoff_location'):
        if field not in details:
            if not partial:
                errors[field] = 'This field is required.'
            continue
        value = details[field]
        if value is None or not str(value).strip():
            errors[field] = 'This field cannot be blank.'
        else:
            cleaned[field] = str(value).strip()

    if 'price_offered' in details:
        try:
            price = Decimal(str(details['price_offered']))
        except (InvalidOperation, TypeError, ValueError):
            errors['price_offered'] = 'A valid number is required.'
        else:
            if not price.is_finite() or price <= 0:
                errors['price_offered'] = 'Price must be greater than 0.'
            else:
                cleaned['price_offered'] = price
    elif not partial:
        errors['price_offered'] = 'This field is required.'

    if errors:
        raise ValidationError(errors)

    return cleaned


def get_order(order_id):
    try:
        return Order.objects.select_related('requester').get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound(f'Order with ID {order_id} does not exist.')


def lock_order(order_id):
    """Fetch an order with a row lock held until the surrounding transaction ends."""
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound(f'Order with ID {order_id} does not exist.')


def create_order(requester, details):
    """
    Post a new delivery request.

    Args:
        requester: User posting the order
        details: Mapping with description, pickup_location,
            dropoff_location and price_offered

    Returns:
        Order: The new order, status OPEN
    """
    cleaned = _clean_details(details)
    order = Order.objects.create(requester=requester, status=Order.Status.OPEN, **cleaned)

    logger.info(
        f"Order created. Order ID: {order.id}, "
        f"Requester ID: {requester.id}, Price: {order.price_offered}"
    )
    return order


def update_order(order_id, actor, changes):
    """
    Edit an order's details while it is still OPEN.

    Raises:
        NotFound: Order does not exist
        Forbidden: Actor is not the requester
        InvalidState: Order is no longer OPEN
        ValidationError: Malformed changes
    """
    cleaned = _clean_details(
        {key: value for key, value in changes.items() if key in EDITABLE_FIELDS},
        partial=True,
    )

    with transaction.atomic():
        order = lock_order(order_id)

        if order.requester_id != actor.id:
            raise Forbidden('Only the requester can edit this order.')

        if not order.is_open():
            raise InvalidState(f'Order is {order.status}; only open orders can be edited.')

        for field, value in cleaned.items():
            setattr(order, field, value)
        order.save()

    logger.info(f"Order updated. Order ID: {order.id}, Fields: {sorted(cleaned)}")
    return order


def cancel_order(order_id, actor):
    """
    Cancel an order and whatever is still in flight on it.

    Pending offers are rejected. An active match is cancelled with it; a
    match that has already been delivered cannot be cancelled, so neither
    can its order.

    Raises:
        NotFound: Order does not exist
        Forbidden: Actor is not the requester
        InvalidState: Order is completed/cancelled, or its match is delivered
    """
    with transaction.atomic():
        order = lock_order(order_id)

        if order.requester_id != actor.id:
            raise Forbidden('Only the requester can cancel this order.')

        if order.status not in Order.CANCELLABLE_STATUSES:
            raise InvalidState(f'Order is {order.status} and cannot be cancelled.')

        active_match = (
            Match.objects.select_for_update()
            .filter(order=order)
            .exclude(status=Match.Status.CANCELLED)
            .first()
        )
        if active_match is not None:
            allowed, error_message = active_match.can_transition_to(Match.Status.CANCELLED)
            if not allowed:
                raise InvalidState(f'Cannot cancel order: {error_message}')
            active_match.status = Match.Status.CANCELLED
            active_match.save(update_fields=['status', 'updated_at'])
            Offer.objects.filter(pk=active_match.offer_id).update(
                status=Offer.Status.WITHDRAWN, updated_at=timezone.now()
            )

        rejected = Offer.objects.filter(order=order, status=Offer.Status.PENDING).update(
            status=Offer.Status.REJECTED, updated_at=timezone.now()
        )

        order.status = Order.Status.CANCELLED
        order.save(update_fields=['status', 'updated_at'])

    logger.info(
        f"Order cancelled. Order ID: {order.id}, "
        f"Match cancelled: {active_match.id if active_match else None}, "
        f"Offers rejected: {rejected}"
    )
    return order


def list_open_orders():
    """
    Open orders, newest first.

    Returns a lazy queryset; iterating it again re-runs the query.
    """
    return (
        Order.objects.select_related('requester')
        .filter(status=Order.Status.OPEN)
        .order_by('-created_at', '-id')
    )


def list_orders_for_requester(user):
    return Order.objects.filter(requester=user).order_by('-created_at', '-id')
