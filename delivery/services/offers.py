"""
Offer store: couriers proposing to fulfil open orders.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from delivery.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from delivery.models import Offer
from delivery.services.orders import get_order, lock_order

logger = logging.getLogger(__name__)


def _clean_price(value):
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({'proposed_price': 'A valid number is required.'})
    if not price.is_finite() or price <= 0:
        raise ValidationError({'proposed_price': 'Price must be greater than 0.'})
    return price


def get_offer(offer_id):
    try:
        return Offer.objects.select_related('order', 'courier').get(pk=offer_id)
    except Offer.DoesNotExist:
        raise NotFound(f'Offer with ID {offer_id} does not exist.')


def lock_offer(offer_id):
    try:
        return Offer.objects.select_for_update().get(pk=offer_id)
    except Offer.DoesNotExist:
        raise NotFound(f'Offer with ID {offer_id} does not exist.')


def create_offer(order_id, courier, price, note=''):
    """
    Submit an offer on an open order.

    The order row is locked so the offer cannot slip in after the order
    has been matched.

    Args:
        order_id: Order being offered on
        courier: User making the offer
        price: Proposed price
        note: Optional message to the requester

    Returns:
        Offer: The new offer, status PENDING

    Raises:
        NotFound: Order does not exist
        InvalidState: Order is not OPEN
        Forbidden: Courier is the order's requester
        ValidationError: Non-positive price
        Conflict: Courier already has a pending offer on this order
    """
    proposed_price = _clean_price(price)

    with transaction.atomic():
        order = lock_order(order_id)

        if not order.is_open():
            raise InvalidState(f'Order is {order.status}; offers are only accepted on open orders.')

        if order.requester_id == courier.id:
            raise Forbidden('You cannot make an offer on your own order.')

        if Offer.objects.filter(
            order=order, courier=courier, status=Offer.Status.PENDING
        ).exists():
            raise Conflict('You already have a pending offer on this order.')

        offer = Offer.objects.create(
            order=order,
            courier=courier,
            proposed_price=proposed_price,
            note=(note or '').strip(),
        )

    logger.info(
        f"Offer created. Offer ID: {offer.id}, Order ID: {order.id}, "
        f"Courier ID: {courier.id}, Price: {offer.proposed_price}"
    )
    return offer


def _lock_own_pending_offer(offer_id, actor, action):
    offer = lock_offer(offer_id)

    if offer.courier_id != actor.id:
        raise Forbidden(f'Only the courier who made this offer can {action} it.')

    if not offer.is_pending():
        raise InvalidState(f'Offer is {offer.status}; only pending offers can be changed.')

    return offer


def update_offer(offer_id, actor, changes):
    """
    Change the price or note of a pending offer.

    Raises:
        NotFound: Offer does not exist
        Forbidden: Actor is not the offer's courier
        InvalidState: Offer is no longer PENDING
        ValidationError: Non-positive price
    """
    fields = []
    proposed_price = None
    if 'proposed_price' in changes:
        proposed_price = _clean_price(changes['proposed_price'])

    with transaction.atomic():
        offer = _lock_own_pending_offer(offer_id, actor, 'edit')

        if proposed_price is not None:
            offer.proposed_price = proposed_price
            fields.append('proposed_price')
        if 'note' in changes:
            offer.note = (changes['note'] or '').strip()
            fields.append('note')

        if fields:
            offer.save(update_fields=fields + ['updated_at'])

    logger.info(f"Offer updated. Offer ID: {offer.id}, Fields: {fields}")
    return offer


def withdraw_offer(offer_id, actor):
    """
    Withdraw a pending offer.

    Raises:
        NotFound: Offer does not exist
        Forbidden: Actor is not the offer's courier
        InvalidState: Offer is no longer PENDING
    """
    with transaction.atomic():
        offer = _lock_own_pending_offer(offer_id, actor, 'withdraw')
        offer.status = Offer.Status.WITHDRAWN
        offer.save(update_fields=['status', 'updated_at'])

    logger.info(f"Offer withdrawn. Offer ID: {offer.id}, Courier ID: {actor.id}")
    return offer


def list_offers_for_order(order_id):
    """
    All offers on an order in submission order.

    Raises:
        NotFound: Order does not exist
    """
    order = get_order(order_id)
    return (
        Offer.objects.select_related('courier')
        .filter(order=order)
        .order_by('created_at', 'id')
    )


def list_offers_for_courier(user):
    return (
        Offer.objects.select_related('order')
        .filter(courier=user)
        .order_by('-created_at', '-id')
    )
