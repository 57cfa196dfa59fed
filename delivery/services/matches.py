"""
Match engine: offer acceptance and the match status state machine.

Every mutation here is one ``transaction.atomic()`` unit. Row locks are
always taken in the same order (order, then offer or match) so concurrent
calls on the same order serialize instead of deadlocking, and status flips
are written as compare-and-set updates so a stale reader can never win:

    PENDING --(courier)--> IN_PROGRESS --(courier)--> DELIVERED --(requester)--> COMPLETED
    PENDING --(either)--> CANCELLED
    IN_PROGRESS --(either)--> CANCELLED
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from delivery.exceptions import (
    Conflict,
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from delivery.models import Match, Offer, Order
from delivery.services.offers import get_offer, lock_offer
from delivery.services.orders import get_order, lock_order

logger = logging.getLogger(__name__)


def get_match(match_id):
    try:
        return Match.objects.select_related('order', 'offer', 'requester', 'courier').get(pk=match_id)
    except Match.DoesNotExist:
        raise NotFound(f'Match with ID {match_id} does not exist.')


def accept_offer(offer_id, actor):
    """
    Accept an offer and create the match for its order.

    In one atomic step the offer becomes ACCEPTED, every other pending
    offer on the order becomes REJECTED, the order becomes MATCHED and a
    PENDING match is created. Of two concurrent acceptances on the same
    order exactly one succeeds.

    Args:
        offer_id: Offer being accepted
        actor: User accepting; must be the order's requester

    Returns:
        Match: The new match

    Raises:
        NotFound: Offer does not exist
        Forbidden: Actor is not the order's requester
        InvalidState: Offer is not PENDING or order is not OPEN
        Conflict: Another acceptance won the race
    """
    order_id = get_offer(offer_id).order_id

    try:
        with transaction.atomic():
            order = lock_order(order_id)
            offer = lock_offer(offer_id)

            if order.requester_id != actor.id:
                raise Forbidden('Only the requester of this order can accept offers on it.')

            if not offer.is_pending():
                raise InvalidState(f'Offer is {offer.status}; only pending offers can be accepted.')

            if not order.is_open():
                raise InvalidState(f'Order is {order.status}; it already has an accepted offer or is closed.')

            now = timezone.now()

            flipped = Order.objects.filter(pk=order.pk, status=Order.Status.OPEN).update(
                status=Order.Status.MATCHED, updated_at=now
            )
            if not flipped:
                raise Conflict('Order was matched by a concurrent request.')

            accepted = Offer.objects.filter(pk=offer.pk, status=Offer.Status.PENDING).update(
                status=Offer.Status.ACCEPTED, updated_at=now
            )
            if not accepted:
                raise Conflict('Offer changed while it was being accepted.')

            rejected = (
                Offer.objects.filter(order_id=order.pk, status=Offer.Status.PENDING)
                .exclude(pk=offer.pk)
                .update(status=Offer.Status.REJECTED, updated_at=now)
            )

            match = Match.objects.create(
                order_id=order.pk,
                offer_id=offer.pk,
                requester_id=order.requester_id,
                courier_id=offer.courier_id,
                status=Match.Status.PENDING,
            )
    except IntegrityError:
        logger.warning(
            f"Offer acceptance lost a race. Offer ID: {offer_id}, "
            f"Order ID: {order_id}, User ID: {actor.id}"
        )
        raise Conflict('This order already has an accepted offer.')

    logger.info(
        f"Offer accepted. Match ID: {match.id}, Offer ID: {offer_id}, "
        f"Order ID: {order_id}, Offers rejected: {rejected}"
    )
    return match


def advance_match(match_id, actor, target_status):
    """
    Move a match to ``target_status``.

    Checks run in this order: the actor must be a participant (Forbidden),
    the match must not be terminal (InvalidState), the move must be in the
    transition table (InvalidTransition), and the actor's role must be
    allowed to make it (Forbidden).

    Completing the match completes its order. Cancelling it re-opens the
    order for new offers, unless the order was cancelled on its own. The
    accepted offer goes to WITHDRAWN at the same time: it is the one place
    a non-pending offer changes status, and it keeps "at most one ACCEPTED
    offer per order" true for the re-opened order. WITHDRAWN here therefore
    means "its match was cancelled" as well as "withdrawn by the courier".

    Raises:
        ValidationError: Unknown target status
        NotFound: Match does not exist
        Forbidden: Actor is not a participant or has the wrong role
        InvalidState: Match is COMPLETED or CANCELLED
        InvalidTransition: Move not allowed from the current status
    """
    if target_status not in Match.Status.values:
        raise ValidationError({
            'status': f"Invalid status. Must be one of: {', '.join(Match.Status.values)}."
        })

    order_id = get_match(match_id).order_id

    with transaction.atomic():
        order = lock_order(order_id)
        match = Match.objects.select_for_update().get(pk=match_id)

        role = match.role_of(actor.id)
        if role is None:
            raise Forbidden('You are not a participant in this match.')

        if match.is_terminal():
            raise InvalidState(f'Match is already {match.status} and cannot change.')

        allowed, error_message = match.can_transition_to(target_status)
        if not allowed:
            raise InvalidTransition(error_message)

        if role not in match.roles_for(target_status):
            raise Forbidden(f'The {role} cannot move this match to {target_status}.')

        old_status = match.status
        match.status = target_status
        match.save(update_fields=['status', 'updated_at'])

        now = timezone.now()
        if target_status == Match.Status.COMPLETED:
            Order.objects.filter(pk=order.pk, status=Order.Status.MATCHED).update(
                status=Order.Status.COMPLETED, updated_at=now
            )
        elif target_status == Match.Status.CANCELLED:
            Offer.objects.filter(pk=match.offer_id, status=Offer.Status.ACCEPTED).update(
                status=Offer.Status.WITHDRAWN, updated_at=now
            )
            Order.objects.filter(pk=order.pk, status=Order.Status.MATCHED).update(
                status=Order.Status.OPEN, updated_at=now
            )

    logger.info(
        f"Match status updated. Match ID: {match.id}, "
        f"Old Status: {old_status}, New Status: {target_status}, "
        f"User ID: {actor.id} ({role})"
    )
    return match


def list_matches_for_order(order_id):
    """Every match an order has had, cancelled ones included."""
    order = get_order(order_id)
    return Match.objects.select_related('requester', 'courier').filter(order=order)


def list_matches_for_offer(offer_id):
    offer = get_offer(offer_id)
    return Match.objects.select_related('requester', 'courier').filter(offer=offer)


def list_matches_for_user(user):
    """Matches in which the user is requester or courier, newest first."""
    return (
        Match.objects.select_related('order', 'requester', 'courier')
        .filter(Q(requester=user) | Q(courier=user))
        .order_by('-created_at', '-id')
    )
