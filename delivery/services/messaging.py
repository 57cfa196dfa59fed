"""
Messaging gate: chat between the two participants of a match.
"""

import logging

from delivery.exceptions import Forbidden, InvalidState, ValidationError
from delivery.models import Match, Message
from delivery.services.matches import get_match

logger = logging.getLogger(__name__)


def _participant_match(match_id, actor):
    match = get_match(match_id)
    if not match.is_participant(actor.id):
        raise Forbidden('Only the requester and courier of this match can access its messages.')
    return match


def send_message(match_id, sender, body):
    """
    Append a message to a match's conversation.

    Raises:
        NotFound: Match does not exist
        Forbidden: Sender is not a participant
        InvalidState: Match is cancelled
        ValidationError: Blank body
    """
    match = get_match(match_id)

    if match.status == Match.Status.CANCELLED:
        raise InvalidState('Messages cannot be sent on a cancelled match.')

    if not match.is_participant(sender.id):
        raise Forbidden('Only the requester and courier of this match can send messages.')

    if body is None or not str(body).strip():
        raise ValidationError({'body': 'Message body cannot be blank.'})

    message = Message.objects.create(match=match, sender=sender, body=str(body).strip())

    logger.info(
        f"Message sent. Message ID: {message.id}, Match ID: {match.id}, "
        f"Sender ID: {sender.id}"
    )
    return message


def list_messages(match_id, actor):
    """
    The conversation of a match, oldest first.

    Raises:
        NotFound: Match does not exist
        Forbidden: Actor is not a participant
    """
    match = _participant_match(match_id, actor)
    return (
        Message.objects.select_related('sender')
        .filter(match=match)
        .order_by('sent_at', 'id')
    )
