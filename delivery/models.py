"""
Data model for the campus delivery marketplace.

Orders attract offers, one accepted offer becomes a match, and the match
gates messaging and reviews. Status fields are closed enumerations; the legal
match transitions are declared once, on ``Match.TRANSITIONS``.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import validate_not_blank, validate_phone_number, validate_positive_amount


ROLE_REQUESTER = 'requester'
ROLE_COURIER = 'courier'


class User(AbstractUser):
    """
    Marketplace user.

    Any user can post orders and submit offers on other users' orders, so
    there is no fixed role; the role is decided per match.

    Additional fields:
    - email: Required, unique email address
    - phone_number: Optional contact number
    - university_name: Campus the user belongs to
    - bio: Short free-text profile
    - avg_rating: Average rating received, maintained by signals
    - review_count: Number of reviews received, maintained by signals
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
    )

    university_name = models.CharField(
        _('university name'),
        max_length=200,
        blank=True,
        default='',
    )

    bio = models.TextField(
        _('bio'),
        blank=True,
        default='',
    )

    avg_rating = models.DecimalField(
        _('average rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00')),
            MaxValueValidator(Decimal('5.00')),
        ],
    )

    review_count = models.PositiveIntegerField(
        _('review count'),
        default=0,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']

    def __str__(self):
        return self.email or self.username

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


class Order(models.Model):
    """
    A delivery request posted by a requester.

    Accepts new offers only while OPEN. Moves to MATCHED when one of its
    offers is accepted, to COMPLETED when that match completes, and back to
    OPEN when the match is cancelled.
    """

    class Status(models.TextChoices):
        OPEN = 'open', _('Open')
        MATCHED = 'matched', _('Matched')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    CANCELLABLE_STATUSES = (Status.OPEN, Status.MATCHED)

    requester = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='orders',
    )

    description = models.TextField(
        _('description'),
        validators=[validate_not_blank],
    )

    pickup_location = models.CharField(
        _('pickup location'),
        max_length=300,
        validators=[validate_not_blank],
    )

    dropoff_location = models.CharField(
        _('dropoff location'),
        max_length=300,
        validators=[validate_not_blank],
    )

    price_offered = models.DecimalField(
        _('price offered'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=Status.choices,
        default=Status.OPEN,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('order')
        verbose_name_plural = _('orders')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='order_status_created_idx'),
        ]

    def __str__(self):
        return f"Order #{self.pk} by {self.requester} ({self.status})"

    def is_open(self):
        return self.status == self.Status.OPEN

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Offer(models.Model):
    """
    A courier's proposal to fulfil an order.

    Only PENDING offers change state. At most one offer per order can be
    ACCEPTED at any time; the database enforces this with a partial unique
    constraint.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        ACCEPTED = 'accepted', _('Accepted')
        REJECTED = 'rejected', _('Rejected')
        WITHDRAWN = 'withdrawn', _('Withdrawn')

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='offers',
    )

    courier = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offers',
    )

    proposed_price = models.DecimalField(
        _('proposed price'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
    )

    note = models.TextField(_('note'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('offer')
        verbose_name_plural = _('offers')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['order', 'status'], name='offer_order_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=models.Q(status='accepted'),
                name='one_accepted_offer_per_order',
            ),
        ]

    def __str__(self):
        return f"Offer #{self.pk} by {self.courier} on order #{self.order_id} ({self.status})"

    def is_pending(self):
        return self.status == self.Status.PENDING

    def clean(self):
        super().clean()

        if self.order_id and self.courier_id and self.order.requester_id == self.courier_id:
            raise ValidationError({
                'courier': _('Requesters cannot make offers on their own orders.')
            })

    def save(self, *args, **kwargs):
        # DB constraints raise IntegrityError, which the services map to Conflict
        self.full_clean(validate_constraints=False)
        super().save(*args, **kwargs)


class Match(models.Model):
    """
    An accepted (order, offer) pairing and its delivery progress.

    Valid transitions:
    - pending -> in_progress (courier)
    - in_progress -> delivered (courier)
    - delivered -> completed (requester)
    - pending -> cancelled (either party)
    - in_progress -> cancelled (either party)
    - completed, cancelled -> (terminal)
    """

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        IN_PROGRESS = 'in_progress', _('In progress')
        DELIVERED = 'delivered', _('Delivered')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    # (current, target) -> roles allowed to make the move
    TRANSITIONS = {
        (Status.PENDING, Status.IN_PROGRESS): frozenset({ROLE_COURIER}),
        (Status.IN_PROGRESS, Status.DELIVERED): frozenset({ROLE_COURIER}),
        (Status.DELIVERED, Status.COMPLETED): frozenset({ROLE_REQUESTER}),
        (Status.PENDING, Status.CANCELLED): frozenset({ROLE_REQUESTER, ROLE_COURIER}),
        (Status.IN_PROGRESS, Status.CANCELLED): frozenset({ROLE_REQUESTER, ROLE_COURIER}),
    }

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='matches',
    )

    offer = models.OneToOneField(
        Offer,
        on_delete=models.CASCADE,
        related_name='match',
    )

    requester = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='matches_as_requester',
    )

    courier = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='matches_as_courier',
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('match')
        verbose_name_plural = _('matches')
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=~models.Q(status='cancelled'),
                name='one_active_match_per_order',
            ),
        ]

    def __str__(self):
        return f"Match #{self.pk} for order #{self.order_id} ({self.status})"

    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def role_of(self, user_id):
        """
        Return the role a user plays in this match.

        Returns:
            str: ROLE_REQUESTER, ROLE_COURIER or None for non-participants
        """
        if user_id == self.requester_id:
            return ROLE_REQUESTER
        if user_id == self.courier_id:
            return ROLE_COURIER
        return None

    def is_participant(self, user_id):
        return self.role_of(user_id) is not None

    def other_participant_id(self, user_id):
        if user_id == self.requester_id:
            return self.courier_id
        if user_id == self.courier_id:
            return self.requester_id
        return None

    def can_transition_to(self, new_status):
        """
        Check whether the match may move to ``new_status``.

        Role restrictions are not considered here; see ``roles_for``.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if self.is_terminal():
            return False, f'Match is already {self.status} and cannot change.'

        if (self.status, new_status) not in self.TRANSITIONS:
            return False, f'Invalid status transition from {self.status} to {new_status}.'

        return True, None

    def roles_for(self, new_status):
        """Roles allowed to move this match to ``new_status``."""
        return self.TRANSITIONS.get((self.status, new_status), frozenset())

    def clean(self):
        super().clean()

        if self.offer_id and self.order_id and self.offer.order_id != self.order_id:
            raise ValidationError({
                'offer': _('Offer does not belong to this order.')
            })

        if self.requester_id and self.courier_id and self.requester_id == self.courier_id:
            raise ValidationError({
                'courier': _('Requester and courier must be different users.')
            })

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)


class Message(models.Model):
    """
    A chat message between the two participants of a match. Append-only.
    """

    match = models.ForeignKey(
        Match,
        on_delete=models.CASCADE,
        related_name='messages',
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='messages_sent',
    )

    body = models.TextField(
        _('body'),
        validators=[validate_not_blank],
    )

    sent_at = models.DateTimeField(_('sent at'), auto_now_add=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['sent_at', 'id']
        indexes = [
            models.Index(fields=['match', 'sent_at'], name='message_match_sent_idx'),
        ]

    def __str__(self):
        return f"Message #{self.pk} in match #{self.match_id} from {self.sender}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(_('Messages cannot be edited.'))
        self.full_clean()
        super().save(*args, **kwargs)


class Review(models.Model):
    """
    A participant's rating of the other participant after a completed match.

    One review per (match, author); immutable once written.
    """

    match = models.ForeignKey(
        Match,
        on_delete=models.CASCADE,
        related_name='reviews',
    )

    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_given',
    )

    subject = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_received',
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.')),
        ],
    )

    comment = models.TextField(_('comment'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['subject', '-created_at'], name='review_subject_created_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['match', 'author'],
                name='unique_review_per_match_author',
            ),
        ]

    def __str__(self):
        return f"Review by {self.author} for {self.subject} - {self.rating}★"

    def clean(self):
        super().clean()

        if self.author_id and self.subject_id and self.author_id == self.subject_id:
            raise ValidationError({
                'subject': _('Author and subject cannot be the same user.')
            })

        if self.match_id:
            if self.match.status != Match.Status.COMPLETED:
                raise ValidationError({
                    'match': _('Only completed matches can be reviewed.')
                })
            participants = {self.match.requester_id, self.match.courier_id}
            if {self.author_id, self.subject_id} != participants:
                raise ValidationError({
                    'author': _('Author and subject must be the two match participants.')
                })

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(_('Reviews cannot be edited.'))
        # Duplicate (match, author) pairs surface as IntegrityError
        self.full_clean(validate_constraints=False)
        super().save(*args, **kwargs)
