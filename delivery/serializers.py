"""
Serializers for the campus delivery API.

Input serializers only check the shape of a request; the marketplace rules
(who may do what, in which state) live in ``delivery.services``.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Match, Message, Offer, Order, Review

User = get_user_model()


# ============================================================================
# Users
# ============================================================================

class UserSummarySerializer(serializers.ModelSerializer):
    """
    Public view of a user, nested in orders, offers, matches and reviews.

    Contact details are never exposed here.
    """

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'avg_rating', 'review_count']
        read_only_fields = fields


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's own profile.

    Rating aggregates and identity fields are read-only; contact and
    profile text can be edited.
    """

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'phone_number',
            'university_name',
            'bio',
            'avg_rating',
            'review_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'id',
            'username',
            'email',
            'avg_rating',
            'review_count',
            'created_at',
            'updated_at',
        ]

    def validate_university_name(self, value):
        return value.strip()

    def validate_bio(self, value):
        return value.strip()


# ============================================================================
# Orders
# ============================================================================

class OrderSerializer(serializers.ModelSerializer):
    requester = UserSummarySerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id',
            'requester',
            'description',
            'pickup_location',
            'dropoff_location',
            'price_offered',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    """
    Request body for posting an order.

    Fields:
    - description: Required, what needs delivering
    - pickup_location: Required
    - dropoff_location: Required
    - price_offered: Required, greater than 0
    """

    description = serializers.CharField(trim_whitespace=True)
    pickup_location = serializers.CharField(max_length=300, trim_whitespace=True)
    dropoff_location = serializers.CharField(max_length=300, trim_whitespace=True)
    price_offered = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
    )


class OrderUpdateSerializer(serializers.Serializer):
    """
    Request body for editing or cancelling an order.

    Sending ``{"status": "cancelled"}`` cancels the order; any other field
    edits it. The two cannot be combined.
    """

    description = serializers.CharField(required=False, trim_whitespace=True)
    pickup_location = serializers.CharField(required=False, max_length=300, trim_whitespace=True)
    dropoff_location = serializers.CharField(required=False, max_length=300, trim_whitespace=True)
    price_offered = serializers.DecimalField(
        required=False,
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
    )
    status = serializers.ChoiceField(
        required=False,
        choices=[Order.Status.CANCELLED],
        error_messages={'invalid_choice': 'Orders can only be cancelled through this endpoint.'},
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No changes provided.')
        if 'status' in attrs and len(attrs) > 1:
            raise serializers.ValidationError('Cancel an order without editing other fields.')
        return attrs


# ============================================================================
# Offers
# ============================================================================

class OfferSerializer(serializers.ModelSerializer):
    courier = UserSummarySerializer(read_only=True)

    class Meta:
        model = Offer
        fields = [
            'id',
            'order',
            'courier',
            'proposed_price',
            'note',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class OfferCreateSerializer(serializers.Serializer):
    order = serializers.IntegerField(min_value=1)
    proposed_price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
    )
    note = serializers.CharField(required=False, allow_blank=True, default='')


class OfferUpdateSerializer(serializers.Serializer):
    """
    Request body for editing or withdrawing an offer.

    ``{"status": "withdrawn"}`` withdraws the offer; price and note edits
    apply to pending offers only.
    """

    proposed_price = serializers.DecimalField(
        required=False,
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
    )
    note = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(
        required=False,
        choices=[Offer.Status.WITHDRAWN],
        error_messages={'invalid_choice': 'Offers can only be withdrawn through this endpoint.'},
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No changes provided.')
        if 'status' in attrs and len(attrs) > 1:
            raise serializers.ValidationError('Withdraw an offer without editing other fields.')
        return attrs


# ============================================================================
# Matches
# ============================================================================

class MatchSerializer(serializers.ModelSerializer):
    requester = UserSummarySerializer(read_only=True)
    courier = UserSummarySerializer(read_only=True)

    class Meta:
        model = Match
        fields = [
            'id',
            'order',
            'offer',
            'requester',
            'courier',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class MatchCreateSerializer(serializers.Serializer):
    offer = serializers.IntegerField(min_value=1)


class MatchStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Match.Status.choices)


# ============================================================================
# Messages
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'match', 'sender', 'body', 'sent_at']
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    match = serializers.IntegerField(min_value=1)
    body = serializers.CharField(max_length=5000, trim_whitespace=True)


# ============================================================================
# Reviews
# ============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)
    subject = UserSummarySerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'match', 'author', 'subject', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    """
    Request body for reviewing a completed match.

    Fields:
    - match: Required, ID of the completed match
    - subject: Optional, user being reviewed (defaults to the other participant)
    - rating: Required, integer from 1 to 5
    - comment: Optional written feedback
    """

    match = serializers.IntegerField(min_value=1)
    subject = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)
    rating = serializers.IntegerField(
        min_value=1,
        max_value=5,
        error_messages={
            'min_value': 'Rating must be between 1 and 5.',
            'max_value': 'Rating must be between 1 and 5.',
        },
    )
    comment = serializers.CharField(required=False, allow_blank=True, default='')
