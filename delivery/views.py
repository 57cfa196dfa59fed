"""
API views for the campus delivery marketplace.

Views translate HTTP requests into calls on ``delivery.services`` and
serialize the results. Errors raised by the services are DRF exceptions and
are rendered by ``delivery.exceptions.delivery_exception_handler``.
"""

import logging

from django.conf import settings
from rest_framework import generics, status
from rest_framework.pagination import CursorPagination, PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import ValidationError
from .serializers import (
    MatchCreateSerializer,
    MatchSerializer,
    MatchStatusUpdateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    OfferCreateSerializer,
    OfferSerializer,
    OfferUpdateSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    UserProfileSerializer,
)
from .services import matches, messaging, offers, orders, reviews

logger = logging.getLogger(__name__)


class DeliveryPagination(PageNumberPagination):
    page_size = settings.DELIVERY_LIST_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = settings.DELIVERY_MAX_PAGE_SIZE


class MessagePagination(CursorPagination):
    """Cursor pagination over a match's conversation, oldest first."""
    page_size = settings.DELIVERY_MESSAGE_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = settings.DELIVERY_MAX_PAGE_SIZE
    ordering = ('sent_at', 'id')


# ============================================================================
# Profile
# ============================================================================

class UserProfileView(APIView):
    """
    API endpoint for the authenticated user's profile.

    GET /api/users/profile/
    PUT/PATCH /api/users/profile/
    Request body: {"first_name": "...", "phone_number": "...", "university_name": "...", "bio": "..."}

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 400: Invalid data
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserProfileSerializer(request.user).data)

    def put(self, request, *args, **kwargs):
        return self._update(request, partial=False)

    def patch(self, request, *args, **kwargs):
        return self._update(request, partial=True)

    def _update(self, request, partial):
        serializer = UserProfileSerializer(request.user, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Profile updated. User ID: {user.id}, Fields: {sorted(serializer.validated_data)}")
        return Response(UserProfileSerializer(user).data)


# ============================================================================
# Orders
# ============================================================================

class OrderListCreateView(generics.ListAPIView):
    """
    API endpoint for listing open orders and posting new ones.

    GET /api/orders/ (public)
    Open orders, newest first, paginated.

    POST /api/orders/
    Headers: Authorization: Bearer <access_token>
    Request body: {
        "description": "Two boxes of books",
        "pickup_location": "Library, north entrance",
        "dropoff_location": "Dorm B, room 214",
        "price_offered": "12.50"
    }

    Error responses:
    - 401: Missing, invalid, or expired JWT token (POST)
    - 400: Invalid data
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        return orders.list_open_orders()

    def post(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = orders.create_order(request.user, serializer.validated_data)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class MyOrdersView(generics.ListAPIView):
    """GET /api/orders/mine/ - orders posted by the authenticated user, any status."""
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        return orders.list_orders_for_requester(self.request.user)


class OrderDetailView(APIView):
    """
    API endpoint for a single order.

    GET /api/orders/<id>/ (public)

    PUT/PATCH /api/orders/<id>/
    Request body: any of description, pickup_location, dropoff_location,
    price_offered; or {"status": "cancelled"} to cancel the order.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not the order's requester
    - 404: Order not found
    - 400: Invalid data or order not in an editable state
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        return Response(OrderSerializer(orders.get_order(pk)).data)

    def put(self, request, pk, *args, **kwargs):
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if 'status' in serializer.validated_data:
            order = orders.cancel_order(pk, request.user)
        else:
            order = orders.update_order(pk, request.user, serializer.validated_data)

        return Response(OrderSerializer(order).data)

    def patch(self, request, pk, *args, **kwargs):
        return self.put(request, pk, *args, **kwargs)


# ============================================================================
# Offers
# ============================================================================

class OfferListCreateView(generics.ListAPIView):
    """
    API endpoint for listing the offers on an order and submitting offers.

    GET /api/offers/?order=<order_id> (public)
    Offers in submission order.

    POST /api/offers/
    Headers: Authorization: Bearer <access_token>
    Request body: {"order": 1, "proposed_price": "10.00", "note": "Can pick up at 5pm"}

    Error responses:
    - 401: Missing, invalid, or expired JWT token (POST)
    - 403: Offer on own order
    - 404: Order not found
    - 409: Already have a pending offer on this order
    - 400: Invalid data, missing order parameter, or order not open
    """
    serializer_class = OfferSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        order_id = self.request.query_params.get('order')
        if not order_id or not order_id.isdecimal():
            raise ValidationError({'order': 'A numeric order query parameter is required.'})
        return offers.list_offers_for_order(int(order_id))

    def post(self, request, *args, **kwargs):
        serializer = OfferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        offer = offers.create_offer(
            data['order'],
            request.user,
            data['proposed_price'],
            note=data.get('note', ''),
        )
        return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)


class MyOffersView(generics.ListAPIView):
    """GET /api/offers/my-offers/ - offers made by the authenticated user."""
    serializer_class = OfferSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        return offers.list_offers_for_courier(self.request.user)


class OfferDetailView(APIView):
    """
    API endpoint for a single offer.

    GET /api/offers/<id>/ (public)

    PUT/PATCH /api/offers/<id>/
    Request body: proposed_price and/or note; or {"status": "withdrawn"}.

    DELETE /api/offers/<id>/
    Withdraws the offer; the record is kept.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not the offer's courier
    - 404: Offer not found
    - 400: Invalid data or offer no longer pending
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        return Response(OfferSerializer(offers.get_offer(pk)).data)

    def put(self, request, pk, *args, **kwargs):
        serializer = OfferUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if 'status' in serializer.validated_data:
            offer = offers.withdraw_offer(pk, request.user)
        else:
            offer = offers.update_offer(pk, request.user, serializer.validated_data)

        return Response(OfferSerializer(offer).data)

    def patch(self, request, pk, *args, **kwargs):
        return self.put(request, pk, *args, **kwargs)

    def delete(self, request, pk, *args, **kwargs):
        offers.withdraw_offer(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Matches
# ============================================================================

class MatchListCreateView(generics.ListAPIView):
    """
    API endpoint for accepting offers and listing the user's matches.

    GET /api/matches/
    Matches where the authenticated user is requester or courier.

    POST /api/matches/
    Headers: Authorization: Bearer <access_token>
    Request body: {"offer": 3}
    Accepts the offer: it becomes accepted, the order's other pending
    offers are rejected, the order is matched and a pending match is
    returned.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not the requester of the offer's order
    - 404: Offer not found
    - 409: A concurrent acceptance won
    - 400: Offer not pending or order not open
    """
    serializer_class = MatchSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        return matches.list_matches_for_user(self.request.user)

    def post(self, request, *args, **kwargs):
        serializer = MatchCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        match = matches.accept_offer(serializer.validated_data['offer'], request.user)
        return Response(MatchSerializer(match).data, status=status.HTTP_201_CREATED)


class MatchDetailView(generics.RetrieveAPIView):
    """GET /api/matches/<id>/ (public)"""
    serializer_class = MatchSerializer
    permission_classes = [AllowAny]

    def get_object(self):
        return matches.get_match(self.kwargs['pk'])


class MatchStatusView(APIView):
    """
    API endpoint for moving a match through its delivery states.

    PUT /api/matches/<id>/status/
    Headers: Authorization: Bearer <access_token>
    Request body: {"status": "in_progress"}

    Allowed moves:
    - pending -> in_progress, in_progress -> delivered (courier)
    - delivered -> completed (requester)
    - pending/in_progress -> cancelled (either participant)

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not a participant, or wrong role for the move
    - 404: Match not found
    - 400: Match already completed/cancelled, or move not allowed
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, pk, *args, **kwargs):
        serializer = MatchStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        match = matches.advance_match(pk, request.user, serializer.validated_data['status'])
        return Response(MatchSerializer(match).data)

    def patch(self, request, pk, *args, **kwargs):
        return self.put(request, pk, *args, **kwargs)


class OrderMatchesView(generics.ListAPIView):
    """GET /api/matches/order/<order_id>/ (public) - every match the order has had."""
    serializer_class = MatchSerializer
    permission_classes = [AllowAny]
    pagination_class = None

    def get_queryset(self):
        return matches.list_matches_for_order(self.kwargs['order_id'])


class OfferMatchesView(generics.ListAPIView):
    """GET /api/matches/offer/<offer_id>/ (public)"""
    serializer_class = MatchSerializer
    permission_classes = [AllowAny]
    pagination_class = None

    def get_queryset(self):
        return matches.list_matches_for_offer(self.kwargs['offer_id'])


# ============================================================================
# Messages
# ============================================================================

class MessageCreateView(APIView):
    """
    POST /api/messages/
    Headers: Authorization: Bearer <access_token>
    Request body: {"match": 7, "body": "I'm at the library entrance"}

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not a participant of the match
    - 404: Match not found
    - 400: Blank body or match cancelled
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = messaging.send_message(
            serializer.validated_data['match'],
            request.user,
            serializer.validated_data['body'],
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class MatchMessagesView(generics.ListAPIView):
    """
    GET /api/messages/match/<match_id>/
    Headers: Authorization: Bearer <access_token>

    The match's conversation, oldest first, cursor-paginated.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Not a participant of the match
    - 404: Match not found
    """
    serializer_class = MessageSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = MessagePagination

    def get_queryset(self):
        return messaging.list_messages(self.kwargs['match_id'], self.request.user)


# ============================================================================
# Reviews
# ============================================================================

class ReviewCreateView(APIView):
    """
    API endpoint for reviewing the other participant of a completed match.

    POST /api/reviews/
    Headers: Authorization: Bearer <access_token>
    Request body: {
        "match": 7,
        "rating": 5,
        "comment": "Quick and careful",
        "subject": 2
    }
    ``subject`` is optional and defaults to the other participant.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Author/subject are not the match participants
    - 404: Match not found
    - 409: Already reviewed this match
    - 400: Invalid data or match not completed
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        review = reviews.create_review(
            data['match'],
            request.user,
            data.get('subject'),
            data['rating'],
            comment=data.get('comment', ''),
        )
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class UserReviewsView(generics.ListAPIView):
    """
    GET /api/reviews/user/<user_id>/ (public)

    Reviews received by the user, newest first, paginated.

    Error responses:
    - 404: User not found
    """
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]
    pagination_class = DeliveryPagination

    def get_queryset(self):
        return reviews.list_reviews_for_user(self.kwargs['user_id'])


class ReviewDetailView(generics.RetrieveAPIView):
    """GET /api/reviews/<id>/ (public)"""
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]

    def get_object(self):
        return reviews.get_review(self.kwargs['pk'])
