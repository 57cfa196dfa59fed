"""
URL configuration for the campus_delivery project.

All API endpoints live under ``/api/``. Tokens are issued by the stock
simplejwt views against username and password.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

from delivery.views import (
    MatchDetailView,
    MatchListCreateView,
    MatchMessagesView,
    MatchStatusView,
    MessageCreateView,
    MyOffersView,
    MyOrdersView,
    OfferDetailView,
    OfferListCreateView,
    OfferMatchesView,
    OrderDetailView,
    OrderListCreateView,
    OrderMatchesView,
    ReviewCreateView,
    ReviewDetailView,
    UserProfileView,
    UserReviewsView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Profile
    path('api/users/profile/', UserProfileView.as_view(), name='user_profile'),

    # Orders
    path('api/orders/', OrderListCreateView.as_view(), name='order_list_create'),
    path('api/orders/mine/', MyOrdersView.as_view(), name='order_mine'),
    path('api/orders/<int:pk>/', OrderDetailView.as_view(), name='order_detail'),

    # Offers
    path('api/offers/', OfferListCreateView.as_view(), name='offer_list_create'),
    path('api/offers/my-offers/', MyOffersView.as_view(), name='offer_mine'),
    path('api/offers/<int:pk>/', OfferDetailView.as_view(), name='offer_detail'),

    # Matches
    path('api/matches/', MatchListCreateView.as_view(), name='match_list_create'),
    path('api/matches/<int:pk>/', MatchDetailView.as_view(), name='match_detail'),
    path('api/matches/<int:pk>/status/', MatchStatusView.as_view(), name='match_status'),
    path('api/matches/order/<int:order_id>/', OrderMatchesView.as_view(), name='match_for_order'),
    path('api/matches/offer/<int:offer_id>/', OfferMatchesView.as_view(), name='match_for_offer'),

    # Messages
    path('api/messages/', MessageCreateView.as_view(), name='message_create'),
    path('api/messages/match/<int:match_id>/', MatchMessagesView.as_view(), name='message_list'),

    # Reviews
    path('api/reviews/', ReviewCreateView.as_view(), name='review_create'),
    path('api/reviews/user/<int:user_id>/', UserReviewsView.as_view(), name='user_reviews'),
    path('api/reviews/<int:pk>/', ReviewDetailView.as_view(), name='review_detail'),

    # JWT Authentication endpoints
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),
]
