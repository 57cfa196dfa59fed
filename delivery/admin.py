"""
Django admin configuration for the delivery marketplace.

Statuses are read-only here; they only change through the marketplace
services so that orders, offers and matches stay consistent.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Match, Message, Offer, Order, Review, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for the marketplace User model.

    Extends Django's UserAdmin with profile and rating fields.
    """

    list_display = [
        'email',
        'username',
        'university_name',
        'avg_rating',
        'review_count',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
        'university_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': (
                'first_name',
                'last_name',
                'email',
                'phone_number',
                'university_name',
                'bio',
            )
        }),
        (_('Ratings'), {
            'fields': ('avg_rating', 'review_count')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'password1',
                'password2',
                'university_name',
            ),
        }),
    )

    # Rating aggregates are maintained from reviews
    readonly_fields = ['avg_rating', 'review_count', 'created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields
        return []


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    fields = ['courier', 'proposed_price', 'status', 'created_at']
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for Order model."""

    list_display = [
        'id',
        'requester',
        'pickup_location',
        'dropoff_location',
        'price_offered',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
        'created_at',
    ]

    search_fields = [
        'description',
        'pickup_location',
        'dropoff_location',
        'requester__email',
        'requester__username',
    ]

    readonly_fields = ['status', 'created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [OfferInline]

    fieldsets = (
        (None, {
            'fields': ('requester', 'description')
        }),
        (_('Route & Price'), {
            'fields': ('pickup_location', 'dropoff_location', 'price_offered')
        }),
        (_('Status'), {
            'fields': ('status',)
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'order',
        'courier',
        'proposed_price',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
        'created_at',
    ]

    search_fields = [
        'courier__email',
        'courier__username',
        'note',
    ]

    readonly_fields = ['status', 'created_at', 'updated_at']

    ordering = ['-created_at']

    list_per_page = 25


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ['sender', 'body', 'sent_at']
    readonly_fields = fields
    can_delete = False


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    """Admin interface for Match model."""

    list_display = [
        'id',
        'order',
        'offer',
        'requester',
        'courier',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
        'created_at',
    ]

    search_fields = [
        'requester__email',
        'requester__username',
        'courier__email',
        'courier__username',
    ]

    readonly_fields = ['order', 'offer', 'requester', 'courier', 'status', 'created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [MessageInline]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    """Admin interface for Review model."""

    list_display = [
        'id',
        'author',
        'subject',
        'match',
        'rating',
        'created_at',
    ]

    list_filter = [
        'rating',
        'created_at',
    ]

    search_fields = [
        'author__email',
        'author__username',
        'subject__email',
        'subject__username',
        'comment',
    ]

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('author', 'subject', 'match')
        }),
        (_('Review Content'), {
            'fields': ('rating', 'comment')
        }),
        (_('Timestamps'), {
            'fields': ('created_at',),
            'classes': ('collapse',),
        }),
    )
