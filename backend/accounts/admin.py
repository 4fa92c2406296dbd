from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "role",
        "phone_number",
        "tokens_total",
        "completed_rides",
        "rating",
        "is_active",
        "is_banned",
    ]

    list_filter = [
        "role",
        "is_active",
        "is_banned",
        "is_available",
        "date_joined",
    ]

    search_fields = [
        "username",
        "email",
        "phone_number",
    ]

    ordering = ("username",)

    # Balances and stats only change through the ledger and ride services
    readonly_fields = (
        "tokens_food",
        "tokens_travel",
        "tokens_clothing",
        "tokens_coupons",
        "tokens_total",
        "total_rides",
        "completed_rides",
        "cancelled_rides",
        "rating",
        "rating_count",
        "version",
    )

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Profile",
            {"fields": ("role", "phone_number", "avatar", "bio", "is_banned", "ban_reason")},
        ),
        (
            "Tokens",
            {
                "fields": (
                    "tokens_food",
                    "tokens_travel",
                    "tokens_clothing",
                    "tokens_coupons",
                    "tokens_total",
                )
            },
        ),
        (
            "Ride stats",
            {
                "fields": (
                    "total_rides",
                    "completed_rides",
                    "cancelled_rides",
                    "rating",
                    "rating_count",
                    "version",
                )
            },
        ),
    )

    # For create user page in admin
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {
                "fields": (
                    "email",
                    "role",
                    "phone_number",
                )
            },
        ),
    )
