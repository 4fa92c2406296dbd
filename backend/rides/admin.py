"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'driver', 'rider', 'status', 'token_amount', 'token_category',
                    'tokens_distributed', 'requested_at', 'completed_at']
    list_filter = ['status', 'token_category', 'tokens_distributed', 'requested_at']
    search_fields = ['driver__username', 'rider__username', 'pickup_address', 'destination_address']
    readonly_fields = ['route_distance_km', 'route_duration_minutes', 'token_amount', 'tokens_distributed',
                       'requested_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at', 'version']
    date_hierarchy = 'requested_at'
