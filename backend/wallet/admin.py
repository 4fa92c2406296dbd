"""Tells what to show in the Django admin interface for wallet app"""

from django.contrib import admin
from .models import Redemption, Reward, TokenTransaction


@admin.register(TokenTransaction)
class TokenTransactionAdmin(admin.ModelAdmin):
    """Journal is append-only; nothing here is editable"""
    list_display = ['id', 'user', 'kind', 'category', 'amount', 'ride', 'created_at']
    list_filter = ['kind', 'category', 'created_at']
    search_fields = ['user__username', 'description']
    readonly_fields = ['user', 'kind', 'category', 'amount', 'description', 'ride', 'redemption', 'created_at']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'brand', 'category', 'cost', 'available', 'featured')
    list_filter = ('category', 'available', 'featured')
    search_fields = ('id', 'title', 'brand')


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = ('voucher_code', 'user', 'reward', 'cost', 'status', 'redeemed_at', 'expires_at')
    list_filter = ('status', 'category')
    search_fields = ('voucher_code', 'user__username')
    readonly_fields = ('voucher_code', 'cost', 'category', 'redeemed_at')
