from django.utils import timezone
from rest_framework import serializers

from .models import Redemption, Reward, TokenTransaction


class TokenTransactionSerializer(serializers.ModelSerializer):
    """Journal row as shown in the token history"""
    ride_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = TokenTransaction
        fields = ['id', 'kind', 'category', 'amount', 'description', 'ride_id', 'created_at']
        read_only_fields = fields


class RewardSerializer(serializers.ModelSerializer):
    class Meta:
        model = Reward
        fields = ['id', 'title', 'description', 'category', 'cost', 'brand', 'original_price',
                  'discount', 'image', 'available', 'featured', 'terms']
        read_only_fields = fields


class RedemptionSerializer(serializers.ModelSerializer):
    reward = RewardSerializer(read_only=True)
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = Redemption
        fields = ['id', 'reward', 'voucher_code', 'cost', 'category', 'status',
                  'redeemed_at', 'expires_at', 'is_expired']
        read_only_fields = fields

    def get_is_expired(self, obj):
        return obj.expires_at <= timezone.now()


# Category and amount are validated by the ledger so errors carry ledger codes

class TokenTransferSerializer(serializers.Serializer):
    from_category = serializers.CharField()
    to_category = serializers.CharField()
    amount = serializers.IntegerField()


class TokenAddSerializer(serializers.Serializer):
    category = serializers.CharField()
    amount = serializers.IntegerField()
    user_id = serializers.IntegerField(required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=20)
    category = serializers.CharField(required=False)


class RewardQuerySerializer(serializers.Serializer):
    category = serializers.CharField(required=False)
    featured = serializers.BooleanField(required=False, allow_null=True, default=None)
