from rest_framework import serializers
from django.contrib.auth import authenticate

from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Public profile shown on rides and nearby lists."""
    avatar_url = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "avatar_url", "rating", "total_rides"]

    def get_avatar_url(self, obj):
        """Absolute URL when a request is available, relative otherwise."""
        if obj.avatar:
            request = self.context.get("request")
            if request:
                return request.build_absolute_uri(obj.avatar.url)
            return obj.avatar.url
        return None


class UserSerializer(UserSummarySerializer):
    tokens = serializers.SerializerMethodField(read_only=True)
    stats = serializers.SerializerMethodField(read_only=True)
    location = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "role",
            "bio",
            "avatar",
            "avatar_url",
            "tokens",
            "stats",
            "location",
            "is_available",
            "last_seen",
            "date_joined",
        ]
        read_only_fields = ["id", "role", "is_available", "last_seen", "date_joined"]
        extra_kwargs = {
            "avatar": {"write_only": True, "required": False}
        }

    def get_tokens(self, obj):
        return obj.token_balances()

    def get_stats(self, obj):
        return stats_payload(obj)

    def get_location(self, obj):
        if obj.current_latitude is None or obj.current_longitude is None:
            return None
        return {
            "lat": float(obj.current_latitude),
            "lng": float(obj.current_longitude),
            "address": obj.address,
            "city": obj.city,
            "updated_at": obj.location_updated_at,
        }


def stats_payload(user) -> dict:
    return {
        "total_rides": user.total_rides,
        "completed_rides": user.completed_rides,
        "cancelled_rides": user.cancelled_rides,
        "rating": round(user.rating, 2),
        "rating_count": user.rating_count,
    }


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        if user.is_banned:
            raise serializers.ValidationError("This account has been suspended")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'role', 'phone_number', 'first_name', 'last_name']
        extra_kwargs = {
            'phone_number': {'required': True, 'allow_null': False},
        }

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value.lower()

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class LocationUpdateSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)


class NearbyQuerySerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    radius = serializers.IntegerField(required=False, min_value=1, max_value=50000)
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES], required=False)


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(
        choices=[c[0] for c in User.ROLE_CHOICES],
        error_messages={"invalid_choice": "Invalid role. Must be rider, driver, or both"},
    )

