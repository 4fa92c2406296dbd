from rest_framework import serializers

from accounts.models import TOKEN_CATEGORIES
from accounts.serializers import UserSummarySerializer
from .models import Ride


class PlaceSerializer(serializers.Serializer):
    """A pickup or destination point."""
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(max_length=255)
    landmark = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class RideSerializer(serializers.ModelSerializer):
    """Serializer for rides, with participants and grouped sub-objects"""
    driver = UserSummarySerializer(read_only=True)
    rider = UserSummarySerializer(read_only=True)
    pickup = serializers.SerializerMethodField()
    destination = serializers.SerializerMethodField()
    route = serializers.SerializerMethodField()
    tokens = serializers.SerializerMethodField()
    rating = serializers.SerializerMethodField()
    distance_meters = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = ['id', 'driver', 'rider', 'status', 'pickup', 'destination', 'route',
                  'tokens', 'estimated_cost', 'actual_duration', 'scheduled_time',
                  'requested_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at',
                  'cancelled_by', 'cancellation_reason', 'rating', 'notes', 'max_passengers',
                  'distance_meters', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_pickup(self, obj):
        return {
            'lat': float(obj.pickup_latitude),
            'lng': float(obj.pickup_longitude),
            'address': obj.pickup_address,
            'landmark': obj.pickup_landmark,
        }

    def get_destination(self, obj):
        return {
            'lat': float(obj.destination_latitude),
            'lng': float(obj.destination_longitude),
            'address': obj.destination_address,
            'landmark': obj.destination_landmark,
        }

    def get_route(self, obj):
        return {
            'distance_km': round(obj.route_distance_km, 3),
            'duration_minutes': obj.route_duration_minutes,
            'polyline': obj.route_polyline,
        }

    def get_tokens(self, obj):
        return {
            'amount': obj.token_amount,
            'category': obj.token_category,
            'distributed': obj.tokens_distributed,
        }

    def get_rating(self, obj):
        return {
            'driver_rating': obj.rating_by_driver,
            'driver_feedback': obj.feedback_by_driver,
            'rider_rating': obj.rating_by_rider,
            'rider_feedback': obj.feedback_by_rider,
        }

    def get_distance_meters(self, obj):
        # Only set on results of a nearby search
        return getattr(obj, 'distance_meters', None)


class RideCreateSerializer(serializers.Serializer):
    """Serializer for publishing a ride"""
    pickup = PlaceSerializer()
    destination = PlaceSerializer()
    scheduled_time = serializers.DateTimeField(required=False, allow_null=True)
    max_passengers = serializers.IntegerField(min_value=1, max_value=4, default=1)
    notes = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    token_category = serializers.ChoiceField(choices=TOKEN_CATEGORIES, default='food')
    emergency_contact_name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    emergency_contact_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')

    def validate(self, data):
        pickup, destination = data['pickup'], data['destination']
        if (pickup['lat'], pickup['lng']) == (destination['lat'], destination['lng']):
            raise serializers.ValidationError("Pickup and destination must differ")
        return data


class NearbyRidesQuerySerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    radius = serializers.IntegerField(required=False, min_value=1, max_value=50000)


class RideStatusSerializer(serializers.Serializer):
    """Serializer for a status change request"""
    status = serializers.ChoiceField(
        choices=[Ride.ACCEPTED, Ride.IN_PROGRESS, Ride.COMPLETED, Ride.CANCELLED],
        error_messages={"invalid_choice": "Invalid status"},
    )
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RideRateSerializer(serializers.Serializer):
    # Range is checked by the service so it reports invalid_rating
    rating = serializers.IntegerField()
    feedback = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class RideHistoryQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)
    status = serializers.ChoiceField(choices=[c[0] for c in Ride.STATUS_CHOICES], required=False)
