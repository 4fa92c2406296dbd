from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from common.utils import bounding_box, calculate_distance, error_response, longitude_filter, success_response
from .serializers import (
    LocationUpdateSerializer,
    LoginSerializer,
    NearbyQuerySerializer,
    RegisterSerializer,
    RoleUpdateSerializer,
    UserSerializer,
    UserSummarySerializer,
    stats_payload,
)

User = get_user_model()

MAX_NEARBY_USERS = 20


def _token_pair(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


class RegisterView(APIView):
    """
    Register a new user (rider, driver or both)

    POST Body:
    {
        "username": "john_doe",
        "email": "john@example.com",
        "password": "password123",
        "role": "rider",  // "driver" or "both"
        "phone_number": "+1234567890"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        return success_response(
            {
                'user': UserSerializer(user, context={'request': request}).data,
                'tokens': _token_pair(user),
            },
            message='User registered successfully',
            status_code=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """
    Login with username and password to get JWT tokens

    POST Body:
    {
        "username": "john_doe",
        "password": "password123"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Get the user object from the validated data
        user = serializer.validated_data
        User.objects.filter(pk=user.pk).update(last_login=timezone.now())

        return success_response(
            {
                'user': UserSerializer(user, context={'request': request}).data,
                'tokens': _token_pair(user),
            },
            message='Login successful',
        )


class RefreshTokenView(APIView):
    """
    Refresh JWT access token

    POST Body:
    {
        "refresh": "your_refresh_token"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        refresh_token = request.data.get('refresh')

        if not refresh_token:
            return error_response('validation_error', 'Refresh token is required')

        try:
            refresh = RefreshToken(refresh_token)
        except TokenError:
            return error_response(
                'invalid_token',
                'Invalid refresh token',
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        return success_response({'access': str(refresh.access_token)})


class ProfileView(APIView):
    """
    GET -> Retrieve the authenticated user's profile
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = User.objects.get(pk=request.user.pk)
        return success_response({'user': UserSerializer(user, context={'request': request}).data})


class LocationView(APIView):
    """
    PUT: Store the user's current location (last write wins).
    """
    permission_classes = [IsAuthenticated]

    def put(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        updates = {
            'current_latitude': round(data['lat'], 6),
            'current_longitude': round(data['lng'], 6),
            'location_updated_at': timezone.now(),
        }
        if data.get('address'):
            updates['address'] = data['address']
        if data.get('city'):
            updates['city'] = data['city']
        User.objects.filter(pk=request.user.pk).update(**updates)

        user = User.objects.get(pk=request.user.pk)
        return success_response(
            {'user': UserSerializer(user, context={'request': request}).data},
            message='Location updated successfully',
        )


class NearbyUsersView(APIView):
    """
    GET ?lat&lng&radius&role: other active users near a point, nearest first.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = NearbyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        lat = query.validated_data['lat']
        lng = query.validated_data['lng']
        radius = query.validated_data.get('radius', settings.NEARBY_DEFAULT_RADIUS)
        role = query.validated_data.get('role')

        min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lng, radius)
        qs = User.objects.filter(
            longitude_filter('current_longitude', min_lon, max_lon),
            is_active=True,
            is_banned=False,
            current_latitude__gte=min_lat,
            current_latitude__lte=max_lat,
        ).exclude(pk=request.user.pk)
        if role:
            qs = qs.filter(role__in=[role, 'both'])

        nearby = []
        for user in qs:
            distance = calculate_distance(lat, lng, user.current_latitude, user.current_longitude)
            if distance <= radius:
                nearby.append((distance, user))
        nearby.sort(key=lambda pair: pair[0])

        users = []
        for distance, user in nearby[:MAX_NEARBY_USERS]:
            entry = UserSummarySerializer(user, context={'request': request}).data
            entry['role'] = user.role
            entry['location'] = {'lat': float(user.current_latitude), 'lng': float(user.current_longitude)}
            entry['distance_meters'] = round(distance, 1)
            users.append(entry)

        return success_response({'users': users, 'search_radius_meters': radius})


class RoleView(APIView):
    """
    PUT: Switch between rider, driver and both.
    """
    permission_classes = [IsAuthenticated]

    def put(self, request):
        serializer = RoleUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response('invalid_role', 'Invalid role. Must be rider, driver, or both')

        User.objects.filter(pk=request.user.pk).update(role=serializer.validated_data['role'])
        user = User.objects.get(pk=request.user.pk)
        return success_response(
            {'user': UserSerializer(user, context={'request': request}).data},
            message='Role updated successfully',
        )


class StatsView(APIView):
    """
    GET: Ride statistics and token balances of the authenticated user.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = User.objects.get(pk=request.user.pk)
        return success_response({
            'stats': stats_payload(user),
            'tokens': user.token_balances(),
        })
