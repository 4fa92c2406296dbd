from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsRiderCapable
from common.utils import domain_error_response, success_response
from services.ride_management import (
    RideError,
    create_ride,
    find_nearby_rides,
    join_ride,
    update_ride_status,
    rate_ride,
    get_ride_history,
    get_ride_for_participant,
)
from services.token_ledger import LedgerError
from .serializers import (
    NearbyRidesQuerySerializer,
    RideCreateSerializer,
    RideHistoryQuerySerializer,
    RideRateSerializer,
    RideSerializer,
    RideStatusSerializer,
)


def _place(data):
    return {
        'latitude': data['lat'],
        'longitude': data['lng'],
        'address': data['address'],
        'landmark': data.get('landmark', ''),
    }


# ==================== Driver Ride APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_ride_view(request):
    """Publish a ride (driver or both roles only)"""
    serializer = RideCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)

    pickup = _place(data.pop('pickup'))
    destination = _place(data.pop('destination'))
    token_category = data.pop('token_category')

    try:
        result = create_ride(request.user, pickup, destination, token_category=token_category, **data)
    except (RideError, LedgerError) as exc:
        return domain_error_response(exc)

    return success_response(
        {'ride': RideSerializer(result.ride, context={'request': request}).data},
        message=result.message,
        status_code=status.HTTP_201_CREATED,
    )


# ==================== Rider Ride APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRiderCapable])
def nearby_rides_view(request):
    """Pending rides near a point, nearest first"""
    query = NearbyRidesQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)

    rides = find_nearby_rides(
        query.validated_data['lat'],
        query.validated_data['lng'],
        radius=query.validated_data.get('radius'),
        exclude_user=request.user,
    )
    return success_response({
        'rides': RideSerializer(rides, many=True, context={'request': request}).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def join_ride_view(request, ride_id):
    """Take the rider seat on a pending ride"""
    try:
        result = join_ride(request.user, ride_id)
    except RideError as exc:
        return domain_error_response(exc)

    return success_response(
        {'ride': RideSerializer(result.ride, context={'request': request}).data},
        message=result.message,
    )


# ==================== Shared Ride APIs ====================

@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def update_status_view(request, ride_id):
    """Move a ride to its next status (participants only)"""
    serializer = RideStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = update_ride_status(
            request.user,
            ride_id,
            serializer.validated_data['status'],
            reason=serializer.validated_data['reason'],
        )
    except RideError as exc:
        return domain_error_response(exc)

    data = {'ride': RideSerializer(result.ride, context={'request': request}).data}
    if result.extra:
        data.update(result.extra)
    return success_response(data, message=result.message)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def rate_ride_view(request, ride_id):
    """Rate the other participant of a completed ride"""
    serializer = RideRateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = rate_ride(
            request.user,
            ride_id,
            serializer.validated_data['rating'],
            feedback=serializer.validated_data['feedback'],
        )
    except RideError as exc:
        return domain_error_response(exc)

    return success_response(
        {'ride': RideSerializer(result.ride, context={'request': request}).data},
        message=result.message,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_history_view(request):
    """Paginated rides where the caller is driver or rider"""
    query = RideHistoryQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)

    history = get_ride_history(
        request.user,
        status=query.validated_data.get('status'),
        page=query.validated_data['page'],
        limit=query.validated_data['limit'],
    )
    return success_response({
        'rides': RideSerializer(history['rides'], many=True, context={'request': request}).data,
        'pagination': history['pagination'],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_detail_view(request, ride_id):
    """Single ride, visible to its participants"""
    try:
        ride = get_ride_for_participant(request.user, ride_id)
    except RideError as exc:
        return domain_error_response(exc)

    return success_response({'ride': RideSerializer(ride, context={'request': request}).data})
