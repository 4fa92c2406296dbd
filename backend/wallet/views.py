import math

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated

from accounts.models import TOKEN_CATEGORIES
from common.utils import domain_error_response, error_response, success_response
from services.token_ledger import (
    LedgerError,
    credit,
    get_balance,
    get_transactions,
    redeem_reward,
    transfer,
    validate_category,
)
from .models import Reward
from .serializers import (
    PageQuerySerializer,
    RedemptionSerializer,
    RewardQuerySerializer,
    RewardSerializer,
    TokenAddSerializer,
    TokenTransactionSerializer,
    TokenTransferSerializer,
)

User = get_user_model()

# Display hints for the category summary
CATEGORY_DISPLAY = {
    'food': {'icon': 'coffee', 'color': '#FF6B35'},
    'travel': {'icon': 'plane', 'color': '#4ECDC4'},
    'clothing': {'icon': 'shirt', 'color': '#A8E6CF'},
    'coupons': {'icon': 'tag', 'color': '#FFD93D'},
}


def _paginate(qs, page, limit):
    total = qs.count()
    offset = (page - 1) * limit
    return list(qs[offset:offset + limit]), {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': math.ceil(total / limit),
    }


# ==================== Token APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def token_balance_view(request):
    """Current balance of every category plus the total"""
    try:
        balances = get_balance(request.user)
    except LedgerError as exc:
        return domain_error_response(exc)
    return success_response({'tokens': balances})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def token_transfer_view(request):
    """Move tokens between two of the caller's categories"""
    serializer = TokenTransferSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        balances = transfer(request.user, data['from_category'], data['to_category'], data['amount'])
    except LedgerError as exc:
        return domain_error_response(exc)

    return success_response({'tokens': balances}, message='Tokens transferred successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def token_add_view(request):
    """Credit tokens by hand (staff only)"""
    serializer = TokenAddSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    target = request.user
    if data.get('user_id') is not None:
        target = User.objects.filter(pk=data['user_id']).first()
        if target is None:
            return error_response('user_not_found', 'User not found', status_code=status.HTTP_404_NOT_FOUND)

    try:
        credit(target, data['category'], data['amount'], description=data['description'] or 'Manual credit')
    except LedgerError as exc:
        return domain_error_response(exc)

    return success_response(
        {'user_id': target.pk, 'tokens': target.token_balances()},
        message='Tokens added successfully',
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def token_history_view(request):
    """Token journal of the caller, newest first"""
    query = PageQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)

    try:
        qs = get_transactions(request.user, category=query.validated_data.get('category'))
    except LedgerError as exc:
        return domain_error_response(exc)

    transactions, pagination = _paginate(qs, query.validated_data['page'], query.validated_data['limit'])
    return success_response({
        'transactions': TokenTransactionSerializer(transactions, many=True).data,
        'pagination': pagination,
    })


# ==================== Reward APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_rewards_view(request):
    """Reward catalog, optionally filtered by category and featured flag"""
    query = RewardQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    category = query.validated_data.get('category')
    featured = query.validated_data.get('featured')

    qs = Reward.objects.filter(available=True)
    if category:
        try:
            qs = qs.filter(category=validate_category(category))
        except LedgerError as exc:
            return domain_error_response(exc)
    if featured is not None:
        qs = qs.filter(featured=featured)

    return success_response({'rewards': RewardSerializer(qs, many=True).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def reward_detail_view(request, reward_id):
    reward = Reward.objects.filter(pk=reward_id).first()
    if reward is None:
        return error_response('reward_not_found', 'Reward not found', status_code=status.HTTP_404_NOT_FOUND)
    return success_response({'reward': RewardSerializer(reward).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def redeem_reward_view(request, reward_id):
    """
    Spend tokens on a reward. An insufficient balance answers 400 with
    required, available and shortfall in ``data``.
    """
    try:
        redemption = redeem_reward(request.user, reward_id)
    except LedgerError as exc:
        return domain_error_response(exc)

    return success_response(
        {
            'redemption': RedemptionSerializer(redemption).data,
            'tokens': request.user.token_balances(),
        },
        message='Reward redeemed successfully',
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def redemption_history_view(request):
    """Rewards the caller has redeemed, newest first"""
    query = PageQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)

    qs = request.user.redemptions.select_related('reward').order_by('-redeemed_at', '-id')
    redemptions, pagination = _paginate(qs, query.validated_data['page'], query.validated_data['limit'])
    return success_response({
        'redemptions': RedemptionSerializer(redemptions, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def category_summary_view(request):
    """Balance and number of available rewards per category"""
    try:
        balances = get_balance(request.user)
    except LedgerError as exc:
        return domain_error_response(exc)

    categories = []
    for category in TOKEN_CATEGORIES:
        categories.append({
            'category': category,
            'balance': balances[category],
            'available_rewards': Reward.objects.filter(category=category, available=True).count(),
            **CATEGORY_DISPLAY[category],
        })
    return success_response({'categories': categories})
