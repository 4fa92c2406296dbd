from django.urls import path
from . import views

app_name = 'rewards'

urlpatterns = [
    path('available/', views.available_rewards_view, name='available-rewards'),
    path('user/history/', views.redemption_history_view, name='redemption-history'),
    path('categories/summary/', views.category_summary_view, name='category-summary'),
    path('<slug:reward_id>/', views.reward_detail_view, name='reward-detail'),
    path('<slug:reward_id>/redeem/', views.redeem_reward_view, name='redeem-reward'),
]
