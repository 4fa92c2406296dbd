from django.urls import path
from . import views

app_name = 'tokens'

urlpatterns = [
    path('balance/', views.token_balance_view, name='token-balance'),
    path('transfer/', views.token_transfer_view, name='token-transfer'),
    path('add/', views.token_add_view, name='token-add'),
    path('history/', views.token_history_view, name='token-history'),
]
