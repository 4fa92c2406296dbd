from django.urls import path
from .views import RegisterView, LoginView, RefreshTokenView

urlpatterns = [
    path('register/', RegisterView.as_view(), name='register'),
    path('token/', LoginView.as_view(), name='token_obtain'),
    path('token/refresh/', RefreshTokenView.as_view(), name='token_refresh'),
]
