from django.urls import path
from .views import ProfileView, LocationView, NearbyUsersView, RoleView, StatsView

urlpatterns = [
    path('profile/', ProfileView.as_view(), name='user_profile'),
    path('location/', LocationView.as_view(), name='user_location'),
    path('nearby/', NearbyUsersView.as_view(), name='users_nearby'),
    path('role/', RoleView.as_view(), name='user_role'),
    path('stats/', StatsView.as_view(), name='user_stats'),
]
