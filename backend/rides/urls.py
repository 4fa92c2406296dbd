from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Driver APIs
    path('create/', views.create_ride_view, name='create-ride'),

    # Rider APIs
    path('nearby/', views.nearby_rides_view, name='nearby-rides'),
    path('<int:ride_id>/join/', views.join_ride_view, name='join-ride'),

    # Participant APIs
    path('history/', views.ride_history_view, name='ride-history'),
    path('<int:ride_id>/', views.ride_detail_view, name='ride-detail'),
    path('<int:ride_id>/status/', views.update_status_view, name='ride-status'),
    path('<int:ride_id>/rate/', views.rate_ride_view, name='rate-ride'),
]
