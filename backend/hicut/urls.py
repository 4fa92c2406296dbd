from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),  # Health check endpoint

    # Authentication endpoints (register, token, token refresh)
    path('api/auth/', include('accounts.urls')),

    # User profile, location, role and stats
    path('api/users/', include('accounts.user_urls')),

    # Ride lifecycle
    path('api/rides/', include('rides.urls')),

    # Token wallet and rewards
    path('api/tokens/', include('wallet.urls')),
    path('api/rewards/', include('wallet.reward_urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
