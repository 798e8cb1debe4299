from django.conf import settings
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('admin/', admin.site.urls),
    path(f"{settings.API_PREFIX}/auth/token", TokenObtainPairView.as_view(), name='token-obtain'),
    path(f"{settings.API_PREFIX}/auth/token/refresh", TokenRefreshView.as_view(), name='token-refresh'),
    path(f"{settings.API_PREFIX}/", include('payments.urls')),
]
