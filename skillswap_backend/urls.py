"""
URL configuration for skillswap_backend project.

The API lives under ``/api/`` (see ``core.urls``); login, token refresh and
the OpenAPI schema and docs are mounted here.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path
from django.views.generic import TemplateView
from rest_framework_simplejwt.views import TokenRefreshView

from core.auth import SkillSwapTokenObtainPairView
from core.schema import SkillSwapSchemaView


def api_root(_request):
    return JsonResponse({
        'status': 'ok',
        'message': 'SkillSwap backend is running',
        'docs': '/api/docs/',
    })


urlpatterns = [
    path('', api_root, name='api_root'),
    path('admin/', admin.site.urls),
    path('api/login/', SkillSwapTokenObtainPairView.as_view(), name='api_login'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/schema/', SkillSwapSchemaView.as_view(), name='api-schema'),
    path('api/docs/', TemplateView.as_view(template_name='swagger-ui.html'), name='api-docs'),
    path('api/', include('core.urls')),
]
