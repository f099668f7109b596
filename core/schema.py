from rest_framework.permissions import AllowAny
from rest_framework.renderers import JSONOpenAPIRenderer
from rest_framework.response import Response
from rest_framework.schemas.openapi import AutoSchema
from rest_framework.schemas.openapi import SchemaGenerator
from rest_framework.views import APIView


class SkillSwapAutoSchema(AutoSchema):
    def get_operation_id(self, path, method):
        base = super().get_operation_id(path, method)
        return f"{base}{method.capitalize()}"


PUBLIC_PATHS = {
    "/api/login/",
    "/api/token/refresh/",
    "/api/auth/register/",
    "/api/schema/",
    "/api/docs/",
}

TAG_ORDER = {
    "Auth": 0,
    "Profile": 1,
    "Matching": 2,
    "Sessions": 3,
    "General": 4,
}


def tag_for_path(path: str) -> str:
    if path.startswith("/api/login/") or path.startswith("/api/token/") or path.startswith("/api/auth/"):
        return "Auth"
    if path.startswith("/api/profile/session/") or path.startswith("/api/profile/rate-session/"):
        return "Sessions"
    if path.startswith("/api/sessions/"):
        return "Sessions"
    if path.startswith("/api/profile/"):
        return "Profile"
    if path.startswith("/api/matches/"):
        return "Matching"
    return "General"


def build_schema(request=None):
    generator = SchemaGenerator(
        title="SkillSwap API",
        description="Backend APIs for skill matching, calendar availability, booking and ratings.",
        version="1.0.0",
    )
    schema = generator.get_schema(request=request, public=True)
    if not schema:
        return {}

    components = schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    security_schemes["HTTPBearer"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    schema["tags"] = [
        {"name": "Auth", "description": "Registration, login and token endpoints."},
        {"name": "Profile", "description": "Profile, skills and calendar connection endpoints."},
        {"name": "Matching", "description": "Mentor matching and denial endpoints."},
        {"name": "Sessions", "description": "Two-way booking, session listing and rating endpoints."},
        {"name": "General", "description": "Other endpoints."},
    ]

    path_tags = {path: tag_for_path(path) for path in schema.get("paths", {})}

    for path, operations in schema.get("paths", {}).items():
        for method, operation in operations.items():
            if method.lower() not in {"get", "post", "put", "patch", "delete"}:
                continue
            operation["tags"] = [path_tags[path]]
            if path in PUBLIC_PATHS:
                operation.pop("security", None)
            else:
                operation["security"] = [{"HTTPBearer": []}]

    sorted_paths = {}
    for path in sorted(
        schema.get("paths", {}).keys(),
        key=lambda item: (TAG_ORDER.get(path_tags[item], 99), item),
    ):
        sorted_paths[path] = schema["paths"][path]
    schema["paths"] = sorted_paths

    return schema


class SkillSwapSchemaView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    renderer_classes = [JSONOpenAPIRenderer]

    def get(self, request, *args, **kwargs):
        return Response(build_schema(request))
