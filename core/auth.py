from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import update_last_login
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.views import TokenObtainPairView

from .permissions import user_profile, user_role


class SkillSwapTokenObtainPairSerializer(TokenObtainPairSerializer):
    password = serializers.CharField(write_only=True)

    default_error_messages = {
        "no_active_account": "No active account found with the given credentials",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop("username", None)
        self.fields["email"] = serializers.EmailField(write_only=True)
        self.fields["password"] = serializers.CharField(write_only=True)

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        profile = user_profile(user)
        token["role"] = user_role(user)
        token["uid"] = profile.uid if profile else None
        token["email"] = user.email
        return token

    def _reject(self):
        raise exceptions.AuthenticationFailed(
            self.error_messages["no_active_account"],
            "no_active_account",
        )

    def validate(self, attrs):
        email = attrs.get("email", "").strip().lower()
        password = attrs.get("password", "")
        user_model = get_user_model()
        user = user_model.objects.filter(email__iexact=email).first()
        if not user:
            self._reject()

        authenticate_kwargs = {
            user_model.USERNAME_FIELD: getattr(user, user_model.USERNAME_FIELD),
            "password": password,
        }
        request = self.context.get("request")
        if request is not None:
            authenticate_kwargs["request"] = request

        self.user = authenticate(**authenticate_kwargs)
        if not api_settings.USER_AUTHENTICATION_RULE(self.user):
            self._reject()

        refresh = self.get_token(self.user)
        profile = user_profile(self.user)
        data = {
            "refresh": str(refresh),
            "access": str(refresh.access_token),
            "uid": profile.uid if profile else None,
            "role": user_role(self.user),
        }

        if api_settings.UPDATE_LAST_LOGIN:
            update_last_login(None, self.user)

        return data


class SkillSwapTokenObtainPairView(TokenObtainPairView):
    serializer_class = SkillSwapTokenObtainPairSerializer
