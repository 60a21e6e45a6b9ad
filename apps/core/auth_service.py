# apps/core/auth_service.py

"""
Authentication service - keeps sign-up and sign-in rules out of the views

Every public method returns a (success, message[, user]) tuple.
"""

import logging
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db.models import Q

from .models import User

logger = logging.getLogger(__name__)


class AuthenticationService:
    """Sign-up, sign-in with lockout, and sign-out"""

    def __init__(self):
        self._max_login_attempts = settings.CORKBOARD_LOGIN_MAX_ATTEMPTS
        self._lockout_duration_minutes = settings.CORKBOARD_LOGIN_LOCKOUT_MINUTES

    def register(self, data: Dict) -> Tuple[bool, str, Optional[User]]:
        """
        Creates a user account

        Args:
            data: dict with email, password and optional name / username

        Returns:
            Tuple[success, message, created_user]
        """
        valid, error = self._validate_registration(data)
        if not valid:
            return False, error, None

        email = data['email'].strip().lower()
        username = (data.get('username') or email).strip()

        if self._user_exists(username, email):
            return False, "User already exists", None

        first_name, _, last_name = (data.get('name') or '').strip().partition(' ')
        user = User.objects.create_user(
            username=username,
            email=email,
            password=data['password'],
            first_name=first_name,
            last_name=last_name,
        )
        logger.info("User %s registered", user.username)
        return True, "User created", user

    def sign_in(self, request, identifier: str, password: str) -> Tuple[bool, str]:
        """
        Signs a user in by username or email

        Returns:
            Tuple[success, message]
        """
        identifier = (identifier or '').strip()

        if self._is_locked(identifier):
            logger.warning("Sign-in blocked for locked account %s", identifier)
            return False, "Account temporarily locked after too many failed attempts"

        user = self._authenticate(identifier, password)

        if user is None:
            self._register_failure(identifier)
            return False, "Invalid credentials"

        login(request, user)
        self._reset_failures(identifier)
        return True, f"Welcome, {user.display_name}!"

    def sign_out(self, request) -> bool:
        logout(request)
        return True

    # =================== PRIVATE METHODS ===================

    def _validate_registration(self, data: Dict) -> Tuple[bool, str]:
        for field in ('email', 'password'):
            if not str(data.get(field) or '').strip():
                return False, f"Field {field} is required"

        try:
            validate_email(data['email'].strip())
        except ValidationError:
            return False, "Invalid email"

        if not self._valid_password(data['password']):
            return False, "Password must be at least 8 characters"

        username = data.get('username')
        if username and (' ' in username or len(username) < 3):
            return False, "Username must be at least 3 characters with no spaces"

        return True, ""

    def _valid_password(self, password: str) -> bool:
        return len(password) >= 8

    def _user_exists(self, username: str, email: str) -> bool:
        return User.objects.filter(
            Q(username__iexact=username) | Q(email__iexact=email)
        ).exists()

    def _authenticate(self, identifier: str, password: str) -> Optional[User]:
        """Username first, then email"""
        user = authenticate(username=identifier, password=password)

        if not user:
            user_obj = User.objects.filter(email__iexact=identifier, is_active=True).first()
            if user_obj is not None:
                user = authenticate(username=user_obj.username, password=password)

        return user

    def _attempts_key(self, identifier: str) -> str:
        return f"auth:failed:{identifier.lower()}"

    def _is_locked(self, identifier: str) -> bool:
        return cache.get(self._attempts_key(identifier), 0) >= self._max_login_attempts

    def _register_failure(self, identifier: str):
        key = self._attempts_key(identifier)
        attempts = cache.get(key, 0) + 1
        cache.set(key, attempts, self._lockout_duration_minutes * 60)
        logger.warning("Failed sign-in for %s (%d/%d)", identifier, attempts, self._max_login_attempts)

    def _reset_failures(self, identifier: str):
        cache.delete(self._attempts_key(identifier))


# Shared service instance
auth_service = AuthenticationService()
