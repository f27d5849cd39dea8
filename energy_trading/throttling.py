"""
Django REST Framework throttles backed by the authentication rate limiter.

DRF turns a rejected allow_request() into HTTP 429 and uses wait() for the
Retry-After header.

Clients are keyed by REMOTE_ADDR. X-Forwarded-For is only consulted when
REST_FRAMEWORK["NUM_PROXIES"] says how many trusted proxies append to it;
otherwise any caller could pick a fresh identity per request.
"""

from rest_framework.settings import api_settings
from rest_framework.throttling import BaseThrottle

from energy_trading.services import get_rate_limiter


class AuthAttemptThrottle(BaseThrottle):
    endpoint = None

    def __init__(self):
        self.decision = None

    def allow_request(self, request, view):
        self.decision = get_rate_limiter().check(self.endpoint, self.get_ident(request))
        return self.decision.allowed

    def get_ident(self, request):
        if api_settings.NUM_PROXIES is None:
            return request.META.get("REMOTE_ADDR")
        return super().get_ident(request)

    def wait(self):
        if self.decision is None or self.decision.allowed:
            return None
        return self.decision.retry_after


class LoginAttemptThrottle(AuthAttemptThrottle):
    endpoint = "login"


class SignupAttemptThrottle(AuthAttemptThrottle):
    endpoint = "signup"
