"""
Token authentication for the patient-flow API.

Session handling and user management belong to the platform's auth
service; this module only gives the project a stable import path for
the authentication class named in ``REST_FRAMEWORK`` settings.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword."""

    keyword = 'Token'
