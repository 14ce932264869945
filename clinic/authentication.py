"""
Token authentication for the HMS API.

Dashboards send ``Authorization: Token <key>``; the class lives in its own
module so the REST framework settings can import it without pulling in
any views.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication pinned to the ``Token`` keyword."""

    keyword = 'Token'
