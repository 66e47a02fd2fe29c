"""Notification delivery exceptions."""

from __future__ import annotations


class PushGatewayError(Exception):
    """The push service could not be reached or answered with an error."""
