"""Errors raised by directions provider adapters."""


class DirectionsError(RuntimeError):
    """Provider call failed: transport error, non-OK status, or no usable route."""


class DirectionsConfigError(DirectionsError):
    """Provider is not configured (e.g. missing API key). Not retried."""


class NoRouteError(DirectionsError):
    """Provider answered but returned no routes."""
