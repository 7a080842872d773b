"""User callback scheduling and failure-isolated execution."""

from eventgear.callbacks.execution import call_isolated, fit_arguments, invoke_callback, pending_callbacks
from eventgear.callbacks.tracker import CallbackTracker

__all__ = [
    "CallbackTracker",
    "call_isolated",
    "fit_arguments",
    "invoke_callback",
    "pending_callbacks",
]
