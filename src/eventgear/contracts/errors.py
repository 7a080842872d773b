# src/eventgear/contracts/errors.py
"""Exception taxonomy for EventGear.

Two families with different propagation rules:

- Configuration-time failures (ValidationError and subclasses, SettingsError,
  BridgeError) are raised to the caller. Misconfiguration fails loudly.
- Runtime failures inside user code (CallbackExecutionError,
  AsyncCallbackError) are raised by invoke_callback only so that call sites
  can log them with context. They never escape the engine or tracker.
"""


class EventGearError(Exception):
    """Base class for every EventGear exception."""


class ValidationError(EventGearError, ValueError):
    """Invalid argument: threshold, priority, check method, capacity, callback."""


class TimestampError(ValidationError):
    """Timestamp has the wrong type or is earlier than the last one seen."""


class CallbackNotFoundError(ValidationError, KeyError):
    """No CallbackTracker registration exists for the requested id."""

    def __init__(self, callback_id: str) -> None:
        self.callback_id = callback_id
        super().__init__(f"Callback with id {callback_id!r} not found")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class CallbackExecutionError(EventGearError):
    """A user-supplied check, action, alarm or response callback raised.

    Attributes:
        callback_name: Registration id or alarm name of the failing callback
        original: The exception raised by user code
    """

    def __init__(self, callback_name: str, original: BaseException) -> None:
        self.callback_name = callback_name
        self.original = original
        super().__init__(f"Callback {callback_name!r} failed: {type(original).__name__}: {original}")


class AsyncCallbackError(CallbackExecutionError):
    """An awaitable returned by a user callback completed with an exception."""


class SettingsError(EventGearError):
    """A settings file could not be loaded or validated."""


class BridgeError(EventGearError):
    """A bridge could not be discovered, instantiated or configured.

    Raised during bridge setup only. Forwarding metadata through an attached
    bridge never raises; failures are logged instead.

    Attributes:
        bridge_name: Name of the bridge that failed
        message: Human-readable error description
    """

    def __init__(self, bridge_name: str, message: str) -> None:
        self.bridge_name = bridge_name
        self.message = message
        super().__init__(f"Bridge '{bridge_name}' failed: {message}")
