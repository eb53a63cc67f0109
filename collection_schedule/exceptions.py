"""
This module defines custom exceptions for the bin-day notifier.
"""


class ConfigError(Exception):
    """Raised when the run configuration is missing or malformed."""

    pass


class BrowserLaunchError(Exception):
    """Raised when the headless browser cannot be started."""

    pass


class NavigationError(Exception):
    """Raised when the collection form cannot be driven past a given state."""

    def __init__(self, state: str, message: str):
        super().__init__(f"[{state}] {message}")
        self.state = state


class FrameNotFound(NavigationError):
    """No frame containing the form appeared before the deadline."""

    pass


class AddressInputNotFound(NavigationError):
    """No visible control looked like an address field."""

    pass


class NoSuggestionPopulated(NavigationError):
    """The address selection list stayed empty."""

    pass


class ResultsTimeout(NavigationError):
    """The collection results table did not render in time."""

    pass


class RunDeadlineExceeded(NavigationError):
    """The overall run budget ran out while waiting on the form."""

    pass


class StateStoreError(Exception):
    """Custom exception for errors reading or writing notification state."""

    pass


class SendError(Exception):
    """Custom exception for errors sending an email to a recipient."""

    pass


class SupplementaryFetchError(Exception):
    """Custom exception for errors fetching the joke of the day."""

    pass
