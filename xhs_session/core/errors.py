"""Error taxonomy for the login/session subsystem.

Disk failures on save are not wrapped: they surface as plain ``OSError``.
"""


class CookieFileNotFoundError(FileNotFoundError):
    """The cookie file does not exist. Callers treat this as an empty set."""


class PageUnavailableError(RuntimeError):
    """The page is closed, or navigation never settled."""


class BrowserLaunchError(RuntimeError):
    """The browser could not be launched (missing binary, locked profile, ...)."""


class SessionNotReadyError(RuntimeError):
    """A live browser context was required but none exists."""
