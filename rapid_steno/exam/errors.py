class SessionError(Exception):
    """Base for everything a test session can refuse or fail with."""

    status_code = 400
    retry = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TestNotFound(SessionError):
    status_code = 404


class InvalidSelection(SessionError):
    status_code = 400


class InvalidTransition(SessionError):
    status_code = 409


class LoadError(SessionError):
    status_code = 503
    retry = True


class SubmitError(SessionError):
    status_code = 502
    retry = True


class SessionRedirect(SessionError):
    """The caller belongs on another page; answered with 303 See Other."""

    status_code = 303

    def __init__(self, message: str, location: str):
        super().__init__(message)
        self.location = location


class TestNotPublished(SessionRedirect):
    pass


class AlreadySubmitted(SessionRedirect):
    pass
