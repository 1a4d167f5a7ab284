class RedirectRequired(Exception):
    """Raised when the caller should be sent elsewhere instead of getting an error body."""

    def __init__(self, location: str, reason: str = ""):
        super().__init__(reason or location)
        self.location = location
        self.reason = reason
