class ExternalServiceError(Exception):
    """Raised by third-party client wrappers (Claude, GitHub, Resend, Twilio, Stripe)."""

    def __init__(self, service: str, message: str):
        self.service = service
        self.message = message
        super().__init__(f"{service}: {message}")
