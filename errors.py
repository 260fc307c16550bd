class IdentityError(Exception):
    """Base class for failures raised while resolving an identity."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingIdentifierError(IdentityError):
    status_code = 400

    def __init__(self, message: str = "Error: Cannot create a brand-new contact without both a phone number and an email."):
        super().__init__(message)


class IntegrityViolationError(IdentityError):
    """A secondary without a reachable primary was found mid-merge."""

    status_code = 404
