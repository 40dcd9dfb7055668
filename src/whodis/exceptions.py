"""
Exception classes for whodis.

Exception Hierarchy:
    WhodisError (Base)
    ├─ InvalidOwnerName    - hostname is not inside the zone being updated
    ├─ NoAddressAvailable  - a required address family yielded no address
    ├─ SigningError        - the SIG(0) signature could not be produced
    └─ KeyLoadError        - the private key file is missing or malformed

Transport problems and server rejections are not exceptions; they are
reported as UpdateOutcome values.
"""


class WhodisError(Exception):
    """Base exception for all whodis errors."""

    pass


class InvalidOwnerName(WhodisError):
    """Owner name is malformed or not equal to/below the zone."""

    def __init__(self, owner: str, zone: str, reason: str = ""):
        self.owner = owner
        self.zone = zone
        message = f"Owner name {owner!r} is not within zone {zone!r}"
        if reason:
            message = f"Invalid owner name {owner!r}: {reason}"
        super().__init__(message)


class NoAddressAvailable(WhodisError):
    """Address detection found nothing for a family the mode requires."""

    def __init__(self, family: str):
        self.family = family
        super().__init__(f"No {family} address available")


class SigningError(WhodisError):
    """SIG(0) signature generation failed."""

    pass


class KeyLoadError(WhodisError):
    """Private key material could not be loaded or validated."""

    pass
