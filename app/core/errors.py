class OnboardingError(Exception):
    """Base class for collaborator failures surfaced to callers of the orchestrator."""


class StoreError(OnboardingError):
    """The merchant store could not read or persist a record."""


class DuplicateMerchantError(StoreError):
    def __init__(self, phone_number: str):
        super().__init__(f"Merchant already exists for {phone_number}")
        self.phone_number = phone_number


class DeliveryError(OnboardingError):
    """The message channel rejected or failed an outbound message."""

    def __init__(self, phone_number: str, error):
        super().__init__(f"Failed to deliver message to {phone_number}: {error}")
        self.phone_number = phone_number
        self.error = error


class MerchantNotFoundError(OnboardingError):
    def __init__(self, key: str):
        super().__init__(f"Merchant not found: {key}")
        self.key = key
