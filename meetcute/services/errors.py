"""Domain errors raised by billing workflows.

Each error carries a machine-readable ``code`` and the HTTP status the cabinet
answers with, so routes can translate them without inspecting messages.
"""

from fastapi import status


class BillingError(Exception):
    code = 'billing_error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def to_detail(self) -> dict:
        return {'code': self.code, 'message': self.message}


class ValidationError(BillingError):
    code = 'validation_error'


class NotFoundError(BillingError):
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND


class PackageNotFoundError(NotFoundError):
    code = 'package_not_found'

    def __init__(self, package_id: int) -> None:
        super().__init__(f'Subscription package {package_id} not found')
        self.package_id = package_id


class InsufficientBalanceError(BillingError):
    code = 'insufficient_balance'

    def __init__(self, required_cents: int, available_cents: int) -> None:
        super().__init__('Insufficient balance')
        self.required_cents = required_cents
        self.available_cents = available_cents


class InsufficientTierError(BillingError):
    code = 'insufficient_tier'
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, required_tier: str, actual_tier: str) -> None:
        super().__init__(
            f'This gift requires a {required_tier} subscription or higher. Your current tier is {actual_tier}.'
        )
        self.required_tier = required_tier
        self.actual_tier = actual_tier

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail.update(required_tier=self.required_tier, actual_tier=self.actual_tier)
        return detail


class AlreadyRedeemedError(BillingError):
    code = 'already_redeemed'


class PriceNotRecordedError(BillingError):
    code = 'price_not_recorded'


class NotAwaitingReferenceError(BillingError):
    code = 'not_awaiting_reference'


class InvalidStateTransitionError(BillingError):
    code = 'invalid_state_transition'

    def __init__(self, message: str, current_status: str | None = None, target_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class PaymentMethodUnavailableError(BillingError):
    code = 'payment_method_unavailable'

    def __init__(self, message: str = 'Selected payment method is not available or not configured for this country.'):
        super().__init__(message)


class SubscriptionRequiredError(BillingError):
    code = 'subscription_required'
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = 'Subscription required') -> None:
        super().__init__(message)


class FeatureNotAvailableError(BillingError):
    code = 'feature_not_available'
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, feature_key: str) -> None:
        super().__init__('Feature not available in your subscription')
        self.feature_key = feature_key


class ConflictError(BillingError):
    code = 'conflict'
    status_code = status.HTTP_409_CONFLICT


class ConcurrencyConflictError(ConflictError):
    code = 'concurrency_conflict'

    def __init__(self, message: str = 'The resource was modified concurrently, please retry') -> None:
        super().__init__(message)
