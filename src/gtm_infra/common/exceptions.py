"""GTM-Infra exception hierarchy."""


class InfraError(Exception):
    """Base exception for all GTM-Infra errors."""

    def __init__(self, message: str = "", code: str = "INFRA_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ProvisionNotFoundError(InfraError):
    """Raised when a provision cannot be found in the store."""

    def __init__(self, message: str = "Provision not found"):
        super().__init__(message, code="NOT_FOUND")


class TierNotFoundError(InfraError):
    """Raised when a tier id or slug does not resolve to an active tier."""

    def __init__(self, message: str = "Infrastructure tier not found"):
        super().__init__(message, code="TIER_NOT_FOUND")


class InvalidTransitionError(InfraError):
    """Raised when a conditional status update finds the provision in the wrong state."""

    def __init__(self, message: str = "Invalid provision status transition"):
        super().__init__(message, code="INVALID_TRANSITION")


class StepOrderError(InfraError):
    """Raised when a step log write would break step ordering."""

    def __init__(self, message: str = "Step completed before an earlier step"):
        super().__init__(message, code="STEP_ORDER")


class StepError(InfraError):
    """Raised by a provisioning step action."""

    def __init__(self, message: str = "Provisioning step failed", code: str = "STEP_FAILED"):
        super().__init__(message, code=code)


class TransientStepError(StepError):
    """Timeouts, rate limits and not-yet-ready states; retried with backoff."""

    def __init__(self, message: str = "Temporary provider failure"):
        super().__init__(message, code="STEP_TRANSIENT")


class TerminalStepError(StepError):
    """Failures that retrying cannot fix (e.g. domain no longer available)."""

    def __init__(self, message: str = "Provider rejected the request"):
        super().__init__(message, code="STEP_TERMINAL")


class SubmissionError(InfraError):
    """Raised when wizard submission fails; ``stage`` names the failing stage."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message, code=f"SUBMISSION_{stage.upper()}")


class CheckoutError(InfraError):
    """Raised when a checkout session cannot be created."""

    def __init__(self, message: str = "Failed to create checkout session"):
        super().__init__(message, code="CHECKOUT_FAILED")


class DomainAvailabilityError(InfraError):
    """Raised when the domain availability service cannot be reached."""

    def __init__(self, message: str = "Domain availability check failed"):
        super().__init__(message, code="DOMAIN_CHECK_FAILED")


class WizardStateError(InfraError):
    """Raised when the wizard is asked for something its current state cannot give."""

    def __init__(self, message: str = "Wizard is not ready for this action"):
        super().__init__(message, code="WIZARD_STATE")
