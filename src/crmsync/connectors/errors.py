"""Error taxonomy for CRM connectors.

Configuration errors are raised while a connector is being built and are
never retried. Request errors wrap a failed backend call and name the
operation that failed.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for every connector-level failure."""

    code = "crm_error"


class CRMConfigurationError(CRMError):
    """Tenant CRM configuration is missing a field or cannot be served."""

    code = "crm_config_invalid"


class UnsupportedCRMError(CRMConfigurationError):
    """The declared CRM type is not one this service knows about."""

    code = "unsupported_crm"

    def __init__(self, crm_type: str) -> None:
        self.crm_type = crm_type
        super().__init__(f"Unsupported CRM type: {crm_type}")


class CRMNotImplementedError(CRMConfigurationError):
    """The CRM type is recognised but has no connector yet."""

    code = "crm_not_implemented"

    def __init__(self, crm_type: str) -> None:
        self.crm_type = crm_type
        super().__init__(f"{crm_type} connector not yet implemented")


class NoCRMConfiguredError(CRMConfigurationError):
    """The tenant runs in spreadsheet-only mode and has no CRM to sync from."""

    code = "no_crm_configured"

    def __init__(self) -> None:
        super().__init__(
            "Spreadsheet-only mode: use manual data entry endpoints instead of CRM sync"
        )


class CRMRequestError(CRMError):
    """A backend call failed (transport error, non-2xx response, bad body)."""

    code = "crm_request_failed"

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
