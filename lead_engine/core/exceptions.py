"""
Custom exceptions for the lead engine.
Provides consistent error handling across the application.

Field-level coercion and validation problems are never raised; they are
returned as values inside the ingestion report. Only the errors below
cross a function boundary.
"""


class LeadEngineException(Exception):
    """Base exception for the lead engine"""
    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(LeadEngineException):
    """Resource not found"""
    def __init__(self, resource: str = "Resource", resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)


class AlreadyExistsError(LeadEngineException):
    """Resource already exists"""
    def __init__(self, resource: str = "Resource", field: str = None, value: str = None):
        self.field = field
        self.value = value
        if field and value:
            message = f"{resource} with {field} '{value}' already exists"
        else:
            message = f"{resource} already exists"
        super().__init__(message)


class ValidationError(LeadEngineException):
    """Validation failed"""
    def __init__(self, message: str = "Validation failed", field: str = None):
        if field:
            message = f"Validation failed for field '{field}': {message}"
        super().__init__(message)


class ConfigurationError(LeadEngineException):
    """Branch cannot be ingested into: unknown, inactive or registry unreachable"""
    def __init__(self, message: str = "Branch is not configured", branch: str = None):
        self.branch = branch
        super().__init__(message)


class StoreUnavailableError(LeadEngineException):
    """Store collaborator call failed"""
    def __init__(self, message: str = "Store unavailable", transient: bool = True):
        self.transient = transient
        super().__init__(message)



class RegistryUnavailableError(ConfigurationError):
    """Branch schema could not be loaded because the registry store is unreachable"""
    def __init__(self, message: str = "Schema registry unavailable", branch: str = None):
        super().__init__(message, branch)
