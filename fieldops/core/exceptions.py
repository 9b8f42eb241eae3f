"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register one set of handlers
(``fieldops.blueprints.register_error_handlers``) and get the same HTTP
status codes everywhere. Callers never import exception classes from
service modules.

Usage:
    from fieldops.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="JobOrder", resource_id=42)
    raise ValidationError("Reason is required", details={"reason": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Also used when an operator asks for a job order that is not assigned to
    them, so that a 404 does not confirm the record exists.

    Args:
        resource: Human-readable model/entity name (e.g. "JobOrder", "Blade").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed body, caught in the blueprint): the data
    was well-formed but broke a rule (missing retirement reason, rating out of
    range, step prerequisites not met, illegal status move).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness rule.

    Maps to HTTP 409. ``context`` is merged into the response body so a
    client can render a terminal view (e.g. ``{"view": "already_submitted"}``)
    instead of an error banner.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        context: Extra keys for the JSON response.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | int | None = None,
        context: dict | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.context = context or {}
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuthenticationError(Exception):
    """No usable session: missing, malformed, expired or closed token. Maps to 401."""


class AuthorizationError(Exception):
    """Session is valid but the role may not perform this operation. Maps to 403.

    Args:
        message: What was refused.
        required_role: Role that would have been accepted, for the response body.
    """

    def __init__(self, message: str = "Insufficient permissions", required_role: str | None = None) -> None:
        self.required_role = required_role
        super().__init__(message)


class DocumentRenderError(Exception):
    """PDF rendering or storage failed.

    Workflow steps catch and log this without rolling back the record they
    just saved; explicit document endpoints surface it as 502.

    Args:
        kind: Document kind being rendered (e.g. "silica_plan").
        job_id: Job order the document belongs to.
        reason: Underlying failure message.
    """

    def __init__(self, kind: str, job_id: int | None = None, reason: str = "") -> None:
        self.kind = kind
        self.job_id = job_id
        self.reason = reason
        msg = f"Failed to render {kind} document"
        if job_id is not None:
            msg += f" for job {job_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
