"""Custom exceptions for the template composition system."""

from typing import Optional, Dict, Any, List


class LabzError(Exception):
    """Base exception for all composer errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFoundError(LabzError):
    """A base template or module does not exist in the template store."""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.kind = kind
        self.identifier = identifier
        if kind:
            self.details["kind"] = kind
        if identifier:
            self.details["identifier"] = identifier


class TemplateError(LabzError):
    """A template or module definition is malformed."""

    def __init__(
        self,
        message: str,
        template: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.template = template
        if template:
            self.details["template"] = template


class ValidationError(LabzError):
    """A combination of base and modules failed validation."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.validation_errors = validation_errors or []
        if validation_errors:
            self.details["validation_errors"] = validation_errors


class MergeRefusedError(LabzError):
    """Merge was requested for a combination that did not validate."""

    def __init__(
        self,
        message: str,
        report: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.report = report
        if report is not None:
            self.details["errors"] = [e.message for e in report.errors]


class BlockError(LabzError):
    """Error manipulating the block-builder project model."""

    def __init__(
        self,
        message: str,
        block_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.block_id = block_id
        if block_id:
            self.details["block_id"] = block_id


class ConfigurationError(LabzError):
    """Error in configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details, cause)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key
