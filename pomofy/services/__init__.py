"""
🏗️ Service Layer - Base Service Interface
==========================================

Defines the base interface and common functionality for all services.
Services hold the use-case logic between the HTTP shell and the core
(interval engine, Spotify client) and never raise into the shell: every
operation returns a ``ServiceResult``.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..errors import (ApiError, AuthError, AuthFailedError, AuthRequiredError,
                      ConfigError, PomofyError, TransportError)


@dataclass
class ServiceResult:
    """Standardized result object for service operations."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        result = {
            "success": self.success,
            "timestamp": self.timestamp.isoformat()
        }

        if self.data is not None:
            result["data"] = self.data
        if self.message:
            result["message"] = self.message
        if self.error_code:
            result["error_code"] = self.error_code

        return result


class BaseService(ABC):
    """Base class for all services with common functionality."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"service.{name}")
        self._initialized = False

    def initialize(self) -> ServiceResult:
        """Initialize the service. Override in subclasses."""
        self._initialized = True
        self.logger.info(f"🔧 {self.name} service initialized")
        return ServiceResult(
            success=True,
            message=f"{self.name} service initialized successfully"
        )

    def is_initialized(self) -> bool:
        """Check if service is initialized."""
        return self._initialized

    def health_check(self) -> ServiceResult:
        """Perform health check. Override in subclasses for specific checks."""
        if not self._initialized:
            return ServiceResult(
                success=False,
                message=f"{self.name} service not initialized",
                error_code="not_initialized"
            )

        return ServiceResult(
            success=True,
            data={"status": "healthy", "service": self.name}
        )

    def _handle_error(self, error: Exception, operation: str) -> ServiceResult:
        """Turn a Pomofy error into a failed result; anything else is unexpected."""
        if isinstance(error, ConfigError):
            return self._error_result(error.message, "config_error", data={"field": error.field_name})
        if isinstance(error, AuthRequiredError):
            return self._error_result("Spotify authentication required", "auth_required")
        if isinstance(error, AuthFailedError):
            self.logger.warning(f"🔒 {self.name}.{operation}: authentication failed, logged out")
            return self._error_result("Spotify authentication failed - please log in again", "auth_failed")
        if isinstance(error, AuthError):
            return self._error_result(str(error), "auth_error")
        if isinstance(error, TransportError):
            self.logger.warning(f"🌐 {self.name}.{operation}: {error.message}")
            return self._error_result("Spotify is unreachable", "transport_error")
        if isinstance(error, ApiError):
            self.logger.warning(f"⚠️ {self.name}.{operation}: {error}")
            return self._error_result(error.message, "api_error", data={"status_code": error.status_code})
        if isinstance(error, PomofyError):
            return self._error_result(str(error), "error")

        error_msg = f"Error in {self.name}.{operation}: {str(error)}"
        self.logger.error(error_msg, exc_info=True)
        return ServiceResult(
            success=False,
            message=error_msg,
            error_code="operation_failed"
        )

    def _success_result(self, data: Any = None, message: Optional[str] = None) -> ServiceResult:
        """Helper to create success results."""
        return ServiceResult(
            success=True,
            data=data,
            message=message
        )

    def _error_result(self, message: str, error_code: str = "error", data: Any = None) -> ServiceResult:
        """Helper to create error results."""
        return ServiceResult(
            success=False,
            data=data,
            message=message,
            error_code=error_code
        )
