"""Error taxonomy and recovered-error bookkeeping."""

import asyncio
import json
import logging
import time
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class FeatureGalleryError(Exception):
    """Base class for errors raised inside the feature gallery."""


class SessionError(FeatureGalleryError):
    """The host session is missing or cannot answer a lookup."""


class AssemblyNotFoundError(SessionError):
    """An assembly name did not resolve to any regions."""


class TrackNotFoundError(SessionError):
    """A track id is not known to the session."""


class AdapterError(FeatureGalleryError):
    """A track has no usable adapter configuration."""


class FeatureServiceError(FeatureGalleryError):
    """The feature-retrieval service failed or returned garbage."""


class ErrorType(Enum):
    """Types of errors that can occur."""
    NETWORK_TIMEOUT = "network_timeout"
    FEATURE_RETRIEVAL = "feature_retrieval"
    ASSEMBLY_RESOLUTION = "assembly_resolution"
    TRACK_RESOLUTION = "track_resolution"
    CONTENT_EXTRACTION = "content_extraction"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for an error."""
    error_type: ErrorType
    severity: ErrorSeverity
    message: str
    timestamp: float
    operation: str
    item_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    exception: Optional[Exception] = None
    traceback: Optional[str] = None
    suggestion: Optional[str] = None


SUGGESTIONS = {
    ErrorType.NETWORK_TIMEOUT: "Feature service did not answer in time. The chunk was skipped.",
    ErrorType.FEATURE_RETRIEVAL: "Feature retrieval failed for one region. Remaining regions are still searched.",
    ErrorType.ASSEMBLY_RESOLUTION: "Check that the assembly is loaded in the session.",
    ErrorType.TRACK_RESOLUTION: "Check that the track exists and has a compatible adapter.",
    ErrorType.CONTENT_EXTRACTION: "A feature attribute could not be read. The feature was skipped.",
    ErrorType.PARSE_ERROR: "The service response could not be decoded.",
    ErrorType.UNKNOWN: "Unexpected error. See the log for details.",
}


class ErrorHandler:
    """Classifies, logs and remembers errors the core recovered from."""

    def __init__(self, max_history: int = 500):
        """
        Initialize error handler.

        Args:
            max_history: Number of error contexts kept for reporting
        """
        self.max_history = max_history
        self.error_history: List[ErrorContext] = []
        self.logger = logging.getLogger(__name__)
        self.error_logger = logging.getLogger(f"{__name__}.errors")

    def handle_error(self,
                     error: Exception,
                     operation: str,
                     item_id: Optional[str] = None,
                     error_type: Optional[ErrorType] = None,
                     severity: Optional[ErrorSeverity] = None,
                     **kwargs) -> ErrorContext:
        """
        Record an error with appropriate logging.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            item_id: Optional item identifier (region, feature id, ...)
            error_type: Override automatic classification
            severity: Override automatic severity
            **kwargs: Additional context data

        Returns:
            ErrorContext with error details and suggestion
        """
        error_type = error_type or self._classify_error(error)
        severity = severity or self._determine_severity(error_type)

        context = ErrorContext(
            error_type=error_type,
            severity=severity,
            message=str(error) or type(error).__name__,
            timestamp=time.time(),
            operation=operation,
            item_id=item_id,
            details=kwargs or None,
            exception=error,
            traceback=traceback.format_exc() if severity in [ErrorSeverity.ERROR, ErrorSeverity.CRITICAL] else None,
            suggestion=SUGGESTIONS.get(error_type)
        )

        self._log_error(context)

        self.error_history.append(context)
        if len(self.error_history) > self.max_history:
            del self.error_history[:-self.max_history]

        return context

    def _classify_error(self, error: Exception) -> ErrorType:
        """Classify the error type based on exception."""
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorType.NETWORK_TIMEOUT
        if isinstance(error, AssemblyNotFoundError):
            return ErrorType.ASSEMBLY_RESOLUTION
        if isinstance(error, (TrackNotFoundError, AdapterError)):
            return ErrorType.TRACK_RESOLUTION
        if isinstance(error, FeatureServiceError):
            return ErrorType.FEATURE_RETRIEVAL
        if isinstance(error, (json.JSONDecodeError, UnicodeDecodeError)):
            return ErrorType.PARSE_ERROR

        error_str = str(error).lower()

        if any(term in error_str for term in ['timeout', 'timed out']):
            return ErrorType.NETWORK_TIMEOUT

        if any(term in error_str for term in ['connection', 'rpc', 'coregetfeatures']):
            return ErrorType.FEATURE_RETRIEVAL

        if any(term in error_str for term in ['parse', 'parsing', 'json', 'decode']):
            return ErrorType.PARSE_ERROR

        return ErrorType.UNKNOWN

    def _determine_severity(self, error_type: ErrorType) -> ErrorSeverity:
        """Determine error severity based on type."""
        if error_type in [ErrorType.NETWORK_TIMEOUT, ErrorType.FEATURE_RETRIEVAL,
                          ErrorType.CONTENT_EXTRACTION]:
            return ErrorSeverity.WARNING

        if error_type in [ErrorType.ASSEMBLY_RESOLUTION, ErrorType.TRACK_RESOLUTION]:
            return ErrorSeverity.ERROR

        return ErrorSeverity.ERROR

    def _log_error(self, context: ErrorContext):
        """Log error with appropriate level and details."""
        log_message = f"{context.operation} - {context.error_type.value}: {context.message}"

        if context.item_id:
            log_message += f" (item: {context.item_id})"

        if context.severity == ErrorSeverity.INFO:
            self.logger.info(log_message)
        elif context.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        elif context.severity == ErrorSeverity.ERROR:
            self.error_logger.error(log_message)
            if context.traceback:
                self.error_logger.debug(f"Traceback:\n{context.traceback}")
        elif context.severity == ErrorSeverity.CRITICAL:
            self.error_logger.critical(log_message)
            if context.traceback:
                self.error_logger.critical(f"Traceback:\n{context.traceback}")

        if context.suggestion:
            self.logger.debug(f"Suggestion: {context.suggestion}")

    def clear(self) -> None:
        """Forget recorded errors."""
        self.error_history.clear()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors for reporting."""
        if not self.error_history:
            return {
                'total_errors': 0,
                'by_type': {},
                'by_severity': {},
                'recent_errors': []
            }

        by_type = {}
        for error in self.error_history:
            error_type = error.error_type.value
            by_type[error_type] = by_type.get(error_type, 0) + 1

        by_severity = {}
        for error in self.error_history:
            severity = error.severity.value
            by_severity[severity] = by_severity.get(severity, 0) + 1

        recent_errors = []
        for error in self.error_history[-5:]:
            recent_errors.append({
                'type': error.error_type.value,
                'severity': error.severity.value,
                'message': error.message,
                'operation': error.operation,
                'timestamp': datetime.fromtimestamp(error.timestamp).isoformat(),
                'suggestion': error.suggestion
            })

        return {
            'total_errors': len(self.error_history),
            'by_type': by_type,
            'by_severity': by_severity,
            'recent_errors': recent_errors
        }

    def export_error_report(self, output_file: str):
        """Export detailed error report."""
        report = {
            'generated_at': datetime.now().isoformat(),
            'summary': self.get_error_summary(),
            'detailed_errors': []
        }

        for error in self.error_history:
            error_dict = asdict(error)
            # Exception objects are not serializable
            error_dict.pop('exception', None)
            error_dict['error_type'] = error.error_type.value
            error_dict['severity'] = error.severity.value
            error_dict['timestamp'] = datetime.fromtimestamp(error.timestamp).isoformat()

            report['detailed_errors'].append(error_dict)

        try:
            with open(output_file, 'w') as f:
                json.dump(report, f, indent=2, default=str)

            self.logger.info(f"Error report exported to {output_file}")

        except OSError as e:
            self.logger.error(f"Failed to export error report: {e}")


# Global error handler instance
_error_handler = None


def get_error_handler() -> ErrorHandler:
    """Get global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler


def setup_error_handler(**kwargs) -> ErrorHandler:
    """Setup error handler with custom configuration."""
    global _error_handler
    _error_handler = ErrorHandler(**kwargs)
    return _error_handler
