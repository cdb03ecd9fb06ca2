"""
Service layer exports.
"""

from actualization.services.lifecycle_controller import ActualizationController, LifecycleState
from actualization.services.reconciliation import (
    ALL_RECORDS,
    ResultReconciler,
    apply_filters,
    build_result_entry,
    decode_error_message,
    filter_by_error_message,
    filter_by_key,
    filter_by_success,
)
from actualization.services.session_registry import SessionRegistry

__all__ = [
    "ALL_RECORDS",
    "ActualizationController",
    "LifecycleState",
    "ResultReconciler",
    "SessionRegistry",
    "apply_filters",
    "build_result_entry",
    "decode_error_message",
    "filter_by_error_message",
    "filter_by_key",
    "filter_by_success",
]
