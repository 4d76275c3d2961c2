"""Security utilities for formgate."""

from .audit import log_api_access, sanitize_output, sanitize_params
from .cors import cors_headers
from .ip_whitelist import ip_matches, is_ip_allowed
from .signature import MAX_CLOCK_SKEW_SECONDS, compute_signature, verify_signature

__all__ = [
    'MAX_CLOCK_SKEW_SECONDS',
    'compute_signature',
    'cors_headers',
    'ip_matches',
    'is_ip_allowed',
    'log_api_access',
    'sanitize_output',
    'sanitize_params',
    'verify_signature',
]
