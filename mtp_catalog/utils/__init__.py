"""Shared utilities for configuration, logging, and retrying store failures"""

from mtp_catalog.utils.retry import exponential_backoff_retry, retry_with_policy

__all__ = ["exponential_backoff_retry", "retry_with_policy"]
