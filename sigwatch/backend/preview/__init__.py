"""preview/__init__.py"""
from .error_rate import ErrorRatePreviewParams, get_transaction_error_rate_chart_preview

__all__ = ["ErrorRatePreviewParams", "get_transaction_error_rate_chart_preview"]
