# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Calendar feed operations: validate, fetch, parse and reconcile
"""
from cal_ops.validator import FeedValidationError, validate_feed_url
from cal_ops.reader import FeedContentError, FeedFetchError, FeedFetcher, FeedHTTPError
from cal_ops.parser import FeedNormalizer, FeedParseError
from cal_ops.writer import EventReconciler

__all__ = [
    'FeedValidationError',
    'validate_feed_url',
    'FeedContentError',
    'FeedFetchError',
    'FeedFetcher',
    'FeedHTTPError',
    'FeedNormalizer',
    'FeedParseError',
    'EventReconciler',
]
