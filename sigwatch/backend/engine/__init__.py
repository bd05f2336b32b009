"""engine/__init__.py"""
from .errors import MalformedHitError, MalformedRuleError, UnknownMergeStrategyError
from .execution_log import RuleExecutionLogger
from .executor import RuleExecutor, RuleRunResult
from .models import Ancestor, CompleteRule, SearchHit, WrappedAlert
from .reasons import BuildReasonMessage, build_reason_message_for_query_alert
from .wrap_hits import HitWrapper

__all__ = [
    "Ancestor",
    "BuildReasonMessage",
    "CompleteRule",
    "HitWrapper",
    "MalformedHitError",
    "MalformedRuleError",
    "RuleExecutionLogger",
    "RuleExecutor",
    "RuleRunResult",
    "SearchHit",
    "UnknownMergeStrategyError",
    "WrappedAlert",
    "build_reason_message_for_query_alert",
]
