"""
engine/fields.py

Reserved field names written onto every alert document.

Alert fields are stored as flattened dotted keys so they never collide
with nested objects carried over from the source hit.
"""

TIMESTAMP = "@timestamp"

ALERT_NAMESPACE = "alert"

ALERT_UUID = "alert.uuid"
ALERT_REASON = "alert.reason"
ALERT_ORIGINAL_TIME = "alert.original_time"
ALERT_ORIGINAL_EVENT = "alert.original_event"
ALERT_ANCESTORS = "alert.ancestors"
ALERT_DEPTH = "alert.depth"
ALERT_STATUS = "alert.status"
ALERT_WORKFLOW_STATUS = "alert.workflow_status"
ALERT_SPACE_IDS = "alert.space_ids"

ALERT_RULE_UUID = "alert.rule.uuid"
ALERT_RULE_NAME = "alert.rule.name"
ALERT_RULE_TYPE = "alert.rule.rule_type"
ALERT_RULE_SEVERITY = "alert.rule.severity"
ALERT_RULE_RISK_SCORE = "alert.rule.risk_score"
ALERT_RULE_TAGS = "alert.rule.tags"
ALERT_RULE_PARAMETERS = "alert.rule.parameters"
ALERT_RULE_INDICES = "alert.rule.indices"

ALERT_STATUS_ACTIVE = "active"
WORKFLOW_STATUS_OPEN = "open"

EVENT_NAMESPACE = "event"
