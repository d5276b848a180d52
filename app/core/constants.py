"""
Service-wide constants
"""

SERVICE_NAME = "leave-workflow-backend"

# Notification categories
NOTIFY_APPROVAL = "approval"
NOTIFY_SUCCESS = "success"
NOTIFY_ERROR = "error"
NOTIFY_WARNING = "warning"
NOTIFY_INFO = "info"

# Front-end links carried on notifications
LINK_APPROVALS = "/approvals/{leave_request_id}"
LINK_LEAVE_REQUESTS = "/leave-requests"
LINK_PENDING_APPROVALS = "/pending-approvals"
