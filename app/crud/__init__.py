from app.crud.auth import login, logout, open_session, register, resolve_session
from app.crud.notifications import list_notifications, mark_delivered, mark_read, pending_deliveries
from app.crud.pairings import (
    get_pairing_for_member,
    list_available_candidates,
    list_incoming_requests,
    list_outgoing_requests,
    list_pairings_for,
    respond_request,
    send_request,
)
from app.crud.rate_limit import check_rate_limit, cleanup_rate_limits, is_ip_allowed, update_ip_reputation
from app.crud.sweep import midnight_sweep
from app.crud.tasks import Upload, get_completed_task, get_planned_task, plan_task, upload_completion
from app.crud.telegram import create_link_code, redeem_link_code, unlink
from app.crud.user import get_user, get_user_by_chat_id, get_user_or_404, leaderboard, set_availability, update_deadline
from app.crud.verification import pairing_state, settle_due_pairings, settle_pairing, verification_view, verify

__all__ = [
    "register",
    "login",
    "logout",
    "open_session",
    "resolve_session",
    "get_user",
    "get_user_or_404",
    "get_user_by_chat_id",
    "update_deadline",
    "set_availability",
    "leaderboard",
    "list_available_candidates",
    "send_request",
    "respond_request",
    "list_incoming_requests",
    "list_outgoing_requests",
    "list_pairings_for",
    "get_pairing_for_member",
    "Upload",
    "plan_task",
    "upload_completion",
    "get_planned_task",
    "get_completed_task",
    "verify",
    "settle_pairing",
    "settle_due_pairings",
    "pairing_state",
    "verification_view",
    "list_notifications",
    "mark_read",
    "pending_deliveries",
    "mark_delivered",
    "create_link_code",
    "redeem_link_code",
    "unlink",
    "check_rate_limit",
    "cleanup_rate_limits",
    "is_ip_allowed",
    "update_ip_reputation",
    "midnight_sweep",
]
