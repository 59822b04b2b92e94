from __future__ import annotations

from enum import Enum


class Operation(str, Enum):
    create_request = "create_request"
    withdraw_request = "withdraw_request"
    accept_request = "accept_request"
    decline_request = "decline_request"
    withdraw_lock = "withdraw_lock"
    request_confirm_locked = "request_confirm_locked"
    confirm_success = "confirm_success"
    decline_success = "decline_success"
    request_reject_locked = "request_reject_locked"
    confirm_reject = "confirm_reject"


REQUEST_FAILED = "Sorry, your request involving {user} could not be completed. Please try again later."
SUCCESS_REQUEST_FAILED = "Sorry, we could not record the confirmation with {user}. Please try again later."
REJECT_FAILED = "Sorry, we could not record the rejection with {user}. Please try again later."
LOCK_FAILED = "Sorry, the lock with {user} could not be updated. Please try again later."

# (operation, success) -> template; failures share one template per handshake
_TEMPLATES: dict[tuple[Operation, bool], str] = {
    (Operation.create_request, True): "Your request has been sent to {user}.",
    (Operation.create_request, False): REQUEST_FAILED,
    (Operation.withdraw_request, True): "Your request to {user} has been withdrawn.",
    (Operation.withdraw_request, False): REQUEST_FAILED,
    (Operation.accept_request, True): "You accepted the request from {user}. You are now locked with {user}.",
    (Operation.accept_request, False): REQUEST_FAILED,
    (Operation.decline_request, True): "You declined the request from {user}.",
    (Operation.decline_request, False): REQUEST_FAILED,
    (Operation.withdraw_lock, True): "Your lock with {user} has been withdrawn.",
    (Operation.withdraw_lock, False): LOCK_FAILED,
    (Operation.request_confirm_locked, True): "{user} has been asked to confirm your marriage.",
    (Operation.request_confirm_locked, False): SUCCESS_REQUEST_FAILED,
    (Operation.confirm_success, True): "Congratulations! You and {user} are now married.",
    (Operation.confirm_success, False): SUCCESS_REQUEST_FAILED,
    (Operation.decline_success, True): "You declined the marriage confirmation from {user}.",
    (Operation.decline_success, False): SUCCESS_REQUEST_FAILED,
    (Operation.request_reject_locked, True): "{user} has been asked to confirm ending the lock.",
    (Operation.request_reject_locked, False): REJECT_FAILED,
    (Operation.confirm_reject, True): "Your lock with {user} has ended. You are both available again.",
    (Operation.confirm_reject, False): REJECT_FAILED,
}


def render_message(operation: Operation, success: bool, name: str) -> str:
    return _TEMPLATES[(operation, success)].format(user=name)
