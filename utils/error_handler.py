"""
Centralized Error Handling Module for Scrcpy Deck

Provides the error taxonomy shared by the bridge, the session registry and the
wireless setup flow, plus consistent API error responses.
"""

import functools
import logging
from typing import Dict, Any, Optional
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger("scrcpy_deck")


# =============================================================================
# ERROR HINTS - User-friendly troubleshooting suggestions
# =============================================================================

ERROR_HINTS = {
    "no_wifi_ip": {
        "message": "Could not determine device IP address. Make sure the device is connected to WiFi.",
        "hint": "Open the device's WiFi settings and confirm it is joined to a network.",
    },
    "device_unknown": {
        "message": "Device not found by ADB.",
        "hint": "Refresh the device list and make sure USB debugging is enabled and the computer is authorized on the device.",
    },
    "reidentify_exhausted": {
        "message": "Wireless mode was enabled but the device IP address could not be determined automatically.",
        "hint": "Find the IP address in the device's WiFi settings (Settings > About phone > Status) and use 'Connect by IP' with port 5555.",
    },
    "unreachable": {
        "message": "Unable to connect to the device.",
        "hint": "Check that the computer and the device are on the same network, that the router does not isolate clients (AP isolation), and that USB debugging is still enabled.",
    },
    "connect_timeout": {
        "message": "Connection to the device timed out.",
        "hint": "Your router or firewall may be blocking port 5555. Check the router settings or try another network.",
    },
    "adb_missing": {
        "message": "ADB is not available.",
        "hint": "Check that the bundled ADB executable exists or set ADB_PATH.",
    },
    "scrcpy_missing": {
        "message": "Scrcpy is not available.",
        "hint": "Check that the bundled scrcpy executable exists or set SCRCPY_PATH.",
    },
}


def get_error_with_hint(error_type: str, original_message: str = "") -> dict:
    """
    Get error message with troubleshooting hint.

    Args:
        error_type: Key from ERROR_HINTS dictionary
        original_message: Original error message to include

    Returns:
        Dict with error and hint
    """
    hint_info = ERROR_HINTS.get(error_type, {})
    return {
        "error": original_message or hint_info.get("message", "Unknown error"),
        "hint": hint_info.get("hint", ""),
    }


def message_with_hint(error_type: str) -> str:
    """Join the message and hint of an ERROR_HINTS entry into one user-facing string"""
    info = get_error_with_hint(error_type)
    if info["hint"]:
        return f"{info['error']} {info['hint']}"
    return info["error"]


class MirrorError(Exception):
    """Base exception for all Scrcpy Deck errors"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class BridgeExecError(MirrorError):
    """Raised when the ADB tool fails to launch or exits non-zero"""

    def __init__(self, message: str, args: Optional[list] = None):
        super().__init__(message, code="ADB_EXEC_ERROR", details={"args": args or []})


class BridgeParseError(MirrorError):
    """Raised when ADB output has an unexpected shape"""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message, code="ADB_PARSE_ERROR", details={"line": line})


class NotFoundError(MirrorError):
    """Raised when a device, IP address or session cannot be found"""

    def __init__(self, message: str, code: str = "NOT_FOUND", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class DeviceNotFoundError(NotFoundError):
    """Raised when Android device is not found or disconnected"""

    def __init__(self, device_id: Optional[str] = None):
        message = (
            f"Device '{device_id}' not found or disconnected"
            if device_id
            else "No Android devices found"
        )
        super().__init__(message, code="DEVICE_NOT_FOUND", details={"device_id": device_id})


class DeviceIpNotFoundError(NotFoundError):
    """Raised when no usable source address appears in the device route table"""

    def __init__(self):
        super().__init__(ERROR_HINTS["no_wifi_ip"]["message"], code="DEVICE_IP_NOT_FOUND")


class SessionNotFoundError(NotFoundError):
    """Raised when a mirroring session is not tracked"""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session '{session_id}' not found",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id},
        )


class RegistryConflictError(MirrorError):
    """Raised when a caller misuses the session registry"""

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message, code="REGISTRY_CONFLICT", details={"session_id": session_id})


class DeviceUnreachableError(MirrorError):
    """Raised when `adb connect` reports the device cannot be reached"""

    def __init__(self, address: str, output: str = ""):
        super().__init__(
            f"Unable to connect to {address}. {ERROR_HINTS['unreachable']['hint']}",
            code="DEVICE_UNREACHABLE",
            details={"address": address, "output": output},
        )


class ConnectTimeoutError(MirrorError):
    """Raised when `adb connect` reports a timeout"""

    def __init__(self, address: str, output: str = ""):
        super().__init__(
            f"Connection to {address} timed out. {ERROR_HINTS['connect_timeout']['hint']}",
            code="CONNECT_TIMEOUT",
            details={"address": address, "output": output},
        )


class UnknownResponseError(MirrorError):
    """Raised when ADB answers with text that matches no known pattern"""

    def __init__(self, output: str):
        super().__init__(
            f"Unexpected response from ADB: {output}",
            code="UNKNOWN_RESPONSE",
            details={"output": output},
        )


class ProcessSpawnError(MirrorError):
    """Raised when the mirroring process cannot be started or stopped"""

    def __init__(self, message: str, device_id: Optional[str] = None):
        super().__init__(message, code="PROCESS_ERROR", details={"device_id": device_id})


class WirelessSetupError(MirrorError):
    """Raised when switching a device to wireless mode cannot complete"""

    def __init__(self, message: str, device_id: Optional[str] = None, reason: str = "failed"):
        super().__init__(
            message,
            code="WIRELESS_SETUP_ERROR",
            details={"device_id": device_id, "reason": reason},
        )


def create_error_response(
    error: Exception,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> JSONResponse:
    """
    Create a standardized error response

    Args:
        error: The exception that occurred
        status_code: HTTP status code

    Returns:
        JSONResponse with error details
    """
    error_response = {
        "success": False,
        "error": {"message": str(error), "type": error.__class__.__name__},
    }

    if isinstance(error, MirrorError):
        error_response["error"]["code"] = error.code
        error_response["error"]["details"] = error.details

    if status_code >= 500:
        logger.error(f"{error.__class__.__name__}: {error}")
    else:
        logger.warning(f"{error.__class__.__name__}: {error}")

    return JSONResponse(status_code=status_code, content=error_response)


def handle_api_error(error: Exception) -> JSONResponse:
    """
    Handle API errors with appropriate status codes

    Args:
        error: The exception to handle

    Returns:
        JSONResponse with appropriate status code
    """
    if isinstance(error, NotFoundError):
        return create_error_response(error, status.HTTP_404_NOT_FOUND)

    elif isinstance(error, RegistryConflictError):
        return create_error_response(error, status.HTTP_409_CONFLICT)

    elif isinstance(error, ValueError):
        return create_error_response(error, status.HTTP_400_BAD_REQUEST)

    elif isinstance(error, (DeviceUnreachableError, BridgeExecError)):
        return create_error_response(error, status.HTTP_503_SERVICE_UNAVAILABLE)

    elif isinstance(error, ConnectTimeoutError):
        return create_error_response(error, status.HTTP_504_GATEWAY_TIMEOUT)

    elif isinstance(error, WirelessSetupError):
        return create_error_response(error, status.HTTP_422_UNPROCESSABLE_ENTITY)

    else:
        return create_error_response(error, status.HTTP_500_INTERNAL_SERVER_ERROR)


def handle_errors(func):
    """
    Decorator that turns any exception escaping a route into an error response

    MirrorError subclasses map to their status codes; anything else is logged
    with its traceback and returned as a 500.

    Usage:
        @router.get("/things")
        @handle_errors
        async def my_endpoint():
            ...
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except MirrorError as e:
            return handle_api_error(e)
        except Exception as e:
            logger.exception(f"[API] Unexpected error in {func.__name__}: {e}")
            return handle_api_error(e)

    return wrapper


def create_success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a standardized success response

    Usage:
        return create_success_response(data={"devices": devices})
        return create_success_response(message="Settings saved")
    """
    response = {"success": True}

    if data is not None:
        response["data"] = data

    if message is not None:
        response["message"] = message

    return response
