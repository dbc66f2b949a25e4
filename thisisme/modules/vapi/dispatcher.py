from supabase import Client
from typing import Any, Dict, Optional, Tuple
from thisisme.core.security import verify_token
from thisisme.modules.vapi.sessions import VapiSessionStore
from thisisme.modules.vapi.tools import VapiTools, ToolError
from thisisme.modules.vapi.webhook_log import WebhookLog
import json
import logging

logger = logging.getLogger(__name__)

FRIENDLY_ERROR = "Sorry, I had trouble with that. Could you try again?"

ACKNOWLEDGED_TYPES = ("call-start", "call-end", "transcript")


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_arguments(arguments: Any) -> Dict[str, Any]:
    """Tool-call arguments arrive either as an object or as a JSON-encoded string."""
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str) and arguments.strip():
        try:
            parsed = json.loads(arguments)
        except ValueError:
            logger.warning("Unparseable tool-call arguments")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


class VapiWebhookDispatcher:
    def __init__(self, supabase: Client, log: WebhookLog, tools: Optional[VapiTools] = None,
                 sessions: Optional[VapiSessionStore] = None):
        self.supabase = supabase
        self.log = log
        self.tools = tools or VapiTools(supabase)
        self.sessions = sessions or VapiSessionStore(supabase)

    def resolve_user_id(self, body: Dict[str, Any], token: Optional[str] = None,
                        user_id: Optional[str] = None, session_id: Optional[str] = None) -> Optional[str]:
        if token:
            payload = verify_token(token)
            if payload:
                return payload["userId"]
            logger.warning("VAPI webhook token rejected")
        if user_id:
            return user_id

        call = body.get("call") or _dig(body, "message", "call") or {}
        session_id = session_id or _dig(call, "metadata", "sessionId")
        if session_id:
            resolved = self.sessions.get_user_id(session_id)
            if resolved:
                return resolved

        for path in (("customer", "userId"), ("metadata", "userId"), ("customerData", "userId"),
                     ("user", "id"), ("userId",)):
            value = _dig(call, *path)
            if value:
                return value
        return None

    def run_tool(self, name: str, parameters: Dict[str, Any], user_id: Optional[str]) -> Tuple[int, Dict[str, Any]]:
        try:
            return 200, self.tools.run(name, parameters, user_id)
        except ToolError as e:
            return e.status_code, e.to_response()
        except Exception as e:
            logger.error(f"Assistant tool {name} failed: {e}")
            return 500, {"error": "Internal server error", "result": FRIENDLY_ERROR}

    def handle(self, body: Dict[str, Any], token: Optional[str] = None, user_id: Optional[str] = None,
               session_id: Optional[str] = None) -> Tuple[int, Dict[str, Any]]:
        """Return the HTTP status and JSON body for one webhook delivery"""
        event_type = body.get("type")
        message = body.get("message") if isinstance(body.get("message"), dict) else None
        self.log.add(event_type or (message or {}).get("type") or "unknown", body)
        resolved = self.resolve_user_id(body, token, user_id, session_id)

        if event_type == "function-call":
            call = body.get("functionCall") or {}
            return self.run_tool(call.get("name"), parse_arguments(call.get("parameters")), resolved)
        if event_type:
            if event_type not in ACKNOWLEDGED_TYPES:
                logger.info(f"Unhandled VAPI event type {event_type}")
            return 200, {"success": True}

        if message and message.get("type") == "tool-calls":
            return 200, {"results": self._run_tool_calls(message, resolved)}
        if message and message.get("type") == "function-call":
            call = message.get("functionCall") or {}
            return self.run_tool(call.get("name"), parse_arguments(call.get("parameters")), resolved)
        if message:
            return 200, {"success": True, "message": f"Message type {message.get('type')} acknowledged"}
        return 200, {"success": True, "message": "Event type undefined but handled gracefully"}

    def _run_tool_calls(self, message: Dict[str, Any], user_id: Optional[str]):
        results = []
        for call in message.get("toolCallList") or message.get("toolCalls") or []:
            function = call.get("function") or {}
            _, response = self.run_tool(function.get("name"), parse_arguments(function.get("arguments")), user_id)
            results.append({"toolCallId": call.get("id"), "result": response.get("result", FRIENDLY_ERROR)})
        return results
