# -*- coding: utf-8 -*-
"""
api_handler.py - HTTP endpoints for dashboards and scripts

Responsibilities:
- Expose every pystove service as POST /api/appdaemon/pystove_<name>
- Map service responses to HTTP status codes (200 / 400 / 500)
- Provide a combined status endpoint
"""

import traceback
from typing import Any, Callable, Dict, Tuple

Response = Tuple[Dict[str, Any], int]


class APIHandler:
    """Registers AppDaemon endpoints that forward to the ServiceHandler."""

    # endpoint name -> ServiceHandler method name
    ENDPOINTS = {
        "pystove_set_scheduler_enabled": "svc_set_scheduler_enabled",
        "pystove_exit_semi_manual": "svc_exit_semi_manual",
        "pystove_get_mode": "svc_get_mode",
        "pystove_get_day": "svc_get_day",
        "pystove_get_week": "svc_get_week",
        "pystove_save_day": "svc_save_day",
        "pystove_list_schedules": "svc_list_schedules",
        "pystove_create_schedule": "svc_create_schedule",
        "pystove_set_active_schedule": "svc_set_active_schedule",
        "pystove_get_next_change": "svc_get_next_change",
        "pystove_get_maintenance_status": "svc_get_maintenance_status",
        "pystove_confirm_cleaning": "svc_confirm_cleaning",
        "pystove_set_target_hours": "svc_set_target_hours",
        "pystove_ignite": "svc_ignite",
        "pystove_shutdown": "svc_shutdown",
        "pystove_set_levels": "svc_set_levels",
        "pystove_reload_config": "svc_reload_config",
    }

    def __init__(self, ad, service_handler):
        """Initialize the API handler.

        Args:
            ad: AppDaemon API reference
            service_handler: ServiceHandler whose svc_* methods back the endpoints
        """
        self.ad = ad
        self.service_handler = service_handler

    def register_all(self) -> None:
        for name, method_name in self.ENDPOINTS.items():
            callback = getattr(self.service_handler, method_name)
            self.ad.register_endpoint(self._make_endpoint(callback), name)
        self.ad.register_endpoint(self.api_get_status, "pystove_get_status")
        self.ad.log(f"Registered {len(self.ENDPOINTS) + 1} PyStove HTTP endpoints")

    def _make_endpoint(self, callback: Callable) -> Callable:
        def endpoint(namespace, data: Dict[str, Any]) -> Response:
            # AppDaemon passes the decoded JSON body as the first argument
            body = dict(namespace) if isinstance(namespace, dict) else {}
            body.setdefault('actor', 'api')
            return self._handle_request(callback, body)
        return endpoint

    def _handle_request(self, callback: Callable, body: Dict[str, Any]) -> Response:
        """Run a service callback and pick the HTTP status from its result."""
        try:
            result = callback("api", "pystove", "api", body)
        except Exception as e:
            return self._internal_error(e)

        if not isinstance(result, dict):
            return {"success": True}, 200
        return result, 200 if result.get("success", True) else 400

    def _internal_error(self, e: Exception) -> Response:
        self.ad.log(f"HTTP request failed: {e}", level="ERROR")
        self.ad.log(f"Traceback: {traceback.format_exc()}", level="ERROR")
        return {"success": False, "error": str(e)}, 500

    def api_get_status(self, namespace, data: Dict[str, Any]) -> Response:
        """POST /api/appdaemon/pystove_get_status - mode, maintenance, schedule and last tick."""
        handler = self.service_handler
        try:
            return {
                "success": True,
                "mode": handler.svc_get_mode("api", "pystove", "api", {}),
                "maintenance": handler.svc_get_maintenance_status("api", "pystove", "api", {}),
                "schedule": handler.svc_get_next_change("api", "pystove", "api", {}),
                "last_tick": handler.controller.last_result,
            }, 200
        except Exception as e:
            return self._internal_error(e)
