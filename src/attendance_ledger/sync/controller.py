from __future__ import annotations

from flask import Flask, jsonify

from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.data_service

    def _status() -> dict:
        return {
            "state": service.state.value,
            "stale": service.is_stale,
            "syncing": service.is_syncing,
            "pendingWrites": container.dispatcher.pending,
        }

    @app.route("/api/state", methods=["GET"], endpoint="api_state")
    def api_state():
        return jsonify({"success": True, "sync": _status(), "data": service.snapshot().to_cache_blob()})

    @app.route("/api/refresh", methods=["POST"], endpoint="api_refresh")
    def api_refresh():
        # Fire-and-forget: the client polls /api/state to see the result.
        container.dispatcher.submit(service.refresh(), label="manual refresh")
        return jsonify({"success": True, "sync": _status()}), 202
