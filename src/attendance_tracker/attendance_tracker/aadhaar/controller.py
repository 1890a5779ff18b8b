from __future__ import annotations

from flask import Flask, g

from ..api.guards import json_body, token_required
from ..api.responses import ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/aadhaar/send-otp", methods=["POST"], endpoint="aadhaar_send_otp")
    @token_required
    def aadhaar_send_otp():
        data = container.aadhaar_service.send_otp(g.current_user, json_body().get("aadhaar_number"))
        return ok(data, "OTP sent successfully to your Aadhaar registered mobile number")

    @app.route("/api/aadhaar/verify-otp", methods=["POST"], endpoint="aadhaar_verify_otp")
    @token_required
    def aadhaar_verify_otp():
        body = json_body()
        data = container.aadhaar_service.verify_otp(g.current_user, body.get("aadhaar_number"), body.get("otp"))
        return ok(data, "Aadhaar verification completed successfully")

    @app.route("/api/aadhaar/status", methods=["GET"], endpoint="aadhaar_status")
    @token_required
    def aadhaar_status():
        return ok(container.aadhaar_service.status(g.current_user))

    @app.route("/api/aadhaar/unlink", methods=["DELETE"], endpoint="aadhaar_unlink")
    @token_required
    def aadhaar_unlink():
        container.aadhaar_service.unlink(g.current_user)
        return ok(message="Aadhaar unlinked successfully")
