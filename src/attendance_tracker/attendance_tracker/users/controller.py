from __future__ import annotations

import base64
import json

from flask import Flask, g, request

from ..api.guards import client_address, json_body, query_args, roles_required, token_required
from ..api.responses import ok, pagination
from ..api.serializers import day_state_to_dict, organization_brief, user_to_dict
from ..core.enums import AdminAction, Role
from ..core.exceptions import ValidationError
from ..container import Container
from .access import ADMIN_ROLES, MANAGER_ROLES
from .service import ADMIN_ACTION_MESSAGES


def _face_upload() -> tuple[object, str | None]:
    """Descriptor and base64 image from either a JSON body or a multipart form."""
    upload = request.files.get("faceImage") or request.files.get("photo")
    if upload is not None:
        raw = request.form.get("faceDescriptors")
        try:
            descriptor = json.loads(raw) if raw else None
        except ValueError:
            raise ValidationError("Face descriptors must be a JSON array")
        return descriptor, base64.b64encode(upload.read()).decode("ascii")
    data = json_body()
    return data.get("face_descriptors"), data.get("face_image")


def register(app: Flask, container: Container) -> None:
    # ---- auth -------------------------------------------------------------

    def _session_payload(user, org=None) -> dict:
        return {
            "user": user_to_dict(user),
            "organization": organization_brief(org),
            "token": container.token_service.issue(user.user_id),
        }

    @app.route("/api/auth/register", methods=["POST"], endpoint="auth_register")
    def auth_register():
        user, org = container.user_service.register(json_body())
        return ok(
            _session_payload(user, org),
            "Registration successful. Please wait for admin approval.",
            201,
        )

    @app.route("/api/auth/register-with-org", methods=["POST"], endpoint="auth_register_with_org")
    def auth_register_with_org():
        user, org = container.user_service.register_with_organization(json_body())
        return ok(
            _session_payload(user, org),
            "Registration successful. Please wait for admin approval.",
            201,
        )

    @app.route("/api/auth/register-organization", methods=["POST"], endpoint="auth_register_organization")
    def auth_register_organization():
        data = json_body()
        org, manager, email_sent = container.user_service.register_organization(
            data.get("organization_data"), data.get("manager_data")
        )
        payload = _session_payload(manager, org)
        payload["email_sent"] = email_sent
        return ok(payload, "Organization and admin account created successfully", 201)

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def auth_login():
        container.login_limiter.hit(client_address())
        data = json_body()
        user = container.auth_service.authenticate(data.get("email"), data.get("password"))
        return ok(_session_payload(user), "Login successful")

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    @token_required
    def auth_logout():
        return ok(message="Logged out successfully")

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @token_required
    def auth_me():
        return ok({"user": user_to_dict(g.current_user)})

    @app.route("/api/auth/verify-token", methods=["POST"], endpoint="auth_verify_token")
    @token_required
    def auth_verify_token():
        return ok({"user": user_to_dict(g.current_user)}, "Token is valid")

    @app.route("/api/auth/profile", methods=["PUT"], endpoint="auth_profile")
    @token_required
    def auth_profile():
        user = container.user_service.update_profile(g.current_user, g.current_user.user_id, json_body())
        return ok({"user": user_to_dict(user)}, "Profile updated successfully")

    @app.route("/api/auth/change-password", methods=["PATCH", "PUT"], endpoint="auth_change_password")
    @token_required
    def auth_change_password():
        data = json_body()
        container.auth_service.change_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
            data.get("confirm_password"),
        )
        return ok(message="Password changed successfully")

    @app.route("/api/auth/forgot-password", methods=["POST"], endpoint="auth_forgot_password")
    def auth_forgot_password():
        sent = container.auth_service.forgot_password(json_body().get("email"))
        message = "Password reset link sent to your email" if sent else (
            "Password reset token created, but the email could not be delivered"
        )
        return ok({"email_sent": sent}, message)

    @app.route("/api/auth/reset-password/<token>", methods=["PATCH", "POST"], endpoint="auth_reset_password")
    def auth_reset_password(token: str):
        data = json_body()
        user = container.auth_service.reset_password(token, data.get("password"), data.get("confirm_password"))
        return ok(_session_payload(user), "Password reset successful")

    @app.route("/api/auth/enroll-face", methods=["POST"], endpoint="auth_enroll_face")
    @app.route("/api/auth/upload-face-base64", methods=["POST"], endpoint="auth_upload_face_base64")
    @token_required
    def auth_enroll_face():
        descriptor, image = _face_upload()
        user = container.user_service.enroll_face(g.current_user, descriptor, image)
        return ok(
            {
                "face_enrolled": user.face_enrolled,
                "total_samples": len(user.face_descriptors),
                "image_url": user.face_images[-1].url if user.face_images else None,
            },
            "Face enrolled successfully",
        )

    # ---- users ------------------------------------------------------------

    @app.route("/api/users/profile/<int:user_id>", methods=["GET"], endpoint="users_profile")
    @token_required
    def users_profile(user_id: int):
        user = container.user_service.get_profile(g.current_user, user_id)
        return ok({"user": user_to_dict(user)})

    @app.route("/api/users/profile/<int:user_id>", methods=["PUT"], endpoint="users_profile_update")
    @token_required
    def users_profile_update(user_id: int):
        user = container.user_service.update_profile(g.current_user, user_id, json_body())
        return ok({"user": user_to_dict(user)}, "Profile updated successfully")

    @app.route("/api/users/all", methods=["GET"], endpoint="users_all")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def users_all():
        filters = query_args()
        rows, total = container.user_service.list_users(g.current_user, filters)
        page = int(filters.get("page") or 1)
        limit = int(filters.get("limit") or 20)
        users = [dict(user_to_dict(r["user"]), today_attendance=day_state_to_dict(r["today"])) for r in rows]
        return ok({"users": users, "pagination": pagination(total, page, limit)})

    @app.route("/api/users/<int:user_id>/admin-action", methods=["POST"], endpoint="users_admin_action")
    @token_required
    @roles_required(*ADMIN_ROLES)
    def users_admin_action(user_id: int):
        data = json_body()
        action = data.get("action")
        user = container.user_service.perform_admin_action(g.current_user, user_id, action, data.get("reason"))
        return ok({"user": user_to_dict(user)}, ADMIN_ACTION_MESSAGES[AdminAction(action)])

    @app.route("/api/users/departments", methods=["GET"], endpoint="users_departments")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def users_departments():
        return ok({"departments": container.user_service.list_departments(g.current_user)})

    @app.route("/api/users/stats", methods=["GET"], endpoint="users_stats")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def users_stats():
        return ok(container.reporting_service.user_stats(g.current_user))

    @app.route("/api/users/pending-approval", methods=["GET"], endpoint="users_pending_approval")
    @token_required
    @roles_required(Role.ADMIN, Role.HR, Role.SUPER_ADMIN)
    def users_pending_approval():
        users = container.user_service.pending_approval(g.current_user)
        return ok({"users": [user_to_dict(u) for u in users], "count": len(users)})

    @app.route("/api/users/<int:user_id>", methods=["DELETE"], endpoint="users_delete")
    @token_required
    @roles_required(*ADMIN_ROLES)
    def users_delete(user_id: int):
        container.user_service.delete_user(g.current_user, user_id)
        return ok(message="User deleted successfully")
