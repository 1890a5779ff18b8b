from __future__ import annotations

from flask import Flask, g

from ..api.guards import json_body, query_args, roles_required, token_required
from ..api.responses import ok, pagination
from ..api.serializers import day_state_to_dict, organization_to_dict, user_to_dict
from ..core.enums import Role
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/organizations", methods=["GET"], endpoint="organizations_list")
    @token_required
    @roles_required(Role.SUPER_ADMIN)
    def organizations_list():
        filters = query_args()
        orgs, total = container.organization_service.list_organizations(g.current_user, filters)
        return ok(
            {
                "organizations": [organization_to_dict(o) for o in orgs],
                "pagination": pagination(total, int(filters.get("page") or 1), int(filters.get("limit") or 20)),
            }
        )

    @app.route("/api/organizations", methods=["POST"], endpoint="organizations_create")
    @token_required
    @roles_required(Role.SUPER_ADMIN)
    def organizations_create():
        org = container.organization_service.create_organization(json_body(), g.current_user)
        return ok({"organization": organization_to_dict(org)}, "Organization created successfully", 201)

    @app.route("/api/organizations/global-stats", methods=["GET"], endpoint="organizations_global_stats")
    @token_required
    @roles_required(Role.SUPER_ADMIN)
    def organizations_global_stats():
        return ok(container.reporting_service.global_stats(g.current_user))

    @app.route("/api/organizations/by-invite/<code>", methods=["GET"], endpoint="organizations_by_invite")
    def organizations_by_invite(code: str):
        org = container.organization_service.resolve_invite(code)
        return ok(
            {
                "organization": {
                    "id": org.organization_id,
                    "name": org.name,
                    "type": org.org_type,
                    "description": org.description,
                }
            }
        )

    @app.route("/api/organizations/<int:organization_id>", methods=["GET"], endpoint="organizations_get")
    @token_required
    @roles_required(Role.SUPER_ADMIN, Role.ADMIN)
    def organizations_get(organization_id: int):
        org = container.organization_service.get_organization(g.current_user, organization_id)
        return ok({"organization": organization_to_dict(org)})

    @app.route("/api/organizations/<int:organization_id>", methods=["PUT"], endpoint="organizations_update")
    @token_required
    @roles_required(Role.SUPER_ADMIN)
    def organizations_update(organization_id: int):
        org = container.organization_service.update_organization(g.current_user, organization_id, json_body())
        return ok({"organization": organization_to_dict(org)}, "Organization updated successfully")

    @app.route("/api/organizations/<int:organization_id>", methods=["DELETE"], endpoint="organizations_delete")
    @token_required
    @roles_required(Role.SUPER_ADMIN)
    def organizations_delete(organization_id: int):
        container.organization_service.delete_organization(g.current_user, organization_id)
        return ok(message="Organization deleted successfully")

    @app.route("/api/organizations/<int:organization_id>/users", methods=["GET"], endpoint="organizations_users")
    @token_required
    @roles_required(Role.SUPER_ADMIN, Role.ADMIN)
    def organizations_users(organization_id: int):
        filters = dict(query_args(), organization_id=organization_id)
        rows, total = container.user_service.list_users(g.current_user, filters)
        users = [dict(user_to_dict(r["user"]), today_attendance=day_state_to_dict(r["today"])) for r in rows]
        return ok(
            {
                "users": users,
                "pagination": pagination(total, int(filters.get("page") or 1), int(filters.get("limit") or 20)),
            }
        )

    @app.route("/api/organizations/<int:organization_id>/stats", methods=["GET"], endpoint="organizations_stats")
    @token_required
    @roles_required(Role.SUPER_ADMIN, Role.ADMIN)
    def organizations_stats(organization_id: int):
        stats = container.reporting_service.organization_stats(g.current_user, organization_id)
        stats["organization"] = organization_to_dict(stats["organization"])
        return ok(stats)
