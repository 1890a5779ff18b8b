from __future__ import annotations

import base64
import json
from datetime import date

from flask import Flask, g, request

from ..api.guards import client_address, json_body, query_args, roles_required, token_required
from ..api.responses import ok, pagination
from ..api.serializers import day_state_to_dict, event_to_dict, snakeize, user_brief
from ..common.datetime_utils import parse_iso_date
from ..core.exceptions import ValidationError
from ..reporting.service import timesheet_csv
from ..users.access import ADMIN_ROLES, MANAGER_ROLES
from ..container import Container
from .service import parse_mark_request


def _date_arg(value, field_name: str):
    if not value:
        return None
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must use YYYY-MM-DD format")


def _mark_payload() -> tuple[dict, str | None]:
    """Mark fields plus optional photo, from multipart form or JSON."""
    upload = request.files.get("photo")
    if upload is not None:
        data = snakeize(request.form.to_dict())
        if isinstance(data.get("location"), str):
            try:
                data["location"] = json.loads(data["location"])
            except ValueError:
                raise ValidationError("Location must be a JSON object")
        return data, base64.b64encode(upload.read()).decode("ascii")
    data = json_body()
    return data, data.get("photo") or data.get("face_image")


def register(app: Flask, container: Container) -> None:
    def _with_users(events) -> list[dict]:
        owners = container.users_repo.get_many(e.user_id for e in events)
        return [event_to_dict(e, owners.get(e.user_id)) for e in events]

    @app.route("/api/attendance/mark", methods=["POST"], endpoint="attendance_mark")
    @token_required
    def attendance_mark():
        data, image = _mark_payload()
        mark_request = parse_mark_request(
            data,
            image=image,
            ip_address=client_address(),
            user_agent=request.headers.get("User-Agent"),
        )
        event = container.attendance_service.mark(g.current_user, mark_request)
        state = container.attendance_service.today_state(g.current_user)
        label = event.event_type.value.replace("-", " ")
        return ok(
            {"attendance": event_to_dict(event), "today": day_state_to_dict(state)},
            f"{label[:1].upper()}{label[1:]} recorded successfully",
            201,
        )

    @app.route("/api/attendance/my-history", methods=["GET"], endpoint="attendance_my_history")
    @token_required
    def attendance_my_history():
        history = container.attendance_service.my_history(g.current_user, query_args())
        return ok(
            {
                "attendance": [event_to_dict(e) for e in history["events"]],
                "daily": history["daily"],
                "pagination": pagination(history["total"], history["page"], history["limit"]),
            }
        )

    @app.route("/api/attendance/all", methods=["GET"], endpoint="attendance_all")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def attendance_all():
        filters = query_args()
        user_ids = container.user_service.member_ids(
            g.current_user, department=filters.get("department"), search=filters.get("search")
        )
        events, total = container.attendance_service.list_events(g.current_user, filters, user_ids=user_ids)
        return ok(
            {
                "attendance": _with_users(events),
                "pagination": pagination(total, int(filters.get("page") or 1), int(filters.get("limit") or 20)),
            }
        )

    @app.route("/api/attendance/stats", methods=["GET"], endpoint="attendance_stats")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def attendance_stats():
        return ok(container.reporting_service.attendance_stats(g.current_user, query_args()))

    @app.route("/api/attendance/today-summary", methods=["GET"], endpoint="attendance_today_summary")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def attendance_today_summary():
        summary = container.reporting_service.today_summary(g.current_user)
        for row in summary["attendance"]:
            row["user"] = user_brief(row["user"])
        return ok(summary)

    @app.route("/api/attendance/by-date", methods=["GET"], endpoint="attendance_by_date")
    @token_required
    @roles_required(*MANAGER_ROLES)
    def attendance_by_date():
        args = query_args()
        rows = container.reporting_service.events_by_date(
            g.current_user, _date_arg(args.get("date"), "Date"), args.get("search")
        )
        return ok({"attendance": [event_to_dict(r["event"], r["user"]) for r in rows], "count": len(rows)})

    @app.route("/api/attendance/report", methods=["GET"], endpoint="attendance_report")
    @token_required
    def attendance_report():
        args = query_args()
        today = date.today()
        start = _date_arg(args.get("start_date") or args.get("start"), "Start date") or today.replace(day=1)
        end = _date_arg(args.get("end_date") or args.get("end"), "End date") or today
        user_id = args.get("user_id")
        data = container.reporting_service.build_timesheet(
            g.current_user,
            start=start,
            end=end,
            user_id=int(user_id) if user_id and str(user_id).isdigit() else None,
            department=args.get("department") or None,
        )

        if (args.get("format") or "").lower() == "csv":
            filename = f"timesheet_{start:%Y%m%d}_{end:%Y%m%d}.csv"
            return app.response_class(
                timesheet_csv(data).encode("utf-8-sig"),
                mimetype="text/csv",
                headers={"Content-Disposition": f"attachment; filename={filename}"},
            )
        return ok({"start_date": start, "end_date": end, "rows": data.rows, "summary": data.summary})

    @app.route("/api/attendance/<int:event_id>", methods=["PUT"], endpoint="attendance_update")
    @token_required
    @roles_required(*ADMIN_ROLES)
    def attendance_update(event_id: int):
        event = container.attendance_service.update_event(g.current_user, event_id, json_body())
        return ok({"attendance": event_to_dict(event)}, "Attendance updated successfully")

    @app.route("/api/attendance/<int:event_id>", methods=["DELETE"], endpoint="attendance_delete")
    @token_required
    @roles_required(*ADMIN_ROLES)
    def attendance_delete(event_id: int):
        container.attendance_service.delete_event(g.current_user, event_id)
        return ok(message="Attendance record deleted successfully")
