from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Tuple
import logging
import math

from fastapi import HTTPException, status
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import table_exists
from ..core.security import UserRole, STAFF_ROLES
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"today": 1, "week": 7, "month": 30, "year": 365}

CORE_TABLES = (
    "users", "patients", "doctors", "pharmacists", "lab_technicians",
    "appointments", "prescriptions", "prescription_items", "lab_tests", "notifications",
)


def clamp_period(period) -> str:
    period = str(period or "").lower()
    return period if period in PERIOD_DAYS else "month"


def period_range(period: str, today: date = None) -> Tuple[date, date, date, date]:
    """Return (start, end, previous_start, previous_end) for a period ending today."""
    days = PERIOD_DAYS[period]
    end = today or date.today()
    start = end - timedelta(days=days - 1)
    prev_end = start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=days - 1)
    return start, end, prev_start, prev_end


def _round_half_up(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def percent_change(current, previous) -> Dict[str, str]:
    current = float(current or 0)
    previous = float(previous or 0)
    if previous <= 0:
        if current <= 0:
            return {"trend": "stable", "value": "0%"}
        return {"trend": "up", "value": "+100%"}

    rounded = _round_half_up((current - previous) / previous * 100)
    if abs(rounded) < 0.05:
        return {"trend": "stable", "value": "0%"}
    sign = "+" if rounded > 0 else ""
    return {
        "trend": "up" if rounded > 0 else "down",
        "value": f"{sign}{_format_number(rounded)}%",
    }


def _card(change: Dict[str, str]) -> Dict[str, str]:
    return {"trend": change["trend"], "trendValue": change["value"]}


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def analytics(self, period: str = None) -> Dict[str, Any]:
        period = clamp_period(period)
        start, end, prev_start, prev_end = period_range(period)

        total_patients = self._count_users(roles=[UserRole.PATIENT.value])
        total_staff = self._count_users(roles=STAFF_ROLES)
        total_appointments = self.db.query(func.count(Appointment.id)).scalar() or 0

        totals = self._appointment_totals(start, end)
        totals_prev = self._appointment_totals(prev_start, prev_end)

        completion_rate = self._rate(totals["completed"], totals["total"])
        cancel_rate = self._rate(totals["cancelled"], totals["total"])
        completion_rate_prev = self._rate(totals_prev["completed"], totals_prev["total"])

        new_patients = self._count_users([UserRole.PATIENT.value], start, end)
        new_patients_prev = self._count_users([UserRole.PATIENT.value], prev_start, prev_end)
        new_staff = self._count_users(STAFF_ROLES, start, end)
        new_staff_prev = self._count_users(STAFF_ROLES, prev_start, prev_end)

        labels, counts = self._trend(period, start, end)

        recent = NotificationService(self.db).recent_for_role(UserRole.ADMIN.value, limit=10)

        return {
            "period": period,
            "range": {"start": start.isoformat(), "end": end.isoformat()},
            "kpis": {
                "totalPatients": total_patients,
                "totalStaff": total_staff,
                "totalAppointments": total_appointments,
                "completionRate": completion_rate,
                "cancelRate": cancel_rate,
                "inPeriod": {
                    "appointments": totals["total"],
                    "completed": totals["completed"],
                    "cancelled": totals["cancelled"],
                    "newPatients": new_patients,
                    "newStaff": new_staff,
                },
            },
            "trends": {"appointments": {"labels": labels, "data": counts}},
            "distributions": {"appointmentStatus": self._status_counts(start, end)},
            "cards": {
                "patients": _card(percent_change(new_patients, new_patients_prev)),
                "staff": _card(percent_change(new_staff, new_staff_prev)),
                "appointments": _card(percent_change(totals["total"], totals_prev["total"])),
                "completionRate": _card(percent_change(completion_rate, completion_rate_prev)),
            },
            "recentActivity": [
                {
                    "id": str(n.id),
                    "type": n.type or "system",
                    "title": n.title or "Notification",
                    "message": n.message or "",
                    "created_at": n.created_at,
                }
                for n in recent
            ],
        }

    def system_status(self) -> Dict[str, Any]:
        started = datetime.utcnow()
        try:
            self.db.execute(text("SELECT 1"))
            latency_ms = int((datetime.utcnow() - started).total_seconds() * 1000)

            active_sessions = self.db.query(func.count(User.id)).filter(
                User.is_active.is_(True)
            ).scalar() or 0
            pending_approvals = self.db.query(func.count(Appointment.id)).filter(
                Appointment.status.in_([
                    AppointmentStatus.PENDING.value,
                    AppointmentStatus.CANCEL_REQUESTED.value,
                ])
            ).scalar() or 0
            pending_cancellations = self.db.query(func.count(Appointment.id)).filter(
                Appointment.status == AppointmentStatus.CANCEL_REQUESTED.value
            ).scalar() or 0
        except SQLAlchemyError as exc:
            logger.exception("Error fetching system status")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch system status"
            ) from exc

        return {
            "db": {"connected": True, "latencyMs": latency_ms},
            "activeSessions": active_sessions,
            "pendingApprovals": pending_approvals,
            "breakdown": {"pendingCancellationApprovals": pending_cancellations},
            "tables": {name: table_exists(name) for name in CORE_TABLES},
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

    def _count_users(self, roles, start: date = None, end: date = None) -> int:
        query = self.db.query(func.count(User.id)).filter(User.role.in_(list(roles)))
        if start is not None and end is not None:
            query = query.filter(
                User.created_at >= datetime.combine(start, time.min),
                User.created_at < datetime.combine(end + timedelta(days=1), time.min),
            )
        return query.scalar() or 0

    def _in_range(self, query, start: date, end: date):
        return query.filter(Appointment.appointment_date.between(start, end))

    def _appointment_totals(self, start: date, end: date) -> Dict[str, int]:
        counts = self._status_counts(start, end)
        return {
            "total": sum(counts.values()),
            "completed": counts.get(AppointmentStatus.COMPLETED.value, 0),
            "cancelled": counts.get(AppointmentStatus.CANCELLED.value, 0),
        }

    def _status_counts(self, start: date, end: date) -> Dict[str, int]:
        rows = self._in_range(
            self.db.query(Appointment.status, func.count(Appointment.id)), start, end
        ).group_by(Appointment.status).all()
        return {str(row[0] or "unknown"): int(row[1]) for row in rows}

    def _trend(self, period: str, start: date, end: date):
        days = self._in_range(self.db.query(Appointment.appointment_date), start, end).all()

        # Month buckets for a year, day buckets otherwise
        buckets = OrderedDict()
        label_format = "%b" if period == "year" else "%b %d"
        for (day,) in sorted(days, key=lambda row: row[0]):
            key = (day.year, day.month) if period == "year" else day
            if key not in buckets:
                buckets[key] = [day.strftime(label_format), 0]
            buckets[key][1] += 1

        labels = [label for label, _ in buckets.values()]
        counts = [count for _, count in buckets.values()]
        return labels, counts

    @staticmethod
    def _rate(part: int, total: int) -> float:
        return (part / total) * 100 if total > 0 else 0
