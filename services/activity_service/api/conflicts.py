"""
Conflict Audit API Endpoints

Report students whose active enrollments overlap in time.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from services.activity_service.api.dependencies import get_conflict_auditor
from services.activity_service.conflict_auditor import ConflictAuditor, ConflictReport

router = APIRouter()


class ConflictEntry(BaseModel):
    """One overlapping pair."""

    student: str | None
    first_activity_id: str
    second_activity_id: str
    description: str


class ConflictReportResponse(BaseModel):
    """Audit result."""

    has_conflicts: bool
    checked_students: int
    conflicts: list[ConflictEntry]
    summary: str


def _to_response(report: ConflictReport) -> ConflictReportResponse:
    return ConflictReportResponse(
        has_conflicts=report.has_conflicts,
        checked_students=report.checked_students,
        conflicts=[
            ConflictEntry(
                student=conflict.student,
                first_activity_id=str(conflict.existing.activity_id),
                second_activity_id=str(conflict.candidate.activity_id),
                description=conflict.description,
            )
            for conflict in report.conflicts
        ],
        summary=report.summary,
    )


@router.get("", response_model=ConflictReportResponse)
async def sweep_conflicts(
    auditor: ConflictAuditor = Depends(get_conflict_auditor),
) -> ConflictReportResponse:
    """Sweep every student's active enrollments for overlaps."""
    return _to_response(await auditor.sweep_all_conflicts())


@router.get("/{student}", response_model=ConflictReportResponse)
async def check_student(
    student: str,
    auditor: ConflictAuditor = Depends(get_conflict_auditor),
) -> ConflictReportResponse:
    """Overlaps among one student's active enrollments."""
    return _to_response(await auditor.check_student(student))
