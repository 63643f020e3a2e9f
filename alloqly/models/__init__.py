"""Database and schema models for Alloqly."""
from alloqly.models.database_models import (
    User,
    Profile,
    Classroom,
    ClassroomCode,
    ClassInvitation,
    Student,
    ClassStudent,
    Assignment,
    AssignmentVariant,
    Submission,
    UserRole,
    InvitationStatus,
    VariantSource,
)
from alloqly.models.schemas import (
    HealthCheckResponse,
    ExtractionResponse,
    RemodelResponse,
    GradeResponse,
    ProfileResponse,
    ClassResponse,
    StudentResponse,
    AssignmentResponse,
    SubmissionResponse,
)

__all__ = [
    # Database models
    "User",
    "Profile",
    "Classroom",
    "ClassroomCode",
    "ClassInvitation",
    "Student",
    "ClassStudent",
    "Assignment",
    "AssignmentVariant",
    "Submission",
    "UserRole",
    "InvitationStatus",
    "VariantSource",
    # Pydantic schemas
    "HealthCheckResponse",
    "ExtractionResponse",
    "RemodelResponse",
    "GradeResponse",
    "ProfileResponse",
    "ClassResponse",
    "StudentResponse",
    "AssignmentResponse",
    "SubmissionResponse",
]
