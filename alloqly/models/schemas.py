"""
Pydantic schemas for request/response validation.

Request bodies keep the camelCase keys the web client already sends
(``studentEmail``, ``learnerProfile`` ...) via field aliases.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    ai: str
    timestamp: datetime
    version: str = "0.1.0"


class ClientConfigResponse(BaseModel):
    hasAIKey: bool


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionMeta(BaseModel):
    """Metadata about an extracted upload."""

    fileName: str
    mimeType: str
    wordCount: int
    snippet: str
    format: str


class ExtractionResponse(BaseModel):
    text: str
    meta: ExtractionMeta


# ---------------------------------------------------------------------------
# Remodel / grade / chat
# ---------------------------------------------------------------------------

class RemodelRequest(BaseModel):
    """Body of POST /api/remodel. Validation happens in the handler."""

    assignment: Optional[Any] = None
    profile: Optional[str] = None
    assignment_id: Optional[str] = None


class RemodelResponse(BaseModel):
    variant: str
    summary: str
    accommodations: List[str]
    missions: List[str]
    source: Literal["openai", "mock"]
    variant_id: Optional[str] = None


class GradeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission: Optional[Any] = None
    assignment: Optional[str] = None
    learner_profile: Optional[str] = Field(None, alias="learnerProfile")
    submission_id: Optional[str] = None


class RubricRow(BaseModel):
    label: str
    score: float
    of: float
    note: str = ""


class GradeResponse(BaseModel):
    score: float
    rubric: List[RubricRow]
    summary: str
    next_steps: List[str]
    source: Literal["openai"] = "openai"
    submission_id: Optional[str] = None


class ChatRequest(BaseModel):
    prompt: Optional[str] = None
    disability: Optional[str] = None


class ChatResponse(BaseModel):
    output: str
    persona: str


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

class AccommodationPayload(BaseModel):
    selections: List[str] = []
    notes: str = ""


class ProfilePayload(BaseModel):
    """Onboarding body. Field-level checks live in the handler for exact messages."""

    model_config = ConfigDict(populate_by_name=True)

    role: Optional[str] = None
    school_name: Optional[str] = Field(None, alias="schoolName")
    district: Optional[str] = None
    subjects: Optional[List[str]] = None
    grades_taught: Optional[List[str]] = Field(None, alias="gradesTaught")
    grade_level: Optional[str] = Field(None, alias="gradeLevel")
    preferred_grading_scale: Optional[str] = Field(None, alias="preferredGradingScale")
    accommodations: Optional[AccommodationPayload] = None


class ProfileResponse(BaseModel):
    id: str
    role: str
    school_name: str
    district: Optional[str] = None
    subjects: List[str] = []
    grades_taught: List[str] = []
    grade_level: Optional[str] = None
    preferred_grading_scale: Optional[str] = None
    accommodations: Dict[str, Any] = {}
    is_onboarded: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileEnvelope(BaseModel):
    profile: Optional[ProfileResponse] = None


class DeleteAccountRequest(BaseModel):
    confirm: bool = False


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

class ClassCreateRequest(BaseModel):
    name: Optional[str] = None
    section: Optional[str] = None
    description: Optional[str] = None


class ClassResponse(BaseModel):
    id: str
    name: str
    section: Optional[str] = None
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    created_at: Optional[datetime] = None
    student_count: int = 0
    assignment_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class ClassListResponse(BaseModel):
    classes: List[ClassResponse]


class ClassEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_: ClassResponse = Field(..., alias="class")


class JoinCodeResponse(BaseModel):
    code: Optional[str] = None
    expires_at: Optional[datetime] = None


class InviteRequest(BaseModel):
    email: Optional[str] = None


class InviteClassRef(BaseModel):
    id: str
    name: str


class InviteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    status: str
    created_at: datetime
    class_: InviteClassRef = Field(..., alias="class")


class InviteEnvelope(BaseModel):
    invite: InviteResponse


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

class StudentResponse(BaseModel):
    id: str
    name: str
    email: str
    profile: Optional[str] = None
    accommodations: List[str] = []
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class StudentCreateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    profile: Optional[str] = None
    status: Optional[str] = None
    accommodations: List[str] = []


class StudentStatusUpdate(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None


class StudentListResponse(BaseModel):
    students: List[StudentResponse]
    source: Literal["supabase", "fallback"]


class StudentEnvelope(BaseModel):
    student: Dict[str, Any]
    source: Literal["supabase", "fallback"]


class ClassDetailResponse(ClassResponse):
    students: List[StudentResponse] = []
    assignments: List["AssignmentResponse"] = []


# ---------------------------------------------------------------------------
# Join class
# ---------------------------------------------------------------------------

class JoinClassRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    student_email: Optional[str] = Field(None, alias="studentEmail")
    student_name: Optional[str] = Field(None, alias="studentName")


class JoinedStudent(BaseModel):
    id: str
    name: str
    email: str


class JoinClassroomRef(BaseModel):
    classroomName: str
    teacherId: str


class JoinClassResponse(BaseModel):
    class_id: str
    class_code: str
    classroom: JoinClassroomRef
    student: JoinedStudent
    expires_at: datetime
    source: str = "supabase"


class QuickCodeClassroomRef(BaseModel):
    classroomName: str
    teacher: Optional[str] = None


class QuickCodeResponse(BaseModel):
    code: str
    class_id: str
    classroom: QuickCodeClassroomRef
    expires_in_minutes: int
    source: str = "supabase"


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------

class AssignmentCreateRequest(BaseModel):
    title: Optional[str] = None
    profile: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    class_id: Optional[str] = None
    due_date: Optional[datetime] = None


class AssignmentResponse(BaseModel):
    id: str
    title: str
    profile: str
    summary: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    class_id: Optional[str] = None
    due_date: Optional[datetime] = None
    created_at: datetime


class AssignmentListResponse(BaseModel):
    assignments: List[AssignmentResponse]
    source: str = "supabase"


class AssignmentEnvelope(BaseModel):
    assignment: AssignmentResponse
    source: str = "supabase"


class VariantResponse(BaseModel):
    id: str
    assignment_id: Optional[str] = None
    student_id: Optional[str] = None
    persona: str
    summary: Optional[str] = None
    accommodations: List[str] = []
    missions: List[str] = []
    content: Optional[str] = None
    source: str
    created_at: datetime


class VariantListResponse(BaseModel):
    variants: List[VariantResponse]


# ---------------------------------------------------------------------------
# Personalisation
# ---------------------------------------------------------------------------

class PersonalizeRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    learning_targets: Optional[str] = None
    material: Optional[str] = None
    file_name: Optional[str] = None


class StudentDraft(BaseModel):
    student_id: str
    student_name: str
    persona: str
    status: Literal["done", "error"]
    output: Optional[str] = None
    error: Optional[str] = None
    variant_id: Optional[str] = None


class PersonalizeResponse(BaseModel):
    assignment_id: str
    completed: int
    failed: int
    drafts: List[StudentDraft]


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

class SubmissionCreateRequest(BaseModel):
    assignment_id: Optional[str] = None
    student_id: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None


class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    content: str
    status: str
    score: Optional[float] = None
    graded: bool = False
    feedback: Optional[Dict[str, Any]] = None
    created_at: datetime


class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionResponse]
    source: Literal["supabase", "fallback"]


class SubmissionEnvelope(BaseModel):
    submission: SubmissionResponse
    source: Literal["supabase", "fallback"]


ClassDetailResponse.model_rebuild()
