"""
SQLAlchemy ORM models for the Alloqly database.
Table names mirror the Supabase schema the web client was built against.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Float,
    Boolean,
    Enum as SQLEnum,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from alloqly.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class UserRole(str, enum.Enum):
    """Role chosen during onboarding."""

    TEACHER = "teacher"
    STUDENT = "student"


class InvitationStatus(str, enum.Enum):
    """Lifecycle of an e-mail class invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"


class VariantSource(str, enum.Enum):
    """Where an assignment variant came from."""

    OPENAI = "openai"
    MOCK = "mock"


# Models
class User(Base):
    """User account (synced from Supabase auth)."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # Supabase auth user UUID
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    classes = relationship("Classroom", back_populates="teacher", cascade="all, delete-orphan")
    assignments = relationship("Assignment", back_populates="teacher", cascade="all, delete-orphan")


class Profile(Base):
    """Onboarding profile; one per user."""

    __tablename__ = "profiles"

    id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(SQLEnum(UserRole), nullable=False)
    school_name = Column(String(255), nullable=False)

    # Teacher-only
    district = Column(String(255), nullable=True)
    subjects = Column(JSON, nullable=False, default=list)
    grades_taught = Column(JSON, nullable=False, default=list)
    preferred_grading_scale = Column(String(64), nullable=True)

    # Student-only
    grade_level = Column(String(64), nullable=True)

    # {"selections": [...], "notes": "..."}
    accommodations = Column(JSON, nullable=False, default=dict)
    is_onboarded = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="profile")


class Classroom(Base):
    """A teacher's class."""

    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=_uuid)
    teacher_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    section = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    teacher = relationship("User", back_populates="classes")
    codes = relationship("ClassroomCode", back_populates="classroom", cascade="all, delete-orphan")
    invitations = relationship("ClassInvitation", back_populates="classroom", cascade="all, delete-orphan")
    memberships = relationship("ClassStudent", back_populates="classroom", cascade="all, delete-orphan")


class ClassroomCode(Base):
    """Short-lived join code for self-enrolment."""

    __tablename__ = "classroom_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(16), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    classroom = relationship("Classroom", back_populates="codes")


class ClassInvitation(Base):
    """E-mail invitation to a class, claimed when the student onboards."""

    __tablename__ = "class_invitations"

    id = Column(String(36), primary_key=True, default=_uuid)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    invite_email = Column(String(255), nullable=False, index=True)
    token = Column(String(64), nullable=False, unique=True)
    status = Column(SQLEnum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    classroom = relationship("Classroom", back_populates="invitations")


class Student(Base):
    """
    A learner record.

    Roster rows carry the owning ``teacher_id``; a self-onboarded student has
    ``teacher_id`` NULL and ``user_id`` set to their own account.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("teacher_id", "email", name="uq_students_teacher_email"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    teacher_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    persona = Column(String(32), nullable=True)  # Persona value
    accommodations = Column(JSON, nullable=False, default=list)
    status = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    memberships = relationship("ClassStudent", back_populates="student", cascade="all, delete-orphan")


class ClassStudent(Base):
    """Class membership (many-to-many between classes and students)."""

    __tablename__ = "class_students"

    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    classroom = relationship("Classroom", back_populates="memberships")
    student = relationship("Student", back_populates="memberships")


class Assignment(Base):
    """Assignment authored (or remodelled) by a teacher."""

    __tablename__ = "assignments"

    id = Column(String(36), primary_key=True, default=_uuid)
    teacher_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    persona = Column(String(32), nullable=False)
    summary = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Relationships
    teacher = relationship("User", back_populates="assignments")
    variants = relationship("AssignmentVariant", back_populates="assignment", cascade="all, delete-orphan")
    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan")


class AssignmentVariant(Base):
    """A persona-specific rewrite of an assignment produced by the model."""

    __tablename__ = "assignment_variants"

    id = Column(String(36), primary_key=True, default=_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=True, index=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="SET NULL"), nullable=True, index=True)
    persona = Column(String(32), nullable=False)
    summary = Column(Text, nullable=True)
    accommodations = Column(JSON, nullable=False, default=list)
    missions = Column(JSON, nullable=False, default=list)
    content = Column(Text, nullable=True)  # markdown draft for per-student variants
    source = Column(SQLEnum(VariantSource), nullable=False, default=VariantSource.OPENAI)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    assignment = relationship("Assignment", back_populates="variants")


class Submission(Base):
    """Student work submitted against an assignment."""

    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    status = Column(String(64), nullable=False, default="Submitted")

    # Grading
    score = Column(Float, nullable=True)
    graded = Column(Boolean, default=False, nullable=False)
    feedback = Column(JSON, nullable=True)  # rubric, summary, next_steps
    graded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    assignment = relationship("Assignment", back_populates="submissions")
