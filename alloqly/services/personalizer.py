"""
Per-student assignment drafts for a whole class roster.

For every rostered student the persona is taken from the student record
(or inferred from their accommodations), a draft prompt is assembled from
the class, the assignment material and the student's needs, and the model
writes a markdown draft. Students are processed one after another; a
failure for one student is recorded and the batch carries on.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.config import settings
from alloqly.models.database_models import (
    Assignment,
    AssignmentVariant,
    Classroom,
    Student,
    VariantSource,
)
from alloqly.services.enrollment import resolve_student_persona, roster_for_class
from alloqly.services.llm_client import (
    ChatCompletionService,
    LLMNotConfiguredError,
    LLMServiceError,
    Message,
)
from alloqly.services.personas import PERSONA_DETAILS, Persona, quiz_system_prompt

logger = logging.getLogger(__name__)

EMPTY_OUTPUT = "Model returned an empty response."

_DRAFT_REQUIREMENTS = [
    "Create a personalized assignment draft that includes:",
    "- A concise overview",
    "- Differentiated instructions with clear steps",
    "- Suggested scaffolds or tools aligned to the accommodations",
    "- How work should be submitted (text, audio, visuals, etc.)",
    "- Quick formative check at the end",
    "Respond in markdown with headings so teachers can copy/paste directly.",
]


class PersonalizeError(Exception):
    """Request cannot be personalised (bad input or empty roster); maps to 400."""


@dataclasses.dataclass
class DraftOutcome:
    student_id: str
    student_name: str
    persona: str
    status: str  # "done" | "error"
    output: Optional[str] = None
    error: Optional[str] = None
    variant_id: Optional[str] = None


@dataclasses.dataclass
class PersonalizeSummary:
    assignment_id: str
    drafts: List[DraftOutcome]

    @property
    def completed(self) -> int:
        return sum(1 for d in self.drafts if d.status == "done")

    @property
    def failed(self) -> int:
        return sum(1 for d in self.drafts if d.status == "error")


def material_summary(
    description: Optional[str],
    material: Optional[str],
    file_name: Optional[str] = None,
    max_chars: Optional[int] = None,
) -> str:
    """Teacher description and uploaded material joined into one context block."""
    limit = max_chars if max_chars is not None else settings.PERSONALIZE_MAX_CHARS
    material = (material or "").strip()[:limit]

    file_context_parts = []
    if file_name and material:
        words = len(material.split())
        file_context_parts.append(f"Source file: {file_name} • ~{words} words")
    if material:
        file_context_parts.append(material)
    file_context = "\n\n".join(file_context_parts)

    return "\n\n---\n\n".join(p for p in [(description or "").strip(), file_context] if p)


def build_draft_prompt(
    classroom: Classroom,
    title: str,
    summary: str,
    student: Student,
    persona: Persona,
    learning_targets: Optional[str] = None,
) -> str:
    detail = PERSONA_DETAILS[persona]
    class_line = f"Class: {classroom.name}"
    if classroom.section:
        class_line += f" ({classroom.section})"
    accommodations = ", ".join(student.accommodations or []) or "Not listed"

    sections = [
        class_line,
        f"Assignment title: {title}",
        f"Learning goals: {learning_targets.strip()}" if learning_targets and learning_targets.strip() else None,
        f"Original material:\n{summary}",
        f"Student: {student.name}",
        f"Student accommodations: {accommodations}",
        f"Persona focus: {detail.label} - {detail.helper}",
        *_DRAFT_REQUIREMENTS,
    ]
    return "\n\n".join(s for s in sections if s)


class Personalizer:
    """Generates and stores one draft per rostered student."""

    def __init__(self, llm: ChatCompletionService) -> None:
        self.llm = llm

    async def draft_for_student(
        self,
        classroom: Classroom,
        title: str,
        summary: str,
        student: Student,
        persona: Persona,
        learning_targets: Optional[str] = None,
    ) -> str:
        messages: List[Message] = [
            {"role": "system", "content": quiz_system_prompt(persona)},
            {
                "role": "user",
                "content": build_draft_prompt(
                    classroom, title, summary, student, persona, learning_targets
                ),
            },
        ]
        output = await self.llm.complete(messages, temperature=settings.CHAT_TEMPERATURE)
        return output.strip() or EMPTY_OUTPUT

    async def personalize_class(
        self,
        db: AsyncSession,
        classroom: Classroom,
        teacher_id: str,
        title: Optional[str],
        description: Optional[str] = None,
        material: Optional[str] = None,
        learning_targets: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> PersonalizeSummary:
        """
        Raises:
            PersonalizeError:      missing title/material or empty roster.
            LLMNotConfiguredError: no API key (checked before any work).
        """
        title = (title or "").strip()
        if not title:
            raise PersonalizeError("Name the assignment before generating personalized versions.")

        summary = material_summary(description, material, file_name)
        if not summary:
            raise PersonalizeError("Add a description or upload a file so the model has context.")

        roster = await roster_for_class(db, classroom.id)
        if not roster:
            raise PersonalizeError("Add students to the roster to create personalized assignments.")

        if not self.llm.is_configured:
            raise LLMNotConfiguredError()

        assignment = Assignment(
            teacher_id=teacher_id,
            class_id=classroom.id,
            title=title,
            persona=Persona.GENERIC.value,
            description=(description or "").strip() or None,
            content=summary,
        )
        db.add(assignment)
        await db.flush()

        drafts: List[DraftOutcome] = []
        for index, student in enumerate(roster, start=1):
            persona = resolve_student_persona(student)
            try:
                output = await self.draft_for_student(
                    classroom, title, summary, student, persona, learning_targets
                )
            except LLMServiceError as exc:
                logger.error(
                    "Draft %d/%d failed for student=%s: %s", index, len(roster), student.id, exc
                )
                drafts.append(DraftOutcome(
                    student_id=student.id,
                    student_name=student.name,
                    persona=persona.value,
                    status="error",
                    error=str(exc),
                ))
                continue

            variant = AssignmentVariant(
                assignment_id=assignment.id,
                class_id=classroom.id,
                student_id=student.id,
                persona=persona.value,
                content=output,
                accommodations=list(student.accommodations or []),
                missions=[],
                source=VariantSource.OPENAI,
            )
            db.add(variant)
            await db.flush()

            drafts.append(DraftOutcome(
                student_id=student.id,
                student_name=student.name,
                persona=persona.value,
                status="done",
                output=output,
                variant_id=variant.id,
            ))
            logger.info("Draft %d/%d done for student=%s (%s)", index, len(roster), student.id, persona.value)

        return PersonalizeSummary(assignment_id=assignment.id, drafts=drafts)
