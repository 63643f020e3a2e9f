"""
Learner personas and the prompt fragments tied to each of them.

A persona selects the system prompt used for quiz chat and per-student
drafts, and the rewriting rules injected into remodel prompts.
"""
from __future__ import annotations

import enum
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Pattern, Tuple


class Persona(str, enum.Enum):
    """Learner-support categories."""

    ADHD = "adhd"
    AUTISM = "autism"
    DYSLEXIA = "dyslexia"
    VISUAL = "visual"
    HEARING = "hearing"
    GENERIC = "generic"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES: Dict[Persona, str] = {
    Persona.ADHD: "ADHD",
    Persona.AUTISM: "Autism",
    Persona.DYSLEXIA: "Dyslexia",
    Persona.VISUAL: "Visual",
    Persona.HEARING: "Hearing",
    Persona.GENERIC: "Generic",
}

# Older clients send "Custom" for an unlabelled profile.
_ALIASES: Dict[str, Persona] = {
    "custom": Persona.GENERIC,
}


class PersonaDetail(NamedTuple):
    label: str
    helper: str


PERSONA_DETAILS: Dict[Persona, PersonaDetail] = {
    Persona.ADHD: PersonaDetail("Executive support", "Chunked steps, timers, reminders"),
    Persona.AUTISM: PersonaDetail("Predictable flow", "Sensory-aware, literal language"),
    Persona.DYSLEXIA: PersonaDetail("Reading support", "Plain language, short blocks"),
    Persona.VISUAL: PersonaDetail("Vision-friendly", "Descriptive text, audio pairing"),
    Persona.HEARING: PersonaDetail("Hearing-friendly", "Text-first, caption cues"),
    Persona.GENERIC: PersonaDetail("General scaffold", "Universal accessibility basics"),
}


# Checked in order; the first persona with a matching pattern wins.
_ACCOMMODATION_MATCHERS: List[Tuple[Persona, List[Pattern[str]]]] = [
    (Persona.VISUAL, [re.compile(p) for p in (
        r"visual", r"vision", r"sight", r"screen reader", r"audio narration", r"large print",
    )]),
    (Persona.HEARING, [re.compile(p) for p in (
        r"hearing", r"caption", r"asl", r"sign", r"amplification",
    )]),
    (Persona.DYSLEXIA, [re.compile(p) for p in (
        r"dyslexia", r"reading", r"phonics", r"decoding", r"text", r"simplified vocabulary",
    )]),
    (Persona.AUTISM, [re.compile(p) for p in (
        r"sensory", r"autism", r"aac", r"social narrative", r"predictable", r"noise-canceling",
    )]),
    (Persona.ADHD, [re.compile(p) for p in (
        r"adhd", r"check[-\s]?ins", r"chunk", r"focus", r"executive", r"processing time", r"timer",
    )]),
]


_QUIZ_PROMPTS: Dict[Persona, str] = {
    Persona.ADHD: (
        "You are an educational assistant that focuses on learners with ADHD. "
        "Create short, highly focused multiple-choice questions. Keep language concise, "
        "break complex ideas into smaller steps, and avoid long paragraphs. When asked about "
        "a topic, generate 6 clear multiple-choice questions with four options each "
        "(A, B, C, D) and mark the correct answer at the end. Use simple layouts and "
        "explicit instructions."
    ),
    Persona.AUTISM: (
        "You are an educational assistant that focuses on learners on the autism spectrum. "
        "Use clear, literal language, avoid idioms, be explicit about expectations, and keep "
        "questions predictable in structure. When asked about a topic, generate 6 "
        "multiple-choice questions with four options each (A, B, C, D). Mark the correct "
        "answer at the end. Provide brief, supportive guidance for misunderstandings."
    ),
    Persona.DYSLEXIA: (
        "You are an educational assistant that focuses on learners with dyslexia. Use "
        "dyslexia-friendly wording: short sentences, simple vocabulary, left-aligned text, "
        "and avoid visually similar answer choices. When asked about a topic, generate 6 "
        "multiple-choice questions with four options each (A, B, C, D) and mark the correct "
        "answer at the end. Keep punctuation minimal and avoid complex wordplay."
    ),
    Persona.VISUAL: (
        "You are an educational assistant that focuses on learners with visual impairments. "
        "Provide clear textual descriptions and avoid relying on visual cues. When asked "
        "about a topic, generate 6 multiple-choice questions with four options each "
        "(A, B, C, D). Mark the correct answer at the end and make sure each option is "
        "clearly and completely described in text."
    ),
    Persona.HEARING: (
        "You are an educational assistant that focuses on learners with hearing impairments. "
        "Avoid references to audio-only cues and ensure instructions are fully text-based "
        "and explicit. When asked about a topic, generate 6 multiple-choice questions with "
        "four options each (A, B, C, D). Mark the correct answer at the end."
    ),
    Persona.GENERIC: (
        "You are an educational assistant that creates multiple-choice quiz questions. "
        "When asked about a topic, generate 6 clear multiple-choice questions with four "
        "options each (A, B, C, D) and mark the correct answer at the end. Keep questions "
        "clear and well-structured."
    ),
}

_REMODEL_GUIDANCE: Dict[Persona, List[str]] = {
    Persona.ADHD: [
        "Chunk the work into short missions with a visible time box each.",
        "Bold the action verb of every step and keep each step to one action.",
        "Add a quick check-in after each mission.",
    ],
    Persona.AUTISM: [
        "Use literal language with no idioms or figurative phrasing.",
        "Keep the structure predictable and say exactly what done looks like.",
        "Note sensory-friendly alternatives where the task involves noise or crowds.",
    ],
    Persona.DYSLEXIA: [
        "Use short sentences and everyday vocabulary.",
        "Keep text blocks small and offer an audio or oral response path.",
        "Avoid dense paragraphs and visually similar answer choices.",
    ],
    Persona.VISUAL: [
        "Describe every image, chart or diagram fully in text.",
        "Avoid instructions that depend on colour or position on the page.",
        "Offer audio and screen-reader friendly response options.",
    ],
    Persona.HEARING: [
        "Make every instruction text-based and explicit.",
        "Caption or transcribe any audio or video material.",
        "Replace spoken cues with written or visual signals.",
    ],
    Persona.GENERIC: [
        "Keep instructions clear and numbered.",
        "Offer at least two ways to show understanding.",
    ],
}


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def parse_persona(value: Optional[str], default: Optional[Persona] = None) -> Persona:
    """
    Resolve a client-supplied profile name to a Persona.

    Matching is case-insensitive against enum values and display names;
    ``"custom"`` maps to the generic persona.

    Raises:
        ValueError: unknown or empty value and no *default* given.
    """
    key = (value or "").strip().lower()
    if key:
        if key in _ALIASES:
            return _ALIASES[key]
        for persona in Persona:
            if key == persona.value:
                return persona
    if default is not None:
        return default
    raise ValueError(f"Unsupported learner profile: {value!r}")


def infer_persona(accommodations: Iterable[str]) -> Persona:
    """Pick the persona whose keywords appear in a student's accommodation list."""
    joined = " ".join(a for a in accommodations if a).lower()
    for persona, patterns in _ACCOMMODATION_MATCHERS:
        if any(pattern.search(joined) for pattern in patterns):
            return persona
    return Persona.GENERIC


def quiz_system_prompt(persona: Persona) -> str:
    return _QUIZ_PROMPTS[persona]


def remodel_guidance(persona: Persona) -> List[str]:
    return list(_REMODEL_GUIDANCE[persona])
