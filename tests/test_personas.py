"""Unit tests for persona parsing, inference and prompt lookups."""
import pytest

from alloqly.services.personas import (
    PERSONA_DETAILS,
    Persona,
    infer_persona,
    parse_persona,
    quiz_system_prompt,
    remodel_guidance,
)


def test_parse_persona_is_case_insensitive():
    assert parse_persona("ADHD") is Persona.ADHD
    assert parse_persona(" Dyslexia ") is Persona.DYSLEXIA


def test_parse_persona_custom_alias():
    assert parse_persona("Custom") is Persona.GENERIC


def test_parse_persona_unknown_raises():
    with pytest.raises(ValueError):
        parse_persona("telepathy")
    with pytest.raises(ValueError):
        parse_persona(None)


def test_parse_persona_default():
    assert parse_persona("telepathy", default=Persona.GENERIC) is Persona.GENERIC
    assert parse_persona("", default=Persona.ADHD) is Persona.ADHD


@pytest.mark.parametrize(
    "accommodations, expected",
    [
        (["Screen reader"], Persona.VISUAL),
        (["Live captions"], Persona.HEARING),
        (["Dyslexia-friendly font"], Persona.DYSLEXIA),
        (["Sensory breaks"], Persona.AUTISM),
        (["Focus timer"], Persona.ADHD),
        (["Extended time"], Persona.GENERIC),
        ([], Persona.GENERIC),
    ],
)
def test_infer_persona(accommodations, expected):
    assert infer_persona(accommodations) is expected


def test_infer_persona_first_match_wins():
    # Visual is checked before ADHD
    assert infer_persona(["Focus timer", "Large print"]) is Persona.VISUAL


def test_every_persona_has_prompts_and_details():
    for persona in Persona:
        assert quiz_system_prompt(persona)
        assert remodel_guidance(persona)
        assert PERSONA_DETAILS[persona].label
        assert persona.display_name
