import dataclasses

import pytest

from shohoj_core.domain.models import ChatMessage, PersonaConfig


def test_chat_message_is_immutable():
    cm = ChatMessage(role="user", content="hi")
    assert cm.to_payload() == {"role": "user", "content": "hi"}
    with pytest.raises(dataclasses.FrozenInstanceError):
        cm.content = "changed"


def test_persona_from_doctor_record():
    doctor = {
        "id": "d-1",
        "name": "Dr. Rahman",
        "specialty": "Pediatrics",
        "language": "Bangla",
        "tone": "Gentle",
        "notes": "Ask about vaccination history.",
        "image_url": "https://example.org/d1.png",
        "theme": "sky",
        "quick_questions": ["জ্বর কতদিন?"],
    }
    persona = PersonaConfig.from_mapping(doctor)
    assert persona == PersonaConfig(
        name="Dr. Rahman",
        specialty="Pediatrics",
        preferred_language="Bangla",
        tone="Gentle",
        guideline_notes="Ask about vaccination history.",
    )
    assert persona.to_context()["notes"] == "Ask about vaccination history."


def test_persona_long_key_spellings():
    persona = PersonaConfig.from_mapping({"preferredLanguage": "English", "guidelineNotes": "n"})
    assert persona.preferred_language == "English"
    assert persona.guideline_notes == "n"


def test_persona_partial_mapping_is_not_filled():
    persona = PersonaConfig.from_mapping({"name": "Dr. Only"})
    assert persona.name == "Dr. Only"
    assert persona.specialty == ""
    assert persona.preferred_language == ""
