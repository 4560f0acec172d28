import tempfile
from pathlib import Path

import pytest

from shohoj_core.domain.exceptions import BusinessError
from shohoj_core.infrastructure.storage.persona_store import YamlPersonaStore


CATALOG = """
doctors:
  - id: "1"
    name: Dr. Nusrat
    specialty: Gynecology
    language: Bangla
    tone: Calm
    notes: Refer pregnancy bleeding immediately.
    image_url: https://example.org/n.png
    theme: rose
    quick_questions:
      - পিরিয়ড অনিয়মিত
  - id: 2
    name: Dr. Karim
    specialty: Cardiology
  - name: no id, skipped
"""


def test_persona_store_lookup():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "personas.yaml"
        path.write_text(CATALOG, encoding="utf-8")
        store = YamlPersonaStore(path)

        rec = store.get_persona("1")
        assert rec.persona.name == "Dr. Nusrat"
        assert rec.persona.preferred_language == "Bangla"
        assert rec.theme == "rose"
        assert rec.quick_questions == ["পিরিয়ড অনিয়মিত"]

        # numeric ids are normalised to strings
        assert store.get_persona("2").persona.specialty == "Cardiology"
        assert store.get_persona("2").theme == "teal"
        assert [r.id for r in store.list_personas()] == ["1", "2"]


def test_persona_store_plain_list_and_to_dict():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "personas.json"
        path.write_text('[{"id": "x", "name": "Dr. X", "language": "Bangla"}]', encoding="utf-8")
        data = YamlPersonaStore(path).get_persona("x").to_dict()
        assert data["id"] == "x"
        assert data["name"] == "Dr. X"
        assert data["language"] == "Bangla"
        assert data["quick_questions"] == []


def test_persona_store_missing():
    with tempfile.TemporaryDirectory() as d:
        store = YamlPersonaStore(Path(d) / "absent.yaml")
        assert store.list_personas() == []
        with pytest.raises(BusinessError) as ei:
            store.get_persona("nope")
        assert ei.value.code == "PERSONA_NOT_FOUND"
        assert ei.value.http_status == 404


def test_persona_store_bad_file():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "personas.yaml"
        path.write_text("doctors: [unclosed", encoding="utf-8")
        with pytest.raises(BusinessError) as ei:
            YamlPersonaStore(path).list_personas()
        assert ei.value.code == "STORE_READ_ERROR"
