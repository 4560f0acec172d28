from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from shohoj_core.config.settings import settings
from shohoj_core.domain.exceptions import BusinessError
from shohoj_core.domain.models import PersonaConfig
from shohoj_core.domain.persona import PersonaRecord, PersonaStore


class YamlPersonaStore(PersonaStore):
    """基于 YAML（或 JSON）文件的只读医生目录。

    文件内容可以是医生映射的列表，也可以是 ``{"doctors": [...]}``。
    首次访问时才读取，之后缓存。
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.persona_file).resolve()
        self._records: Optional[Dict[str, PersonaRecord]] = None

    def get_persona(self, persona_id: str) -> PersonaRecord:
        record = self._load().get(str(persona_id))
        if record is None:
            raise BusinessError(
                code="PERSONA_NOT_FOUND",
                message=f"Doctor not found: {persona_id}",
                http_status=404,
            )
        return record

    def list_personas(self) -> List[PersonaRecord]:
        return list(self._load().values())

    def _load(self) -> Dict[str, PersonaRecord]:
        if self._records is not None:
            return self._records
        records: Dict[str, PersonaRecord] = {}
        if self._path.exists():
            try:
                data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or []
            except (OSError, yaml.YAMLError) as e:
                raise BusinessError(code="STORE_READ_ERROR", message=str(e), http_status=500)
            if isinstance(data, dict):
                data = data.get("doctors") or []
            if not isinstance(data, list):
                raise BusinessError(
                    code="STORE_READ_ERROR",
                    message=f"{self._path} must hold a list of doctors",
                    http_status=500,
                )
            for item in data:
                if not isinstance(item, dict) or item.get("id") is None:
                    continue
                rec = self._to_record(item)
                records[rec.id] = rec
        self._records = records
        return records

    @staticmethod
    def _to_record(data: Dict[str, Any]) -> PersonaRecord:
        questions = data.get("quick_questions") or []
        return PersonaRecord(
            id=str(data["id"]),
            persona=PersonaConfig.from_mapping(data),
            image_url=str(data.get("image_url") or ""),
            theme=str(data.get("theme") or "teal"),
            quick_questions=[str(q) for q in questions],
        )
