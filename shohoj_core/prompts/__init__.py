"""System instruction 的加载与组装。

模板位于 ``prompts/<locale>/`` 下，使用 ``string.Template`` 渲染。
persona 字段来自外部，进入模板前逐个做清洗。
"""

import re
import unicodedata
from functools import lru_cache
from pathlib import Path
from string import Template

from shohoj_core.domain.models import PersonaConfig


PROMPTS_DIR = Path(__file__).resolve().parent

EMERGENCY_REFERRAL = "দয়া করে দ্রুত হাসপাতালে যান"
DEFAULT_MAX_FIELD_LENGTH = 200
EMPTY_FIELD = "(not specified)"

_WHITESPACE = re.compile(r"\s+")
_STRIPPED_CHARS = str.maketrans("", "", "`{}")
# 连接符用于孟加拉语合体字，需保留
_KEPT_FORMAT_CHARS = {"\u200c", "\u200d"}


@lru_cache(maxsize=None)
def load_prompt_template(locale: str = "bn") -> Template:
    """加载 ``locale`` 对应的 system instruction 模板。"""

    fname = PROMPTS_DIR / locale / "shohoj_system.md"
    return Template(fname.read_text(encoding="utf-8"))


def sanitize_persona_field(value: object, max_length: int = DEFAULT_MAX_FIELD_LENGTH) -> str:
    """把 persona 字段压平成长度受限的单行文本。

    删除控制/格式字符，连续空白（含换行）合并为一个空格，去掉模板和代码块
    字符，最后截断到 ``max_length`` 个字符。
    """

    text = "" if value is None else str(value)
    text = "".join(
        " " if ch.isspace() else ch
        for ch in text
        if ch.isspace()
        or ch in _KEPT_FORMAT_CHARS
        or unicodedata.category(ch) not in ("Cc", "Cf")
    )
    text = text.translate(_STRIPPED_CHARS)
    text = _WHITESPACE.sub(" ", text).strip()
    if len(text) > max_length:
        text = text[:max_length].rstrip()
    return text or EMPTY_FIELD


def compose_system_instruction(
    persona: PersonaConfig,
    max_field_length: int = DEFAULT_MAX_FIELD_LENGTH,
    locale: str = "bn",
) -> str:
    """为 ``persona`` 渲染 system instruction。

    纯函数：相同的 persona 总是得到相同的文本。
    """

    def field(attr: str) -> str:
        return sanitize_persona_field(getattr(persona, attr, None), max_field_length)

    return load_prompt_template(locale).substitute(
        name=field("name"),
        specialty=field("specialty"),
        language=field("preferred_language"),
        tone=field("tone"),
        notes=field("guideline_notes"),
        emergency_referral=EMERGENCY_REFERRAL,
    )
