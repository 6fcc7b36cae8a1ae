"""
LLM 文本响应解析

尽力而为的有损解析：模型输出缺字段、乱序或多空行时不报错，
没匹配到的字段保留"未指定"占位值
"""
import re
from typing import Dict, List, Optional

from app.services.llm.results import AnalysisResult, DigestResult, NO_TASKS

# 标签 -> (字段名, 未匹配时的占位值)
ANALYSIS_LABELS = {
    "стиль:": ("style", "Не указан"),
    "темы:": ("topics", "Не указаны"),
    "активность:": ("activity", "Не указана"),
    "тональность:": ("tone", "Не указана"),
    "особенности:": ("features", "Не указаны"),
}

_SUMMARY_RE = re.compile(r"Summary:\s*(.*?)(?:Action items:|$)", re.IGNORECASE | re.DOTALL)
_ACTIONS_RE = re.compile(r"Action items:\s*(.*?)(?:Context:|$)", re.IGNORECASE | re.DOTALL)
_CONTEXT_RE = re.compile(r"Context:\s*(.*)$", re.IGNORECASE | re.DOTALL)
_TOPICS_RE = re.compile(r"Темы:\s*(.*)", re.IGNORECASE)
_TONE_RE = re.compile(r"Тон:\s*(.*)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-•*–—]+\s*")


def parse_analysis_fields(text: str) -> Dict[str, str]:
    """按行匹配五个字段标签，同一标签出现多次时以最后一行为准"""
    fields = {name: default for name, default in ANALYSIS_LABELS.values()}

    for line in (line.strip() for line in text.splitlines()):
        if not line:
            continue
        lowered = line.lower()
        for label, (name, _) in ANALYSIS_LABELS.items():
            if lowered.startswith(label):
                fields[name] = line[len(label):].strip()
                break

    return fields


def parse_analysis_response(text: str, message_count: int, average_length: int) -> AnalysisResult:
    fields = parse_analysis_fields(text)
    return AnalysisResult(
        average_length=f"{average_length} символов",
        message_count=message_count,
        **fields,
    )


def _strip_bullets(block: str) -> List[str]:
    lines = (_BULLET_RE.sub("", line.strip()).strip() for line in block.splitlines())
    return [line for line in lines if line]


def _group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None


def parse_digest_response(text: str) -> DigestResult:
    """解析 Summary / Action items / Context 三段式摘要"""
    summary_block = _group(_SUMMARY_RE, text)
    summary = "\n".join(_strip_bullets(summary_block)) if summary_block else text.strip()

    action_items = _strip_bullets(_group(_ACTIONS_RE, text) or "")
    if not action_items:
        action_items = [NO_TASKS]

    topics = "Не указаны"
    tone = "Не указан"
    context = _group(_CONTEXT_RE, text)
    if context:
        topics = (_group(_TOPICS_RE, context) or "").strip() or topics
        tone = (_group(_TONE_RE, context) or "").strip() or tone

    return DigestResult(summary=summary, action_items=action_items, topics=topics, tone=tone)
