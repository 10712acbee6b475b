# oitrack/services/reports.py
"""Prompt construction for the AI endpoints and parsing of what comes back."""
import json
import re
from typing import List, Tuple

from oitrack.ledger.metrics import TaskType
from oitrack.schemas.ai import BriefingResponse, ReportTask
from oitrack.services.notifications import TASK_TYPE_LABEL

Prompt = Tuple[str, str]

EDITOR_ROLE = "당신은 기업 성과관리 보고서를 다루는 한국어 문서 편집자입니다."

FORMAT_RULES = {
    "markdown": "결과는 Markdown 형식으로 작성하세요. 코드 블록으로 감싸지 마세요.",
    "html": "결과는 <body> 안에 들어갈 HTML 조각으로 작성하세요. <html>, <head> 태그와 코드 블록은 쓰지 마세요.",
}

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    match = _FENCE.match(text.strip())
    return match.group(1).strip() if match else text.strip()


def spelling_prompt(text: str) -> Prompt:
    return (
        f"{EDITOR_ROLE} 맞춤법과 띄어쓰기만 교정하고 내용과 어투는 바꾸지 마세요. "
        "교정된 본문만 출력하세요.",
        text,
    )


def improve_prompt(text: str) -> Prompt:
    return (
        f"{EDITOR_ROLE} 의미는 유지하면서 업무 보고서에 맞게 문맥과 문장 흐름을 다듬으세요. "
        "개조식 표현을 유지하고, 다듬어진 본문만 출력하세요.",
        text,
    )


def recommend_prompt(task_name: str, previous_activities: str) -> Prompt:
    history = previous_activities.strip() or "(이전 활동내역 없음)"
    return (
        f"{EDITOR_ROLE} 과제명과 최근 활동내역을 참고하여 이번 달 활동내역 초안을 "
        "3~5개 항목의 개조식으로 제안하세요. 초안 본문만 출력하세요.",
        f"과제명: {task_name}\n\n최근 활동내역:\n{history}",
    )


def _describe_tasks(tasks: List[ReportTask]) -> str:
    blocks = []
    for task in tasks:
        lines = [f"## {task.task_name}"]
        if task.status:
            lines.append(f"- 상태: {task.status}")
        if task.achievement_rate is not None:
            lines.append(f"- 달성률: {task.achievement_rate:.1f}%")
        # newest first
        for act in sorted(task.activities, key=lambda a: (a.year, a.month), reverse=True):
            lines.append(f"- {act.year}년 {act.month}월: {act.activity_content.strip()}")
        if not task.activities:
            lines.append("- 활동내역 없음")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def monthly_report_prompt(task_type: TaskType, tasks: List[ReportTask], fmt: str) -> Prompt:
    return (
        f"{EDITOR_ROLE} {TASK_TYPE_LABEL[task_type]} 과제들의 이번 달 활동내역으로 "
        "경영진 보고용 월간 보고서를 작성하세요. 과제별 주요 성과, 이슈, 다음 달 계획을 정리하세요. "
        + FORMAT_RULES[fmt],
        _describe_tasks(tasks),
    )


def comprehensive_report_prompt(task_type: TaskType, tasks: List[ReportTask], fmt: str) -> Prompt:
    return (
        f"{EDITOR_ROLE} {TASK_TYPE_LABEL[task_type]} 과제들의 전체 기간 활동내역으로 "
        "종합 보고서를 작성하세요. 추진 경과를 시간 순으로 요약하고 성과, 리스크, 향후 과제를 정리하세요. "
        + FORMAT_RULES[fmt],
        _describe_tasks(tasks),
    )


def custom_report_prompt(
    task_type: TaskType,
    tasks: List[ReportTask],
    report_type: str,
    previous_report: str,
    instruction: str,
    fmt: str,
) -> Prompt:
    if report_type == "monthly":
        system, data = monthly_report_prompt(task_type, tasks, fmt)
    else:
        system, data = comprehensive_report_prompt(task_type, tasks, fmt)
    return (
        system + " 기존 보고서를 수정 요청사항에 맞게 고쳐서 전체 보고서를 다시 출력하세요.",
        f"{data}\n\n# 기존 보고서\n{previous_report}\n\n# 수정 요청사항\n{instruction}",
    )


def briefing_prompt(tasks: List[ReportTask]) -> Prompt:
    return (
        f"{EDITOR_ROLE} 전체 과제 현황을 브리핑하세요. 반드시 다음 키를 가진 JSON 객체 하나만 출력하세요: "
        '"summary"(문자열), "highlights"(문자열 배열), "concerns"(문자열 배열), '
        '"recommendations"(문자열 배열).',
        _describe_tasks(tasks),
    )


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def parse_briefing(raw: str) -> BriefingResponse:
    text = strip_code_fence(raw)
    try:
        data = json.loads(text)
    except ValueError:
        return BriefingResponse(summary=text)
    if not isinstance(data, dict):
        return BriefingResponse(summary=text)
    return BriefingResponse(
        summary=str(data.get("summary") or ""),
        highlights=_as_list(data.get("highlights")),
        concerns=_as_list(data.get("concerns")),
        recommendations=_as_list(data.get("recommendations")),
    )
