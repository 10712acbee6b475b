from fastapi import APIRouter, Depends, HTTPException
from oitrack.core.identity import get_current_user
from oitrack.schemas.ai import (
    TextIn, RecommendIn, AiResult, ReportIn, CustomReportIn,
    BriefingIn, BriefingResponse
)
from oitrack.services.llm import LlmClient, LlmError, get_llm
from oitrack.services import reports

router = APIRouter(prefix="/ai", tags=["ai"])

async def _ask(llm: LlmClient, prompt: reports.Prompt) -> str:
    system, user = prompt
    try:
        return reports.strip_code_fence(await llm.chat(system, user))
    except LlmError as e:
        raise HTTPException(502, f"AI service unavailable: {e}")

@router.post("/spelling-check", response_model=AiResult)
async def spelling_check(
    body: TextIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    return AiResult(result=await _ask(llm, reports.spelling_prompt(body.text)))

@router.post("/improve-context", response_model=AiResult)
async def improve_context(
    body: TextIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    return AiResult(result=await _ask(llm, reports.improve_prompt(body.text)))

@router.post("/recommend-activity", response_model=AiResult)
async def recommend_activity(
    body: RecommendIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    prompt = reports.recommend_prompt(body.task_name, body.previous_activities)
    return AiResult(result=await _ask(llm, prompt))

@router.post("/generate-briefing", response_model=BriefingResponse)
async def generate_briefing(
    body: BriefingIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    return reports.parse_briefing(await _ask(llm, reports.briefing_prompt(body.tasks)))

@router.post("/monthly-report", response_model=AiResult)
async def monthly_report(
    body: ReportIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    # only tasks that actually logged something are worth reporting on
    tasks = [t for t in body.tasks if any(a.activity_content.strip() for a in t.activities)]
    if not tasks:
        raise HTTPException(400, "None of the selected tasks has activity to report")
    prompt = reports.monthly_report_prompt(body.task_type, tasks, body.format)
    return AiResult(result=await _ask(llm, prompt))

@router.post("/comprehensive-report", response_model=AiResult)
async def comprehensive_report(
    body: ReportIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    prompt = reports.comprehensive_report_prompt(body.task_type, body.tasks, body.format)
    return AiResult(result=await _ask(llm, prompt))

@router.post("/custom-report", response_model=AiResult)
async def custom_report(
    body: CustomReportIn,
    llm: LlmClient = Depends(get_llm),
    current_user = Depends(get_current_user)
):
    prompt = reports.custom_report_prompt(
        body.task_type, body.tasks, body.report_type,
        body.previous_report, body.instruction, body.format
    )
    return AiResult(result=await _ask(llm, prompt))
