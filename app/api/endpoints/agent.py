from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai_feature.llm import LLMClient, get_llm
from app.ai_feature.service import handle_chat
from app.core import schemas
from app.core.database import get_db
from app.core.security import Principal, get_current_principal

router = APIRouter(prefix="/agent", tags=["Agent"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
principal_dep = Annotated[Principal, Depends(get_current_principal)]
llm_dep = Annotated[LLMClient, Depends(get_llm)]


@router.post(
    "/send",
    response_model=schemas.ChatResponse,
    status_code=status.HTTP_200_OK,
)
async def send_message(
    body: schemas.ChatRequest,
    principal: principal_dep,
    db: db_dep,
    llm: llm_dep,
):
    """
    Answer one chat message.

    Failures of the agent are reported inside the envelope (success=false),
    never as HTTP errors, so the chat UI can always render a reply.
    """
    return await handle_chat(body, principal, db, llm)


@router.get("/health", response_model=schemas.AgentHealthResponse)
async def agent_health(llm: llm_dep):
    return {
        "status": "ok",
        "llm_configured": llm.is_available(),
        "model": llm.model,
    }
