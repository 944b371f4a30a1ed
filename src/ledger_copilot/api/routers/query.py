"""POST /query -- natural-language ledger question -> summary + raw data."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ledger_copilot.copilot.service import Collaborators, answer_query
from ledger_copilot.core.errors import CopilotError, InvalidRequest, MalformedIntent
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()



class QueryRequest(BaseModel):
    query: str | None = Field(None, description="Free-text question about the ledger")


class QueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    raw_data: str = Field(..., alias="rawData")
    provenance_note: str = Field("", alias="provenanceNote")
    debug: dict[str, Any] | None = None



def get_collaborators() -> Collaborators:
    """Per-request collaborators (overridden in tests)."""
    return Collaborators()


@router.post("", response_model=QueryResponse, response_model_exclude_none=True)
async def query_endpoint(
    req: QueryRequest,
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Full pipeline: question -> intent -> SQL -> retrieval -> summary."""
    try:
        answer = await answer_query(req.query, collaborators)
    except InvalidRequest as exc:
        return JSONResponse(status_code=400, content={"message": str(exc)})
    except MalformedIntent as exc:
        logger.warning("Classifier output rejected: %s", exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc), "rawOutput": exc.raw_output},
        )
    except CopilotError as exc:
        logger.exception("Copilot.query failed")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})
    except Exception as exc:
        logger.exception("Copilot.query failed unexpectedly")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return QueryResponse(
        summary=answer.summary,
        raw_data=answer.raw_data,
        provenance_note=answer.provenance_note,
        debug=answer.debug,
    )
