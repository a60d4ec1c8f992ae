"""Generation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from augment_engine.api.dependencies import get_orchestrator
from augment_engine.exceptions import FallbackExhaustedError
from augment_engine.models.domain import ErrorKind
from augment_engine.models.schemas import ErrorResponse, GenerateRequest, GenerateResponse
from augment_engine.pipeline.orchestrator import AugmentationOrchestrator

router = APIRouter()

_STATUS_FOR_KIND = {
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.RATE_LIMITED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


@router.post(
    "/generate",
    response_model=GenerateResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def generate(
    request: GenerateRequest,
    orchestrator: AugmentationOrchestrator = Depends(get_orchestrator),
) -> GenerateResponse:
    try:
        result = await orchestrator.execute(request)
    except FallbackExhaustedError as e:
        raise HTTPException(
            status_code=_STATUS_FOR_KIND.get(e.kind, status.HTTP_502_BAD_GATEWAY),
            detail=ErrorResponse(error_kind=e.kind.value, message=str(e)).model_dump(),
        )
    return GenerateResponse.from_result(result)
