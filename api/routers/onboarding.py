from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from api.models import OnboardingRequest, OnboardingResponse, OnboardingStatusResponse
from libs.firebase.client import get_firestore_async_client
from libs.firestore.company import get_onboarding_status, save_onboarding_data
from libs.models.firestore import FirestoreCompanyInfo

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get(
    "/onboarding-status",
    response_model=OnboardingStatusResponse,
    response_model_by_alias=True,
    tags=["Onboarding"],
    summary="Check whether a user finished onboarding",
)
async def onboarding_status(
    user_id: str = Query(..., alias="userId", min_length=1),
    firestore_client=Depends(get_firestore_async_client),
) -> OnboardingStatusResponse:
    """
    Report whether the user's company profile has been captured.

    Unknown users are reported as not onboarded.

    Raises:
        HTTPException: 500 if Firestore cannot be read
    """
    try:
        complete = await get_onboarding_status(firestore_client, user_id)
    except Exception as e:
        logger.error("Failed to check onboarding status", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check onboarding status",
        )
    return OnboardingStatusResponse(onboarding_complete=complete)


@router.post(
    "/onboarding",
    response_model=OnboardingResponse,
    tags=["Onboarding"],
    summary="Save the company profile captured at onboarding",
)
async def save_onboarding(
    request: OnboardingRequest,
    firestore_client=Depends(get_firestore_async_client),
) -> OnboardingResponse:
    """
    Merge the company profile into Firestore and mark onboarding complete.

    Raises:
        HTTPException: 500 if the write fails
    """
    company = FirestoreCompanyInfo(
        companyName=request.company_name,
        employeeCount=request.employee_count,
        locations=request.locations,
        industry=request.industry,
    )
    try:
        await save_onboarding_data(firestore_client, request.user_id, company)
    except Exception as e:
        logger.error("Failed to save onboarding data", user_id=request.user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save onboarding data",
        )

    logger.info("Onboarding data saved", user_id=request.user_id)
    return OnboardingResponse()
