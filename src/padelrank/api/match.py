# src/padelrank/api/match.py

"""API endpoints for matches, their results and their validation."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from padelrank.api.deps import (
    get_clock,
    get_config,
    get_confirmation_service,
    get_reporting_service,
)
from padelrank.clock import Clock
from padelrank.config import ValidationConfig
from padelrank.db.models import Match, ValidationStatus
from padelrank.db.session import get_db
from padelrank.exceptions import ResourceNotFoundError, ValidationError
from padelrank.schemas import confirmation as confirmation_schema
from padelrank.schemas import match as match_schema
from padelrank.schemas import report as report_schema
from padelrank.schemas.pagination import MatchSortField, PaginatedResponse, SortOrder
from padelrank.services import match_service
from padelrank.services.confirmation_service import (
    ConfirmationResult,
    MatchConfirmationService,
)
from padelrank.services.reporting_service import (
    MatchReportingService,
    ReportEligibility,
)
from padelrank.services.validation_window import ValidationWindowInfo, window_for_match

# Create an APIRouter instance for matches
router = APIRouter(prefix="/matches", tags=["Matches"])


def _validation_read(
    match: Match, window: ValidationWindowInfo
) -> match_schema.ValidationWindowRead:
    return match_schema.ValidationWindowRead(
        match_id=match.id,
        validation_status=match.validation_status,
        report_count=match.report_count,
        rating_applied=match.rating_applied,
        is_open=window.is_open,
        deadline=window.deadline,
        hours_remaining=window.hours_remaining,
        minutes_remaining=window.minutes_remaining,
    )


def _eligibility_read(eligibility: ReportEligibility) -> report_schema.EligibilityRead:
    return report_schema.EligibilityRead(
        can_report=eligibility.can_report,
        refusal=eligibility.refusal.value if eligibility.refusal else None,
        reason=eligibility.reason,
    )


def _confirmation_result_read(
    result: ConfirmationResult,
) -> confirmation_schema.ConfirmationResultRead:
    return confirmation_schema.ConfirmationResultRead(
        success=result.success,
        error=result.error,
        refusal=result.refusal.value if result.refusal else None,
        confirmation=(
            confirmation_schema.ConfirmationRead.model_validate(result.confirmation)
            if result.confirmation is not None
            else None
        ),
        validated=result.validated,
        disputed=result.disputed,
        summary=(
            confirmation_schema.ConfirmationSummaryRead.model_validate(result.summary)
            if result.summary is not None
            else None
        ),
    )


async def _get_match_or_404(db: AsyncSession, match_id: int) -> Match:
    match = await db.get(Match, match_id)
    if not match:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Match with id {match_id} not found",
        )
    return match


@router.get("/", response_model=PaginatedResponse[match_schema.MatchRead])
async def read_matches(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    sort_by: MatchSortField = Query(MatchSortField.ID, description="Sort field"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Sort direction"),
    validation_status: ValidationStatus | None = Query(
        None, description="Filter by validation status"
    ),
    region: str | None = Query(None, description="Filter by region"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[match_schema.MatchRead]:
    """
    Retrieve a paginated list of matches.

    - **sort_by**: Field to sort by (id, completed_at, validation_deadline, created_at)
    - **validation_status**: pending, validated, disputed or expired
    - **region**: Only matches played in this region
    """
    base_query = select(Match)
    if validation_status is not None:
        base_query = base_query.where(Match.validation_status == validation_status.value)
    if region is not None:
        base_query = base_query.where(Match.region == region)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    sort_column = getattr(Match, sort_by.value)
    if sort_order == SortOrder.DESC:
        sort_column = sort_column.desc()

    query = base_query.order_by(sort_column).offset(skip).limit(limit)
    result = await db.execute(query)
    items = list(result.scalars().all())

    return PaginatedResponse(
        items=items,  # type: ignore[arg-type]
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.post(
    "/", response_model=match_schema.MatchRead, status_code=status.HTTP_201_CREATED
)
async def create_match(
    match_in: match_schema.MatchCreate, db: AsyncSession = Depends(get_db)
) -> Match:
    """
    Schedule a new doubles match. Players 1 and 2 play players 3 and 4.

    Raises:
        404: If a player_id doesn't exist
        422: If the same player fills two slots
    """
    try:
        return await match_service.process_new_match(db, match_in)

    except ResourceNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )

    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.message,
        )


@router.post(
    "/validation-statuses", response_model=match_schema.ValidationStatusesRead
)
async def read_validation_statuses(
    request_in: match_schema.ValidationStatusesRequest,
    service: MatchReportingService = Depends(get_reporting_service),
) -> match_schema.ValidationStatusesRead:
    """
    Look up the validation status of many matches at once.
    Unknown match IDs are left out of the response.
    """
    statuses = await service.get_validation_statuses(request_in.match_ids)
    return match_schema.ValidationStatusesRead(statuses=statuses)


@router.get("/{match_id}", response_model=match_schema.MatchRead)
async def read_match(match_id: int, db: AsyncSession = Depends(get_db)) -> Match:
    """
    Retrieve a single match by its ID.
    """
    return await _get_match_or_404(db, match_id)


@router.post("/{match_id}/result", response_model=match_schema.MatchRead)
async def record_result(
    match_id: int,
    result_in: match_schema.MatchResultCreate,
    db: AsyncSession = Depends(get_db),
    config: ValidationConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> Match:
    """
    Record the set scores of a played match.

    The match enters validation as `pending`; participants can report it
    until the dispute window closes. Ratings change only once the
    validation processor has validated it.

    Raises:
        404: If the match doesn't exist
        422: If the scores are malformed, a result already exists, or the
             match was cancelled
    """
    return await match_service.record_match_result(
        db, match_id, result_in, config=config, clock=clock
    )


@router.get("/{match_id}/validation", response_model=match_schema.ValidationWindowRead)
async def read_validation(
    match_id: int,
    db: AsyncSession = Depends(get_db),
    config: ValidationConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> match_schema.ValidationWindowRead:
    """
    The validation state of a match: status, report count and window.
    """
    match = await _get_match_or_404(db, match_id)
    return _validation_read(match, window_for_match(match, config, clock))


@router.get("/{match_id}/reports", response_model=list[report_schema.ReportRead])
async def read_reports(
    match_id: int,
    service: MatchReportingService = Depends(get_reporting_service),
) -> list:
    """
    All reports filed against a match, newest first.
    """
    return await service.get_match_reports(match_id)


@router.get("/{match_id}/eligibility", response_model=report_schema.EligibilityRead)
async def read_eligibility(
    match_id: int,
    user_id: int | None = Query(None, description="The player asking to report"),
    service: MatchReportingService = Depends(get_reporting_service),
) -> report_schema.EligibilityRead:
    """
    Whether a user may report a match right now, and why not.
    """
    eligibility = await service.can_user_report_match(match_id, user_id)
    return _eligibility_read(eligibility)


@router.post("/{match_id}/reports", response_model=report_schema.ReportSubmitRead)
async def submit_report(
    match_id: int,
    report_in: report_schema.ReportCreate,
    response: Response,
    service: MatchReportingService = Depends(get_reporting_service),
) -> report_schema.ReportSubmitRead:
    """
    Report a match result as wrong.

    Returns 201 when the report was recorded. A refused report (not a
    participant, already reported, window closed...) returns 200 with
    `success: false` and the refusal reason.
    """
    result = await service.report_match(
        match_id,
        report_in.reporter_id,
        report_in.reason,
        report_in.additional_details,
    )
    if result.success:
        response.status_code = status.HTTP_201_CREATED

    return report_schema.ReportSubmitRead(
        success=result.success,
        error=result.error,
        refusal=result.refusal.value if result.refusal else None,
        report=(
            report_schema.ReportRead.model_validate(result.report)
            if result.report is not None
            else None
        ),
        disputed=result.disputed,
    )


@router.get("/{match_id}/refresh", response_model=report_schema.ReportingSnapshotRead)
async def refresh_reporting_state(
    match_id: int,
    user_id: int | None = Query(None, description="The player viewing the match"),
    db: AsyncSession = Depends(get_db),
    service: MatchReportingService = Depends(get_reporting_service),
) -> report_schema.ReportingSnapshotRead:
    """
    Pull the current reporting state of a match for one user.
    """
    snapshot = await service.refresh(match_id, user_id)
    match = await _get_match_or_404(db, match_id)

    return report_schema.ReportingSnapshotRead(
        match_id=snapshot.match_id,
        validation=_validation_read(match, snapshot.window),
        eligibility=_eligibility_read(snapshot.eligibility),
        user_has_reported=snapshot.user_has_reported,
        reports=[report_schema.ReportRead.model_validate(r) for r in snapshot.reports],
    )


# =============================================================================
# Score confirmation
# =============================================================================


@router.post(
    "/{match_id}/confirm",
    response_model=confirmation_schema.ConfirmationResultRead,
)
async def confirm_score(
    match_id: int,
    confirmation_in: confirmation_schema.ConfirmationCreate,
    response: Response,
    service: MatchConfirmationService = Depends(get_confirmation_service),
) -> confirmation_schema.ConfirmationResultRead:
    """
    Confirm the recorded score as correct.

    The fourth confirmation validates the match and applies ratings right
    away. Refusals return 200 with `success: false`.
    """
    result = await service.confirm_match_score(match_id, confirmation_in.player_id)
    if result.success:
        response.status_code = status.HTTP_201_CREATED
    return _confirmation_result_read(result)


@router.post(
    "/{match_id}/reject",
    response_model=confirmation_schema.ConfirmationResultRead,
)
async def reject_score(
    match_id: int,
    rejection_in: confirmation_schema.RejectionCreate,
    response: Response,
    service: MatchConfirmationService = Depends(get_confirmation_service),
) -> confirmation_schema.ConfirmationResultRead:
    """
    Reject the recorded score.

    Enough rejections dispute the match. Refusals return 200 with
    `success: false`.
    """
    result = await service.reject_match_score(
        match_id, rejection_in.player_id, rejection_in.reason
    )
    if result.success:
        response.status_code = status.HTTP_201_CREATED
    return _confirmation_result_read(result)


@router.get(
    "/{match_id}/confirmations",
    response_model=confirmation_schema.ConfirmationSummaryRead,
)
async def read_confirmations(
    match_id: int,
    service: MatchConfirmationService = Depends(get_confirmation_service),
) -> confirmation_schema.ConfirmationSummaryRead:
    """
    Confirmation tally of a match with every answer given so far.
    """
    summary = await service.get_confirmation_summary(match_id)
    return confirmation_schema.ConfirmationSummaryRead.model_validate(summary)


@router.get(
    "/{match_id}/can-confirm",
    response_model=confirmation_schema.ConfirmationEligibilityRead,
)
async def read_confirmation_eligibility(
    match_id: int,
    user_id: int | None = Query(None, description="The player asking to confirm"),
    service: MatchConfirmationService = Depends(get_confirmation_service),
) -> confirmation_schema.ConfirmationEligibilityRead:
    """
    Whether a user may confirm or reject a match's score right now.
    """
    eligibility = await service.can_user_confirm_match(match_id, user_id)
    return confirmation_schema.ConfirmationEligibilityRead(
        can_confirm=eligibility.can_confirm,
        refusal=eligibility.refusal.value if eligibility.refusal else None,
        reason=eligibility.reason,
    )
