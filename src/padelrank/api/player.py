# src/padelrank/api/player.py

"""API endpoints for managing players."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from padelrank.db.models import Match, MatchRatingChange, Player
from padelrank.db.session import get_db
from padelrank.schemas import match as match_schema
from padelrank.schemas import player as player_schema
from padelrank.schemas.pagination import PaginatedResponse, PlayerSortField, SortOrder

# Create an APIRouter instance for players
# - prefix="/players": All routes here will be prefixed with /players
# - tags=["Players"]: Groups these endpoints under "Players" in the API docs
router = APIRouter(prefix="/players", tags=["Players"])


async def _get_player_or_404(db: AsyncSession, player_id: int) -> Player:
    player = await db.get(Player, player_id)
    if not player:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Player with id {player_id} not found",
        )
    return player


@router.post(
    "/",
    response_model=player_schema.PlayerRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_player(
    player_in: player_schema.PlayerCreate, db: AsyncSession = Depends(get_db)
) -> Player:
    """
    Create a new player with the default Glicko-2 rating.

    - **name**: The unique name for the player.

    Raises:
        409 Conflict: If a player with the same name already exists.
    """
    new_player = Player(**player_in.model_dump())

    try:
        db.add(new_player)
        await db.commit()
        await db.refresh(new_player)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Player with name '{player_in.name}' already exists",
        )

    return new_player


@router.get("/", response_model=PaginatedResponse[player_schema.PlayerRead])
async def read_players(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    sort_by: PlayerSortField = Query(PlayerSortField.ID, description="Sort field"),
    sort_order: SortOrder = Query(SortOrder.ASC, description="Sort direction"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[player_schema.PlayerRead]:
    """
    Retrieve a paginated list of players.

    - **skip**: Number of records to skip (for pagination)
    - **limit**: Maximum number of records to return (1-100)
    - **sort_by**: Field to sort by (id, name, created_at)
    - **sort_order**: Sort direction (asc, desc)
    """
    total = (await db.execute(select(func.count()).select_from(Player))).scalar_one()

    sort_column = getattr(Player, sort_by.value)
    if sort_order == SortOrder.DESC:
        sort_column = sort_column.desc()

    query = select(Player).order_by(sort_column).offset(skip).limit(limit)
    result = await db.execute(query)
    items = list(result.scalars().all())

    return PaginatedResponse(
        items=items,  # type: ignore[arg-type]
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.get("/{player_id}", response_model=player_schema.PlayerRead)
async def read_player(player_id: int, db: AsyncSession = Depends(get_db)) -> Player:
    """
    Retrieve a single player by their ID, with their rating and tier.
    """
    return await _get_player_or_404(db, player_id)


@router.get(
    "/{player_id}/matches",
    response_model=PaginatedResponse[match_schema.MatchRead],
)
async def get_player_matches(
    player_id: int,
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    validation_status: str | None = Query(None, description="Filter by status"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[match_schema.MatchRead]:
    """
    Get match history for a specific player, newest first.

    - **player_id**: The ID of the player
    - **validation_status**: Only matches in this validation state
    """
    await _get_player_or_404(db, player_id)

    base_query = select(Match).where(
        or_(
            Match.player1_id == player_id,
            Match.player2_id == player_id,
            Match.player3_id == player_id,
            Match.player4_id == player_id,
        )
    )
    if validation_status is not None:
        base_query = base_query.where(Match.validation_status == validation_status)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    query = (
        base_query.order_by(Match.created_at.desc(), Match.id.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    items = list(result.scalars().all())

    return PaginatedResponse(
        items=items,  # type: ignore[arg-type]
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.get(
    "/{player_id}/rating-history",
    response_model=list[match_schema.RatingChangeRead],
)
async def get_player_rating_history(
    player_id: int, db: AsyncSession = Depends(get_db)
) -> list[MatchRatingChange]:
    """
    Rating changes applied to a player by validated matches, newest first.
    """
    await _get_player_or_404(db, player_id)

    query = (
        select(MatchRatingChange)
        .where(MatchRatingChange.player_id == player_id)
        .order_by(MatchRatingChange.applied_at.desc(), MatchRatingChange.id.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())
