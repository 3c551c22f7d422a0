"""REST API surface for household matching."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from homematch.domain.couples.exceptions import (
	CouplesError,
	GatewayError,
	InvalidInteraction,
	InvalidResolution,
	NoHousehold,
)
from homematch.domain.couples.models import DEFAULT_ACTIVITY_LIMIT, MAX_ACTIVITY_LIMIT
from homematch.domain.couples.schemas import (
	CouplesStats,
	DisputedProperty,
	DisputeResolution,
	HouseholdActivity,
	InteractionRecord,
	InteractionRequest,
	MutualLike,
	PotentialMutualLike,
	PropertyRef,
	ResolutionRequest,
)
from homematch.domain.couples.service import CouplesService, get_service
from homematch.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/couples", tags=["couples"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, NoHousehold):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	if isinstance(exc, InvalidInteraction) or isinstance(exc, InvalidResolution):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	if isinstance(exc, GatewayError):
		return HTTPException(status.HTTP_502_BAD_GATEWAY, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=getattr(exc, "reason", str(exc)))


@router.get("/mutual-likes", response_model=List[MutualLike])
async def list_mutual_likes(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> List[MutualLike]:
	return await couples.get_mutual_likes(auth_user.id)


@router.get("/activity", response_model=List[HouseholdActivity])
async def list_activity(
	limit: int = Query(default=DEFAULT_ACTIVITY_LIMIT, ge=1, le=MAX_ACTIVITY_LIMIT),
	offset: int = Query(default=0, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> List[HouseholdActivity]:
	return await couples.get_household_activity(auth_user.id, limit, offset)


@router.get("/stats", response_model=Optional[CouplesStats])
async def household_stats(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> Optional[CouplesStats]:
	return await couples.get_household_stats(auth_user.id)


@router.post("/check-mutual", response_model=PotentialMutualLike)
async def check_mutual(
	payload: PropertyRef,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> PotentialMutualLike:
	return await couples.check_potential_mutual_like(auth_user.id, payload.property_id)


@router.post("/notify", status_code=status.HTTP_202_ACCEPTED)
async def notify(
	payload: InteractionRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> dict[str, str]:
	await couples.notify_interaction(auth_user.id, payload.property_id, payload.interaction_type.value)
	return {"status": "accepted"}


@router.post("/interactions", response_model=InteractionRecord, status_code=status.HTTP_201_CREATED)
async def record_interaction(
	payload: InteractionRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> InteractionRecord:
	try:
		return await couples.record_interaction(auth_user.id, payload.property_id, payload.interaction_type.value)
	except CouplesError as exc:
		raise _map_error(exc) from None


@router.get("/disputed", response_model=List[DisputedProperty])
async def list_disputed(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> List[DisputedProperty]:
	try:
		return await couples.list_disputed(auth_user.id)
	except CouplesError as exc:
		raise _map_error(exc) from None


@router.patch("/disputed", response_model=DisputeResolution)
async def resolve_disputed(
	payload: ResolutionRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	couples: CouplesService = Depends(get_service),
) -> DisputeResolution:
	try:
		return await couples.resolve_disputed(auth_user.id, payload.property_id, payload.resolution_type.value)
	except CouplesError as exc:
		raise _map_error(exc) from None
