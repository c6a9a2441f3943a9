"""Group order invitation endpoints addressed by invitation id."""

from uuid import UUID

from fastapi import APIRouter

from vendorhub.api.deps import CurrentActor, InvitationServiceDep
from vendorhub.schemas.group_order import GroupOrderResponse
from vendorhub.schemas.invitation import InvitationAcceptRequest, InvitationResponse

router = APIRouter()


@router.post("/{invitation_id}/accept", response_model=GroupOrderResponse)
async def accept_invitation(
    invitation_id: UUID,
    request: InvitationAcceptRequest,
    service: InvitationServiceDep,
    actor_id: CurrentActor,
):
    """Accept an invitation by joining its group order."""
    return await service.accept_invitation(invitation_id, actor_id, request.updates)


@router.post("/{invitation_id}/decline", response_model=InvitationResponse)
async def decline_invitation(
    invitation_id: UUID,
    service: InvitationServiceDep,
    actor_id: CurrentActor,
):
    """Decline an invitation."""
    return await service.decline_invitation(invitation_id, actor_id)


@router.post("/{invitation_id}/cancel", response_model=InvitationResponse)
async def cancel_invitation(
    invitation_id: UUID,
    service: InvitationServiceDep,
    actor_id: CurrentActor,
):
    """Withdraw an invitation (sender only)."""
    return await service.cancel_invitation(invitation_id, actor_id)
