"""Group-buy API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from vendorhub.api.deps import CurrentActor, GroupOrderServiceDep, InvitationServiceDep
from vendorhub.schemas.group_order import (
    GroupOrderCloseResponse,
    GroupOrderCreate,
    GroupOrderListResponse,
    GroupOrderResponse,
    QuantityUpdateRequest,
)
from vendorhub.schemas.invitation import InvitationCreate, InvitationListResponse, InvitationResponse

router = APIRouter()


@router.post("", response_model=GroupOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_group_order(
    data: GroupOrderCreate,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Open a group order led by the current user."""
    return await service.create_group_order(
        leader_id=actor_id,
        leader_name=data.leader_name,
        title=data.title,
        products=data.products,
        deadline=data.deadline,
        min_members=data.min_members,
        max_members=data.max_members,
        description=data.description,
    )


@router.get("", response_model=GroupOrderListResponse)
async def list_open_group_orders(
    service: GroupOrderServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get open group orders, soonest deadline first."""
    group_orders, total = await service.list_open_group_orders(skip=skip, limit=limit)
    return GroupOrderListResponse(group_orders=group_orders, total=total)


@router.get("/mine", response_model=GroupOrderListResponse)
async def list_my_group_orders(
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Get group orders the current user belongs to."""
    group_orders = await service.list_member_group_orders(actor_id)
    return GroupOrderListResponse(group_orders=group_orders, total=len(group_orders))


@router.get("/{group_order_id}", response_model=GroupOrderResponse)
async def get_group_order(
    group_order_id: UUID,
    service: GroupOrderServiceDep,
):
    """Get group order by ID."""
    group = await service.get_group_order(group_order_id)
    if group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": f"Group order {group_order_id} not found"},
        )
    return group


@router.put("/{group_order_id}/quantities", response_model=GroupOrderResponse)
async def update_quantities(
    group_order_id: UUID,
    request: QuantityUpdateRequest,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Set the current user's absolute quantities."""
    return await service.update_product_quantities(group_order_id, actor_id, request.updates)


@router.post("/{group_order_id}/join", response_model=GroupOrderResponse)
async def join_group_order(
    group_order_id: UUID,
    request: QuantityUpdateRequest,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Join a group order with an initial contribution."""
    return await service.join_group_order(group_order_id, actor_id, request.updates)


@router.post("/{group_order_id}/leave", response_model=GroupOrderResponse)
async def leave_group_order(
    group_order_id: UUID,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Withdraw all of the current user's contributions."""
    return await service.leave_group_order(group_order_id, actor_id)


@router.post("/{group_order_id}/close", response_model=GroupOrderCloseResponse)
async def close_group_order(
    group_order_id: UUID,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Close the group order and place the member orders (leader only)."""
    order_ids = await service.close_group_order(group_order_id, actor_id)
    return GroupOrderCloseResponse(group_order_id=group_order_id, order_ids=order_ids)


@router.post("/{group_order_id}/cancel", response_model=GroupOrderResponse)
async def cancel_group_order(
    group_order_id: UUID,
    service: GroupOrderServiceDep,
    actor_id: CurrentActor,
):
    """Cancel the group order (leader only)."""
    return await service.cancel_group_order(group_order_id, actor_id)


@router.post(
    "/{group_order_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_invitation(
    group_order_id: UUID,
    data: InvitationCreate,
    service: InvitationServiceDep,
    actor_id: CurrentActor,
):
    """Invite someone to the group order (leader only)."""
    return await service.send_invitation(
        group_order_id,
        actor_id,
        contact=data.contact,
        method=data.method,
        message=data.message,
    )


@router.get("/{group_order_id}/invitations", response_model=InvitationListResponse)
async def list_invitations(
    group_order_id: UUID,
    service: InvitationServiceDep,
    actor_id: CurrentActor,
):
    """Get the group order's invitations, newest first (members only)."""
    invitations = await service.list_invitations(group_order_id, actor_id)
    return InvitationListResponse(invitations=invitations, total=len(invitations))
