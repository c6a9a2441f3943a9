"""Group order invitation service.

The leader of an open group order invites prospective members by email,
SMS or shareable link. Accepting an invitation joins the group order in
the same atomic unit that marks the invitation accepted. Delivery of the
invitation itself is out of scope; only the record is kept.
"""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.config import settings
from vendorhub.core.exceptions import Expired, InvalidRequest, InvalidState, NotFound, Unauthorized
from vendorhub.core.transaction import atomic, for_update
from vendorhub.middleware.metrics import record_group_order_event
from vendorhub.models.base import as_utc, utc_now
from vendorhub.models.group_order import GroupOrder, GroupOrderStatus
from vendorhub.models.invitation import GroupOrderInvitation, InvitationMethod, InvitationStatus
from vendorhub.schemas.group_order import QuantityUpdate
from vendorhub.services.group_order_service import GroupOrderService

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "You have been invited to join a group order!"


class InvitationService:
    """Service class for group order invitations."""

    def __init__(self, db: AsyncSession, group_order_service: GroupOrderService | None = None):
        self.db = db
        self.group_order_service = group_order_service or GroupOrderService(db)

    async def _get_group(self, group_order_id: UUID) -> GroupOrder:
        result = await self.db.execute(
            select(GroupOrder)
            .where(GroupOrder.group_order_id == group_order_id)
            .execution_options(populate_existing=True)
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFound(f"Group order {group_order_id} not found")
        return group

    async def _lock_invitation(self, invitation_id: UUID) -> GroupOrderInvitation:
        result = await self.db.execute(
            for_update(
                select(GroupOrderInvitation).where(
                    GroupOrderInvitation.invitation_id == invitation_id
                )
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFound(f"Invitation {invitation_id} not found")
        return invitation

    @staticmethod
    def _require_pending(invitation: GroupOrderInvitation) -> None:
        if invitation.status != InvitationStatus.PENDING:
            raise InvalidState(f"Invitation is {invitation.status}")

    async def send_invitation(
        self,
        group_order_id: UUID,
        sender_id: str,
        contact: str,
        method: str = InvitationMethod.EMAIL,
        message: str | None = None,
    ) -> GroupOrderInvitation:
        """Invite someone to an open group order.

        The invitation expires after ``INVITATION_EXPIRY_DAYS`` or at the
        group order's deadline, whichever comes first.

        Raises:
            NotFound: Group order does not exist
            Unauthorized: Sender is not the leader
            InvalidState: Group order is not open
            Expired: The deadline has passed
        """

        async def work() -> GroupOrderInvitation:
            group = await self._get_group(group_order_id)
            if group.leader_id != sender_id:
                raise Unauthorized("Only the leader can send invitations")
            if group.status != GroupOrderStatus.OPEN:
                raise InvalidState(f"Group order is {group.status}")
            now = utc_now()
            deadline = as_utc(group.deadline)
            if deadline <= now:
                raise Expired("Group order deadline has passed")

            invitation = GroupOrderInvitation(
                group_order_id=group.group_order_id,
                group_order_title=group.title,
                sender_id=sender_id,
                sender_name=group.leader_name,
                recipient_contact=contact.strip(),
                method=method,
                message=(message or "").strip() or DEFAULT_MESSAGE,
                status=InvitationStatus.PENDING,
                expires_at=min(deadline, now + timedelta(days=settings.INVITATION_EXPIRY_DAYS)),
            )
            self.db.add(invitation)
            await self.db.flush()
            return invitation

        invitation = await atomic(self.db, work, name="invitation.send")
        record_group_order_event("invitation_sent")
        logger.info(
            f"Invitation sent: invitation={invitation.invitation_id}, "
            f"group_order={group_order_id}, method={method}"
        )
        return invitation

    async def list_invitations(
        self, group_order_id: UUID, requester_id: str
    ) -> list[GroupOrderInvitation]:
        """Invitations of a group order, newest first. Members only."""
        group = await self._get_group(group_order_id)
        if requester_id not in group.member_ids:
            raise Unauthorized("Only members can view invitations")

        result = await self.db.execute(
            select(GroupOrderInvitation)
            .where(GroupOrderInvitation.group_order_id == group_order_id)
            .order_by(GroupOrderInvitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def accept_invitation(
        self, invitation_id: UUID, member_id: str, updates: list[QuantityUpdate]
    ) -> GroupOrder:
        """Accept a pending invitation by joining its group order.

        A pending invitation found past its expiry is marked expired and
        the call fails.

        Returns:
            The joined group order

        Raises:
            NotFound: Invitation does not exist
            InvalidState: Invitation is not pending, or group order not open
            InvalidRequest: The sender tried to accept their own invitation
            Expired: The invitation or group order has expired
            MemberLimitReached: The group order is full
        """

        async def work() -> GroupOrder | None:
            invitation = await self._lock_invitation(invitation_id)
            self._require_pending(invitation)
            if invitation.sender_id == member_id:
                raise InvalidRequest("You cannot accept your own invitation")
            if as_utc(invitation.expires_at) <= utc_now():
                invitation.status = InvitationStatus.EXPIRED
                await self.db.flush()
                return None

            group = await self.group_order_service.join_group_order(
                invitation.group_order_id, member_id, updates
            )
            invitation.status = InvitationStatus.ACCEPTED
            invitation.accepted_by = member_id
            invitation.accepted_at = utc_now()
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="invitation.accept")
        if group is None:
            record_group_order_event("invitation_expired")
            logger.info(f"Invitation expired on accept: invitation={invitation_id}")
            raise Expired("This invitation has expired")

        record_group_order_event("invitation_accepted")
        logger.info(f"Invitation accepted: invitation={invitation_id}, member={member_id}")
        return group

    async def decline_invitation(self, invitation_id: UUID, user_id: str) -> GroupOrderInvitation:
        """Decline a pending invitation.

        Raises:
            NotFound: Invitation does not exist
            InvalidState: Invitation is not pending
        """

        async def work() -> GroupOrderInvitation:
            invitation = await self._lock_invitation(invitation_id)
            self._require_pending(invitation)
            invitation.status = InvitationStatus.DECLINED
            invitation.declined_by = user_id
            invitation.declined_at = utc_now()
            await self.db.flush()
            return invitation

        invitation = await atomic(self.db, work, name="invitation.decline")
        record_group_order_event("invitation_declined")
        logger.info(f"Invitation declined: invitation={invitation_id}, user={user_id}")
        return invitation

    async def cancel_invitation(
        self, invitation_id: UUID, requester_id: str
    ) -> GroupOrderInvitation:
        """Withdraw a pending invitation. Only its sender may cancel it.

        Raises:
            NotFound: Invitation does not exist
            Unauthorized: Requester did not send the invitation
            InvalidState: Invitation is not pending
        """

        async def work() -> GroupOrderInvitation:
            invitation = await self._lock_invitation(invitation_id)
            if invitation.sender_id != requester_id:
                raise Unauthorized("Only the sender can cancel this invitation")
            self._require_pending(invitation)
            invitation.status = InvitationStatus.CANCELLED
            invitation.cancelled_at = utc_now()
            await self.db.flush()
            return invitation

        invitation = await atomic(self.db, work, name="invitation.cancel")
        record_group_order_event("invitation_cancelled")
        logger.info(f"Invitation cancelled: invitation={invitation_id}")
        return invitation
