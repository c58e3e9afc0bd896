"""User profiles: first sign-in bootstrap, invitations, admin changes and self edits."""

import logging

from paintcal.core import db_client
from paintcal.core.config import constants, settings
from paintcal.core.db_client import sanitize_param
from paintcal.core.logging import span
from paintcal.domain.create_models import UserInvite, utc_now_iso
from paintcal.domain.update_models import UserAdminUpdate, UserProfileUpdate
from paintcal.domain.user import MAX_NAME_LENGTH, User, UserType
from paintcal.services import policy


logger = logging.getLogger(__name__)


async def get_user(*, user_id: str) -> User:
    """Fetch a profile, raising RecordNotFoundError if it does not exist."""
    record = await db_client.get_record(collection=constants.USERS_COLLECTION, record_id=user_id)
    return User.model_validate(record)


async def ensure_user_profile(*, uid: str, email: str, display_name: str | None = None) -> User:
    """Return the profile for an authenticated identity, creating it on first sign-in.

    A pending invite for the email seeds the profile and is then deleted;
    without one the user becomes a crew member with the default role.
    """
    with span("user_service.ensure_user_profile"):
        try:
            return await get_user(user_id=uid)
        except db_client.RecordNotFoundError:
            pass

        email = email.strip().lower()
        invite = await db_client.get_first_record(
            collection=constants.PENDING_USERS_COLLECTION,
            filter_query=f'email = "{sanitize_param(email)}"',
        )

        if invite:
            data = {
                "email": email,
                "display_name": invite.get("display_name") or display_name or email,
                "user_type": invite.get("user_type") or UserType.CREW,
                "role": invite.get("role") or "",
                "disabled": False,
                "created_at": utc_now_iso(),
            }
            if invite.get("project_id"):
                data["project_id"] = invite["project_id"]
        else:
            data = {
                "email": email,
                "display_name": display_name or email,
                "user_type": UserType.CREW,
                "role": settings.default_crew_role,
                "disabled": False,
                "created_at": utc_now_iso(),
            }

        record = await db_client.create_record(collection=constants.USERS_COLLECTION, data=data, record_id=uid)

        if invite:
            await db_client.delete_record(collection=constants.PENDING_USERS_COLLECTION, record_id=invite["id"])
            logger.info("Promoted pending invite to profile", extra={"user_id": uid, "user_type": data["user_type"]})
        else:
            logger.info("Created default crew profile", extra={"user_id": uid})

        return User.model_validate(record)


async def invite_user(*, actor: User | None, invite: UserInvite) -> dict:
    """Record an invitation that seeds the profile on the invitee's first sign-in.

    Raises:
        PermissionError: If the actor may not manage users
        ValueError: If a profile or invite already uses the email
    """
    with span("user_service.invite_user"):
        policy.require(actor, "can_manage_users")

        email_filter = f'email = "{sanitize_param(invite.email)}"'
        existing_user = await db_client.get_first_record(collection=constants.USERS_COLLECTION, filter_query=email_filter)
        existing_invite = await db_client.get_first_record(
            collection=constants.PENDING_USERS_COLLECTION,
            filter_query=email_filter,
        )
        if existing_user or existing_invite:
            msg = "This email is already in use."
            logger.warning("Invite rejected for duplicate email", extra={"email": invite.email})
            raise ValueError(msg)

        record = await db_client.create_record(
            collection=constants.PENDING_USERS_COLLECTION,
            data=invite.model_dump(mode="json", exclude_none=True),
        )
        logger.info("Invited user", extra={"invite_id": record["id"], "user_type": invite.user_type})
        return record


async def _admin_update(*, actor: User | None, user_id: str, updates: UserAdminUpdate) -> User:
    policy.require(actor, "can_manage_users")
    record = await db_client.update_record(
        collection=constants.USERS_COLLECTION,
        record_id=user_id,
        data={**updates.to_fields(), "updated_at": utc_now_iso()},
    )
    return User.model_validate(record)


async def set_user_type(
    *,
    actor: User | None,
    user_id: str,
    user_type: UserType,
    project_id: str | None = None,
) -> User:
    """Change a user's access level.

    Raises:
        PermissionError: If the actor may not manage users
        ValueError: If a homeowner would be left without a project
    """
    with span("user_service.set_user_type"):
        policy.require(actor, "can_manage_users")
        fields: dict[str, object] = {"user_type": user_type}
        if user_type == UserType.HOMEOWNER:
            if project_id is None:
                current = await get_user(user_id=user_id)
                project_id = current.project_id
            if not project_id:
                msg = "Homeowners must be assigned to a project"
                raise ValueError(msg)
            fields["project_id"] = project_id
        updates = UserAdminUpdate.model_validate(fields)

        user = await _admin_update(actor=actor, user_id=user_id, updates=updates)
        logger.info("Updated user type", extra={"user_id": user_id, "user_type": user_type})
        return user


async def set_user_disabled(*, actor: User | None, user_id: str, disabled: bool) -> User:
    """Disable or re-enable a user. Users are never hard-deleted.

    Raises:
        PermissionError: If the actor may not manage users
    """
    with span("user_service.set_user_disabled"):
        user = await _admin_update(actor=actor, user_id=user_id, updates=UserAdminUpdate(disabled=disabled))
        logger.info("User %s", "disabled" if disabled else "enabled", extra={"user_id": user_id})
        return user


async def update_user_profile(*, uid: str, updates: UserProfileUpdate) -> User:
    """Merge self-service profile fields into the user's profile.

    Raises:
        ValueError: If nothing is set or the display name is blank or too long
        RecordNotFoundError: If the profile does not exist
    """
    with span("user_service.update_user_profile"):
        fields = updates.to_fields()
        if not fields:
            msg = "No profile fields to update"
            raise ValueError(msg)

        if "display_name" in fields:
            name = (fields["display_name"] or "").strip()
            if not name:
                msg = "Display name cannot be empty"
                raise ValueError(msg)
            if len(name) > MAX_NAME_LENGTH:
                msg = f"Name too long (max {MAX_NAME_LENGTH} characters)"
                raise ValueError(msg)
            fields["display_name"] = name

        record = await db_client.update_record(collection=constants.USERS_COLLECTION, record_id=uid, data=fields)
        logger.info("Updated user profile", extra={"user_id": uid, "fields": sorted(fields)})
        return User.model_validate(record)
