"""
API routes for letter routing, users, settings and the activity log.

The acting user is taken from the X-User-Id header without further checks.
That header must be set by a trusted front end that has already logged the
user in; never expose these routes directly to untrusted clients.
"""
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from letterflow.api.schemas import (
    DraftRequest,
    DraftResponse,
    ErrorResponse,
    LetterCreate,
    LoginRequest,
    RecipientAction,
    RecipientRequest,
    StatusCounts,
    UserCreate,
    UserUpdate,
)
from letterflow.database import get_db
from letterflow.models.audit import Log
from letterflow.models.domain import Letter, LetterRecipient, PublicUser, SystemSettings
from letterflow.models.enums import Role
from letterflow.services.activity_log import ActivityLog
from letterflow.services.drafting import DraftingClient
from letterflow.services.errors import (
    AuthenticationFailure,
    CapacityExceeded,
    Conflict,
    LetterflowError,
    NotFound,
    PermissionDenied,
    ValidationFailure,
)
from letterflow.services.letters import LetterRepository
from letterflow.services.settings import SettingsRepository
from letterflow.services.store import KeyValueStore
from letterflow.services.users import UserRepository

router = APIRouter()

ERROR_STATUS = {
    AuthenticationFailure: status.HTTP_401_UNAUTHORIZED,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    ValidationFailure: status.HTTP_400_BAD_REQUEST,
    CapacityExceeded: status.HTTP_507_INSUFFICIENT_STORAGE,
}

ERROR_RESPONSES = {
    code: {"model": ErrorResponse} for code in ERROR_STATUS.values()
}


def http_error(e: LetterflowError) -> HTTPException:
    """Translate a service-layer error into an HTTP response."""
    return HTTPException(
        status_code=ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
        detail={
            "message": e.message,
            "problems": getattr(e, "problems", []),
        }
    )


# Dependencies
def get_store(db: Session = Depends(get_db)) -> KeyValueStore:
    return KeyValueStore(db)


def get_users(store: KeyValueStore = Depends(get_store)) -> UserRepository:
    return UserRepository(store, ActivityLog(store))


def get_letters(store: KeyValueStore = Depends(get_store)) -> LetterRepository:
    return LetterRepository(store, ActivityLog(store))


def get_settings_repository(store: KeyValueStore = Depends(get_store)) -> SettingsRepository:
    return SettingsRepository(store, ActivityLog(store))


def get_drafting_client() -> DraftingClient:
    return DraftingClient()


def get_acting_user(
    x_user_id: str = Header(..., description="Id of the logged-in user"),
    users: UserRepository = Depends(get_users)
) -> PublicUser:
    """The user on whose behalf the request is made."""
    try:
        return users.get(x_user_id)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")


def require_admin(actor: PublicUser = Depends(get_acting_user)) -> PublicUser:
    if actor.role != Role.ADMIN:
        raise http_error(PermissionDenied("Administrator role required"))
    return actor


# Session endpoints
@router.post("/auth/login", response_model=PublicUser, responses=ERROR_RESPONSES)
def login(credentials: LoginRequest, users: UserRepository = Depends(get_users)):
    """Check credentials. Failure never says which part was wrong."""
    try:
        return users.login(credentials.username, credentials.password)
    except LetterflowError as e:
        raise http_error(e)


# User endpoints
@router.get("/users", response_model=List[PublicUser])
def list_users(
    actor: PublicUser = Depends(get_acting_user),
    users: UserRepository = Depends(get_users)
):
    """List all users, without credentials."""
    return users.list_all()


@router.post("/users", response_model=PublicUser, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_user(
    user_data: UserCreate,
    actor: PublicUser = Depends(require_admin),
    users: UserRepository = Depends(get_users)
):
    user = PublicUser(**user_data.model_dump(exclude={"password"}))
    try:
        return users.add(user, user_data.password, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


@router.put("/users/{user_id}", response_model=PublicUser, responses=ERROR_RESPONSES)
def update_user(
    user_id: str,
    user_data: UserUpdate,
    actor: PublicUser = Depends(get_acting_user),
    users: UserRepository = Depends(get_users)
):
    """
    Update a profile.
    Users may edit their own profile; only an administrator may edit others or change roles.
    """
    try:
        if actor.role != Role.ADMIN:
            if actor.id != user_id:
                raise PermissionDenied("You can only edit your own profile")
            if user_data.role != actor.role:
                raise PermissionDenied("Only an administrator can change roles")
        user = PublicUser(id=user_id, **user_data.model_dump(exclude={"password"}))
        return users.update(user, password=user_data.password, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERROR_RESPONSES)
def delete_user(
    user_id: str,
    actor: PublicUser = Depends(require_admin),
    users: UserRepository = Depends(get_users)
):
    """Delete a user. Letters referencing the user are kept."""
    try:
        users.delete(user_id, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


# Settings endpoints
@router.get("/settings", response_model=SystemSettings)
def get_settings(settings: SettingsRepository = Depends(get_settings_repository)):
    return settings.load()


@router.put("/settings", response_model=SystemSettings, responses=ERROR_RESPONSES)
def save_settings(
    new_settings: SystemSettings,
    actor: PublicUser = Depends(require_admin),
    settings: SettingsRepository = Depends(get_settings_repository)
):
    try:
        return settings.save(new_settings, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


# Letter endpoints
@router.post("/letters", response_model=Letter, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_letter(
    letter_data: LetterCreate,
    actor: PublicUser = Depends(get_acting_user),
    users: UserRepository = Depends(get_users),
    letters: LetterRepository = Depends(get_letters)
):
    """Compose a letter from the acting user. All recipients start Pending."""
    try:
        recipients = _resolve_recipients(letter_data.recipients, users)
        letter = Letter(
            subject=letter_data.subject,
            content=letter_data.content,
            sender_id=actor.id,
            sender_name=actor.full_name,
            recipients=recipients,
            attachment=letter_data.attachment
        )
        return letters.create(letter)
    except LetterflowError as e:
        raise http_error(e)


@router.get("/letters", response_model=List[Letter])
def list_letters(
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    """Letters the acting user sent or received, newest first."""
    return letters.list_for_participant(actor.id)


@router.get("/letters/inbox", response_model=List[Letter])
def list_inbox(
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    return letters.list_inbox(actor.id)


@router.get("/letters/sent", response_model=List[Letter])
def list_sent(
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    return letters.list_sent(actor.id)


@router.get("/letters/pending", response_model=List[Letter])
def list_pending(
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    """Letters waiting for the acting user's signature."""
    return letters.list_pending_actions(actor.id)


@router.get("/letters/stats", response_model=StatusCounts)
def letter_stats(
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    return StatusCounts(**letters.status_counts(actor.id))


@router.get("/letters/all", response_model=List[Letter])
def list_all_letters(
    actor: PublicUser = Depends(require_admin),
    letters: LetterRepository = Depends(get_letters)
):
    """Every letter, newest first. Administrators only."""
    return letters.list_all()


@router.post("/letters/draft", response_model=DraftResponse)
def draft_letter(
    draft_data: DraftRequest,
    actor: PublicUser = Depends(get_acting_user),
    users: UserRepository = Depends(get_users),
    drafting: DraftingClient = Depends(get_drafting_client)
):
    """
    Suggest a letter body.
    Drafting failures come back as text, never as an error status.
    """
    try:
        names = [users.get(user_id).full_name for user_id in draft_data.recipient_ids]
    except LetterflowError as e:
        raise http_error(e)
    return DraftResponse(text=drafting.draft_letter(draft_data.topic, actor.full_name, names))


@router.get("/letters/{letter_id}", response_model=Letter, responses=ERROR_RESPONSES)
def get_letter(
    letter_id: str,
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    try:
        letter = letters.get(letter_id)
    except LetterflowError as e:
        raise http_error(e)
    # Non-participants get the same answer as for a missing letter
    if actor.role != Role.ADMIN and not letter.involves(actor.id):
        raise http_error(NotFound("Letter", letter_id))
    return letter


@router.put("/letters/{letter_id}", response_model=Letter, responses=ERROR_RESPONSES)
def update_letter(
    letter_id: str,
    letter: Letter,
    actor: PublicUser = Depends(require_admin),
    letters: LetterRepository = Depends(get_letters)
):
    """
    Administrative full replace.
    The body must carry the version it was read at and a status consistent with its recipients.
    """
    if letter.id != letter_id:
        raise http_error(ValidationFailure("Letter id in body does not match the URL"))
    try:
        return letters.update(letter, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


@router.post("/letters/{letter_id}/recipients", response_model=Letter, responses=ERROR_RESPONSES)
def add_recipient(
    letter_id: str,
    recipient: RecipientRequest,
    actor: PublicUser = Depends(require_admin),
    users: UserRepository = Depends(get_users),
    letters: LetterRepository = Depends(get_letters)
):
    """
    Route a letter to another user.
    Side effect: adding a signer to an Approved letter returns it to Pending.
    """
    try:
        user = users.get(recipient.user_id)
        return letters.add_recipient(letter_id, user, recipient.role, actor=actor)
    except LetterflowError as e:
        raise http_error(e)


@router.post("/letters/{letter_id}/action", response_model=Letter, responses=ERROR_RESPONSES)
def act_on_letter(
    letter_id: str,
    action: RecipientAction,
    actor: PublicUser = Depends(get_acting_user),
    letters: LetterRepository = Depends(get_letters)
):
    """
    Approve or reject a letter as the acting recipient.
    The overall status is re-derived from all recipients.
    """
    try:
        return letters.apply_recipient_action(
            letter_id,
            acting_user_id=actor.id,
            acting_user_name=actor.full_name,
            new_status=action.status,
            comment=action.comment,
            signature_image=action.signature_image
        )
    except LetterflowError as e:
        raise http_error(e)


# Activity log endpoints
@router.get("/logs", response_model=List[Log])
def list_logs(
    actor: PublicUser = Depends(require_admin),
    store: KeyValueStore = Depends(get_store)
):
    """The newest activity log entries, newest first."""
    return ActivityLog(store).list()


def _resolve_recipients(requested: List[RecipientRequest], users: UserRepository) -> List[LetterRecipient]:
    """Turn requested user ids into recipients carrying a snapshot of each user's name."""
    seen = set()
    recipients = []
    for wanted in requested:
        if wanted.user_id in seen:
            raise ValidationFailure(f"User {wanted.user_id} was added more than once")
        seen.add(wanted.user_id)
        try:
            user = users.get(wanted.user_id)
        except NotFound:
            raise ValidationFailure(f"Unknown recipient: {wanted.user_id}")
        recipients.append(LetterRecipient(user_id=user.id, user_name=user.full_name, role=wanted.role))
    return recipients
