"""
Letter repository - routing, listing and recipient actions.

All changes to a letter's recipients go through here, and every one of them
re-derives the overall status with aggregate_status before it is persisted.
"""
import logging
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from letterflow.models.audit import LogAction
from letterflow.models.domain import Letter, LetterRecipient, PublicUser, utcnow
from letterflow.models.enums import LetterStatus, RecipientRole
from letterflow.services.activity_log import ActivityLog
from letterflow.services.errors import Conflict, NotFound, ValidationFailure
from letterflow.services.store import JsonCollection, KeyValueStore

logger = logging.getLogger(__name__)

LETTERS_KEY = "letters"

# Statuses a recipient can set through their own action
ACTION_STATUSES = (LetterStatus.APPROVED, LetterStatus.REJECTED)

# Fields that make up a recipient's recorded decision
DECISION_FIELDS = ("role", "status", "action_date", "comment", "signature_image")

_letters_adapter = TypeAdapter(List[Letter])


def newest_first(letters: List[Letter]) -> List[Letter]:
    return sorted(letters, key=lambda l: l.created_at, reverse=True)


def _index_of(letters: List[Letter], letter_id: str) -> int:
    for index, letter in enumerate(letters):
        if letter.id == letter_id:
            return index
    raise NotFound("Letter", letter_id)


class LetterRepository:
    """Persists letters and keeps their overall status in step with their recipients."""

    def __init__(self, store: KeyValueStore, activity_log: ActivityLog):
        self.activity_log = activity_log
        self._letters = JsonCollection(store, LETTERS_KEY, _letters_adapter, list)

    # Creation

    def create(self, letter: Letter) -> Letter:
        """
        Persist a newly composed letter.

        Invariants:
        - At least one recipient
        - Every recipient starts out PENDING
        - Stored status is the aggregation of those recipients
        """
        if not letter.recipients:
            raise ValidationFailure("A letter needs at least one recipient")
        acted = [r.user_name for r in letter.recipients if r.status != LetterStatus.PENDING]
        if acted:
            raise ValidationFailure("New letters must have all recipients PENDING", problems=acted)

        record = letter.model_copy(update={"version": 1}).with_recomputed_status()

        def insert(letters: List[Letter]):
            if any(l.id == record.id for l in letters):
                raise ValidationFailure(f"Letter id already exists: {record.id}")
            return letters + [record], record

        created = self._letters.mutate(insert)

        recipient_names = ", ".join(r.user_name for r in created.recipients)
        self.activity_log.append(
            created.sender_id, created.sender_name, LogAction.CREATE_LETTER,
            f"Created letter: {created.subject} for {recipient_names}"
        )
        return created

    # Queries

    def get(self, letter_id: str) -> Letter:
        letters = self._letters.load()
        return letters[_index_of(letters, letter_id)]

    def list_all(self) -> List[Letter]:
        """Every letter, newest first. Administrative view."""
        return newest_first(self._letters.load())

    def list_for_participant(self, user_id: str) -> List[Letter]:
        """Letters the user sent or received, newest first."""
        return newest_first([l for l in self._letters.load() if l.involves(user_id)])

    def list_inbox(self, user_id: str) -> List[Letter]:
        return [l for l in self.list_for_participant(user_id) if l.recipient(user_id) is not None]

    def list_sent(self, user_id: str) -> List[Letter]:
        return [l for l in self.list_for_participant(user_id) if l.sender_id == user_id]

    def list_pending_actions(self, user_id: str) -> List[Letter]:
        """Letters still waiting for this user's signature."""
        waiting = []
        for letter in self.list_for_participant(user_id):
            r = letter.recipient(user_id)
            if r and r.role == RecipientRole.SIGNER and r.status == LetterStatus.PENDING:
                waiting.append(letter)
        return waiting

    def status_counts(self, user_id: str) -> Dict[str, int]:
        """Dashboard totals over the letters the user participates in."""
        letters = self.list_for_participant(user_id)
        counts = {"total": len(letters)}
        for status in LetterStatus:
            counts[status.value.lower()] = sum(1 for l in letters if l.status == status)
        return counts

    # Administrative edits

    def update(self, letter: Letter, actor: PublicUser) -> Letter:
        """
        Replace a letter by id.

        Status is NOT recomputed here. The submitted letter must already carry
        the status its recipients aggregate to, and must not rewrite any
        decision a recipient has recorded. The submitted version must match
        the stored one.
        """
        if not letter.recipients:
            raise ValidationFailure("A letter needs at least one recipient")
        if letter.status != letter.derived_status():
            raise ValidationFailure(
                f"Letter status {letter.status.value} does not match its recipients "
                f"({letter.derived_status().value})"
            )

        def replace(letters: List[Letter]):
            index = _index_of(letters, letter.id)
            existing = letters[index]
            if letter.version != existing.version:
                raise Conflict(
                    f"Letter {letter.id} has changed (version {existing.version}, "
                    f"edit was based on {letter.version})"
                )
            self._check_decisions_preserved(existing, letter)
            record = letter.model_copy(update={"version": existing.version + 1})
            letters = list(letters)
            letters[index] = record
            return letters, record

        updated = self._letters.mutate(replace)
        self.activity_log.append(
            actor.id, actor.full_name, LogAction.UPDATE_LETTER, f"Updated letter: {updated.subject}"
        )
        return updated

    def add_recipient(self, letter_id: str, user: PublicUser, role: RecipientRole, actor: PublicUser) -> Letter:
        """
        Route an existing letter to one more user.

        Side effect: adding a signer to an Approved letter returns it to Pending.
        """
        def append(letters: List[Letter]):
            index = _index_of(letters, letter_id)
            letter = letters[index]
            if letter.recipient(user.id) is not None:
                raise ValidationFailure(f"{user.full_name} is already a recipient of this letter")
            recipient = LetterRecipient(user_id=user.id, user_name=user.full_name, role=role)
            record = letter.model_copy(update={
                "recipients": letter.recipients + [recipient],
                "version": letter.version + 1,
            }).with_recomputed_status()
            letters = list(letters)
            letters[index] = record
            return letters, record

        updated = self._letters.mutate(append)
        self.activity_log.append(
            actor.id, actor.full_name, LogAction.ADD_RECIPIENT,
            f"Added {user.full_name} ({role.value}) to letter: {updated.subject}"
        )
        return updated

    # Recipient actions

    def apply_recipient_action(
        self,
        letter_id: str,
        acting_user_id: str,
        acting_user_name: str,
        new_status: LetterStatus,
        comment: Optional[str] = None,
        signature_image: Optional[str] = None
    ) -> Letter:
        """
        Record a recipient's approval or rejection and re-derive the letter status.

        Raises NotFound if the letter does not exist or the user is not one of
        its recipients; nothing is written in either case.
        """
        if new_status not in ACTION_STATUSES:
            raise ValidationFailure(f"A recipient can only approve or reject, not {new_status.value}")

        def act(letters: List[Letter]):
            index = _index_of(letters, letter_id)
            letter = letters[index]
            recipient = letter.recipient(acting_user_id)
            if recipient is None:
                raise NotFound("Recipient", f"{acting_user_id} on letter {letter_id}")

            acted = recipient.model_copy(update={
                "status": new_status,
                "action_date": utcnow(),
                "comment": comment,
                # Signature only accompanies an approval
                "signature_image": signature_image if new_status == LetterStatus.APPROVED else None,
            })
            recipients = [acted if r.user_id == acting_user_id else r for r in letter.recipients]
            record = letter.model_copy(update={
                "recipients": recipients,
                "version": letter.version + 1,
            }).with_recomputed_status()
            letters = list(letters)
            letters[index] = record
            return letters, record

        updated = self._letters.mutate(act)
        logger.info(
            "Letter %s: %s by %s, overall status now %s",
            updated.id, new_status.value, acting_user_id, updated.status.value
        )
        self.activity_log.append(
            acting_user_id, acting_user_name, LogAction.SIGN_LETTER,
            f"Letter {new_status.value}: {updated.subject}"
        )
        return updated

    @staticmethod
    def _check_decisions_preserved(existing: Letter, edited: Letter) -> None:
        """An edit may add or remove recipients but never rewrite a recorded decision."""
        problems = []
        for r in edited.recipients:
            before = existing.recipient(r.user_id)
            if before is None:
                if r.status != LetterStatus.PENDING:
                    problems.append(f"{r.user_name}: new recipients must be PENDING")
            elif before.model_dump(include=set(DECISION_FIELDS)) != r.model_dump(include=set(DECISION_FIELDS)):
                problems.append(f"{r.user_name}: recorded decision cannot be edited")
        if problems:
            raise ValidationFailure("Edit would rewrite recipient decisions", problems=problems)
