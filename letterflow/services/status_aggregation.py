"""
Status aggregation: derives a letter's overall status from its recipients.

Every change to a recipient's status MUST be followed by a call to
aggregate_status - the letter's stored status is only ever this projection.
"""
from typing import Iterable, List

from letterflow.models.enums import LetterStatus, RecipientRole


def signers_of(recipients: Iterable) -> List:
    """Recipients whose decision counts toward the overall status."""
    return [r for r in recipients if r.role == RecipientRole.SIGNER]


def aggregate_status(recipients: Iterable) -> LetterStatus:
    """
    Calculate the overall status of a letter.

    Aggregation rules:
    - Viewers never influence the outcome
    - No signers at all = Approved (a for-your-information letter)
    - Any Rejected signer = Rejected, whatever the other signers did
    - All signers Approved = Approved
    - Otherwise Pending

    Pure and memoryless: the same recipient set in any order gives the same result.
    """
    signers = signers_of(recipients)

    # Viewer-only routing is approved as soon as it exists
    if not signers:
        return LetterStatus.APPROVED

    # A single rejection is terminal
    if any(s.status == LetterStatus.REJECTED for s in signers):
        return LetterStatus.REJECTED

    if all(s.status == LetterStatus.APPROVED for s in signers):
        return LetterStatus.APPROVED

    return LetterStatus.PENDING
