"""Identity resolution: matching, linking and merging contact groups.

Every contact belongs to exactly one group: a primary (no ``linkedId``)
plus secondaries whose ``linkedId`` is that primary's id. Links are never
chained, and the primary is always the earliest-created member.

The branch decisions are plain functions over already-fetched contacts;
``IdentityResolver`` does the store I/O around them.
"""
import enum
from dataclasses import dataclass
from typing import List, Optional

from contact_store import PRIMARY, SECONDARY, Contact, ContactStore
from db_models import ContactResponse
from errors import IntegrityViolationError, MissingIdentifierError
from logging_setup import get_logger

logger = get_logger(__name__)


class Action(enum.Enum):
    REJECT = "reject"
    CREATE_PRIMARY = "create_primary"
    CREATE_SECONDARY = "create_secondary"
    EXISTING = "existing"
    MERGE = "merge"


@dataclass(frozen=True)
class MergePlan:
    keep_id: int
    demote_id: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return self.demote_id is None


def primary_id_of(contact: Contact) -> int:
    if contact.is_primary:
        return contact.id
    if contact.linkedId is None:
        raise IntegrityViolationError(
            f"Error: Secondary contact {contact.id} has no linked primary."
        )
    return contact.linkedId


def oldest_first(*contacts: Contact) -> List[Contact]:
    return sorted(contacts, key=lambda contact: contact.seniority)


def choose_action(phone_number: Optional[str], email: Optional[str],
                  phone_match: Optional[Contact], email_match: Optional[Contact]) -> Action:
    if phone_match is None and email_match is None:
        if not phone_number or not email:
            return Action.REJECT
        return Action.CREATE_PRIMARY

    if phone_match is not None and email_match is not None:
        return Action.MERGE

    # Only one identifier matched; the other one is either new or absent.
    missing = email if phone_match is not None else phone_number
    return Action.CREATE_SECONDARY if missing else Action.EXISTING


def plan_merge(head_a: Contact, head_b: Contact) -> MergePlan:
    """Flatten the younger of two primaries into the older one.

    When both heads are the same contact the groups are already one and
    nothing is demoted.
    """
    for head in (head_a, head_b):
        if not head.is_primary:
            raise IntegrityViolationError(
                f"Error: Contact {head.id} is linked to as a primary but is a secondary."
            )
    if head_a.id == head_b.id:
        return MergePlan(keep_id=head_a.id)
    older, younger = oldest_first(head_a, head_b)
    return MergePlan(keep_id=older.id, demote_id=younger.id)


def build_snapshot(primary: Contact, secondaries: List[Contact]) -> ContactResponse:
    """Primary's values first, then the secondaries' oldest-first, without repeats."""
    ordered = [primary] + oldest_first(*secondaries)

    emails: List[str] = []
    phone_numbers: List[str] = []
    for contact in ordered:
        if contact.email and contact.email not in emails:
            emails.append(contact.email)
        if contact.phoneNumber and contact.phoneNumber not in phone_numbers:
            phone_numbers.append(contact.phoneNumber)

    return ContactResponse(
        primaryContactId=primary.id,
        emails=emails,
        phoneNumbers=phone_numbers,
        secondaryContactIds=[contact.id for contact in ordered[1:]],
    )


class IdentityResolver:
    def __init__(self, store: ContactStore):
        self.store = store

    def identify(self, phone_number: Optional[str], email: Optional[str]) -> ContactResponse:
        """Resolve the pair to its group's primary and return the group view.

        Runs in one write transaction so concurrent requests cannot both
        create a primary for the same identifiers.
        """
        phone_number = phone_number or None
        email = email or None

        with self.store.transaction():
            primary_id = self._resolve(phone_number, email)
            return self.snapshot(primary_id)

    def snapshot(self, primary_id: int) -> ContactResponse:
        group = self.store.find_many({"OR": [{"id": primary_id}, {"linkedId": primary_id}]})
        primary = next((contact for contact in group if contact.id == primary_id), None)
        if primary is None or not primary.is_primary:
            logger.error("primary_missing", primary_id=primary_id)
            raise IntegrityViolationError(f"Error: Primary contact {primary_id} was not found.")
        secondaries = [contact for contact in group if contact.id != primary_id]
        return build_snapshot(primary, secondaries)

    def _resolve(self, phone_number: Optional[str], email: Optional[str]) -> int:
        if phone_number and email:
            exact = self.store.find_one({"AND": [{"phoneNumber": phone_number}, {"email": email}]})
            if exact is not None:
                logger.info("exact_match", contact_id=exact.id)
                return primary_id_of(exact)

        phone_match = self.store.find_one({"phoneNumber": phone_number}) if phone_number else None
        email_match = self.store.find_one({"email": email}) if email else None

        action = choose_action(phone_number, email, phone_match, email_match)

        if action is Action.REJECT:
            logger.info("creation_rejected", has_phone=bool(phone_number), has_email=bool(email))
            raise MissingIdentifierError()

        if action is Action.CREATE_PRIMARY:
            contact = self.store.create(phoneNumber=phone_number, email=email, linkPrecedence=PRIMARY)
            logger.info("contact_created", contact_id=contact.id)
            return contact.id

        if action is Action.MERGE:
            return self._merge(phone_match, email_match)

        match = phone_match if phone_match is not None else email_match
        primary_id = primary_id_of(match)
        if action is Action.CREATE_SECONDARY:
            contact = self.store.create(
                phoneNumber=phone_number,
                email=email,
                linkPrecedence=SECONDARY,
                linkedId=primary_id,
            )
            logger.info("secondary_created", contact_id=contact.id, primary_id=primary_id)
        else:
            logger.info("no_op", matched_id=match.id, primary_id=primary_id)
        return primary_id

    def _head_of(self, contact: Contact) -> Contact:
        if contact.is_primary:
            return contact
        try:
            head = self.store.find_unique(primary_id_of(contact))
        except IntegrityViolationError:
            logger.error("secondary_without_primary", contact_id=contact.id)
            raise
        if head is None:
            logger.error("primary_missing", contact_id=contact.id, primary_id=contact.linkedId)
            raise IntegrityViolationError(
                f"Error: Primary contact {contact.linkedId} of contact {contact.id} was not found."
            )
        return head

    def _merge(self, phone_match: Contact, email_match: Contact) -> int:
        plan = plan_merge(self._head_of(phone_match), self._head_of(email_match))
        if plan.is_noop:
            logger.info("no_op", primary_id=plan.keep_id, phone_match_id=phone_match.id,
                        email_match_id=email_match.id)
            return plan.keep_id

        relinked = self.store.update_many(
            {"OR": [{"id": plan.demote_id}, {"linkedId": plan.demote_id}]},
            linkedId=plan.keep_id,
            linkPrecedence=SECONDARY,
        )
        logger.info("groups_merged", primary_id=plan.keep_id, demoted_id=plan.demote_id, relinked=relinked)
        return plan.keep_id
