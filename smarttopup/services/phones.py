import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from ..config import MAX_PHONE_NUMBERS
from ..enums import ScheduleStatus
from ..errors import DuplicatePhone, InvalidInput, PhoneLimitReached, PrimaryPhoneImmutable
from ..extensions import db
from ..locks import schedule_locks
from ..models import PhoneNumber, ScheduledTopUp
from .store import delete_phone_number, get_owned
from .validation import validate_phone

logger = logging.getLogger("smarttopup.phones")


class PhoneBook:
    """A user's saved numbers: one primary (fixed at signup) plus up to three more."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def list(self) -> List[PhoneNumber]:
        return (
            PhoneNumber.query.filter_by(user_id=self.user_id)
            .order_by(PhoneNumber.is_primary.desc(), PhoneNumber.id)
            .all()
        )

    def get(self, phone_id) -> PhoneNumber:
        return get_owned(PhoneNumber, self.user_id, phone_id, "Phone number")

    def count(self) -> int:
        return PhoneNumber.query.filter_by(user_id=self.user_id).count()

    def register_primary(self, number) -> PhoneNumber:
        if PhoneNumber.query.filter_by(user_id=self.user_id, is_primary=True).first() is not None:
            raise PrimaryPhoneImmutable("A primary phone number is already registered")
        return self._insert(number, label="Primary", is_primary=True)

    def add(self, number, label: Optional[str] = None) -> PhoneNumber:
        if self.count() >= MAX_PHONE_NUMBERS:
            raise PhoneLimitReached(
                f"You can save at most {MAX_PHONE_NUMBERS} phone numbers",
                limit=MAX_PHONE_NUMBERS,
            )
        return self._insert(number, label=label, is_primary=False)

    def update(self, phone_id, phone_number=None, label=None) -> PhoneNumber:
        phone = self.get(phone_id)
        if phone.is_primary:
            raise PrimaryPhoneImmutable("The primary phone number cannot be changed")
        if phone_number is not None:
            result = validate_phone(phone_number).raise_for_error()
            if result.cleaned_number != phone.phone_number:
                self._ensure_unique(result.cleaned_number)
                if result.network is not phone.network:
                    return self._renumber(phone, result, label)
                phone.phone_number = result.cleaned_number
        if label is not None:
            phone.label = label.strip() or None
        self._commit(phone.phone_number)
        return phone

    def _renumber(self, phone: PhoneNumber, result, label) -> PhoneNumber:
        """Move a number to another carrier, carrying its schedules along.

        Schedules whose network was taken from the phone follow it to the new
        carrier; schedules created with an explicit network keep theirs.
        """
        following = ScheduledTopUp.query.filter(
            ScheduledTopUp.phone_number_id == phone.id,
            ScheduledTopUp.network_is_explicit.is_(False),
            ScheduledTopUp.status.in_((ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED)),
        )
        schedule_ids = [s.id for s in following.all()]
        if schedule_ids and result.network is None:
            raise InvalidInput(
                "The new number's network cannot be detected; set the network on its schedules first",
                schedule_ids=schedule_ids,
            )
        with schedule_locks.hold_all(schedule_ids):
            schedules = following.populate_existing().all()
            phone.phone_number = result.cleaned_number
            phone.network = result.network
            for schedule in schedules:
                schedule.network = result.network
            if label is not None:
                phone.label = label.strip() or None
            self._commit(phone.phone_number)
        logger.info(
            "phone %s moved to %s with %d schedule(s)",
            phone.id, result.network.value if result.network else "unknown", len(schedules),
        )
        return phone

    def delete(self, phone_id) -> dict:
        """Remove a secondary number together with the rules and schedules that target it."""
        phone = self.get(phone_id)
        if phone.is_primary:
            raise PrimaryPhoneImmutable("The primary phone number cannot be deleted")
        return delete_phone_number(phone)

    def _insert(self, number, label, is_primary) -> PhoneNumber:
        result = validate_phone(number).raise_for_error()
        self._ensure_unique(result.cleaned_number)
        phone = PhoneNumber(
            user_id=self.user_id,
            phone_number=result.cleaned_number,
            label=(label or "").strip() or None,
            is_primary=is_primary,
            network=result.network,
        )
        db.session.add(phone)
        self._commit(result.cleaned_number)
        logger.info("user %s saved %s phone %s", self.user_id, "primary" if is_primary else "extra", phone.id)
        return phone

    def _ensure_unique(self, cleaned: str) -> None:
        if PhoneNumber.query.filter_by(user_id=self.user_id, phone_number=cleaned).first() is not None:
            raise DuplicatePhone(f"{cleaned} is already saved", phone_number=cleaned)

    def _commit(self, cleaned: str) -> None:
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicatePhone(f"{cleaned} is already saved", phone_number=cleaned) from None
