"""Pure validation rules for catalog entities.

Each ``validate_*`` function returns a list of :class:`FieldViolation`; an
empty list means the candidate is valid. Nothing here touches storage: a
referenced-entity lookup may be passed in, and only then are references
checked.
"""
import re
from datetime import date
from typing import Any, Callable, Iterable, List, Mapping, Optional

from library_service.book import Book, BookStatus
from library_service.errors import FieldViolation
from library_service.loan import Loan, LoanStatus
from library_service.member import Member, MembershipType

Lookup = Callable[[int], Optional[Any]]

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
EARLIEST_PUBLISHED_YEAR = 1


class ISBNValidator:
    """ISBN-10 ve ISBN-13 için sağlama toplamı doğrulayıcısı."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        s = re.sub(r"[^0-9Xx]", "", raw)
        return s.upper()

    @staticmethod
    def is_valid_isbn(isbn: Optional[str]) -> bool:
        if not isbn:
            return False
        s = ISBNValidator.normalize_isbn(isbn)
        if len(s) == 10:
            # ISBN-10: 1..10 ağırlıklı kontrol toplamı
            total = 0
            for i, ch in enumerate(s[:-1], 1):
                if not ch.isdigit():
                    return False
                total += i * int(ch)
            check = s[-1]
            if check == "X":
                check_val = 10
            elif check.isdigit():
                check_val = int(check)
            else:
                return False
            return (total + 10 * check_val) % 11 == 0
        elif len(s) == 13 and s.isdigit():
            # ISBN-13 kontrol toplamı
            total = 0
            for i, ch in enumerate(s[:-1]):
                factor = 1 if i % 2 == 0 else 3
                total += factor * int(ch)
            check_val = (10 - (total % 10)) % 10
            return check_val == int(s[-1])
        return False


class TextValidator:
    """Basic text checks for names and titles."""

    @staticmethod
    def is_blank(text: Any) -> bool:
        return not isinstance(text, str) or not text.strip()

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        if TextValidator.is_blank(title):
            return False
        # sadece rakamlardan oluşan başlıkları reddet
        return any(c.isalpha() for c in title)

    @staticmethod
    def validate_author(author: Optional[str]) -> bool:
        if TextValidator.is_blank(author):
            return False
        return not author.strip().isdigit()

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        return isinstance(email, str) and bool(EMAIL_RE.match(email.strip()))


def _required(field: str) -> FieldViolation:
    return FieldViolation(field, "required", f"{field} is required")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_book(book: Book, today: Optional[date] = None) -> List[FieldViolation]:
    today = today or date.today()
    violations: List[FieldViolation] = []

    if TextValidator.is_blank(book.title):
        violations.append(_required("title"))
    elif not TextValidator.validate_title(book.title):
        violations.append(FieldViolation("title", "invalid", "title must contain letters"))

    if TextValidator.is_blank(book.author):
        violations.append(_required("author"))
    elif not TextValidator.validate_author(book.author):
        violations.append(FieldViolation("author", "invalid", "author must not be numeric"))

    if TextValidator.is_blank(book.isbn):
        violations.append(_required("isbn"))
    elif not ISBNValidator.is_valid_isbn(book.isbn):
        violations.append(FieldViolation("isbn", "invalid", "isbn is not a valid ISBN-10 or ISBN-13"))

    if not _is_int(book.copies):
        violations.append(FieldViolation("copies", "invalid", "copies must be an integer"))
    elif book.copies < 1:
        violations.append(FieldViolation("copies", "out_of_range", "copies must be >= 1"))

    if book.published_year is not None:
        if not _is_int(book.published_year):
            violations.append(FieldViolation("published_year", "invalid", "published_year must be an integer"))
        elif not EARLIEST_PUBLISHED_YEAR <= book.published_year <= today.year:
            violations.append(FieldViolation(
                "published_year", "out_of_range",
                f"published_year must be between {EARLIEST_PUBLISHED_YEAR} and {today.year}",
            ))

    if not isinstance(book.status, BookStatus):
        violations.append(FieldViolation("status", "invalid", f"status must be one of {_choices(BookStatus)}"))

    return violations


def validate_member(member: Member, today: Optional[date] = None) -> List[FieldViolation]:
    today = today or date.today()
    violations: List[FieldViolation] = []

    if TextValidator.is_blank(member.name):
        violations.append(_required("name"))

    if TextValidator.is_blank(member.email):
        violations.append(_required("email"))
    elif not TextValidator.validate_email(member.email):
        violations.append(FieldViolation("email", "invalid", "email must be a valid address"))

    if not isinstance(member.membership_type, MembershipType):
        violations.append(FieldViolation(
            "membership_type", "invalid", f"membership_type must be one of {_choices(MembershipType)}"
        ))

    if member.member_since is not None:
        if not isinstance(member.member_since, date):
            violations.append(FieldViolation("member_since", "invalid", "member_since must be a date"))
        elif member.member_since > today:
            violations.append(FieldViolation("member_since", "out_of_range", "member_since cannot be in the future"))

    if not _is_int(member.books_checked_out):
        violations.append(FieldViolation("books_checked_out", "invalid", "books_checked_out must be an integer"))
    elif member.books_checked_out < 0:
        violations.append(FieldViolation("books_checked_out", "out_of_range", "books_checked_out must be >= 0"))

    return violations


def validate_loan(
    loan: Loan,
    book_lookup: Optional[Lookup] = None,
    member_lookup: Optional[Lookup] = None,
) -> List[FieldViolation]:
    violations: List[FieldViolation] = []

    for field, lookup, label in (
        ("book_id", book_lookup, "book"),
        ("member_id", member_lookup, "member"),
    ):
        value = getattr(loan, field)
        if value is None:
            violations.append(_required(field))
        elif not _is_int(value):
            violations.append(FieldViolation(field, "invalid", f"{field} must be an integer id"))
        elif lookup is not None and lookup(value) is None:
            violations.append(FieldViolation(field, "unknown_reference", f"{label} {value} does not exist"))

    dates_ok = True
    for field in ("checkout_date", "due_date"):
        value = getattr(loan, field)
        if value is None:
            violations.append(_required(field))
            dates_ok = False
        elif not isinstance(value, date):
            violations.append(FieldViolation(field, "invalid", f"{field} must be a date"))
            dates_ok = False

    if dates_ok and loan.due_date < loan.checkout_date:
        violations.append(FieldViolation("due_date", "out_of_range", "due_date cannot be before checkout_date"))

    if loan.return_date is not None:
        if not isinstance(loan.return_date, date):
            violations.append(FieldViolation("return_date", "invalid", "return_date must be a date"))
        elif dates_ok and loan.return_date < loan.checkout_date:
            violations.append(FieldViolation(
                "return_date", "out_of_range", "return_date cannot be before checkout_date"
            ))

    if not isinstance(loan.status, LoanStatus):
        violations.append(FieldViolation("status", "invalid", f"status must be one of {_choices(LoanStatus)}"))
    elif loan.status == LoanStatus.RETURNED and loan.return_date is None:
        violations.append(FieldViolation("return_date", "required", "return_date is required for returned loans"))

    if not isinstance(loan.late_fee, (int, float)) or isinstance(loan.late_fee, bool):
        violations.append(FieldViolation("late_fee", "invalid", "late_fee must be a number"))
    elif loan.late_fee < 0:
        violations.append(FieldViolation("late_fee", "out_of_range", "late_fee must be >= 0"))

    return violations


def validate_patch(patch: Mapping[str, Any], known: Iterable[str], updatable: Iterable[str]) -> List[FieldViolation]:
    """Bir güncelleme yamasının yalnızca değiştirilebilir alanlara dokunduğunu kontrol et."""
    known = set(known)
    updatable = set(updatable)
    violations: List[FieldViolation] = []
    if not patch:
        violations.append(FieldViolation("patch", "required", "Nothing to update."))
    for key in patch:
        if key not in known:
            violations.append(FieldViolation(key, "unknown_field", f"unknown field {key}"))
        elif key not in updatable:
            violations.append(FieldViolation(key, "immutable", f"{key} cannot be changed"))
    return violations


def validate_filters(filters: Mapping[str, Any], known: Iterable[str]) -> List[FieldViolation]:
    known = set(known)
    return [
        FieldViolation(key, "unknown_field", f"cannot filter on unknown field {key}")
        for key in filters
        if key not in known
    ]


def _choices(enum_cls) -> str:
    return ", ".join(member.value for member in enum_cls)
