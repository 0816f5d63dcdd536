from datetime import timedelta

import pytest

from library_service.book import Book, BookStatus
from library_service.errors import ConflictError, NotFoundError, ValidationError
from library_service.loan import Loan, LoanStatus
from library_service.member import Member, MembershipType
from library_service.services import BookService, LoanService, MemberService
from library_service.services.fees import LateFeeCalculator
from library_service.services.policies import CheckoutPolicy, CheckoutPolicyRegistry

ISBNS = ["9780000000002", "9780000000019", "9780000000026", "9780000000033", "9780000000040"]


@pytest.fixture
def books(any_store, clock):
    return BookService(any_store, clock=clock)


@pytest.fixture
def members(any_store, clock):
    return MemberService(any_store, clock=clock)


@pytest.fixture
def loans(any_store, clock, notifier):
    return LoanService(any_store, notifier=notifier, clock=clock)


@pytest.fixture
def catalog(books):
    return [books.create(Book(title=f"Book {i}", author="Author", isbn=isbn)) for i, isbn in enumerate(ISBNS)]


def test_checkout_updates_book_member_and_notifies(loans, books, members, catalog, alice, clock, notifier):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)

    assert loan.status == LoanStatus.ACTIVE
    assert loan.checkout_date == clock.today
    assert loan.due_date == clock.today + timedelta(days=14)
    assert books.get(catalog[0].id).status == BookStatus.CHECKED_OUT
    assert members.get(member.id).books_checked_out == 1

    notifier.notify_checkout.assert_called_once()
    notified_member, notified_book, notified_loan = notifier.notify_checkout.call_args.args
    assert notified_member.books_checked_out == 1
    assert notified_book.status == BookStatus.CHECKED_OUT
    assert notified_loan.id == loan.id


@pytest.mark.parametrize("membership_type, days", [
    (MembershipType.REGULAR, 14),
    (MembershipType.STUDENT, 21),
    (MembershipType.PREMIUM, 30),
])
def test_loan_period_depends_on_membership(loans, members, catalog, clock, membership_type, days):
    member = members.create(Member(name="M", email="m@example.com", membership_type=membership_type))
    loan = loans.checkout(catalog[0].id, member.id)
    assert loan.due_date - loan.checkout_date == timedelta(days=days)


def test_second_checkout_of_same_book_conflicts(loans, members, catalog, alice, student, any_store):
    first = members.create(alice)
    second = members.create(student)
    loans.checkout(catalog[0].id, first.id)

    with pytest.raises(ConflictError) as exc:
        loans.checkout(catalog[0].id, second.id)
    assert exc.value.field == "book_id"
    assert loans.count({"status": LoanStatus.ACTIVE}) == 1
    assert members.get(second.id).books_checked_out == 0


def test_overdue_loan_still_blocks_checkout(loans, members, catalog, alice, student, clock):
    first = members.create(alice)
    second = members.create(student)
    loans.checkout(catalog[0].id, first.id)
    clock.advance(20)
    assert loans.mark_overdue() == 1

    with pytest.raises(ConflictError):
        loans.checkout(catalog[0].id, second.id)


def test_regular_member_limit(loans, members, catalog, alice, notifier):
    member = members.create(alice)
    for book in catalog[:3]:
        loans.checkout(book.id, member.id)

    with pytest.raises(ConflictError) as exc:
        loans.checkout(catalog[3].id, member.id)
    assert str(exc.value) == "Member has reached checkout limit"
    assert members.get(member.id).books_checked_out == 3
    assert notifier.notify_checkout.call_count == 3


def test_custom_policy_registry(any_store, clock, members, catalog, alice):
    strict = CheckoutPolicyRegistry([CheckoutPolicy(MembershipType.REGULAR, max_books=1, loan_period_days=7)])
    loans = LoanService(any_store, policies=strict, clock=clock)
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    assert loan.due_date == clock.today + timedelta(days=7)
    with pytest.raises(ConflictError):
        loans.checkout(catalog[1].id, member.id)


def test_checkout_unknown_references(loans, members, catalog, alice):
    member = members.create(alice)
    with pytest.raises(NotFoundError):
        loans.checkout(999, member.id)
    with pytest.raises(NotFoundError):
        loans.checkout(catalog[0].id, 999)


def test_create_rejects_bad_loan(loans, members, catalog, alice, clock):
    member = members.create(alice)
    bad = Loan(book_id=catalog[0].id, member_id=member.id, checkout_date=clock.today,
               due_date=clock.today - timedelta(days=1), status=LoanStatus.RETURNED)
    with pytest.raises(ValidationError) as exc:
        loans.create(bad)
    assert "due_date" in exc.value.fields
    assert "status" in exc.value.fields
    assert loans.count() == 0


def test_create_with_unknown_book_reference(loans, members, alice, clock):
    member = members.create(alice)
    loan = Loan(book_id=77, member_id=member.id, checkout_date=clock.today, due_date=clock.today)
    with pytest.raises(ValidationError) as exc:
        loans.create(loan)
    assert exc.value.violations[0].code == "unknown_reference"


def test_return_on_time(loans, books, members, catalog, alice, clock, notifier):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    clock.advance(5)

    returned = loans.return_loan(loan.id)
    assert returned.status == LoanStatus.RETURNED
    assert returned.return_date == clock.today
    assert returned.late_fee == 0.0
    assert books.get(catalog[0].id).status == BookStatus.AVAILABLE
    assert members.get(member.id).books_checked_out == 0
    notifier.notify_return.assert_called_once()


@pytest.mark.parametrize("membership_type, expected_fee", [
    (MembershipType.REGULAR, 2.50),
    (MembershipType.STUDENT, 1.25),
    (MembershipType.PREMIUM, 0.0),
])
def test_late_fees(loans, members, catalog, clock, membership_type, expected_fee):
    member = members.create(Member(name="M", email="m@example.com", membership_type=membership_type))
    loan = loans.checkout(catalog[0].id, member.id)
    clock.today = loan.due_date + timedelta(days=5)

    returned = loans.return_loan(loan.id)
    assert returned.late_fee == pytest.approx(expected_fee)


def test_return_twice_conflicts(loans, members, catalog, alice):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    loans.return_loan(loan.id)
    with pytest.raises(ConflictError):
        loans.return_loan(loan.id)


def test_book_can_be_borrowed_again_after_return(loans, members, catalog, alice, student):
    first = members.create(alice)
    second = members.create(student)
    loan = loans.checkout(catalog[0].id, first.id)
    loans.return_loan(loan.id)
    again = loans.checkout(catalog[0].id, second.id)
    assert again.member_id == second.id
    assert loans.count() == 2


def test_overdue_detection(loans, members, catalog, alice, clock):
    member = members.create(alice)
    late = loans.checkout(catalog[0].id, member.id)
    clock.advance(10)
    loans.checkout(catalog[1].id, member.id)
    clock.advance(5)

    assert [loan.id for loan in loans.overdue_loans()] == [late.id]
    assert loans.mark_overdue() == 1
    assert loans.get(late.id).status == LoanStatus.OVERDUE
    assert loans.mark_overdue() == 0

    returned = loans.return_loan(late.id)
    assert returned.status == LoanStatus.RETURNED
    assert returned.late_fee == pytest.approx(0.50)


def test_extending_overdue_loan_reactivates_it(loans, members, catalog, alice, clock):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    clock.advance(20)
    loans.mark_overdue()

    extended = loans.update(loan.id, {"due_date": clock.today + timedelta(days=7)})
    assert extended.status == LoanStatus.ACTIVE
    assert extended.due_date == clock.today + timedelta(days=7)


def test_only_due_date_is_updatable(loans, members, catalog, alice):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    with pytest.raises(ValidationError):
        loans.update(loan.id, {"late_fee": 3.0})
    loans.return_loan(loan.id)
    with pytest.raises(ConflictError):
        loans.update(loan.id, {"due_date": loan.due_date})


def test_delete_outstanding_loan_conflicts(loans, members, catalog, alice):
    member = members.create(alice)
    loan = loans.checkout(catalog[0].id, member.id)
    with pytest.raises(ConflictError):
        loans.delete(loan.id)
    loans.return_loan(loan.id)
    loans.delete(loan.id)
    assert loans.count() == 0


def test_failed_checkout_leaves_no_partial_state(any_store, books, members, catalog, alice, clock, monkeypatch):
    loans = LoanService(any_store, clock=clock)
    member = members.create(alice)

    def broken_update(entity):
        raise RuntimeError("disk full")

    monkeypatch.setattr(any_store.members, "update", broken_update)
    with pytest.raises(RuntimeError):
        loans.checkout(catalog[0].id, member.id)
    monkeypatch.undo()

    assert loans.count() == 0
    assert books.get(catalog[0].id).status == BookStatus.AVAILABLE
    assert members.get(member.id).books_checked_out == 0


def test_late_fee_calculator_rounding():
    assert LateFeeCalculator(MembershipType.REGULAR, 0.5).calculate_fee(0) == 0.0
    assert LateFeeCalculator(MembershipType.STUDENT, 0.25).calculate_fee(3) == 0.75
    assert LateFeeCalculator(MembershipType.REGULAR, 0.1).calculate_fee(3) == 0.3
