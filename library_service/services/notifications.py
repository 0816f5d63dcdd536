import logging
from abc import ABC, abstractmethod

from library_service.book import Book
from library_service.loan import Loan
from library_service.member import Member

logger = logging.getLogger(__name__)


class NotificationService(ABC):
    """Üyelere ödünç ve iade bildirimleri gönderir."""

    @abstractmethod
    def notify_checkout(self, member: Member, book: Book, loan: Loan) -> None:
        pass

    @abstractmethod
    def notify_return(self, member: Member, book: Book, loan: Loan) -> None:
        pass


class EmailNotificationService(NotificationService):
    """Writes the e-mail text to the log instead of talking to an SMTP server."""

    def notify_checkout(self, member: Member, book: Book, loan: Loan) -> None:
        logger.info("Email to %s: '%s' checked out. Due %s", member.email, book.title, loan.due_date)

    def notify_return(self, member: Member, book: Book, loan: Loan) -> None:
        if loan.late_fee > 0:
            logger.info("Email to %s: '%s' returned. Late fee $%.2f", member.email, book.title, loan.late_fee)
        else:
            logger.info("Email to %s: '%s' returned. No late fee", member.email, book.title)
