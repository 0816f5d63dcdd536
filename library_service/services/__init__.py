"""Library Service - Services Package

This package contains the business services:
- Book, member and loan lifecycle services
- Checkout policies and late fee calculators
- Book search strategies and report generators
- Notification service abstraction
"""
from library_service.services.book_service import BookService
from library_service.services.fees import LateFeeCalculator, LateFeeCalculatorRegistry
from library_service.services.loan_service import LoanService
from library_service.services.member_service import MemberService
from library_service.services.notifications import EmailNotificationService, NotificationService
from library_service.services.policies import CheckoutPolicy, CheckoutPolicyRegistry
from library_service.services.reports import ReportService
from library_service.services.search import BookSearchService

__all__ = [
    "BookService",
    "BookSearchService",
    "CheckoutPolicy",
    "CheckoutPolicyRegistry",
    "EmailNotificationService",
    "LateFeeCalculator",
    "LateFeeCalculatorRegistry",
    "LoanService",
    "MemberService",
    "NotificationService",
    "ReportService",
]
