from functools import lru_cache
import logging

from creatorhq.core.config import settings
from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.application.ports.calendar import CalendarPort
from creatorhq.application.ports.email import EmailPort
from creatorhq.application.ports.payments import PaymentProviderPort
from creatorhq.application.use_cases.booking_lifecycle import BookingLifecycleService
from creatorhq.application.use_cases.notification_dispatcher import NotificationDispatcher
from creatorhq.infrastructure.calendar.google_calendar import GoogleCalendar
from creatorhq.infrastructure.calendar.mock_calendar import MockCalendar
from creatorhq.infrastructure.email.mock_email import MockEmail
from creatorhq.infrastructure.email.resend_email import ResendEmail
from creatorhq.infrastructure.payments.mock_payments import MockPayments
from creatorhq.infrastructure.payments.stripe_payments import StripePayments
from creatorhq.infrastructure.store.memory_store import MemoryBookingRepository
from creatorhq.infrastructure.store.sql_store import SqlBookingRepository, build_engine


logger = logging.getLogger(__name__)

_repository: BookingRepositoryPort | None = None
_dispatcher: NotificationDispatcher | None = None


def _is_local() -> bool:
    return settings.ENV.lower() in {"dev", "local", "test"}


def get_repository() -> BookingRepositoryPort:
    global _repository
    if _repository is None:
        if settings.DATABASE_URL:
            repository = SqlBookingRepository(build_engine(settings.DATABASE_URL))
            repository.create_schema()
            _repository = repository
        elif _is_local():
            logger.info("Using MemoryBookingRepository (DATABASE_URL missing, ENV=dev/local)")
            _repository = MemoryBookingRepository()
        else:
            raise ValueError("DATABASE_URL is required outside dev/local.")
    return _repository


@lru_cache
def get_payments() -> PaymentProviderPort:
    if not settings.STRIPE_SECRET_KEY:
        if _is_local():
            logger.info("Using MockPayments (STRIPE_SECRET_KEY missing)")
            return MockPayments()
        raise ValueError("STRIPE_SECRET_KEY is required to take payments.")
    return StripePayments()


@lru_cache
def get_email() -> EmailPort:
    if not settings.RESEND_API_KEY:
        logger.info("Using MockEmail (RESEND_API_KEY missing)")
        return MockEmail()
    return ResendEmail()


@lru_cache
def get_calendar() -> CalendarPort | None:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        if _is_local():
            return MockCalendar()
        logger.warning("Calendar sync disabled (Google credentials missing)")
        return None
    return GoogleCalendar()


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            email=get_email(),
            calendar=get_calendar(),
            repository=get_repository(),
            timeout_seconds=settings.SIDE_EFFECT_TIMEOUT_SECONDS,
            max_workers=settings.SIDE_EFFECT_MAX_WORKERS,
        )
    return _dispatcher


def shutdown() -> None:
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.close()
        _dispatcher = None


def get_booking_service() -> BookingLifecycleService:
    return BookingLifecycleService(
        repository=get_repository(),
        payments=get_payments(),
        dispatcher=get_dispatcher(),
        currency=settings.STRIPE_CURRENCY,
        site_url=settings.SITE_URL,
        max_duration_minutes=settings.BOOKING_MAX_DURATION_MINUTES,
    )
