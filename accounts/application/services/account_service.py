"""Account service — registration, OTP verification, sessions and password flows.

Every collaborator is injected. Side effects the caller must not wait on
(verification mail, list-cache invalidation) go through ``dispatch``, which
in the HTTP layer is ``BackgroundTasks.add_task``; their failures are logged
and never reach the caller.
"""

from typing import Any, Callable, Dict, NamedTuple, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from accounts.application.services.security import OtpGenerator, PasswordHasher, TokenIssuer
from accounts.core.exceptions import (
    AlreadyVerifiedException,
    ConflictException,
    EntityNotFoundException,
    InvalidCredentialsException,
    InvalidEmailException,
    InvalidOldPasswordException,
    InvalidOtpException,
    OtpNotVerifiedException,
    ServerError,
    UserNotExistException,
)
from accounts.core.messages import translate
from accounts.core.pagination import calculate_pagination
from accounts.domain.models.user import User, UserRole, UserStatus
from accounts.domain.repositories.user_repository import UserRepository
from accounts.domain.schemas.user import PaginationMeta, UserPage, UserRead
from accounts.infrastructure.cache import ListCache
from accounts.infrastructure.mailer import Mailer, forgot_password_email, verification_email

logger = structlog.get_logger(__name__)

LIST_CACHE_PREFIX = "users:list:"

Dispatch = Callable[..., Any]


class AuthResult(NamedTuple):
    token: str
    user: User


def run_now(func: Callable, *args, **kwargs) -> None:
    """Synchronous stand-in for ``BackgroundTasks.add_task``."""
    func(*args, **kwargs)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    def __init__(
        self,
        repo: UserRepository,
        hasher: PasswordHasher,
        otp_generator: OtpGenerator,
        tokens: TokenIssuer,
        mailer: Mailer,
        cache: ListCache,
        dispatch: Dispatch = run_now,
        reveal_otp: bool = False,
        cache_ttl: Optional[int] = None,
    ):
        self.repo = repo
        self.hasher = hasher
        self.otp_generator = otp_generator
        self.tokens = tokens
        self.mailer = mailer
        self.cache = cache
        self.dispatch = dispatch
        self.reveal_otp = reveal_otp
        self.cache_ttl = cache_ttl

    # -- background side effects ------------------------------------------

    def _in_background(self, name: str, func: Callable, *args) -> None:
        def task():
            try:
                func(*args)
            except Exception:
                logger.exception("Background task failed", task=name)

        self.dispatch(task)

    def _send_mail(self, email: str, message: tuple[str, str]) -> None:
        subject, body = message
        self._in_background("send_mail", self.mailer.send, email, subject, body)

    def _invalidate_list_cache(self) -> None:
        self._in_background("invalidate_list_cache", self.cache.delete_prefix, LIST_CACHE_PREFIX)

    def _otp_sent_message(self, code: str) -> str:
        if self.reveal_otp:
            return translate("auth.emailCodeSentWithOtp", code=code)
        return translate("auth.emailCodeSent")

    # -- persistence ------------------------------------------------------

    def _create(self, data: Dict[str, Any]) -> User:
        try:
            user = self.repo.create(data)
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email
            raise ConflictException("error.emailExist") from e
        except SQLAlchemyError as e:
            logger.exception("User creation failed")
            raise ServerError() from e
        self._invalidate_list_cache()
        return user

    def _update(self, user: User, data: Dict[str, Any], soft_delete: bool = False) -> User:
        try:
            if soft_delete:
                updated = self.repo.soft_delete(user, data)
            else:
                updated = self.repo.update(user, data)
        except SQLAlchemyError as e:
            logger.exception("User update failed", user_id=user.id)
            raise ServerError() from e
        self._invalidate_list_cache()
        return updated

    def _issue_session(self, user: User, fcm_token: Optional[str], extra: Dict[str, Any]) -> AuthResult:
        token = self.tokens.issue(user.id, user.role)
        # Overwrites any earlier token: older sessions stop matching
        user = self._update(user, {"auth_token": token, "fcm_token": fcm_token, **extra})
        return AuthResult(token=token, user=user)

    # -- registration & email verification -------------------------------

    def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: Optional[str] = None,
        phone_code: Optional[str] = None,
        phone_number: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> str:
        """Create an unverified account and mail its OTP. No token is issued."""
        email = _normalize_email(email)
        if self.repo.email_exists(email):
            raise ConflictException("error.emailExist")

        otp = self.otp_generator.generate()
        data = {
            "email": email,
            "password_hash": self.hasher.hash(password),
            "first_name": first_name,
            "last_name": last_name,
            "email_verification_otp": otp,
            "is_email_verified": False,
            "status": UserStatus.ACTIVE,
            "role": UserRole.USER,
            "profile_picture": profile_picture,
        }
        if phone_code and phone_number:
            data.update(phone_code=phone_code, phone_number=phone_number)

        user = self._create(data)
        logger.info("User registered", user_id=user.id)
        self._send_mail(email, verification_email(otp))
        return self._otp_sent_message(otp)

    def resend_otp(self, email: str) -> str:
        email = _normalize_email(email)
        user = self.repo.get_by_email(email)
        if user is None:
            raise EntityNotFoundException("error.userNotFound")
        if user.is_email_verified:
            raise AlreadyVerifiedException()

        otp = self.otp_generator.generate()
        self._update(user, {"email_verification_otp": otp})
        self._send_mail(email, verification_email(otp))
        return self._otp_sent_message(otp)

    def verify_otp(self, email: str, otp: str, fcm_token: Optional[str] = None) -> AuthResult:
        user = self.repo.get_by_email(_normalize_email(email))
        if user is None:
            raise EntityNotFoundException("error.userNotFound")
        if not user.email_verification_otp or user.email_verification_otp != str(otp):
            raise InvalidOtpException()

        result = self._issue_session(
            user,
            fcm_token,
            {"email_verification_otp": None, "is_email_verified": True},
        )
        logger.info("Email verified", user_id=user.id)
        return result

    # -- sessions ---------------------------------------------------------

    def login(self, email: str, password: str, fcm_token: Optional[str] = None) -> AuthResult:
        user = self.repo.get_by_email(_normalize_email(email))
        if user is None or not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentialsException()

        result = self._issue_session(user, fcm_token, {})
        logger.info("User logged in", user_id=user.id)
        return result

    def logout(self, user: User) -> None:
        self._update(user, {"auth_token": None, "fcm_token": None})
        logger.info("User logged out", user_id=user.id)

    def delete_account(self, user: User) -> None:
        """Soft delete; the live-record filters hide the user from then on."""
        self._update(user, {"auth_token": None, "fcm_token": None}, soft_delete=True)
        logger.info("Account deleted", user_id=user.id)

    # -- passwords --------------------------------------------------------

    def change_password(self, user: User, old_password: str, new_password: str) -> None:
        if not self.hasher.verify(old_password, user.password_hash):
            raise InvalidOldPasswordException()
        self._update(user, {"password_hash": self.hasher.hash(new_password)})

    def forgot_password(self, email: str) -> str:
        email = _normalize_email(email)
        user = self.repo.get_by_email(email)
        if user is None:
            raise InvalidEmailException()

        otp = self.otp_generator.generate()
        self._update(user, {"forgot_password_otp": otp})
        self._send_mail(email, forgot_password_email(otp))
        return self._otp_sent_message(otp)

    def verify_forgot_password_otp(self, email: str, otp: str) -> int:
        """Consume the reset OTP; returns the user id ResetPassword expects."""
        user = self.repo.get_by_email(_normalize_email(email))
        if user is None:
            raise InvalidEmailException()
        if not user.forgot_password_otp or user.forgot_password_otp != str(otp):
            raise InvalidOtpException()

        self._update(
            user,
            {"email_verification_otp": None, "forgot_password_otp": None, "is_email_verified": True},
        )
        return user.id

    def reset_password(self, user_id: int, new_password: str) -> None:
        user = self.repo.get_by_id(user_id)
        if user is None:
            raise UserNotExistException()
        if user.forgot_password_otp:
            raise OtpNotVerifiedException()
        self._update(user, {"password_hash": self.hasher.hash(new_password)})

    # -- profile ----------------------------------------------------------

    def update_profile(self, user: User, changes: Dict[str, Any]) -> User:
        allowed = {"first_name", "last_name", "phone_code", "phone_number", "profile_picture"}
        data = {key: value for key, value in changes.items() if key in allowed}
        if not data:
            return user
        return self._update(user, data)

    def list_users(self, page: Any = None, limit: Any = None, role: Optional[UserRole] = UserRole.USER) -> UserPage:
        """Paginated live users, newest first, served from the list cache when warm.

        Timestamps are UTC here; callers localise them per request.
        """
        # Keyed by the clamped page, not the requested one
        pagination = calculate_pagination(self.repo.count(role), page, limit)
        role_key = role.value if role else "all"
        cache_key = f"{LIST_CACHE_PREFIX}page:{pagination.current_page}:limit:{pagination.limit}:role:{role_key}"

        cached = self.cache.get(cache_key)
        if cached is not None:
            return UserPage.model_validate(cached)

        users = self.repo.list_page(pagination.offset, pagination.limit, role)
        result = UserPage(
            data=[UserRead.model_validate(user) for user in users],
            pagination=PaginationMeta(
                total=pagination.total_items,
                current_page=pagination.current_page,
                total_pages=pagination.total_pages,
                per_page=pagination.limit,
            ),
        )
        self.cache.set(cache_key, result.model_dump(mode="json"), self.cache_ttl)
        return result
