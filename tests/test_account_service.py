import pytest

from accounts.application.services.account_service import LIST_CACHE_PREFIX
from accounts.core.exceptions import (
    AlreadyVerifiedException,
    ConflictException,
    EntityNotFoundException,
    InvalidCredentialsException,
    InvalidEmailException,
    InvalidOldPasswordException,
    InvalidOtpException,
    OtpNotVerifiedException,
    UnauthorizedException,
    UserNotExistException,
)
from accounts.domain.models.user import User, UserRole

EMAIL = "a@x.com"
PASSWORD = "Passw0rd!"


def register_and_verify(service, mailer, email=EMAIL, password=PASSWORD):
    service.register(email=email, password=password, first_name="Ada")
    return service.verify_otp(email, mailer.last_otp(email))


def wrong_otp(code):
    return "0" * len(code) if code != "0" * len(code) else "1" * len(code)


def test_register_creates_unverified_user_and_mails_otp(service, repo, mailer):
    message = service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    user = repo.get_by_email(EMAIL)
    assert user.is_email_verified is False
    assert user.password_hash != PASSWORD
    assert user.auth_token is None
    assert user.role == UserRole.USER
    assert len(user.email_verification_otp) == 6
    assert mailer.last_otp(EMAIL) == user.email_verification_otp
    assert message == "Verification code sent to your email"


def test_register_reveals_otp_in_development(service, repo):
    service.reveal_otp = True
    message = service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    assert repo.get_by_email(EMAIL).email_verification_otp in message


def test_register_normalizes_email(service, repo):
    service.register(email="  A@X.com ", password=PASSWORD, first_name="Ada")

    assert repo.get_by_email(EMAIL) is not None


def test_duplicate_registration_conflicts(service, repo, db):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    with pytest.raises(ConflictException):
        service.register(email="A@x.com", password=PASSWORD, first_name="Eve")

    assert db.query(User).count() == 1
    assert repo.count() == 1


def test_email_can_be_reused_after_soft_delete(service, mailer, db):
    result = register_and_verify(service, mailer)
    service.delete_account(result.user)

    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    assert db.query(User).count() == 2


def test_mail_failure_does_not_fail_registration(service, repo, mailer):
    mailer.fail = True

    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    assert repo.get_by_email(EMAIL) is not None


def test_resend_otp_replaces_code(service, repo, mailer):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")
    first = mailer.last_otp(EMAIL)

    service.resend_otp(EMAIL)

    assert len(mailer.sent) == 2
    assert repo.get_by_email(EMAIL).email_verification_otp == mailer.last_otp(EMAIL)
    if mailer.last_otp(EMAIL) != first:
        with pytest.raises(InvalidOtpException):
            service.verify_otp(EMAIL, first)


def test_resend_otp_unknown_email(service):
    with pytest.raises(EntityNotFoundException):
        service.resend_otp("nobody@x.com")


def test_resend_otp_after_verification(service, mailer):
    register_and_verify(service, mailer)

    with pytest.raises(AlreadyVerifiedException):
        service.resend_otp(EMAIL)


def test_verify_otp_unknown_email(service):
    with pytest.raises(EntityNotFoundException):
        service.verify_otp("nobody@x.com", "123456")


def test_otp_is_single_use(service, mailer):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")
    code = mailer.last_otp(EMAIL)

    service.verify_otp(EMAIL, code)

    with pytest.raises(InvalidOtpException):
        service.verify_otp(EMAIL, code)


def test_verify_stores_fcm_token(service, mailer):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    result = service.verify_otp(EMAIL, mailer.last_otp(EMAIL), fcm_token="device-1")

    assert result.user.fcm_token == "device-1"
    assert result.user.auth_token == result.token


def test_scenario_register_then_verify(service, repo, mailer):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")
    assert repo.get_by_email(EMAIL).is_email_verified is False
    code = mailer.last_otp(EMAIL)

    with pytest.raises(InvalidOtpException):
        service.verify_otp(EMAIL, wrong_otp(code))

    result = service.verify_otp(EMAIL, code)

    assert result.token
    assert result.user.is_email_verified is True
    assert result.user.email_verification_otp is None


def test_relogin_invalidates_previous_token(service, guard, mailer):
    first = register_and_verify(service, mailer).token

    second = service.login(EMAIL, PASSWORD).token

    with pytest.raises(UnauthorizedException) as exc:
        guard.authenticate(first)
    assert exc.value.key == "auth.tokenMismatch"
    assert guard.authenticate(second).email == EMAIL


def test_login_does_not_require_verified_email(service):
    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    assert service.login(EMAIL, PASSWORD).token


def test_login_errors_are_indistinguishable(service, mailer):
    register_and_verify(service, mailer)

    with pytest.raises(InvalidCredentialsException) as wrong_password:
        service.login(EMAIL, "Wrong@123")
    with pytest.raises(InvalidCredentialsException) as unknown_email:
        service.login("nobody@x.com", PASSWORD)

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.status_code == unknown_email.value.status_code == 400


def test_logout_clears_session(service, guard, mailer):
    result = register_and_verify(service, mailer)

    service.logout(result.user)

    assert result.user.auth_token is None
    assert result.user.fcm_token is None
    with pytest.raises(UnauthorizedException):
        guard.authenticate(result.token)


def test_deleted_account_cannot_login(service, guard, mailer):
    result = register_and_verify(service, mailer)

    service.delete_account(result.user)

    assert result.user.deleted_at is not None
    with pytest.raises(InvalidCredentialsException):
        service.login(EMAIL, PASSWORD)
    with pytest.raises(UnauthorizedException):
        guard.authenticate(result.token)


def test_change_password(service, mailer):
    user = register_and_verify(service, mailer).user

    service.change_password(user, PASSWORD, "NewPass1!")

    assert service.login(EMAIL, "NewPass1!").token
    with pytest.raises(InvalidCredentialsException):
        service.login(EMAIL, PASSWORD)


def test_change_password_checks_old_password(service, mailer):
    user = register_and_verify(service, mailer).user

    with pytest.raises(InvalidOldPasswordException):
        service.change_password(user, "Wrong@123", "NewPass1!")


def test_forgot_password_unknown_email(service):
    with pytest.raises(InvalidEmailException):
        service.forgot_password("nobody@x.com")


def test_forgot_password_uses_separate_otp(service, repo, mailer):
    register_and_verify(service, mailer)

    service.forgot_password(EMAIL)

    user = repo.get_by_email(EMAIL)
    assert user.forgot_password_otp == mailer.last_otp(EMAIL)
    assert user.email_verification_otp is None


def test_scenario_reset_requires_verified_otp(service, repo, mailer):
    register_and_verify(service, mailer)
    service.forgot_password(EMAIL)
    code = mailer.last_otp(EMAIL)
    user_id = repo.get_by_email(EMAIL).id

    with pytest.raises(OtpNotVerifiedException):
        service.reset_password(user_id, "NewPass1!")

    with pytest.raises(InvalidOtpException):
        service.verify_forgot_password_otp(EMAIL, wrong_otp(code))

    assert service.verify_forgot_password_otp(EMAIL, code) == user_id
    service.reset_password(user_id, "NewPass1!")

    user = repo.get_by_email(EMAIL)
    assert user.forgot_password_otp is None
    assert user.is_email_verified is True
    assert service.login(EMAIL, "NewPass1!").token


def test_verify_forgot_password_otp_without_request(service, mailer):
    register_and_verify(service, mailer)

    with pytest.raises(InvalidOtpException):
        service.verify_forgot_password_otp(EMAIL, "123456")


def test_reset_password_unknown_user(service):
    with pytest.raises(UserNotExistException):
        service.reset_password(999, "NewPass1!")


def test_update_profile_ignores_unknown_fields(service, mailer):
    user = register_and_verify(service, mailer).user

    updated = service.update_profile(user, {"first_name": "Grace", "role": "admin", "email": "evil@x.com"})

    assert updated.first_name == "Grace"
    assert updated.role == UserRole.USER
    assert updated.email == EMAIL


def test_list_users_paginates_newest_first(service, mailer):
    for index in range(3):
        service.register(email=f"user{index}@x.com", password=PASSWORD, first_name=f"User{index}")

    page = service.list_users(page=1, limit=2)

    assert page.pagination.total == 3
    assert page.pagination.total_pages == 2
    assert page.pagination.per_page == 2
    assert [user.email for user in page.data] == ["user2@x.com", "user1@x.com"]

    last = service.list_users(page=99, limit=2)
    assert last.pagination.current_page == 2
    assert [user.email for user in last.data] == ["user0@x.com"]


def test_list_users_excludes_admins_and_deleted(service, repo, mailer):
    repo.create({"email": "root@x.com", "password_hash": "x", "first_name": "Root", "role": UserRole.ADMIN})
    result = register_and_verify(service, mailer)
    service.register(email="b@x.com", password=PASSWORD, first_name="Bea")
    service.delete_account(result.user)

    page = service.list_users()

    assert [user.email for user in page.data] == ["b@x.com"]


def test_list_users_served_from_cache_until_mutation(service, cache):
    service.register(email="b@x.com", password=PASSWORD, first_name="Bea")

    first = service.list_users()
    assert any(key.startswith(LIST_CACHE_PREFIX) for key in cache.store)

    service.repo.create({"email": "c@x.com", "password_hash": "x", "first_name": "Cy"})
    assert service.list_users().pagination.total == first.pagination.total

    service.register(email="d@x.com", password=PASSWORD, first_name="Di")
    assert not cache.store
    assert service.list_users().pagination.total == 3


def test_list_users_cache_key_uses_clamped_page(service, cache):
    for index in range(3):
        service.register(email=f"user{index}@x.com", password=PASSWORD, first_name=f"User{index}")

    service.list_users(page=5, limit=2)
    service.list_users(page=9, limit=2)

    assert list(cache.store) == [f"{LIST_CACHE_PREFIX}page:2:limit:2:role:user"]


def test_cache_invalidation_failure_does_not_fail_registration(service, repo, cache):
    def unavailable(prefix):
        raise ConnectionError("redis down")

    cache.delete_prefix = unavailable

    service.register(email=EMAIL, password=PASSWORD, first_name="Ada")

    assert repo.get_by_email(EMAIL) is not None


def test_email_exists_is_case_insensitive_and_skips_deleted(service, repo, mailer):
    result = register_and_verify(service, mailer)
    assert repo.email_exists(" A@X.com ") is True

    service.delete_account(result.user)

    assert repo.email_exists(EMAIL) is False
