"""User account routes — registration, OTP verification, sessions, passwords, profile."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from accounts.application.services.account_service import AccountService
from accounts.core.responses import created, success
from accounts.domain.models.user import User
from accounts.domain.schemas.user import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    OtpRequest,
    ProfileUpdateForm,
    RegisterForm,
    ResetPasswordRequest,
    TokenResponse,
    UserPage,
    format_user,
)
from accounts.infrastructure.storage import LocalImageStorage
from accounts.interfaces.api.deps import get_current_user, get_timezone, require_admin
from accounts.interfaces.deps import get_account_service, get_storage
from accounts.interfaces.realtime.notifications import USER_PROFILE_VIEWED, manager

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def register_form(
    first_name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    last_name: Optional[str] = Form(None),
    phone_code: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None),
) -> RegisterForm:
    try:
        return RegisterForm(
            first_name=first_name,
            last_name=_blank_to_none(last_name),
            email=email,
            password=password,
            confirm_password=confirm_password,
            phone_code=_blank_to_none(phone_code),
            phone_number=_blank_to_none(phone_number),
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


def profile_update_form(
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    phone_code: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None),
) -> ProfileUpdateForm:
    # Only fields the client actually sent count as changes
    sent = {
        "first_name": first_name,
        "last_name": last_name,
        "phone_code": phone_code,
        "phone_number": phone_number,
    }
    try:
        return ProfileUpdateForm(**{key: value for key, value in sent.items() if value is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


def _save_image(storage: LocalImageStorage, image: Optional[UploadFile], request: Request) -> Optional[str]:
    if image is None or not image.filename:
        return None
    return storage.save(image, str(request.base_url))


@router.post("/create", status_code=201)
def register(
    request: Request,
    form: RegisterForm = Depends(register_form),
    image: Optional[UploadFile] = File(None),
    service: AccountService = Depends(get_account_service),
    storage: LocalImageStorage = Depends(get_storage),
):
    profile_picture = _save_image(storage, image, request)
    try:
        message = service.register(
            email=form.email,
            password=form.password,
            first_name=form.first_name,
            last_name=form.last_name,
            phone_code=form.phone_code,
            phone_number=form.phone_number,
            profile_picture=profile_picture,
        )
    except Exception:
        storage.delete(profile_picture)
        raise
    return created(message, True)


@router.post("/resend-otp")
def resend_otp(body: EmailRequest, service: AccountService = Depends(get_account_service)):
    return success(service.resend_otp(body.email), True)


@router.post("/verify")
def verify_otp(
    body: OtpRequest,
    fcm_token: Optional[str] = Header(default=None, alias="fcm-token"),
    tz: str = Depends(get_timezone),
    service: AccountService = Depends(get_account_service),
):
    result = service.verify_otp(body.email, body.otp, fcm_token)
    return success("auth.otpVerified", TokenResponse(token=result.token, user=format_user(result.user, tz)))


@router.post("/login")
def login(
    body: LoginRequest,
    fcm_token: Optional[str] = Header(default=None, alias="fcm-token"),
    tz: str = Depends(get_timezone),
    service: AccountService = Depends(get_account_service),
):
    result = service.login(body.email, body.password, fcm_token)
    return success("auth.loggedIn", TokenResponse(token=result.token, user=format_user(result.user, tz)))


@router.post("/forgot-password")
def forgot_password(body: EmailRequest, service: AccountService = Depends(get_account_service)):
    return success(service.forgot_password(body.email), True)


@router.post("/forgot-password/verify-otp")
def verify_forgot_password_otp(body: OtpRequest, service: AccountService = Depends(get_account_service)):
    user_id = service.verify_forgot_password_otp(body.email, body.otp)
    return success("auth.otpVerified", {"user": {"id": user_id}})


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest, service: AccountService = Depends(get_account_service)):
    service.reset_password(body.user_id, body.password)
    return success("auth.passwordChanged", True)


@router.get("/profile")
def get_profile(
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    tz: str = Depends(get_timezone),
):
    background_tasks.add_task(
        manager.emit_to_users,
        [user.id],
        USER_PROFILE_VIEWED,
        {"message": "Profile viewed", "time": datetime.now(timezone.utc).isoformat()},
    )
    return success("success.userProfile", format_user(user, tz))


@router.patch("/profile")
def update_profile(
    request: Request,
    form: ProfileUpdateForm = Depends(profile_update_form),
    image: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    tz: str = Depends(get_timezone),
    service: AccountService = Depends(get_account_service),
    storage: LocalImageStorage = Depends(get_storage),
):
    changes = form.model_dump(exclude_unset=True)
    previous_picture = user.profile_picture
    new_picture = _save_image(storage, image, request)
    if new_picture:
        changes["profile_picture"] = new_picture
    try:
        updated = service.update_profile(user, changes)
    except Exception:
        storage.delete(new_picture)
        raise
    if new_picture and previous_picture:
        storage.delete(previous_picture)
    return success("success.profileUpdated", format_user(updated, tz))


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    service.change_password(user, body.old_password, body.new_password)
    return success("auth.passwordChanged", True)


@router.get("/logout")
def logout(user: User = Depends(get_current_user), service: AccountService = Depends(get_account_service)):
    service.logout(user)
    return success("auth.logoutSuccess", True)


@router.delete("")
def delete_account(user: User = Depends(get_current_user), service: AccountService = Depends(get_account_service)):
    service.delete_account(user)
    return success("auth.deleteAccount", True)


@router.get("")
def list_users(
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    admin: User = Depends(require_admin),
    tz: str = Depends(get_timezone),
    service: AccountService = Depends(get_account_service),
):
    result = service.list_users(page, limit)
    localized = UserPage(data=[format_user(item, tz) for item in result.data], pagination=result.pagination)
    message = "success.usersData" if localized.data else "success.noRecordsFound"
    return success(message, localized)
