"""
User endpoints — registration, login, password reset and user management.

- register / login / reset endpoints are public.
- Everything else requires an authenticated caller; updates and deletes
  are further gated by ``app.core.permissions``.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import (APIRouter, BackgroundTasks, Body, Depends, File, Form,
                     Request, Response, UploadFile, status)
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_user, get_db
from app.api.v1.endpoints.employees import purge_employee
from app.core.config import settings
from app.core.email import Mailer, build_reset_link, get_mailer, render_template
from app.core.exceptions import (BadInputError, ConflictError, ForbiddenError,
                                 NotFoundError, UnauthorizedError)
from app.core.permissions import can_change_role, can_delete_user, can_update_user
from app.core.rate_limit import limiter
from app.core.security import (access_token_lifetime, create_access_token,
                               create_reset_token, decode_reset_token,
                               get_password_hash, verify_password)
from app.core.uploads import read_image
from app.models.employee import Employee
from app.models.enums import Currency, Department, Role, TechStack
from app.models.expense import Expense
from app.models.user import ResetToken, User
from app.schemas.common import MessageResponse, normalise_email
from app.schemas.user import (AuthResponse, LoginRequest, ResetPassword,
                              ResetPasswordRequest, UserDelete, UserRead,
                              UserUpdate)

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password."
_INVALID_RESET_LINK = "Link is invalid or has expired."
_RESET_EMAIL_SENT = "If an account exists for this email, a reset link has been sent."


# ── Helpers ─────────────────────────────────────────────────────────
async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def _create_user(db: AsyncSession, user: User) -> User:
    db.add(user)
    await db.commit()
    return user


def _auth_response(user: User, remember_me: bool = False) -> tuple[AuthResponse, int]:
    lifetime = access_token_lifetime(remember_me)
    token = create_access_token(user.id, expires_delta=lifetime)
    expires_in = int(lifetime.total_seconds())
    body = AuthResponse(user=UserRead.model_validate(user), token=token, expires_in=expires_in)
    return body, expires_in


def _set_auth_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=max_age,
    )


# ── Registration & session ──────────────────────────────────────────
@router.post("/register", response_model=AuthResponse, status_code=201)
async def register_user(
    response: Response,
    email: str | None = Form(default=None),
    password: str | None = Form(default=None),
    first_name: str | None = Form(default=None, alias="firstName"),
    last_name: str | None = Form(default=None, alias="lastName"),
    department: Department | None = Form(default=None),
    salary: float | None = Form(default=None),
    currency: Currency | None = Form(default=None),
    tech_stack: list[TechStack] | None = Form(default=None, alias="techStack"),
    image: UploadFile | None = File(default=None),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create an Employee and its linked Guest User, then sign the user in."""
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    if not email or not password or not first_name or not last_name:
        raise BadInputError("Missing required fields.")
    try:
        email = normalise_email(email)
    except ValueError:
        raise BadInputError("Invalid email address.") from None

    if await _get_user_by_email(db, email) is not None:
        raise ConflictError("Email already registered.")

    image_data = await read_image(image)
    hashed_password = get_password_hash(password)

    employee = Employee(
        first_name=first_name,
        last_name=last_name,
        department=department,
        salary=salary,
        currency=currency,
        image=image_data,
        is_employed=True,
        is_employed_date=datetime.now(timezone.utc),
    )
    employee.tech_stack = tech_stack or []
    db.add(employee)
    await db.commit()
    employee_id = employee.id

    try:
        user = await _create_user(
            db,
            User(
                email=email,
                hashed_password=hashed_password,
                first_name=first_name,
                last_name=last_name,
                role=Role.GUEST,
                image=image_data,
                employee_id=employee_id,
            ),
        )
    except Exception:
        # Never leave an employee behind without its user
        await db.rollback()
        orphan = await db.get(Employee, employee_id)
        if orphan is not None:
            await db.delete(orphan)
            await db.commit()
        logger.warning("Registration of %s failed; removed employee %d", email, employee_id)
        raise

    user = await _get_user_or_404(db, user.id)
    body, expires_in = _auth_response(user)
    _set_auth_cookie(response, body.token, expires_in)
    logger.info("Registered user %d (%s)", user.id, email)
    return body


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_user(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate with email/password. Sets an HttpOnly cookie as well."""
    if not body.email or not body.password:
        raise BadInputError("Missing required fields.")

    user = await _get_user_by_email(db, body.email.lower().strip())
    # Same message for unknown email and wrong password
    if user is None or not verify_password(body.password, user.hashed_password):
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    auth, expires_in = _auth_response(user, body.remember_me)
    _set_auth_cookie(response, auth.token, expires_in)
    logger.info("User %d logged in (remember_me=%s)", user.id, body.remember_me)
    return auth


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear the auth cookie and end the session."""
    response.delete_cookie("access_token")
    return MessageResponse(message="Logged out.")


@router.get("/me", response_model=UserRead)
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user


# ── Password reset ──────────────────────────────────────────────────
@router.post("/reset-password-request", response_model=MessageResponse)
@limiter.limit(settings.RESET_RATE_LIMIT)
async def request_password_reset(
    request: Request,
    body: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Email a reset link. The reply is identical whether or not the email is known."""
    if not body.email:
        raise BadInputError("Email not provided.")

    user = await _get_user_by_email(db, body.email.lower().strip())
    if user is None:
        logger.info("Password reset requested for an unknown email")
        return MessageResponse(message=_RESET_EMAIL_SENT)

    result = await db.execute(select(ResetToken).where(ResetToken.user_id == user.id))
    token_obj = result.scalar_one_or_none()
    if token_obj is not None and token_obj.is_expired():
        await db.delete(token_obj)
        await db.flush()
        token_obj = None

    if token_obj is None:
        token_obj = ResetToken(
            user_id=user.id,
            token=create_reset_token(user.id),
            expiration_time=datetime.now(timezone.utc)
            + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        )
        db.add(token_obj)
        logger.info("Issued password reset token for user %d", user.id)
    await db.commit()

    html = render_template(
        "reset_password.html",
        first_name=user.first_name,
        project_name=settings.PROJECT_NAME,
        reset_link=build_reset_link(user.id, token_obj.token),
        valid_minutes=settings.RESET_TOKEN_EXPIRE_MINUTES,
    )
    background_tasks.add_task(mailer.send, user.email, "Password Reset Request", html)
    return MessageResponse(message=_RESET_EMAIL_SENT)


@router.post("/{user_id}/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    user_id: int,
    token: str,
    body: ResetPassword,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Consume a reset token and set a new password. Tokens are single-use."""
    user = await db.get(User, user_id)
    if user is None:
        raise BadInputError(_INVALID_RESET_LINK)

    result = await db.execute(
        select(ResetToken).where(ResetToken.user_id == user.id, ResetToken.token == token)
    )
    token_obj = result.scalar_one_or_none()
    payload = decode_reset_token(token)
    if (
        token_obj is None
        or token_obj.is_expired()
        or payload is None
        or payload.get("sub") != str(user.id)
    ):
        raise BadInputError(_INVALID_RESET_LINK)

    if not body.password:
        raise BadInputError("Password not provided.")

    user.hashed_password = get_password_hash(body.password)
    await db.delete(token_obj)
    await db.commit()
    logger.info("Password reset for user %d", user.id)
    return MessageResponse(message="Your password has been reset successfully.")


# ── User management ─────────────────────────────────────────────────
@router.get("", response_model=list[UserRead])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> User:
    return await _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    """Partial update; only fields present in the body are touched."""
    target = await _get_user_or_404(db, user_id)

    decision = can_update_user(current_user, target)
    if not decision:
        raise ForbiddenError(decision.reason)

    changes = body.provided()
    if "role" in changes:
        decision = can_change_role(current_user, target, changes["role"])
        if not decision:
            raise ForbiddenError(decision.reason)

    if "email" in changes and changes["email"] != target.email:
        existing = await _get_user_by_email(db, changes["email"])
        if existing is not None and existing.id != target.id:
            raise ConflictError("User already exists.")

    if "password" in changes:
        target.hashed_password = get_password_hash(changes.pop("password"))

    for field, value in changes.items():
        setattr(target, field, value)

    await db.commit()
    logger.info("Updated user %d (fields: %s)", user_id, sorted(body.model_fields_set))
    return await _get_user_or_404(db, user_id)


@router.put("/{user_id}/image", response_model=UserRead)
async def upload_user_image(
    user_id: int,
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    """Replace the profile image with a multipart upload."""
    target = await _get_user_or_404(db, user_id)
    decision = can_update_user(current_user, target)
    if not decision:
        raise ForbiddenError(decision.reason)

    image_data = await read_image(image)
    if image_data is None:
        raise BadInputError("Image not provided.")
    target.image = image_data
    await db.commit()
    logger.info("Replaced image of user %d", user_id)
    return await _get_user_or_404(db, user_id)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    body: UserDelete | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete a user together with its employee and that employee's project memberships."""
    target = await _get_user_or_404(db, user_id)

    decision = can_delete_user(current_user, target, body.user_id if body else None)
    if not decision:
        raise ForbiddenError(decision.reason)

    employee = target.employee
    await db.execute(delete(ResetToken).where(ResetToken.user_id == target.id))
    await db.execute(update(Expense).where(Expense.owner_id == target.id).values(owner_id=None))
    await db.delete(target)
    await db.flush()
    if employee is not None:
        await purge_employee(db, employee)
    await db.commit()

    logger.info("Deleted user %d", user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)