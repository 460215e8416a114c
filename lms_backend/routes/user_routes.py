from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from pydantic import ValidationError as PydanticValidationError

from lms_backend.auth.dependencies import (
    get_auth_gateway,
    get_current_user_id,
    get_profile_service,
    get_reset_flow,
    get_token_issuer,
)
from lms_backend.auth.jwt_handler import TokenIssuer
from lms_backend.core import config
from lms_backend.core.errors import ValidationError, field_errors
from lms_backend.models.user import User
from lms_backend.routes.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
    UpdateProfileRequest,
    UserProfile,
)
from lms_backend.services.auth_gateway import AuthGateway
from lms_backend.services.password_reset import ResetFlow
from lms_backend.services.profile import ProfileService

router = APIRouter(tags=['user'])


def set_session_cookie(response: Response, token: str, tokens: TokenIssuer) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=tokens.max_age_seconds,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='strict',
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='strict',
    )


def profile_payload(user: User) -> dict:
    return UserProfile.model_validate(user).model_dump(mode='json')


@router.post('/signup', status_code=status.HTTP_201_CREATED)
def sign_up(
    data: SignUpRequest,
    response: Response,
    gateway: AuthGateway = Depends(get_auth_gateway),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    user, token = gateway.sign_up(data.email, data.name, data.password, data.role)
    set_session_cookie(response, token, tokens)
    return {'success': True, 'message': 'Account created successfully.', 'data': profile_payload(user)}


@router.post('/signin')
def sign_in(
    data: SignInRequest,
    response: Response,
    gateway: AuthGateway = Depends(get_auth_gateway),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    user, token = gateway.sign_in(data.email, data.password)
    set_session_cookie(response, token, tokens)
    return {'success': True, 'message': f'Welcome back {user.name}.', 'data': profile_payload(user)}


@router.get('/signout', dependencies=[Depends(get_current_user_id)])
def sign_out(response: Response):
    # Tokens are stateless; signing out only drops the cookie.
    clear_session_cookie(response)
    return {'success': True, 'message': 'Signed out successfully.'}


@router.get('/profile')
def get_profile(
    user_id: int = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = profiles.get_profile(user_id)
    return {'success': True, 'data': profile_payload(user)}


@router.patch('/update-profile')
def update_profile(
    name: str | None = Form(None),
    email: str | None = Form(None),
    bio: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    user_id: int = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
):
    try:
        data = UpdateProfileRequest(name=name, email=email, bio=bio)
    except PydanticValidationError as exc:
        raise ValidationError(errors=field_errors(exc.errors())) from exc

    avatar_upload = None
    if avatar is not None and avatar.filename:
        # One byte past the limit is enough for storage to reject the upload.
        avatar_upload = (avatar.filename, avatar.file.read(config.MAX_AVATAR_BYTES + 1))

    user = profiles.update_profile(
        user_id,
        name=data.name,
        email=data.email,
        bio=data.bio,
        avatar=avatar_upload,
    )
    return {'success': True, 'message': 'Profile updated successfully.', 'data': profile_payload(user)}


@router.post('/change-password')
def change_password(
    data: ChangePasswordRequest,
    user_id: int = Depends(get_current_user_id),
    gateway: AuthGateway = Depends(get_auth_gateway),
):
    gateway.change_password(user_id, data.old_password, data.new_password)
    return {'success': True, 'message': 'Password changed successfully.'}


@router.post('/forgot-password')
def forgot_password(data: ForgotPasswordRequest, resets: ResetFlow = Depends(get_reset_flow)):
    resets.request_reset(data.email)
    return {
        'success': True,
        'message': 'If an account exists for that email, reset instructions have been sent.',
    }


@router.post('/reset-password/{token}')
def reset_password(token: str, data: ResetPasswordRequest, resets: ResetFlow = Depends(get_reset_flow)):
    resets.redeem(token, data.new_password)
    return {'success': True, 'message': 'Password reset successful.'}


@router.delete('/account')
def delete_account(
    response: Response,
    user_id: int = Depends(get_current_user_id),
    profiles: ProfileService = Depends(get_profile_service),
):
    profiles.delete_account(user_id)
    clear_session_cookie(response)
    return {'success': True, 'message': 'User account deleted successfully.'}
