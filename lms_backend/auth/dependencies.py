import logging

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lms_backend.auth.jwt_handler import TokenIssuer
from lms_backend.core import config
from lms_backend.core.errors import StoreUnavailable
from lms_backend.database import StoreHandle, get_db, get_store
from lms_backend.services.auth_gateway import AuthGateway, authenticate_token
from lms_backend.services.credentials import CredentialStore
from lms_backend.services.media import LocalMediaStorage
from lms_backend.services.password_reset import ResetFlow
from lms_backend.services.profile import ProfileService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def touch_last_active_in_background(store: StoreHandle, user_id: int) -> None:
    try:
        with store.session() as db:
            CredentialStore(db).touch_last_active(user_id)
    except StoreUnavailable:
        logger.warning("Skipped last activity update for user id=%s; store not ready.", user_id)


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def get_credentials(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_auth_gateway(
    background_tasks: BackgroundTasks,
    store: StoreHandle = Depends(get_store),
    credentials: CredentialStore = Depends(get_credentials),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthGateway:
    def record_activity(user_id: int) -> None:
        background_tasks.add_task(touch_last_active_in_background, store, user_id)

    return AuthGateway(credentials, tokens, record_activity=record_activity)


def get_reset_flow(
    request: Request,
    credentials: CredentialStore = Depends(get_credentials),
) -> ResetFlow:
    return ResetFlow(credentials, request.app.state.mailer)


def get_profile_service(
    request: Request,
    credentials: CredentialStore = Depends(get_credentials),
) -> ProfileService:
    media: LocalMediaStorage = request.app.state.media
    return ProfileService(credentials, media)


def get_current_user_id(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(security),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> int:
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token and bearer is not None:
        token = bearer.credentials
    return authenticate_token(tokens, token)
