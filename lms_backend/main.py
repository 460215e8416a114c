import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms_backend.auth.jwt_handler import TokenIssuer
from lms_backend.core import config
from lms_backend.core.errors import AccountError, StoreUnavailable, ValidationError, field_errors
from lms_backend.database import StoreHandle
from lms_backend.models import user  # noqa: F401  registers the users table
from lms_backend.routes import user_routes
from lms_backend.services.mailer import ResetMailer, get_reset_mailer
from lms_backend.services.media import LocalMediaStorage, get_media_storage

logger = logging.getLogger(__name__)

HTTP_ERROR_KINDS = {
    404: ('NotFound', 'Route not found!'),
    405: ('MethodNotAllowed', 'Method not allowed.'),
}


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountError)
    async def handle_account_error(request: Request, exc: AccountError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        error = ValidationError(errors=field_errors(exc.errors()))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        kind, message = HTTP_ERROR_KINDS.get(exc.status_code, ('HTTPError', str(exc.detail)))
        return JSONResponse(
            status_code=exc.status_code,
            content={'success': False, 'error': kind, 'message': message},
            headers=getattr(exc, 'headers', None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.exception('Database error while handling %s %s', request.method, request.url.path)
        error = StoreUnavailable()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception('Unhandled error while handling %s %s', request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={'success': False, 'error': 'InternalError', 'message': 'Internal Server Error.'},
        )


def create_app(
    store: StoreHandle | None = None,
    tokens: TokenIssuer | None = None,
    mailer: ResetMailer | None = None,
    media: LocalMediaStorage | None = None,
) -> FastAPI:
    app = FastAPI(title='LMS Accounts API')

    app.state.store = store or StoreHandle()
    app.state.tokens = tokens or TokenIssuer()
    app.state.mailer = mailer or get_reset_mailer()
    app.state.media = media or get_media_storage()
    app.state.connect_outcome = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.CLIENT_URL],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    @app.on_event('startup')
    def initialize_database() -> None:
        config.validate_runtime_config()
        store_handle: StoreHandle = app.state.store
        if not store_handle.is_ready:
            outcome = store_handle.connect_with_retry()
            app.state.connect_outcome = outcome
            if not outcome.connected:
                logger.error('Database unavailable; requests needing it will be refused.')
                return
        try:
            store_handle.initialize_schema()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.on_event('shutdown')
    def close_database() -> None:
        app.state.store.close()

    @app.get('/')
    def root():
        return {'status': 'LMS Accounts API Running'}

    @app.get('/health')
    def health():
        store_status = app.state.store.status()
        status_code = 200 if app.state.store.is_ready else 503
        return JSONResponse(status_code=status_code, content={'database': store_status})

    app.include_router(user_routes.router, prefix='/api/v1/user')
    media_storage: LocalMediaStorage = app.state.media
    if media_storage.base_url.startswith('/'):
        app.mount(media_storage.base_url, StaticFiles(directory=media_storage.root, check_dir=False), name='media')

    return app


configure_logging()
app = create_app()
