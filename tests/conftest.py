import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')
os.environ['BCRYPT_ROUNDS'] = '4'

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lms_backend.auth.jwt_handler import TokenIssuer  # noqa: E402
from lms_backend.database import Base, StoreHandle  # noqa: E402
from lms_backend.models.user import User  # noqa: E402
from lms_backend.services.credentials import CredentialStore  # noqa: E402
from lms_backend.services.media import LocalMediaStorage  # noqa: E402

TEST_SECRET = os.environ['JWT_SECRET_KEY']


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send_reset_link(self, to_address: str, name: str, reset_url: str) -> None:
        self.sent.append({'to': to_address, 'name': name, 'reset_url': reset_url})

    @property
    def last_token(self) -> str:
        return self.sent[-1]['reset_url'].rsplit('/', 1)[1]


@pytest.fixture
def user_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[User.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[User.__table__])


@pytest.fixture
def credentials(user_db) -> CredentialStore:
    return CredentialStore(user_db)


@pytest.fixture
def tokens() -> TokenIssuer:
    return TokenIssuer(secret_key=TEST_SECRET, algorithm='HS256', expires_minutes=60)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def media(tmp_path) -> LocalMediaStorage:
    return LocalMediaStorage(root=tmp_path / 'media', base_url='/media')


@pytest.fixture
def store():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    handle = StoreHandle(engine=engine)
    outcome = handle.connect_with_retry(max_retries=0)
    assert outcome.connected
    handle.initialize_schema()
    try:
        yield handle
    finally:
        handle.close()


@pytest.fixture
def client(store, tokens, mailer, media):
    from lms_backend.main import create_app

    app = create_app(store=store, tokens=tokens, mailer=mailer, media=media)
    return TestClient(app)
