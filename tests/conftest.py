import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from docubuddy.database import get_session
from docubuddy.main import app
from docubuddy.services.auth import AuthProvider, auth_provider
from docubuddy.services.completion import CallbackCompletionSource
from docubuddy.services.context import SessionContext, SessionRegistry, get_session_registry
from docubuddy.services.identity import Actor, RoleResolution
from docubuddy.services.preferences import MemoryPreferenceStore
from docubuddy.services.storage import BucketStorage, ensure_documents_bucket, get_bucket_storage
from docubuddy.services.upload import UploadPipeline, get_upload_pipeline
from docubuddy.services.webhook import QuestionAnsweringClient, get_qa_client


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def signup(session):
    provider = AuthProvider()

    def _signup(email, role="team_member", full_name=None, password="password123"):
        return provider.sign_up(session, email, password,
                                {"full_name": full_name or email.split("@")[0].title(), "role": role})

    return _signup


@pytest.fixture()
def context_for():
    def _context_for(user, role, store=None):
        context = SessionContext(sid=f"sid-{user.id}", user_id=user.id,
                                 preferences=store or MemoryPreferenceStore())
        context.role = RoleResolution(role=role, source="database")
        context.actor = Actor(id=user.id, email=user.email, role=role)
        return context

    return _context_for


@pytest.fixture()
def admin(signup):
    return signup("admin@example.com", role="admin", full_name="Ada Admin")


@pytest.fixture()
def admin_context(admin, context_for):
    return context_for(admin, "admin")


@pytest.fixture()
def storage(tmp_path):
    storage = BucketStorage(root=str(tmp_path / "storage"))
    ensure_documents_bucket(storage)
    return storage


@pytest.fixture()
def completion_source():
    return CallbackCompletionSource()


@pytest.fixture()
def pipeline(engine, storage, completion_source):
    return UploadPipeline(storage=storage,
                          completion_source=completion_source,
                          session_factory=lambda: Session(engine),
                          defer=lambda delay, callback: callback())


@pytest.fixture()
def registry():
    registry = SessionRegistry(preferences_factory=lambda device_id: MemoryPreferenceStore())
    unsubscribe = auth_provider.on_auth_state_change(registry.handle_auth_event)
    yield registry
    unsubscribe()


@pytest.fixture()
def qa_client():
    return QuestionAnsweringClient(url="http://qa.test/webhook", timeout=5)


@pytest.fixture()
def client(engine, storage, pipeline, registry, qa_client):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_bucket_storage] = lambda: storage
    app.dependency_overrides[get_upload_pipeline] = lambda: pipeline
    app.dependency_overrides[get_qa_client] = lambda: qa_client
    yield TestClient(app)
    app.dependency_overrides.clear()
