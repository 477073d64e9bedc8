import pathlib
import sys
from dataclasses import dataclass, field

import pytest
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from garage_console.accounts.identity import Identity, reset_identity_provider_cache
from garage_console.app_logging import init_logging
from garage_console.config import reset_settings_cache
from garage_console.models import Base, Garage, Role, User
from garage_console.models.session import get_engine, get_sessionmaker, init_schema
from garage_console.security import issue_identity_token, reset_token_settings_cache

GARAGE_ID = "G1"


@dataclass
class GarageAuthContext:
    engine: object
    session_factory: sessionmaker[Session]
    garage_id: str
    identities: dict[str, Identity]
    tokens: dict[str, str] = field(default_factory=dict)

    def token(self, role: str) -> str:
        if role not in self.tokens:
            token, _ = issue_identity_token(self.identities[role])
            self.tokens[role] = token
        return self.tokens[role]

    def header(self, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token(role)}"}

    def header_for(self, identity: Identity) -> dict[str, str]:
        token, _ = issue_identity_token(identity)
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker[Session]:
    """Session factory bound to a fresh SQLite file with enforced foreign keys."""

    engine = get_engine(f"sqlite+pysqlite:///{tmp_path / 'console.db'}")
    init_schema(engine)
    yield get_sessionmaker(engine=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def garage_auth(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> GarageAuthContext:
    tmp_dir = tmp_path_factory.mktemp("garage-auth")
    db_url = f"sqlite+pysqlite:///{tmp_dir / 'auth.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("LOG_DIR", str(tmp_dir / "logs"))
    monkeypatch.setenv("IDENTITY_TOKEN_SECRET", "super-secret-key")
    monkeypatch.setenv("IDENTITY_TOKEN_AUDIENCE", "garage-console")
    monkeypatch.setenv("IDENTITY_TOKEN_ISSUER", "auth.garage")
    monkeypatch.setenv("IDENTITY_TOKEN_ALGORITHM", "HS256")
    monkeypatch.delenv("IDENTITY_API_URL", raising=False)
    reset_settings_cache()
    reset_token_settings_cache()
    reset_identity_provider_cache()

    engine = get_engine(db_url)
    init_schema(engine)
    session_factory = get_sessionmaker(engine=engine)

    identities: dict[str, Identity] = {}
    with session_factory.begin() as session:
        session.add(
            Garage(id=GARAGE_ID, name="Main Street Garage", company_email="hq@garage.example")
        )
        session.flush()
        for role in (Role.GARAGE_OWNER, Role.GARAGE_ADMIN, Role.SUBACCOUNT_USER):
            key = role.value.lower()
            identity = Identity(
                id=f"idp-{key}",
                email=f"{key}@garage.example",
                name=key.replace("_", " ").title(),
            )
            session.add(
                User(
                    id=identity.id,
                    email=identity.email,
                    name=identity.name,
                    role=role.value,
                    garage_id=GARAGE_ID,
                )
            )
            identities[key] = identity

    context = GarageAuthContext(
        engine=engine,
        session_factory=session_factory,
        garage_id=GARAGE_ID,
        identities=identities,
    )

    yield context

    Base.metadata.drop_all(engine)
    engine.dispose()
    reset_settings_cache()
    reset_token_settings_cache()
    reset_identity_provider_cache()
