import pytest

from univote import create_app, token_manager

STRONG_PASSWORD = "Ballot-Box-2024"
NOW = 1_700_000_000  # fixed wall clock (unix seconds) for schedule tests


@pytest.fixture
def app(tmp_path):
    data_dir = tmp_path / "data"
    app = create_app({
        "TESTING": True,
        "DATA_DIR": str(data_dir),
        "ARCHIVE_DIR": str(data_dir / "archive"),
        "AUDIT_LOG_DIR": str(tmp_path / "logs"),
        "JWT_SECRET_KEY": "test-secret-key-with-enough-length",
        "RATELIMIT_ENABLED": False,
        "ARGON2_TIME_COST": 1,
        "ARGON2_MEMORY_COST": 8192,
        "LOG_LEVEL": "WARNING",
    })
    app.extensions["univote"]["election"].clock = lambda: NOW
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def election_service(app):
    return app.extensions["univote"]["election"]


@pytest.fixture
def make_user(app):
    """Create an account directly through the service and return (user, auth headers)."""
    counter = {"n": 0}

    def _make(username=None, roles=None, department="CS", year="3"):
        if username is None:
            counter["n"] += 1
            username = f"student{counter['n']}"
        accounts = app.extensions["univote"]["accounts"]
        user = accounts.sign_up(
            {
                "username": username,
                "email": f"{username}@college.edu",
                "password": STRONG_PASSWORD,
                "department": department,
                "studentId": f"STU-{username}",
                "year": year,
            },
            roles=roles,
        )
        with app.app_context():
            token = token_manager.generate_token(user)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", roles=["voter", "admin"])
