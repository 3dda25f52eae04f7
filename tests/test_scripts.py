"""
Tests for the user maintenance command-line scripts.
"""
from datetime import date

from conftest import create_user
from scripts.add_user import add_user
from scripts.list_users import COLUMNS, format_table, list_users
from scripts.set_subscription import set_subscription
from scripts.update_password import update_password, main as update_password_main
from watchtracker.core.security import verify_password
from watchtracker.db.models.user import User


def test_add_user(db, session_factory):
    assert add_user("cliuser", "secret123", email="CLI@Example.com", tier="platinum", is_admin=True,
                    session_factory=session_factory)

    user = db.query(User).filter(User.username == "cliuser").first()
    assert user.email == "cli@example.com"
    assert user.status == "active"
    assert user.is_admin is True
    assert user.subscription_price == 98
    assert verify_password("secret123", user.hashed_password)


def test_add_user_rejects_duplicates_and_bad_email(db, session_factory, user):
    assert not add_user("trader", "secret123", session_factory=session_factory)
    assert not add_user("fresh", "secret123", email="trader@example.com", session_factory=session_factory)
    assert not add_user("fresh", "secret123", email="bad-email", session_factory=session_factory)
    assert db.query(User).count() == 1


def test_list_users(db, session_factory, user, admin):
    rows = list_users(session_factory=session_factory)

    assert [row[1] for row in rows] == ["trader", "admin"]
    assert rows[1][6] == "yes"
    assert rows[0][7] == "never"

    active_free = list_users(status="active", tier="free", session_factory=session_factory)
    assert len(active_free) == 2

    table = format_table(rows)
    assert table.splitlines()[0].split() == ["id", "username", "email", "status", "tier", "subscription",
                                             "admin", "last", "login"]
    assert len(table.splitlines()) == len(rows) + 2
    assert len(COLUMNS) == len(rows[0])


def test_update_password(db, session_factory, user):
    assert update_password("trader", "n3wpass!", temporary=True, session_factory=session_factory)

    db.expire_all()
    stored = db.query(User).filter(User.id == user.id).first()
    assert verify_password("n3wpass!", stored.hashed_password)
    assert stored.temporary_password is True

    assert not update_password("ghost", "n3wpass!", session_factory=session_factory)


def test_update_password_cli_rejects_short_password(capsys):
    assert update_password_main(["trader", "123"]) == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_set_subscription(db, session_factory):
    create_user(db, "subscriber", subscription_start_date=date(2023, 1, 1))

    assert set_subscription("subscriber", "operandi", end_date=date(2024, 12, 31), session_factory=session_factory)

    db.expire_all()
    stored = db.query(User).filter(User.username == "subscriber").first()
    assert stored.subscription_tier == "operandi"
    assert stored.subscription_status == "active"
    assert stored.subscription_price == 80
    assert stored.subscription_start_date == date(2023, 1, 1)
    assert stored.subscription_end_date == date(2024, 12, 31)

    assert not set_subscription("ghost", "free", session_factory=session_factory)
