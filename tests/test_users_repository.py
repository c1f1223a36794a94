"""
Tests for cross-user lookups and implicit sign-up on first connect.
"""

from sqlalchemy import text

from connectors.repository import ConnectionSignUp


class RecordingSignUp(ConnectionSignUp):
    def __init__(self, new_user_id="new-user"):
        self.new_user_id = new_user_id
        self.calls = []

    def execute(self, connection):
        self.calls.append(connection.key)
        return self.new_user_id


def _row_count(session_factory):
    with session_factory() as session:
        return session.execute(text("select count(*) from user_connections")).scalar_one()


class TestFindUserIdsWithConnection:
    def test_existing_owner_found(self, users_repository, make_connection):
        users_repository.create_connection_repository("u1").add_connection(make_connection("twitter", "tw1"))
        assert users_repository.find_user_ids_with_connection(make_connection("twitter", "tw1")) == ["u1"]

    def test_multiple_owners_found(self, users_repository, make_connection):
        users_repository.create_connection_repository("u1").add_connection(make_connection("twitter", "tw1"))
        users_repository.create_connection_repository("u2").add_connection(make_connection("twitter", "tw1"))

        user_ids = users_repository.find_user_ids_with_connection(make_connection("twitter", "tw1"))
        assert sorted(user_ids) == ["u1", "u2"]

    def test_no_match_without_policy_returns_empty_and_writes_nothing(
        self, users_repository, make_connection, session_factory
    ):
        assert users_repository.find_user_ids_with_connection(make_connection("twitter", "tw1")) == []
        assert _row_count(session_factory) == 0

    def test_no_match_with_policy_signs_up_one_user(self, users_repository, make_connection, session_factory):
        sign_up = RecordingSignUp()
        users_repository.connection_sign_up = sign_up
        connection = make_connection("twitter", "tw1")

        assert users_repository.find_user_ids_with_connection(connection) == ["new-user"]

        assert len(sign_up.calls) == 1
        assert _row_count(session_factory) == 1
        stored = users_repository.create_connection_repository("new-user").find_connections("twitter")
        assert [c.key for c in stored] == [connection.key]

    def test_policy_not_consulted_when_owner_exists(self, users_repository, make_connection):
        users_repository.create_connection_repository("u1").add_connection(make_connection("twitter", "tw1"))
        sign_up = RecordingSignUp()
        users_repository.connection_sign_up = sign_up

        assert users_repository.find_user_ids_with_connection(make_connection("twitter", "tw1")) == ["u1"]
        assert sign_up.calls == []

    def test_policy_declining_returns_empty(self, users_repository, make_connection, session_factory):
        users_repository.connection_sign_up = RecordingSignUp(new_user_id=None)

        assert users_repository.find_user_ids_with_connection(make_connection("twitter", "tw1")) == []
        assert _row_count(session_factory) == 0


class TestFindUserIdsConnectedTo:
    def test_matches_across_users(self, users_repository, make_connection):
        users_repository.create_connection_repository("u1").add_connection(make_connection("twitter", "tw1"))
        users_repository.create_connection_repository("u2").add_connection(make_connection("twitter", "tw2"))
        users_repository.create_connection_repository("u3").add_connection(make_connection("acme", "tw3"))

        result = users_repository.find_user_ids_connected_to("twitter", {"tw1", "tw2", "tw3"})
        assert result == {"u1", "u2"}

    def test_empty_input_returns_empty_set(self, users_repository):
        assert users_repository.find_user_ids_connected_to("twitter", set()) == set()
