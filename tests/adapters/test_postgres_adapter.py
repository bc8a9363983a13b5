"""Unit tests for the PostgreSQL adapter (no database needed)."""

from sqli.adapters.postgres import PostgresCapability, create_capability, replace_qmarks
from sqli.capability import Capability, ErrorTranslator, IsolationLevel


class TestReplaceQmarks:
    """Test ? → $N placeholder translation."""

    def test_no_placeholders(self):
        assert replace_qmarks("SELECT 1") == "SELECT 1"

    def test_question_marks(self):
        assert replace_qmarks("select * from stub where col1 = ? and col2 = ?") == (
            "select * from stub where col1 = $1 and col2 = $2"
        )

    def test_question_marks_inside_quotes(self):
        sql = "select * from t where a=? and b='x?y' and c=?"
        assert replace_qmarks(sql) == "select * from t where a=$1 and b='x?y' and c=$2"

    def test_ending_with_other_characters(self):
        sql = "INSERT INTO common_tests (id, stringCol) VALUES(?, ?)"
        assert replace_qmarks(sql) == "INSERT INTO common_tests (id, stringCol) VALUES($1, $2)"

    def test_empty_sql(self):
        assert replace_qmarks("") == ""


class TestTransactionSql:
    def test_begin_default_isolation(self):
        assert PostgresCapability().begin(None) == (
            "START TRANSACTION ISOLATION LEVEL READ COMMITTED"
        )

    def test_begin_serializable(self):
        assert PostgresCapability().begin(IsolationLevel.SERIALIZABLE) == (
            "START TRANSACTION ISOLATION LEVEL SERIALIZABLE"
        )

    def test_begin_read_uncommitted(self):
        assert PostgresCapability().begin(0) == (
            "START TRANSACTION ISOLATION LEVEL READ UNCOMMITTED"
        )

    def test_savepoints(self):
        cap = PostgresCapability()
        assert cap.save("s1") == "SAVEPOINT s1"
        assert cap.rollback("s1") == "ROLLBACK TO SAVEPOINT s1"
        assert cap.rollback() == "ROLLBACK"
        assert cap.commit() == "COMMIT"


class TestErrorMessages:
    def test_includes_sqlstate(self):
        class FakePostgresError(Exception):
            sqlstate = "42P01"

        msg = PostgresCapability().get_error_msg(FakePostgresError('relation "t" does not exist'))
        assert msg == 'relation "t" does not exist (SQLSTATE 42P01)'

    def test_plain_error(self):
        assert PostgresCapability().get_error_msg(OSError("timeout")) == "timeout"


def test_conforms_to_protocols():
    cap = create_capability()
    assert isinstance(cap, Capability)
    assert isinstance(cap, ErrorTranslator)
