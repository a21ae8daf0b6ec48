import unittest
from unittest.mock import patch

from qa_backend.db import AdminExistsError, PostgresDbClient
from qa_backend.types import QuestionSource, QuestionStatus, Role


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_create_and_get_user(self):
        user = self.db.create_user(external_id="user_1", email="a@example.com", name="A")
        self.assertEqual(user.role, Role.USER)
        self.assertTrue(user.is_active)
        fetched = self.db.get_user(user.user_id)
        self.assertEqual(fetched.email, "a@example.com")
        by_external = self.db.get_user_by_external_id("user_1")
        self.assertEqual(by_external.user_id, user.user_id)
        self.assertIsNone(self.db.get_user("missing"))

    def test_legacy_user_fields_stay_null(self):
        user = self.db.create_user(
            external_id="legacy", email="l@example.com", role=None, is_active=None
        )
        fetched = self.db.get_user(user.user_id)
        self.assertIsNone(fetched.role)
        self.assertIsNone(fetched.is_active)
        self.assertEqual(fetched.as_dict()["role"], "user")
        self.assertTrue(fetched.as_dict()["isActive"])

    def test_upsert_user_identity(self):
        created, was_created = self.db.upsert_user_identity(
            external_id="user_2", email="old@example.com", name="Old", image_url=None
        )
        self.assertTrue(was_created)
        updated, was_created = self.db.upsert_user_identity(
            external_id="user_2", email="new@example.com", name="New", image_url="x.png"
        )
        self.assertFalse(was_created)
        self.assertEqual(updated.user_id, created.user_id)
        self.assertEqual(updated.email, "new@example.com")
        self.assertEqual(updated.image_url, "x.png")

    def test_update_user_and_count_roles(self):
        user = self.db.create_user(external_id="user_3", email="c@example.com")
        self.assertEqual(self.db.count_users_with_role(Role.ADMIN), 0)
        updated = self.db.update_user(user.user_id, role=Role.ADMIN, is_active=False)
        self.assertEqual(updated.role, Role.ADMIN)
        self.assertFalse(updated.is_active)
        self.assertEqual(self.db.count_users_with_role(Role.ADMIN), 1)
        self.assertIsNone(self.db.update_user("missing", role=Role.ADMIN))
        with self.assertRaises(ValueError):
            self.db.update_user(user.user_id, external_id="nope")

    def test_promote_to_admin_guards_bootstrap(self):
        first = self.db.create_user(external_id="first", email="1@example.com")
        second = self.db.create_user(external_id="second", email="2@example.com", is_active=False)
        promoted = self.db.promote_to_admin(first.user_id, require_no_admin=True)
        self.assertEqual(promoted.role, Role.ADMIN)
        self.assertTrue(promoted.is_active)
        with self.assertRaises(AdminExistsError):
            self.db.promote_to_admin(second.user_id, require_no_admin=True)
        self.assertEqual(self.db.get_user(second.user_id).role, Role.USER)
        self.assertIsNone(self.db.promote_to_admin("missing"))
        promoted = self.db.promote_to_admin(second.user_id)
        self.assertTrue(promoted.is_active)
        self.assertEqual(self.db.count_users_with_role(Role.ADMIN), 2)

    @patch("qa_backend.db.time")
    def test_list_users_newest_first(self, mock_time):
        mock_time.time.side_effect = [100.0, 200.0]
        first = self.db.create_user(external_id="first", email="1@example.com")
        second = self.db.create_user(external_id="second", email="2@example.com")
        self.assertEqual(
            [u.user_id for u in self.db.list_users()], [second.user_id, first.user_id]
        )

    def test_question_roundtrip_and_update(self):
        question = self.db.create_question(
            question="কী?",
            answer="",
            category="আমল",
            tags=["দান", "সদকা"],
            user_id="u1",
            status=QuestionStatus.PENDING,
            source=QuestionSource.USER,
        )
        fetched = self.db.get_question(question.question_id)
        self.assertEqual(fetched.tags, ["দান", "সদকা"])
        self.assertEqual(fetched.status, QuestionStatus.PENDING)
        self.assertEqual(fetched.source, QuestionSource.USER)

        updated = self.db.update_question(
            question.question_id,
            answer="উত্তর",
            tags=["নতুন"],
            status=QuestionStatus.APPROVED,
            answered_by="admin",
            answered_at=123,
        )
        self.assertEqual(updated.status, QuestionStatus.APPROVED)
        self.assertEqual(updated.tags, ["নতুন"])
        self.assertEqual(updated.answered_at, 123)
        self.assertIsNone(self.db.update_question("missing", answer="x"))

    def test_legacy_question_has_null_status(self):
        question = self.db.create_question(question="q", answer="a", category="c", tags=[])
        fetched = self.db.get_question(question.question_id)
        self.assertIsNone(fetched.status)
        self.assertIsNone(fetched.source)
        self.assertEqual(fetched.as_dict()["status"], "approved")
        self.assertEqual(fetched.as_dict()["source"], "admin")

    def test_increment_counters(self):
        question = self.db.create_question(
            question="q", answer="a", category="c", tags=[], views=10
        )
        after = self.db.increment_question_counter(question.question_id, "views")
        self.assertEqual(after.views, 11)
        after = self.db.increment_question_counter(question.question_id, "helpful")
        self.assertEqual(after.helpful, 1)
        self.assertIsNone(self.db.increment_question_counter("missing", "views"))
        with self.assertRaises(ValueError):
            self.db.increment_question_counter(question.question_id, "created_at")

    def test_list_filter_delete_and_count(self):
        mine = self.db.create_question(
            question="mine", answer="", category="c", tags=[], user_id="u1", created_at=2
        )
        self.db.create_question(question="other", answer="", category="c", tags=[], created_at=1)
        self.assertEqual(
            [q.question for q in self.db.list_questions()], ["other", "mine"]
        )
        self.assertEqual(
            [q.question for q in self.db.list_questions(user_id="u1")], ["mine"]
        )
        self.assertEqual(self.db.count_questions(), 2)
        self.assertTrue(self.db.delete_question(mine.question_id))
        self.assertFalse(self.db.delete_question(mine.question_id))
        self.assertEqual(self.db.count_questions(), 1)


if __name__ == "__main__":
    unittest.main()
