import threading
import time
import unittest

from qa_backend import users
from qa_backend.access import AccessPolicy
from qa_backend.db import AdminExistsError, InMemoryDbClient
from qa_backend.errors import Forbidden, NotFound, Unauthenticated
from qa_backend.identity import Identity
from qa_backend.types import Role


class StoreCurrentUserTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_requires_identity(self):
        with self.assertRaises(Unauthenticated):
            users.store_current_user(self.db, AccessPolicy(self.db, None))

    def test_creates_then_refreshes(self):
        identity = Identity(
            subject="user_1", email="old@example.com", name="Old", picture_url="a.png"
        )
        created = users.store_current_user(self.db, AccessPolicy(self.db, identity))
        self.assertEqual(created.role, Role.USER)
        self.assertTrue(created.is_active)
        self.assertEqual(created.email, "old@example.com")

        # Admin changes survive a later login.
        self.db.update_user(created.user_id, role=Role.ADMIN)
        refreshed_identity = Identity(
            subject="user_1", email="new@example.com", name="New", picture_url="b.png"
        )
        refreshed = users.store_current_user(
            self.db, AccessPolicy(self.db, refreshed_identity)
        )
        self.assertEqual(refreshed.user_id, created.user_id)
        self.assertEqual(refreshed.email, "new@example.com")
        self.assertEqual(refreshed.name, "New")
        self.assertEqual(refreshed.image_url, "b.png")
        self.assertEqual(refreshed.role, Role.ADMIN)
        self.assertEqual(len(self.db.list_users()), 1)


class AdminUserTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.alice = self.db.create_user(external_id="alice", email="alice@example.com")
        self.bob = self.db.create_user(external_id="bob", email="bob@example.com")

    def policy(self, subject):
        return AccessPolicy(self.db, Identity(subject=subject) if subject else None)

    def test_bootstrap_allows_first_promotion_without_admin(self):
        self.assertTrue(users.admin_bootstrap_open(self.db))
        promoted = users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        self.assertEqual(promoted.role, Role.ADMIN)
        self.assertTrue(promoted.is_active)
        self.assertFalse(users.admin_bootstrap_open(self.db))

    def test_promotion_requires_admin_once_one_exists(self):
        users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        with self.assertRaises(Forbidden):
            users.promote_to_admin(self.db, self.policy("bob"), self.bob.user_id)
        with self.assertRaises(Unauthenticated):
            users.promote_to_admin(self.db, self.policy(None), self.bob.user_id)
        promoted = users.promote_to_admin(self.db, self.policy("alice"), self.bob.user_id)
        self.assertEqual(promoted.role, Role.ADMIN)

    def test_inactive_admin_still_closes_bootstrap(self):
        self.db.update_user(self.alice.user_id, role=Role.ADMIN, is_active=False)
        self.assertFalse(users.admin_bootstrap_open(self.db))
        with self.assertRaises(Forbidden):
            users.promote_to_admin(self.db, self.policy("bob"), self.bob.user_id)

    def test_promote_missing_user(self):
        with self.assertRaises(NotFound):
            users.promote_to_admin(self.db, self.policy(None), "missing")

    def test_role_and_status_changes(self):
        users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        admin = self.policy("alice")

        updated = users.update_user_role(self.db, admin, self.bob.user_id, Role.ADMIN)
        self.assertEqual(updated.role, Role.ADMIN)

        toggled = users.toggle_user_status(self.db, admin, self.bob.user_id)
        self.assertFalse(toggled.is_active)
        toggled = users.toggle_user_status(self.db, admin, self.bob.user_id)
        self.assertTrue(toggled.is_active)

        with self.assertRaises(NotFound):
            users.toggle_user_status(self.db, admin, "missing")
        with self.assertRaises(NotFound):
            users.update_user_role(self.db, admin, "missing", Role.USER)

    def test_toggle_treats_missing_flag_as_active(self):
        legacy = self.db.create_user(external_id="legacy", email="l@example.com", is_active=None)
        users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        toggled = users.toggle_user_status(self.db, self.policy("alice"), legacy.user_id)
        self.assertFalse(toggled.is_active)

    def test_members_cannot_administer_users(self):
        users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        with self.assertRaises(Forbidden):
            users.update_user_role(self.db, self.policy("bob"), self.bob.user_id, Role.ADMIN)
        with self.assertRaises(Forbidden):
            users.toggle_user_status(self.db, self.policy("bob"), self.alice.user_id)
        with self.assertRaises(Forbidden):
            users.list_all_users(self.db, self.policy("bob"))

    def test_list_all_users_newest_first(self):
        carol = self.db.create_user(external_id="carol", email="carol@example.com")
        users.promote_to_admin(self.db, self.policy("alice"), self.alice.user_id)
        listed = users.list_all_users(self.db, self.policy("alice"))
        self.assertEqual(
            [u.user_id for u in listed],
            [carol.user_id, self.bob.user_id, self.alice.user_id],
        )


class SlowCountDbClient(InMemoryDbClient):
    """Widens the gap between the bootstrap check and the promotion."""

    def count_users_with_role(self, role):
        count = super().count_users_with_role(role)
        time.sleep(0.2)
        return count


class ConcurrencyTests(unittest.TestCase):
    def test_concurrent_bootstrap_promotes_one_admin(self):
        db = SlowCountDbClient()
        alice = db.create_user(external_id="alice", email="alice@example.com")
        bob = db.create_user(external_id="bob", email="bob@example.com")
        errors = []

        def promote(subject, user_id):
            try:
                users.promote_to_admin(db, AccessPolicy(db, Identity(subject=subject)), user_id)
            except Forbidden as e:
                errors.append(e)

        threads = [
            threading.Thread(target=promote, args=("alice", alice.user_id)),
            threading.Thread(target=promote, args=("bob", bob.user_id)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(db.count_users_with_role(Role.ADMIN), 1)
        self.assertEqual(len(errors), 1)

    def test_store_promote_rechecks_admin_count(self):
        db = InMemoryDbClient()
        alice = db.create_user(external_id="alice", email="alice@example.com")
        bob = db.create_user(external_id="bob", email="bob@example.com")
        db.promote_to_admin(alice.user_id, require_no_admin=True)
        with self.assertRaises(AdminExistsError):
            db.promote_to_admin(bob.user_id, require_no_admin=True)
        self.assertIsNone(db.promote_to_admin("missing"))
        self.assertEqual(db.promote_to_admin(bob.user_id).role, Role.ADMIN)

    def test_reads_during_writes(self):
        db = InMemoryDbClient()
        stop = threading.Event()
        errors = []

        def write():
            i = 0
            while not stop.is_set():
                db.upsert_user_identity(
                    external_id=f"user_{i}", email=f"{i}@example.com", name=None, image_url=None
                )
                db.create_question(question=f"q{i}", answer="", category="c", tags=[])
                i += 1

        writer = threading.Thread(target=write)
        writer.start()
        try:
            for _ in range(2000):
                db.get_user_by_external_id("missing")
                db.count_users_with_role(Role.ADMIN)
                db.list_users()
                db.list_questions(user_id="missing")
        except RuntimeError as e:
            errors.append(e)
        finally:
            stop.set()
            writer.join()
        self.assertEqual(errors, [])


if __name__ == "__main__":
    unittest.main()
