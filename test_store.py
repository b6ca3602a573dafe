import unittest
from unittest.mock import patch, MagicMock

import requests

from lily.client import LilyClient, IMAGE_SET_TIMEOUT
from lily.store import ResourceStore


def create_store():
    """Creates a store over a mock Supabase client."""
    sb = MagicMock()
    return ResourceStore(sb), sb.table.return_value


class TestResourceStore(unittest.TestCase):
    """Test cases for profile and resource persistence."""

    def test_ensure_profile_returns_existing_row(self):
        store, table = create_store()
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = [{"id": "user-1", "subject": "语文"}]

        profile = store.ensure_profile("user-1", "teacher@example.com")

        self.assertEqual(profile["subject"], "语文")
        table.insert.assert_not_called()

    def test_ensure_profile_inserts_missing_row(self):
        # Setup mock
        store, table = create_store()
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = []
        table.insert.return_value.execute.return_value.data = [{"id": "user-1", "email": "teacher@example.com"}]

        # Test
        profile = store.ensure_profile("user-1", "teacher@example.com")

        # Verify
        table.insert.assert_called_once_with({"id": "user-1", "email": "teacher@example.com"})
        self.assertEqual(profile, {"id": "user-1", "email": "teacher@example.com"})

    def test_update_profile_drops_unknown_fields(self):
        store, table = create_store()
        table.update.return_value.eq.return_value.execute.return_value.data = [{"id": "user-1", "subject": "数学"}]

        result = store.update_profile("user-1", {"subject": "数学", "email": "x@example.com", "id": "other"})

        table.update.assert_called_once_with({"subject": "数学"})
        table.update.return_value.eq.assert_called_once_with("id", "user-1")
        self.assertEqual(result["subject"], "数学")

    def test_update_profile_without_known_fields_returns_current(self):
        store, table = create_store()
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = [{"id": "user-1", "subject": "语文"}]

        result = store.update_profile("user-1", {"email": "x@example.com"})

        table.update.assert_not_called()
        self.assertEqual(result, {"id": "user-1", "subject": "语文"})

    def test_insert_resource(self):
        store, table = create_store()
        table.insert.return_value.execute.return_value.data = [{"id": 5}]

        row = store.insert_resource("user-1", "为“春天”创建的教案", "# 春天", "lesson_plan")

        self.assertEqual(row, {"id": 5})
        self.assertEqual(table.insert.call_args[0][0]["metadata"], {})
        self.assertEqual(table.insert.call_args[0][0]["resource_type"], "lesson_plan")

    def test_list_resources_newest_first(self):
        store, table = create_store()
        chain = table.select.return_value.eq.return_value
        chain.order.return_value.limit.return_value.execute.return_value.data = [{"id": 2}, {"id": 1}]

        rows = store.list_resources("user-1", limit=5)

        self.assertEqual(rows, [{"id": 2}, {"id": 1}])
        table.select.return_value.eq.assert_called_once_with("user_id", "user-1")
        chain.order.assert_called_once_with("created_at", desc=True)
        chain.order.return_value.limit.assert_called_once_with(5)

    def test_get_resource_is_scoped_to_user(self):
        store, table = create_store()
        by_id = table.select.return_value.eq.return_value
        by_id.eq.return_value.limit.return_value.execute.return_value.data = []

        self.assertIsNone(store.get_resource("user-1", 9))
        table.select.return_value.eq.assert_called_once_with("id", 9)
        by_id.eq.assert_called_once_with("user_id", "user-1")


class TestLilyClient(unittest.TestCase):
    """Test cases for the HTTP client and Supabase sign-in."""

    def test_request_sends_bearer_token(self):
        # Setup mock
        client = LilyClient(base_url="http://lily.test/", access_token="token-1")
        client.http = MagicMock()
        client.http.request.return_value.json.return_value = [{"id": 1}]

        # Test
        result = client.list_resources(limit=3)

        # Verify
        self.assertEqual(result, [{"id": 1}])
        args, kwargs = client.http.request.call_args
        self.assertEqual(args, ("GET", "http://lily.test/resources"))
        self.assertEqual(kwargs["headers"], {"Authorization": "Bearer token-1"})
        self.assertEqual(kwargs["params"], {"limit": 3})
        self.assertEqual(kwargs["timeout"], 180)

    def test_request_raises_on_http_error(self):
        client = LilyClient(access_token="token-1")
        client.http = MagicMock()
        client.http.request.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with self.assertRaises(requests.HTTPError):
            client.generate_lesson_plan({"topic": "春天"})

    def test_image_set_uses_long_timeout(self):
        client = LilyClient(access_token="token-1")
        client.http = MagicMock()

        client.generate_image_set({"topic": "春天"})

        self.assertEqual(client.http.request.call_args.kwargs["timeout"], IMAGE_SET_TIMEOUT)

    @patch("lily.client.get_supabase")
    def test_sign_in_stores_token(self, mock_get_supabase):
        res = MagicMock()
        res.session.access_token = "token-2"
        res.user.id, res.user.email = "user-1", "teacher@example.com"
        mock_get_supabase.return_value.auth.sign_in_with_password.return_value = res
        client = LilyClient()

        user = client.sign_in("teacher@example.com", "secret")

        self.assertEqual(user, {"user_id": "user-1", "email": "teacher@example.com"})
        self.assertTrue(client.is_authenticated)

    @patch("lily.client.get_supabase")
    def test_sign_up_signs_in_when_session_returned(self, mock_get_supabase):
        # Setup mock
        res = MagicMock()
        res.session.access_token = "token-3"
        res.user.id, res.user.email = "user-2", "new@example.com"
        mock_get_supabase.return_value.auth.sign_up.return_value = res
        client = LilyClient()

        # Test
        user = client.sign_up("new@example.com", "secret")

        # Verify
        mock_get_supabase.return_value.auth.sign_up.assert_called_once_with({"email": "new@example.com", "password": "secret"})
        self.assertTrue(user["signed_in"])
        self.assertEqual(client.access_token, "token-3")

    @patch("lily.client.get_supabase")
    def test_sign_up_waiting_for_confirmation(self, mock_get_supabase):
        res = MagicMock(session=None)
        res.user.id, res.user.email = "user-2", "new@example.com"
        mock_get_supabase.return_value.auth.sign_up.return_value = res
        client = LilyClient()

        user = client.sign_up("new@example.com", "secret")

        self.assertFalse(user["signed_in"])
        self.assertFalse(client.is_authenticated)

    @patch("lily.client.get_supabase")
    def test_sign_up_failure(self, mock_get_supabase):
        mock_get_supabase.return_value.auth.sign_up.return_value = MagicMock(user=None)

        with self.assertRaises(RuntimeError):
            LilyClient().sign_up("new@example.com", "secret")


if __name__ == "__main__":
    unittest.main()
