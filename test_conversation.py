import json
import unittest
from unittest.mock import patch, MagicMock

import pandas as pd
import requests

from lily.canvas import build_canvas
from lily.conversation import ChatSession, CHAT_ERROR, CANCELLED, LESSON_PLAN_ERROR
from lily.nodes import WELCOME_MESSAGE
from lily.state import TeachingInfo
from main import sign_in, format_resource, latest_resource, view_resource
from resource_report import resources_frame


def create_session(authenticated=True):
    """Creates a chat session over a mock API client."""
    client = MagicMock()
    client.is_authenticated = authenticated
    return ChatSession(client), client


class TestChatSession(unittest.TestCase):
    """Test cases for the client-side chat state."""

    def test_starts_with_welcome(self):
        session, _ = create_session()
        self.assertEqual(len(session.messages), 1)
        self.assertEqual(session.messages[0].content, WELCOME_MESSAGE)
        self.assertFalse(session.canvas_open)

    def test_blank_message_is_ignored(self):
        session, client = create_session()
        self.assertIsNone(session.send_message("   "))
        client.ai_chat.assert_not_called()
        self.assertEqual(len(session.messages), 1)

    def test_unauthenticated_requests_sign_in(self):
        session, client = create_session(authenticated=False)
        on_auth = MagicMock()
        session.on_auth_required = on_auth

        session.send_message("帮我写教案")

        on_auth.assert_called_once()
        client.ai_chat.assert_not_called()
        self.assertEqual(len(session.messages), 1)

    def test_history_excludes_welcome(self):
        # Setup mock
        session, client = create_session()
        client.ai_chat.return_value = {"reply": "请告诉我年级。", "intent": "lesson-plan"}

        # Test
        session.send_message("关于春天的教案")

        # Verify
        kwargs = client.ai_chat.call_args.kwargs
        self.assertEqual(kwargs["history"], [{"role": "user", "content": "关于春天的教案"}])
        self.assertEqual(session.messages[-1].content, "请告诉我年级。")
        self.assertEqual(session.current_intent, "lesson-plan")
        self.assertFalse(session.canvas_open)

    def test_newly_collected_info_is_merged(self):
        session, client = create_session()
        session.collected_info = {"topic": "春天"}
        client.ai_chat.return_value = {"reply": "好的", "newly_collected_info": {"grade": "三年级"}}

        session.send_message("三年级")

        self.assertEqual(session.collected_info, {"topic": "春天", "grade": "三年级"})

    def test_collected_info_replaces_local_info(self):
        session, client = create_session()
        session.collected_info = {"topic": "春天", "grade": "二年级"}
        client.ai_chat.return_value = {
            "reply": "好的",
            "newly_collected_info": {"objective": "认识花"},
            "collected_info": {"topic": "夏天"},
        }

        session.send_message("换成夏天")

        self.assertEqual(session.collected_info, {"topic": "夏天"})

    def test_empty_collected_info_clears_local_info(self):
        session, client = create_session()
        session.collected_info = {"topic": "春天", "grade": "二年级"}
        client.ai_chat.return_value = {"reply": "有什么可以帮你？", "collected_info": {}}

        session.send_message("算了")

        self.assertEqual(session.collected_info, {})

    def test_task_ready_opens_canvas(self):
        # Setup mock
        session, client = create_session()
        client.ai_chat.return_value = {
            "reply": "信息已经齐全",
            "intent": "lesson-plan",
            "task_ready": True,
            "is_complete": True,
            "collected_info": {"topic": "春天", "grade": "三年级", "objective": "认识春天"},
        }

        # Test
        session.send_message("目标是认识春天")

        # Verify
        self.assertTrue(session.canvas_open)
        self.assertEqual(session.current_intent, "lesson-plan")
        self.assertEqual(session.canvas.title, "教案助手")
        self.assertIn(("课题", "春天"), session.canvas.fields)

    def test_pending_profile_question_is_answered(self):
        session, client = create_session()
        client.ai_chat.return_value = {"reply": "请问您主要教授什么科目？", "next_question": "subject"}
        session.send_message("你好")
        self.assertEqual(session.pending_question, "subject")

        client.ai_chat.return_value = {"reply": "请问您使用的教材是哪个版本的？", "next_question": "textbook_edition"}
        session.send_message("语文")

        self.assertEqual(client.ai_chat.call_args.kwargs["answering"], "subject")
        self.assertEqual(session.pending_question, "textbook_edition")

    def test_request_failure_shows_apology(self):
        session, client = create_session()
        client.ai_chat.side_effect = requests.ConnectionError("offline")

        reply = session.send_message("帮我写教案")

        self.assertEqual(reply.content, CHAT_ERROR)
        self.assertFalse(session.is_loading)

    def test_close_canvas_resets(self):
        session, _ = create_session()
        session.collected_info = {"topic": "春天"}
        session.current_intent = "ppt-outline"
        session.canvas_open = True

        session.close_canvas()

        self.assertFalse(session.canvas_open)
        self.assertEqual(session.collected_info, {})
        self.assertIsNone(session.current_intent)
        self.assertEqual(session.messages[-1].content, CANCELLED)

    def test_generate_lesson_plan(self):
        # Setup mock
        session, client = create_session()
        session.collected_info = {"topic": "春天", "grade": "三年级", "objective": "认识春天"}
        session.current_intent = "lesson-plan"
        session.canvas_open = True
        resource = {"id": 3, "title": "为“春天”创建的教案"}
        client.generate_lesson_plan.return_value = {"lessonPlan": "# 春天", "resource": resource}

        # Test
        reply = session.generate()

        # Verify
        client.generate_lesson_plan.assert_called_once_with({"topic": "春天", "grade": "三年级", "objective": "认识春天"})
        self.assertEqual(reply.content, "针对主题“春天”为三年级学生设计的教案已生成！")
        self.assertEqual(reply.resource, resource)
        self.assertFalse(session.canvas_open)
        self.assertEqual(session.collected_info, {})

    def test_generate_image_set_counts_images(self):
        session, client = create_session()
        session.collected_info = {"topic": "春天"}
        session.current_intent = "image-generation"
        client.generate_image_set.return_value = {"images": [{"url": "a"}, {"url": "b"}], "resource": {"id": 4}}

        reply = session.generate()

        self.assertEqual(reply.content, "针对主题“春天”的2张教学图片已生成！")

    def test_generation_failure_keeps_task(self):
        session, client = create_session()
        session.collected_info = {"topic": "春天"}
        session.current_intent = "lesson-plan"
        session.canvas_open = True
        client.generate_lesson_plan.side_effect = requests.HTTPError("500 Server Error")

        reply = session.generate_lesson_plan()

        self.assertEqual(reply.content, LESSON_PLAN_ERROR)
        self.assertTrue(session.canvas_open)
        self.assertEqual(session.collected_info, {"topic": "春天"})

    def test_generate_without_intent_does_nothing(self):
        session, client = create_session()
        self.assertIsNone(session.generate())
        self.assertEqual(len(session.messages), 1)


class TestCanvas(unittest.TestCase):

    def test_unknown_intent_has_no_action(self):
        view = build_canvas(None, TeachingInfo(topic="春天"))
        self.assertEqual(view.title, "任务助手")
        self.assertIsNone(view.action_label)
        self.assertIn("任务正在处理中", view.render())

    def test_image_canvas(self):
        view = build_canvas("image-generation", TeachingInfo(topic="春天", grade="三年级", objective="认识春天"))
        rendered = view.render()
        self.assertIn("图片生成助手", rendered)
        self.assertIn("年级：三年级", rendered)
        self.assertIn("> 生成图片", rendered)


class TestTerminal(unittest.TestCase):
    """Test cases for the terminal front end."""

    @patch("main.getpass.getpass", return_value="secret")
    @patch("builtins.input", side_effect=["new@example.com", "y"])
    @patch("main.os.getenv", return_value=None)
    def test_failed_sign_in_offers_sign_up(self, mock_getenv, mock_input, mock_getpass):
        # Setup mock
        client = MagicMock()
        client.sign_in.side_effect = RuntimeError("Invalid login credentials")
        client.sign_up.return_value = {"user_id": "user-2", "email": "new@example.com", "signed_in": True}

        # Test
        sign_in(client)

        # Verify
        client.sign_in.assert_called_once_with("new@example.com", "secret")
        client.sign_up.assert_called_once_with("new@example.com", "secret")

    @patch("main.getpass.getpass", return_value="secret")
    @patch("builtins.input", side_effect=["teacher@example.com", "n"])
    @patch("main.os.getenv", return_value=None)
    def test_declined_sign_up(self, mock_getenv, mock_input, mock_getpass):
        client = MagicMock()
        client.sign_in.side_effect = RuntimeError("Invalid login credentials")

        sign_in(client)

        client.sign_up.assert_not_called()

    def test_format_lesson_plan(self):
        text = format_resource({"id": 5, "title": "为“春天”创建的教案", "resource_type": "lesson_plan", "content": "# 春天"})
        self.assertEqual(text, "=== 教案 #5: 为“春天”创建的教案 ===\n# 春天")

    def test_format_image_group(self):
        content = json.dumps({
            "reasoning": "先观察再表达",
            "images": [{"prompt": "燕子归来", "url": "data:image/png;base64,AAAA"}],
        })

        text = format_resource({"id": 6, "title": "图片", "resource_type": "image_group", "content": content})

        self.assertIn("先观察再表达", text)
        self.assertIn("1. 燕子归来", text)

    def test_format_image_group_with_bad_json(self):
        text = format_resource({"id": 6, "title": "图片", "resource_type": "image_group", "content": "not json"})
        self.assertTrue(text.endswith("not json"))

    def test_latest_resource(self):
        session, client = create_session()
        self.assertIsNone(latest_resource(session))
        session.add_message("assistant", "教案已生成！", resource={"id": 5})
        session.add_message("assistant", "好的")
        self.assertEqual(latest_resource(session), {"id": 5})

    @patch("builtins.print")
    def test_view_resource_by_id(self, mock_print):
        session, client = create_session()
        client.get_resource.return_value = {"id": 5, "title": "教案", "resource_type": "lesson_plan", "content": "# 春天"}

        view_resource(client, session, "5")

        client.get_resource.assert_called_once_with(5)
        self.assertIn("# 春天", mock_print.call_args[0][0])

    @patch("builtins.print")
    def test_view_resource_load_failure(self, mock_print):
        session, client = create_session()
        client.get_resource.side_effect = requests.HTTPError("404 Client Error")

        view_resource(client, session, "99")

        self.assertIn("Could not load resource 99", mock_print.call_args[0][0])


class TestResourceReport(unittest.TestCase):

    def test_frame_labels_and_topics(self):
        rows = [
            {"id": 1, "title": "为“春天”创建的教案", "resource_type": "lesson_plan",
             "metadata": {"topic": "春天"}, "created_at": "2024-03-01T08:00:00+00:00"},
            {"id": 2, "title": "其他", "resource_type": "worksheet",
             "metadata": None, "created_at": "2024-03-02T08:00:00+00:00"},
        ]

        df = resources_frame(rows)

        self.assertEqual(list(df["id"]), [2, 1])
        self.assertEqual(list(df["type_label"]), ["资源", "教案"])
        self.assertTrue(pd.isna(df.iloc[0]["topic"]))

    def test_empty_frame(self):
        self.assertTrue(resources_frame([]).empty)


if __name__ == "__main__":
    unittest.main()
