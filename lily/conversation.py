# lily/conversation.py

from typing import Callable, List, Optional

import requests

from .canvas import CanvasView, build_canvas
from .nodes import WELCOME_MESSAGE
from .state import ChatMessage, TeachingInfo, LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION, GREETING, UNKNOWN

CHAT_ERROR = "抱歉，我好像出了一点问题，请稍后再试。"
CANCELLED = "好的，任务已取消。有什么新的可以帮你？"
LESSON_PLAN_ERROR = "抱歉，处理教案时出错了，请稍后再试。"
PPT_OUTLINE_ERROR = "抱歉，生成PPT大纲时出错了，请稍后再试。"
IMAGE_SET_ERROR = "抱歉，生成教学图片时出错了，请稍后再试。"


class ChatSession:
    """
    Client-side state of one chat with Lily.

    Holds the message list, the info collected so far and the active intent,
    and opens the Canvas once the server reports a task is ready.
    """

    def __init__(self, client, on_auth_required: Optional[Callable[[], None]] = None):
        self.client = client
        self.on_auth_required = on_auth_required
        self.messages: List[ChatMessage] = [ChatMessage(role="assistant", content=WELCOME_MESSAGE)]
        self.collected_info: dict = {}
        self.current_intent: Optional[str] = None
        self.canvas_open = False
        self.is_loading = False
        # Profile field the last reply asked for, sent back with the next turn
        self.pending_question: Optional[str] = None

    # ----------------- state helpers -----------------

    def add_message(self, role: str, content: str, resource: Optional[dict] = None) -> ChatMessage:
        message = ChatMessage(role=role, content=content, resource=resource)
        self.messages.append(message)
        return message

    def reset_conversation(self):
        self.collected_info = {}
        self.current_intent = None
        self.canvas_open = False

    @property
    def canvas(self) -> Optional[CanvasView]:
        if not self.canvas_open:
            return None
        return build_canvas(self.current_intent, TeachingInfo(**self.collected_info))

    def history(self) -> List[dict]:
        # The welcome message is never sent to the server.
        return [{"role": m.role, "content": m.content} for m in self.messages[1:]]

    # ----------------- chat -----------------

    def send_message(self, text: str) -> Optional[ChatMessage]:
        if not text or not text.strip():
            return None
        if not self.client.is_authenticated:
            if self.on_auth_required:
                self.on_auth_required()
            return None

        self.add_message("user", text)
        self.is_loading = True
        try:
            data = self.client.ai_chat(
                message=text,
                history=self.history(),
                collected_info=self.collected_info,
                intent=self.current_intent,
                answering=self.pending_question,
            )

            reply = None
            if data.get("reply"):
                reply = self.add_message("assistant", data["reply"])

            info = dict(self.collected_info)
            if data.get("newly_collected_info"):
                info.update(data["newly_collected_info"])
            if data.get("collected_info") is not None:
                info = dict(data["collected_info"])
            self.collected_info = info

            self.pending_question = data.get("next_question")
            if data.get("intent") and data["intent"] not in (UNKNOWN, GREETING):
                self.current_intent = data["intent"]
            if data.get("task_ready"):
                self.current_intent = data.get("intent")
                self.canvas_open = True
            return reply
        except (requests.RequestException, KeyError) as e:
            print(f"❌ Error calling ai-chat: {e}")
            return self.add_message("assistant", CHAT_ERROR)
        finally:
            self.is_loading = False

    def close_canvas(self):
        self.canvas_open = False
        self.reset_conversation()
        self.add_message("assistant", CANCELLED)

    # ----------------- generation -----------------

    def generate(self) -> Optional[ChatMessage]:
        """Runs the Canvas action for the active intent."""
        handlers = {
            LESSON_PLAN: self.generate_lesson_plan,
            PPT_OUTLINE: self.generate_ppt_outline,
            IMAGE_GENERATION: self.generate_image_set,
        }
        handler = handlers.get(self.current_intent)
        if handler is None:
            return None
        return handler()

    def generate_lesson_plan(self) -> ChatMessage:
        info = dict(self.collected_info)
        return self._run_task(
            lambda: self.client.generate_lesson_plan(info),
            f"针对主题“{info.get('topic')}”为{info.get('grade')}学生设计的教案已生成！",
            LESSON_PLAN_ERROR,
        )

    def generate_ppt_outline(self) -> ChatMessage:
        info = dict(self.collected_info)
        return self._run_task(
            lambda: self.client.generate_ppt_outline(info),
            f"针对主题“{info.get('topic')}”的PPT大纲已生成！",
            PPT_OUTLINE_ERROR,
        )

    def generate_image_set(self) -> ChatMessage:
        info = dict(self.collected_info)

        def success(data):
            return f"针对主题“{info.get('topic')}”的{len(data.get('images') or [])}张教学图片已生成！"

        return self._run_task(lambda: self.client.generate_image_set(info), success, IMAGE_SET_ERROR)

    def _run_task(self, call, success, error_message: str) -> ChatMessage:
        self.is_loading = True
        try:
            data = call()
            content = success(data) if callable(success) else success
            self.canvas_open = False
            self.reset_conversation()
            return self.add_message("assistant", content, resource=data.get("resource"))
        except (requests.RequestException, KeyError) as e:
            print(f"❌ Error generating teaching resource: {e}")
            return self.add_message("assistant", error_message)
        finally:
            self.is_loading = False
