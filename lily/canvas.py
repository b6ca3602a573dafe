# lily/canvas.py

from typing import List, Tuple, Optional
from pydantic import BaseModel

from .state import TeachingInfo, LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION, REQUIRED_SLOTS, SLOT_LABELS

CANVAS_TITLES = {
    IMAGE_GENERATION: "图片生成助手",
    LESSON_PLAN: "教案助手",
    PPT_OUTLINE: "PPT 助手",
}
CANVAS_ACTIONS = {
    IMAGE_GENERATION: "生成图片",
    LESSON_PLAN: "生成教案",
    PPT_OUTLINE: "生成PPT大纲",
}


class CanvasView(BaseModel):
    """What the side panel shows for the active intent."""
    title: str
    fields: List[Tuple[str, str]]
    action_label: Optional[str] = None
    hint: str = "点击生成后，结果将出现在对话中。"

    def render(self) -> str:
        lines = [f"[{self.title}]"]
        lines += [f"{label}：{value}" for label, value in self.fields]
        if self.action_label:
            lines.append(f"> {self.action_label}")
            lines.append(self.hint)
        else:
            lines.append("任务正在处理中...")
        return "\n".join(lines)


def build_canvas(intent: Optional[str], info: TeachingInfo) -> CanvasView:
    fields = [(SLOT_LABELS[slot], getattr(info, slot) or "") for slot in REQUIRED_SLOTS]
    return CanvasView(
        title=CANVAS_TITLES.get(intent, "任务助手"),
        fields=fields,
        action_label=CANVAS_ACTIONS.get(intent),
    )
