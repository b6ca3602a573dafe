# lily/state.py

from typing import TypedDict, List, Optional, Literal
from pydantic import BaseModel, Field

# --- Intents and Slots ---

LESSON_PLAN = "lesson-plan"
PPT_OUTLINE = "ppt-outline"
IMAGE_GENERATION = "image-generation"
GREETING = "greeting"
UNKNOWN = "unknown"

TASK_INTENTS = (LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION)
VALID_INTENTS = TASK_INTENTS + (GREETING, UNKNOWN)
INTENT_ALIASES = {"ppt-creation": PPT_OUTLINE}

REQUIRED_SLOTS = ("topic", "grade", "objective")
SLOT_LABELS = {"topic": "课题", "grade": "年级", "objective": "教学目标"}

# resource_type values stored in teaching_resources
RESOURCE_TYPES = {
    LESSON_PLAN: "lesson_plan",
    PPT_OUTLINE: "ppt_outline",
    IMAGE_GENERATION: "image_group",
}
RESOURCE_TYPE_LABELS = {"lesson_plan": "教案", "ppt_outline": "PPT大纲", "image_group": "图片"}


def resource_type_label(resource_type: str) -> str:
    return RESOURCE_TYPE_LABELS.get(resource_type, "资源")


# --- Pydantic Models ---

class TeachingInfo(BaseModel):
    """The fields collected from the teacher across chat turns."""
    topic: Optional[str] = Field(default=None, description="The lesson topic or text being taught, e.g. '春天'.")
    grade: Optional[str] = Field(default=None, description="The target grade or class of the students.")
    objective: Optional[str] = Field(default=None, description="The teaching objective for this lesson.")

    def filled(self) -> dict:
        return {k: v for k, v in self.model_dump().items() if v and str(v).strip()}

    def missing_slots(self) -> List[str]:
        filled = self.filled()
        return [slot for slot in REQUIRED_SLOTS if slot not in filled]


class TeacherProfile(BaseModel):
    """The teaching preferences kept on the profiles table."""
    subject: Optional[str] = None
    textbook_edition: Optional[str] = None
    teaching_object: Optional[str] = None
    long_term_goal: Optional[str] = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    resource: Optional[dict] = None


class ImagePromptSet(BaseModel):
    """A designed series of teaching-image prompts."""
    reasoning: str = Field(description="Why these images suit the students and the teaching objective.")
    prompts: List[str] = Field(description="Six to eight image generation prompts, one per image.")


# --- Graph State Definitions ---

class ChatState(TypedDict, total=False):
    """The state of one chat turn."""
    # Input fields
    message: str
    history: List[dict]
    profile: dict
    answering: Optional[str]

    # Slot filling fields
    intent: str
    intent_changed: bool
    collected_info: dict
    newly_collected_info: dict
    profile_updates: dict

    # Output fields
    reply: str
    next_question: Optional[str]
    is_complete: bool
    task_ready: bool
    error: str


class GenerationState(TypedDict, total=False):
    """The state of one generation task."""
    user_id: str
    intent: str
    collected_info: dict
    profile: dict
    store: object

    # Generated content fields
    lesson_plan: str
    ppt_outline: str
    image_reasoning: str
    image_prompts: List[str]
    images: List[dict]

    # Publishing fields
    resource: dict
    error: str
