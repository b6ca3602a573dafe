# lily/intent.py

from .state import (
    LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION, GREETING, UNKNOWN,
    VALID_INTENTS, INTENT_ALIASES,
)

# Checked in order; the first matching rule wins.
KEYWORD_RULES = [
    (LESSON_PLAN, ("教案",)),
    (IMAGE_GENERATION, ("图片", "插图")),
    (PPT_OUTLINE, ("ppt", "幻灯片")),
    (GREETING, ("你好", "您好", "hi", "hello")),
]

CLASSIFIER_PROMPT = """Based on the user's message, what is their primary intent? Respond with only one of the following JSON-compatible strings: "lesson-plan", "image-generation", "ppt-outline", or "unknown".

User message: "{message}"

Intent:"""


def recognize_intent(message: str) -> str:
    """Classifies a message by keyword, without calling a model."""
    lowered = message.lower()
    for intent, keywords in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return UNKNOWN


def normalize_intent(value) -> str:
    if not value:
        return UNKNOWN
    intent = str(value).strip().strip('"\'').strip().lower()
    intent = INTENT_ALIASES.get(intent, intent)
    return intent if intent in VALID_INTENTS else UNKNOWN


def classify_intent(message: str, llm) -> str:
    """Asks the chat model for the intent. Never raises; failures read as unknown."""
    try:
        response = llm.invoke([
            ("system", "You are an expert at classifying user intent."),
            ("human", CLASSIFIER_PROMPT.format(message=message)),
        ])
        intent = normalize_intent(response.content)
        print(f"✅ LLM recognized intent: {intent}")
        return intent
    except Exception as e:
        print(f"⚠️ Error getting intent from LLM: {e}")
        return UNKNOWN
