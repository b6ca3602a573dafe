# lily/nodes.py

import json

from . import utils
from .intent import recognize_intent, classify_intent, normalize_intent
from .state import (
    ChatState, GenerationState, TeachingInfo, ImagePromptSet,
    LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION, GREETING, UNKNOWN,
    TASK_INTENTS, SLOT_LABELS, RESOURCE_TYPES,
)

# --- Fixed Replies ---

WELCOME_MESSAGE = "你好！我是你的特教之光AI助手Lily，有什么可以帮助你的吗？例如：帮我创建一个关于春天的教案。"
GENERAL_FALLBACK = "抱歉，我不太明白您的意思，可以再说一遍吗？"

INTENT_OPENERS = {
    LESSON_PLAN: "好的，我明白了。您想让我帮您创建一个教案。",
    IMAGE_GENERATION: "好的，您想生成一组教学图片。",
    PPT_OUTLINE: "好的，您需要一个PPT大纲。",
}
TASK_NAMES = {LESSON_PLAN: "教案", PPT_OUTLINE: "PPT大纲", IMAGE_GENERATION: "教学图片"}
RESOURCE_TITLES = {
    LESSON_PLAN: "为“{topic}”创建的教案",
    PPT_OUTLINE: "为“{topic}”创建的PPT大纲",
    IMAGE_GENERATION: "为“{topic}”创建的教学图片",
}

HISTORY_TURNS = 10


def _profile_question(field: str, profile: dict) -> str:
    if field == "subject":
        return "为了给您提供更个性化的帮助，我需要了解一些信息。请问您主要教授什么科目？"
    return f"好的，我记下了您教的科目是{profile.get('subject')}。请问您使用的教材是哪个版本的？"


def _format_history(history) -> str:
    lines = []
    for turn in (history or [])[-HISTORY_TURNS:]:
        speaker = "Teacher" if turn.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.get('content', '')}")
    return "\n".join(lines) or "(no earlier messages)"


def _not_specified(value) -> str:
    return value or "未指定"


# --- Chat Node Definitions ---

def profile_check_node(state: ChatState):
    """Makes sure the teacher's subject and textbook edition are known."""
    print("---NODE: PROFILE CHECK---")
    profile = dict(state.get("profile") or {})
    message = (state.get("message") or "").strip()
    updates = {}

    answering = state.get("answering")
    if answering in ("subject", "textbook_edition") and message:
        updates[answering] = message
        profile[answering] = message
        print(f"✅ Profile answer recorded: {answering}='{message}'")

    for field in ("subject", "textbook_edition"):
        if not profile.get(field):
            return {
                "profile": profile,
                "profile_updates": updates,
                "next_question": field,
                "reply": _profile_question(field, profile),
            }

    if updates:
        reply = f"好的，我记下了您使用的教材是{profile['textbook_edition']}。有什么可以帮你的吗？例如：帮我创建一个关于春天的教案。"
        return {"profile": profile, "profile_updates": updates, "next_question": None, "reply": reply}
    return {"next_question": None}


def intent_classifier_node(state: ChatState):
    """Decides which generation flow the turn belongs to."""
    print("---NODE: INTENT CLASSIFIER---")
    previous = normalize_intent(state.get("intent"))
    intent = recognize_intent(state["message"])

    if intent in (GREETING, UNKNOWN) and previous in TASK_INTENTS:
        intent = previous
    elif intent == UNKNOWN:
        intent = classify_intent(state["message"], utils.get_llm(0.1))

    print(f"✅ Intent: '{intent}' (previous: '{previous}')")
    return {"intent": intent, "intent_changed": intent != previous}


def slot_extractor_node(state: ChatState):
    """Extracts topic, grade and objective from the turn and merges them into the collected info."""
    print("---NODE: SLOT EXTRACTOR---")
    collected = TeachingInfo(**(state.get("collected_info") or {})).filled()
    if state.get("intent") not in TASK_INTENTS:
        return {"collected_info": collected, "newly_collected_info": {}}

    prompt = f"""You help a special-education teacher prepare teaching material.
Extract the lesson topic, the students' grade and the teaching objective from the conversation.
Only fill a field when the teacher actually stated it; leave it empty otherwise. Keep the teacher's wording and language.

Already collected: {json.dumps(collected, ensure_ascii=False)}

Conversation so far:
{_format_history(state.get("history"))}

Latest message: "{state['message']}\""""

    try:
        extracted = utils.get_llm(0).with_structured_output(TeachingInfo).invoke(prompt)
    except Exception as e:
        return {"error": f"Failed to extract teaching info: {e}"}

    newly = {}
    for slot, value in extracted.filled().items():
        value = value.strip()
        if value != collected.get(slot):
            newly[slot] = value
    print(f"✅ Newly collected: {newly}")
    return {"collected_info": {**collected, **newly}, "newly_collected_info": newly}


def reply_composer_node(state: ChatState):
    """Asks for missing fields, hands off a ready task, or chats."""
    print("---NODE: REPLY COMPOSER---")
    intent = state.get("intent", UNKNOWN)
    info = TeachingInfo(**(state.get("collected_info") or {}))
    missing = info.missing_slots()
    is_complete = not missing

    if intent in TASK_INTENTS:
        if missing:
            opener = INTENT_OPENERS[intent] if state.get("intent_changed") else ""
            labels = "、".join(SLOT_LABELS[slot] for slot in missing)
            return {"reply": f"{opener}请告诉我{labels}。", "is_complete": False, "task_ready": False}
        reply = (
            f"好的，信息已经齐全：课题「{info.topic}」，年级：{info.grade}，教学目标：{info.objective}。"
            f"请在右侧面板确认后开始生成{TASK_NAMES[intent]}。"
        )
        return {"reply": reply, "is_complete": True, "task_ready": True}

    if intent == GREETING:
        return {"reply": WELCOME_MESSAGE, "is_complete": is_complete, "task_ready": False}

    profile = state.get("profile") or {}
    system_prompt = (
        "You are a helpful teaching assistant for special education. "
        f"The user's profile: subject is {profile.get('subject')}, textbook is {profile.get('textbook_edition')}. "
        "Keep your answers concise and helpful."
    )
    messages = [("system", system_prompt)]
    for turn in (state.get("history") or [])[-HISTORY_TURNS:]:
        messages.append(("human" if turn.get("role") == "user" else "ai", turn.get("content", "")))
    if messages[-1] != ("human", state["message"]):
        messages.append(("human", state["message"]))

    try:
        reply = utils.get_llm(0.7).invoke(messages).content or GENERAL_FALLBACK
    except Exception as e:
        return {"error": f"Failed to generate a chat reply: {e}"}
    return {"reply": reply, "is_complete": is_complete, "task_ready": False}


# --- Generation Node Definitions ---

def lesson_generator_node(state: GenerationState):
    """Generates a Markdown lesson plan from the collected info."""
    print("---NODE: LESSON GENERATOR---")
    info = TeachingInfo(**state["collected_info"])
    profile = state.get("profile") or {}

    system_prompt = f"""You are an expert in creating lesson plans for special education.
The user teaches {_not_specified(profile.get('subject'))} using the {_not_specified(profile.get('textbook_edition'))} textbook.
Generate a detailed lesson plan based on the user's request.
The lesson plan should be structured, clear, and easy to follow.
Format the output in Markdown."""
    request = f"课题：{info.topic}\n年级：{info.grade}\n教学目标：{info.objective}"

    try:
        lesson_plan = utils.get_llm(0.7).invoke([("system", system_prompt), ("human", request)]).content
    except Exception as e:
        return {"error": f"Failed to generate lesson plan: {e}"}
    if not lesson_plan:
        return {"error": "The model returned an empty lesson plan."}
    return {"lesson_plan": lesson_plan}


def ppt_outline_generator_node(state: GenerationState):
    """Generates a Markdown PPT outline from the collected info."""
    print("---NODE: PPT OUTLINE GENERATOR---")
    info = TeachingInfo(**state["collected_info"])
    profile = state.get("profile") or {}

    system_prompt = f"""You are an expert in creating PowerPoint presentation outlines for special education teachers.
The user teaches {_not_specified(profile.get('subject'))} using the {_not_specified(profile.get('textbook_edition'))} textbook.
Generate a clear, structured PPT outline based on the user's request.
The outline should have a title, and a list of slides with titles and bullet points.
Format the output in Markdown."""
    request = f"主题：{info.topic}\n年级：{_not_specified(info.grade)}\n教学目标：{_not_specified(info.objective)}"

    try:
        ppt_outline = utils.get_llm(0.7).invoke([("system", system_prompt), ("human", request)]).content
    except Exception as e:
        return {"error": f"Failed to generate PPT outline: {e}"}
    if not ppt_outline:
        return {"error": "The model returned an empty PPT outline."}
    return {"ppt_outline": ppt_outline}


IMAGE_DESIGNER_PROMPT = """你是系列图片提示词生成大师，帮助特殊教育学校老师生成合适的教学图片。
根据用户的教学对象、授课科目、长期教学目标、本次授课内容、本次教学目标生成一系列（建议6~8张）的图片提示词。
- 根据教学对象的认知特点，调整图像元素复杂度、颜色、场景清晰度、角色友好度。
- 围绕本次课程的核心知识单元或任务情境确定图片类型：概念类教学图、社交情境图、对比认知图、情景配图等。
- 图像需服务于教学目标，对学生友好（简化结构、强化对比、突出核心元素），与教材风格一致，贴近生活便于迁移。
在 reasoning 中说明设计方案及原因，在 prompts 中逐条给出提示词。"""


def image_prompt_designer_node(state: GenerationState):
    """Designs a series of teaching-image prompts."""
    print("---NODE: IMAGE PROMPT DESIGNER---")
    info = TeachingInfo(**state["collected_info"])
    profile = state.get("profile") or {}

    user_content = f"""
- 教学对象: {_not_specified(profile.get('teaching_object') or info.grade)}
- 授课科目: {_not_specified(profile.get('subject'))}
- 长期教学目标: {_not_specified(profile.get('long_term_goal'))}
- 本次授课内容: {_not_specified(info.topic)}
- 本次教学目标: {_not_specified(info.objective)}
"""

    try:
        designer = utils.get_llm(0.7).with_structured_output(ImagePromptSet)
        prompt_set = designer.invoke([("system", IMAGE_DESIGNER_PROMPT), ("human", user_content)])
    except Exception as e:
        return {"error": f"Failed to design image prompts: {e}"}

    prompts = [p.strip() for p in prompt_set.prompts if p and p.strip()]
    if not prompts:
        return {"error": "The model returned no image prompts."}
    print(f"✅ Designed {len(prompts)} image prompts.")
    return {"image_reasoning": prompt_set.reasoning, "image_prompts": prompts}


def image_generator_node(state: GenerationState):
    """Renders every designed prompt, skipping the ones that fail."""
    print("---NODE: IMAGE GENERATOR---")
    images = []
    for prompt in state.get("image_prompts") or []:
        url = utils.generate_image_with_fallback(prompt)
        if url:
            images.append({"prompt": prompt, "url": url})
        else:
            print(f"⚠️ No image generated for prompt: {prompt}")

    if not images:
        return {"error": "No image could be generated."}
    print(f"✅ Generated {len(images)} images.")
    return {"images": images}


def resource_publisher_node(state: GenerationState):
    """Saves the generated content as a teaching resource."""
    print("---NODE: RESOURCE PUBLISHER---")
    if state.get("error"):
        print(f"❌ Cannot publish resource due to an error: {state['error']}")
        return {}

    intent = state["intent"]
    info = state.get("collected_info") or {}
    if intent == LESSON_PLAN:
        content = state.get("lesson_plan")
    elif intent == PPT_OUTLINE:
        content = state.get("ppt_outline")
    else:
        content = json.dumps({"reasoning": state.get("image_reasoning"), "images": state.get("images")}, ensure_ascii=False)

    try:
        resource = state["store"].insert_resource(
            user_id=state["user_id"],
            title=RESOURCE_TITLES[intent].format(topic=info.get("topic")),
            content=content,
            resource_type=RESOURCE_TYPES[intent],
            metadata=info,
        )
    except Exception as e:
        print(f"❌ Failed to publish resource: {e}")
        return {"error": f"Failed to save teaching resource: {e}"}

    print(f"✅ Saved {RESOURCE_TYPES[intent]} for user {state['user_id']}.")
    return {"resource": resource}
