# lily/graph.py

from langgraph.graph import StateGraph, START, END
from .state import ChatState, GenerationState, LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION
from .nodes import (
    profile_check_node,
    intent_classifier_node,
    slot_extractor_node,
    reply_composer_node,
    lesson_generator_node,
    ppt_outline_generator_node,
    image_prompt_designer_node,
    image_generator_node,
    resource_publisher_node,
)


def should_continue(state):
    return "end" if state.get("error") or state.get("reply") else "continue"


def route_by_intent(state):
    intent = state.get("intent")
    if intent not in (LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION):
        raise ValueError(f"No generation flow for intent '{intent}'")
    return intent


def build_chat_graph():
    """Builds the graph that runs a single slot-filling chat turn."""
    builder = StateGraph(ChatState)

    builder.add_node("Profile_Check", profile_check_node)
    builder.add_node("Intent_Classifier", intent_classifier_node)
    builder.add_node("Slot_Extractor", slot_extractor_node)
    builder.add_node("Reply_Composer", reply_composer_node)

    builder.set_entry_point("Profile_Check")
    builder.add_conditional_edges("Profile_Check", should_continue, {"continue": "Intent_Classifier", "end": END})
    builder.add_edge("Intent_Classifier", "Slot_Extractor")
    builder.add_conditional_edges("Slot_Extractor", should_continue, {"continue": "Reply_Composer", "end": END})
    builder.add_edge("Reply_Composer", END)

    print("✅ Chat graph built successfully.")
    return builder.compile()


def build_generation_graph():
    """Builds the graph that generates and saves a teaching resource."""
    builder = StateGraph(GenerationState)

    builder.add_node("Lesson_Generator", lesson_generator_node)
    builder.add_node("Ppt_Outline_Generator", ppt_outline_generator_node)
    builder.add_node("Image_Prompt_Designer", image_prompt_designer_node)
    builder.add_node("Image_Generator", image_generator_node)
    builder.add_node("Resource_Publisher", resource_publisher_node)

    builder.add_conditional_edges(START, route_by_intent, {
        LESSON_PLAN: "Lesson_Generator",
        PPT_OUTLINE: "Ppt_Outline_Generator",
        IMAGE_GENERATION: "Image_Prompt_Designer",
    })

    def has_prompts(state):
        return "end" if state.get("error") else "continue"

    builder.add_conditional_edges("Image_Prompt_Designer", has_prompts, {"continue": "Image_Generator", "end": END})

    builder.add_edge("Lesson_Generator", "Resource_Publisher")
    builder.add_edge("Ppt_Outline_Generator", "Resource_Publisher")
    builder.add_edge("Image_Generator", "Resource_Publisher")
    builder.add_edge("Resource_Publisher", END)

    print("✅ Generation graph built successfully.")
    return builder.compile()

# Compile both graphs when the module is loaded
chat_graph = build_chat_graph()
generation_graph = build_generation_graph()
