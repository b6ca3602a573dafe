# api.py

import sys
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from lily.graph import chat_graph, generation_graph
from lily.nodes import image_prompt_designer_node
from lily.state import (
    ChatMessage, TeachingInfo, TeacherProfile,
    LESSON_PLAN, PPT_OUTLINE, IMAGE_GENERATION,
)
from lily.store import ResourceStore
from lily.utils import get_supabase, create_user_client, generate_image_with_fallback

# Initialize FastAPI app
app = FastAPI(
    title="Lily Teaching Assistant API",
    description="API for collecting teaching context through chat and generating teaching resources.",
    version="1.0.0"
)

# --- One-time Setup ---
@app.on_event("startup")
def startup_event():
    """Actions to run on API startup."""
    print("🚀 API starting up...")
    try:
        get_supabase()
        print("✅ Supabase client is ready.")
    except Exception as e:
        print(f"❌ Critical startup error: {e}")
        sys.exit(1)

# --- Auth ---
@dataclass
class UserSession:
    user_id: str
    email: Optional[str]
    store: ResourceStore


def get_session(authorization: Optional[str] = Header(None)) -> UserSession:
    """Resolves the bearer token to a Supabase user and a store acting as that user."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    try:
        res = get_supabase().auth.get_user(token)
    except Exception as e:
        print(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = getattr(res, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return UserSession(user_id=user.id, email=user.email, store=ResourceStore(create_user_client(token)))

# --- Request Models ---
class ChatRequest(BaseModel):
    message: str
    history: List[ChatMessage] = []
    collected_info: TeachingInfo = Field(default_factory=TeachingInfo)
    intent: Optional[str] = None
    answering: Optional[str] = None


class ChatResponse(BaseModel):
    reply: Optional[str] = None
    intent: Optional[str] = None
    is_complete: bool = False
    task_ready: bool = False
    collected_info: dict = {}
    newly_collected_info: dict = {}
    next_question: Optional[str] = None


class ImagePromptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teaching_object: Optional[str] = Field(default=None, alias="teachingObject")
    subject: Optional[str] = None
    long_term_goal: Optional[str] = Field(default=None, alias="longTermGoal")
    topic: Optional[str] = None
    objective: Optional[str] = None


class ImageRequest(BaseModel):
    prompt: str = ""

# --- Generation Helper ---
def run_generation(intent: str, info: TeachingInfo, session: UserSession) -> dict:
    """Runs the generation graph to completion and returns its final state."""
    if not info.topic:
        raise HTTPException(status_code=400, detail="topic is required.")

    print(f"🚀 Starting {intent} generation for user: {session.user_id}")
    start_time = time.time()

    initial_state = {
        "user_id": session.user_id,
        "intent": intent,
        "collected_info": info.filled(),
        "profile": session.store.get_profile(session.user_id) or {},
        "store": session.store,
    }
    final_state = generation_graph.invoke(initial_state)

    print(f"✅ Generation finished in {time.time() - start_time:.2f} seconds.")
    if final_state.get("error"):
        print(f"❌ Generation failed: {final_state['error']}")
        raise HTTPException(status_code=500, detail=final_state["error"])
    return final_state

# --- API Endpoints ---
@app.post("/ai-chat", response_model=ChatResponse)
def ai_chat(request: ChatRequest, session: UserSession = Depends(get_session)):
    """
    Runs one slot-filling chat turn and reports what has been collected so far.
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="message is required.")

    store = session.store
    profile = store.ensure_profile(session.user_id, session.email)

    initial_state = {
        "message": request.message,
        "history": [{"role": m.role, "content": m.content} for m in request.history],
        "profile": profile,
        "answering": request.answering,
        "intent": request.intent,
        "collected_info": request.collected_info.filled(),
    }
    final_state = chat_graph.invoke(initial_state)

    if final_state.get("error"):
        print(f"❌ Chat turn failed: {final_state['error']}")
        raise HTTPException(status_code=500, detail=final_state["error"])

    if final_state.get("profile_updates"):
        store.update_profile(session.user_id, final_state["profile_updates"])

    return ChatResponse(
        reply=final_state.get("reply"),
        intent=final_state.get("intent"),
        is_complete=final_state.get("is_complete", False),
        task_ready=final_state.get("task_ready", False),
        collected_info=final_state.get("collected_info") or {},
        newly_collected_info=final_state.get("newly_collected_info") or {},
        next_question=final_state.get("next_question"),
    )


@app.post("/generate-lesson-plan")
def generate_lesson_plan(info: TeachingInfo, session: UserSession = Depends(get_session)):
    final_state = run_generation(LESSON_PLAN, info, session)
    return {"lessonPlan": final_state["lesson_plan"], "resource": final_state.get("resource")}


@app.post("/generate-ppt-outline")
def generate_ppt_outline(info: TeachingInfo, session: UserSession = Depends(get_session)):
    final_state = run_generation(PPT_OUTLINE, info, session)
    return {"pptOutline": final_state["ppt_outline"], "resource": final_state.get("resource")}


@app.post("/generate-image-set")
def generate_image_set(info: TeachingInfo, session: UserSession = Depends(get_session)):
    final_state = run_generation(IMAGE_GENERATION, info, session)
    return {
        "reasoning": final_state.get("image_reasoning"),
        "images": final_state["images"],
        "resource": final_state.get("resource"),
    }


@app.post("/generate-image-prompts")
def generate_image_prompts(request: ImagePromptRequest, session: UserSession = Depends(get_session)):
    """Designs teaching-image prompts without rendering them."""
    stored = session.store.get_profile(session.user_id) or {}
    profile = {
        "teaching_object": request.teaching_object or stored.get("teaching_object"),
        "subject": request.subject or stored.get("subject"),
        "long_term_goal": request.long_term_goal or stored.get("long_term_goal"),
    }
    result = image_prompt_designer_node({
        "collected_info": {"topic": request.topic, "objective": request.objective},
        "profile": profile,
    })
    if result.get("error"):
        raise HTTPException(status_code=500, detail=result["error"])
    return {"reasoning": result["image_reasoning"], "prompts": result["image_prompts"]}


@app.post("/generate-image")
def generate_image(request: ImageRequest, session: UserSession = Depends(get_session)):
    if not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    image = generate_image_with_fallback(request.prompt)
    if not image:
        raise HTTPException(status_code=500, detail="No image generated.")
    return {"image": image}


@app.get("/resources")
def list_resources(limit: int = Query(20, ge=1, le=100), session: UserSession = Depends(get_session)):
    return session.store.list_resources(session.user_id, limit=limit)


@app.get("/resources/{resource_id}")
def get_resource(resource_id: int, session: UserSession = Depends(get_session)):
    """Returns one resource with its full content."""
    resource = session.store.get_resource(session.user_id, resource_id)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource


@app.get("/profile")
def get_profile(session: UserSession = Depends(get_session)):
    return session.store.ensure_profile(session.user_id, session.email)


@app.put("/profile")
def update_profile(profile: TeacherProfile, session: UserSession = Depends(get_session)):
    return session.store.update_profile(session.user_id, profile.model_dump(exclude_unset=True))

# To run this API, use the command:
# uvicorn api:app --reload
