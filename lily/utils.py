# lily/utils.py

import base64
import os
from functools import lru_cache

import requests
from dotenv import load_dotenv
from langchain_core.messages import HumanMessage
from supabase import create_client, Client

# --- Environment Setup ---
load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
CHAT_MODEL = os.getenv("LILY_CHAT_MODEL", "gemini-1.5-pro")
IMAGE_MODEL = os.getenv("LILY_IMAGE_MODEL", "imagegeneration@006")
HF_IMAGE_MODELS = ["stabilityai/stable-diffusion-2-1", "CompVis/stable-diffusion-v1-4"]
IMAGE_STYLE = "A clear, simple, and friendly illustration for a special education context. The style should be minimalist and child-friendly."


# --- Model Setup ---
@lru_cache(maxsize=None)
def get_llm(temperature: float):
    """Returns a shared Vertex AI chat model for the given temperature."""
    from langchain_google_vertexai import ChatVertexAI
    return ChatVertexAI(model_name=CHAT_MODEL, temperature=temperature)


@lru_cache(maxsize=1)
def get_image_tool():
    """Initializes the Vertex AI image generator once, or returns None when unavailable."""
    try:
        from langchain_google_vertexai import VertexAIImageGeneratorChat
        tool = VertexAIImageGeneratorChat(model=IMAGE_MODEL)
        print("✅ Vertex AI Image Generation initialized")
        return tool
    except Exception as e:
        print(f"⚠️ Vertex AI Image Generation not available: {e}. Using fallback.")
        return None


# --- Supabase Initialization ---
def _require_supabase_config():
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        raise RuntimeError("Missing SUPABASE_URL / SUPABASE_ANON_KEY in .env")


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Returns the anonymous Supabase client used for auth calls."""
    _require_supabase_config()
    return create_client(SUPABASE_URL, SUPABASE_ANON_KEY)


def create_user_client(access_token: str) -> Client:
    """Creates a Supabase client whose table calls run as the token's user."""
    _require_supabase_config()
    client = create_client(SUPABASE_URL, SUPABASE_ANON_KEY)
    client.postgrest.auth(access_token)
    return client


# --- Image Generation ---
def _image_url_from_message(message) -> str | None:
    content = getattr(message, "content", None)
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "image_url":
                return part["image_url"]["url"]
    return None


def generate_image_with_fallback(prompt: str) -> str | None:
    """Generates an image using Vertex AI with a Hugging Face fallback.

    Returns a ``data:image/png;base64,...`` URL, or None when every backend failed.
    """
    formatted_prompt = f"{IMAGE_STYLE} {prompt}"

    image_tool = get_image_tool()
    if image_tool:
        try:
            print("Attempting Vertex AI image generation...")
            url = _image_url_from_message(image_tool.invoke([HumanMessage(content=formatted_prompt)]))
            if url:
                return url
        except Exception as e:
            print(f"⚠️ Vertex AI Image Generation failed: {e}")

    print("Attempting Hugging Face image generation...")
    headers = {"Authorization": f"Bearer {os.getenv('HUGGINGFACE_API_KEY')}", "Content-Type": "application/json"}

    for model in HF_IMAGE_MODELS:
        try:
            api_url = f"https://api-inference.huggingface.co/models/{model}"
            response = requests.post(api_url, headers=headers, json={"inputs": formatted_prompt, "options": {"wait_for_model": True}}, timeout=45)
            if response.status_code == 200:
                print(f"✅ Image generated using {model}")
                return "data:image/png;base64," + base64.b64encode(response.content).decode("ascii")
            else:
                print(f"⚠️ Model {model} failed with status {response.status_code}")
        except requests.RequestException as e:
            print(f"⚠️ Error with model {model}: {e}")
    return None
