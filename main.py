# main.py

import getpass
import json
import os
import sys

import requests

from lily.client import LilyClient
from lily.conversation import ChatSession
from lily.state import resource_type_label


def sign_in(client: LilyClient):
    """Signs in with LILY_EMAIL / LILY_PASSWORD, prompting for whatever is missing.

    When sign-in fails the user is offered to create an account with the same credentials.
    """
    email = os.getenv("LILY_EMAIL") or input("Email: ").strip()
    password = os.getenv("LILY_PASSWORD") or getpass.getpass("Password: ")
    try:
        user = client.sign_in(email, password)
        print(f"✅ Signed in as {user['email']}")
        return
    except Exception as e:
        print(f"❌ Sign-in failed: {e}")

    if input("Create a new account with this email? [y/N]: ").strip().lower() != "y":
        return
    try:
        user = client.sign_up(email, password)
    except Exception as e:
        print(f"❌ Sign-up failed: {e}")
        return
    if user["signed_in"]:
        print(f"✅ Account created, signed in as {user['email']}")
    else:
        print(f"📧 Account created for {user['email']}. Confirm your email, then send your message again.")


def format_resource(resource: dict) -> str:
    """Renders a saved resource for the terminal."""
    header = f"=== {resource_type_label(resource.get('resource_type'))} #{resource.get('id')}: {resource.get('title')} ==="
    content = resource.get("content") or ""
    if resource.get("resource_type") == "image_group":
        try:
            image_set = json.loads(content)
        except ValueError:
            return f"{header}\n{content}"
        lines = [header, image_set.get("reasoning") or ""]
        for i, image in enumerate(image_set.get("images") or [], 1):
            lines.append(f"{i}. {image.get('prompt')} ({len(image.get('url') or '')} characters of image data)")
        return "\n".join(lines)
    return f"{header}\n{content}"


def latest_resource(session: ChatSession):
    for message in reversed(session.messages):
        if message.resource:
            return message.resource
    return None


def view_resource(client: LilyClient, session: ChatSession, arg: str):
    """Shows the resource with the given id, or the last one generated in this chat."""
    if arg:
        try:
            resource = client.get_resource(int(arg))
        except ValueError:
            print("ℹ️ Usage: /view [resource id]")
            return
        except requests.RequestException as e:
            print(f"❌ Could not load resource {arg}: {e}")
            return
    else:
        resource = latest_resource(session)
        if resource is None:
            print("ℹ️ Nothing has been generated in this chat yet.")
            return
    print("\n" + format_resource(resource) + "\n")


def main():
    """Main function to chat with Lily from the terminal."""
    client = LilyClient()
    session = ChatSession(client, on_auth_required=lambda: sign_in(client))

    print("\n\n--- Welcome to Lily ---")
    print("Commands: /generate to run the open task, /close to cancel it, /view [id] to read a resource, /quit to exit.\n")
    print(f"Lily: {session.messages[0].content}")

    while True:
        try:
            user_input = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_input:
            continue
        if user_input == "/quit":
            break
        if user_input == "/close":
            if session.canvas_open:
                session.close_canvas()
                print(f"Lily: {session.messages[-1].content}")
            continue
        if user_input.split()[0] == "/view":
            view_resource(client, session, user_input[len("/view"):].strip())
            continue
        if user_input == "/generate":
            if not session.canvas_open:
                print("ℹ️ No task is ready yet.")
                continue
            print("⏳ Generating...")
            reply = session.generate()
        else:
            reply = session.send_message(user_input)
            if reply is None:
                print("ℹ️ Please send your message again." if client.is_authenticated else "❌ Please sign in first.")
                continue

        if reply is not None:
            print(f"Lily: {reply.content}")
            if reply.resource:
                print(f"📄 Saved resource #{reply.resource.get('id')}: {reply.resource.get('title')} (/view to read it)")
        if session.canvas_open:
            print("\n" + session.canvas.render() + "\n")

    print("Bye!")
    sys.exit(0)


if __name__ == "__main__":
    main()
