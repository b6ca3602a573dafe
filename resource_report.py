# resource_report.py

import argparse
import os

import pandas as pd

from lily.client import LilyClient
from lily.state import resource_type_label

EXPORT_FILE = "teaching_resources.csv"


def resources_frame(rows: list) -> pd.DataFrame:
    """Turns teaching_resources rows into a DataFrame with display labels and topics."""
    df = pd.DataFrame(rows, columns=["id", "title", "resource_type", "metadata", "created_at"])
    if df.empty:
        return df
    df["type_label"] = df["resource_type"].map(resource_type_label)
    df["topic"] = df["metadata"].map(lambda m: (m or {}).get("topic"))
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    return df.sort_values("created_at", ascending=False)


def analyze_resources(df: pd.DataFrame, recent: int = 5):
    """Prints how many resources of each type exist and the most recent ones."""
    if df.empty:
        print("⚠️ No teaching resources found yet.")
        return

    print("\n## Resources by Type ##")
    print(df.groupby("type_label").size().sort_values(ascending=False).to_string())

    print("\n## Most Used Topics ##")
    print(df["topic"].dropna().value_counts().head(5).to_string())

    print(f"\n## {recent} Most Recent Resources ##")
    for _, row in df.head(recent).iterrows():
        print(f"- {row['created_at']:%Y-%m-%d %H:%M} | {row['type_label']} | {row['title']}")


def export_resources(df: pd.DataFrame, path: str = EXPORT_FILE):
    if df.empty:
        print("⚠️ No data to export.")
        return
    df.drop(columns=["metadata"]).to_csv(path, index=False)
    print(f"✅ Successfully exported {len(df)} records to {path}.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Summarize the teaching resources generated with Lily."
    )
    parser.add_argument("--limit", type=int, default=100, help="How many recent resources to load.")
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export the resources to a CSV file instead of showing the summary."
    )
    args = parser.parse_args()

    client = LilyClient()
    client.sign_in(os.getenv("LILY_EMAIL"), os.getenv("LILY_PASSWORD"))
    frame = resources_frame(client.list_resources(limit=args.limit))

    if args.export:
        export_resources(frame)
    else:
        analyze_resources(frame)
