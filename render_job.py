#!/usr/bin/env python3
"""
Command-line client for the template media renderer.

Posts an image or video job (read from a JSON file) to a running service and
writes the returned bytes to disk.

Usage:
    python render_job.py video job.json                 # -> output/<job_id>.mp4
    python render_job.py image card.json -o card.png
    python render_job.py templates                      # list registered templates
"""

import argparse
import json
import os
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Configuration
BASE_URL = os.getenv("RENDERER_BASE_URL", "http://localhost:8000")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("RENDERER_REQUEST_TIMEOUT", "600"))

# Output directory
OUTPUT_DIR = Path("output")


def load_payload(path: str) -> dict:
    """Read a JSON job description."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def list_templates():
    """Print registered templates and their fields."""
    response = requests.get(f"{BASE_URL}/templates", timeout=30)
    if response.status_code != 200:
        print(f"❌ Failed to list templates: {response.status_code}")
        print(response.text)
        return

    for template in response.json():
        fields = ", ".join(f["name"] for f in template.get("fields", []))
        print(f"   {template['name']:<20} {template['width']}x{template['height']}  [{fields}]")


def submit(kind: str, payload: dict, output_path: Path | None) -> Path | None:
    """Submit a render job and save the result."""
    endpoint = f"{BASE_URL}/render/{kind}"
    if kind == "video":
        print(f"\n🎬 Submitting video job: {len(payload.get('slides', []))} slides, "
              f"transition={payload.get('transition', 'fade')}")
    else:
        print(f"\n🖼️  Submitting image job: template={payload.get('template', 'raw')}")

    start_time = time.time()
    response = requests.post(endpoint, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
    elapsed = time.time() - start_time

    if response.status_code != 200:
        print(f"❌ Render failed ({response.status_code}) after {elapsed:.1f}s")
        try:
            error = response.json()
            print(f"   {error.get('error_type', 'error')}: {error.get('detail')}")
        except ValueError:
            print(response.text)
        return None

    if output_path is None:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        name = response.headers.get("X-Job-Id") or f"render_{int(time.time())}"
        output_path = OUTPUT_DIR / f"{name}.{'mp4' if kind == 'video' else 'png'}"

    output_path.write_bytes(response.content)
    print(f"✅ Saved {output_path} ({len(response.content) / 1024:.1f} KB) in {elapsed:.1f}s")
    return output_path


def main():
    parser = argparse.ArgumentParser(
        description="Submit render jobs to the template media renderer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python render_job.py templates
  python render_job.py image card.json -o card.png
  python render_job.py video job.json --transition none
        """
    )
    parser.add_argument("kind", choices=["image", "video", "templates"], help="What to do")
    parser.add_argument("payload", nargs="?", help="JSON file with the request body")
    parser.add_argument("-o", "--output", type=str, default=None, help="Output file path")
    parser.add_argument("--transition", choices=["fade", "none"], default=None, help="Override transition (video)")
    parser.add_argument("--audio-url", type=str, default=None, help="Override narration URL (video)")

    args = parser.parse_args()

    if args.kind == "templates":
        list_templates()
        return

    if not args.payload:
        parser.error("payload is required for image and video jobs")

    payload = load_payload(args.payload)
    if args.kind == "video":
        if args.transition:
            payload["transition"] = args.transition
        if args.audio_url:
            payload["audio_url"] = args.audio_url

    submit(args.kind, payload, Path(args.output) if args.output else None)


if __name__ == "__main__":
    main()
