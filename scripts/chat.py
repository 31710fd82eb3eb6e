#!/usr/bin/env python3
"""
Send one chat message to a running bot and pretty-print the reply.

Defaults:
- base URL: http://localhost:$PORT (5050)
- message: "Which package do I pick? I am confused."

Usage:
  python3 scripts/chat.py
  python3 scripts/chat.py "Do you sell gift cards?" --session test-cli
"""
from __future__ import annotations

import argparse
import json
import os
import sys
import urllib.error
import urllib.request

DEFAULT_MESSAGE = "Which package do I pick? I am confused."


def post_json(url: str, payload: dict, timeout: float = 30.0):
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            return r.status, json.load(r)
    except urllib.error.HTTPError as e:
        try:
            body = json.loads(e.read().decode() or "{}")
        except ValueError:
            body = {}
        return e.code, body


def main():
    ap = argparse.ArgumentParser(description="Send a chat message to the local bot")
    ap.add_argument("message", nargs="?", default=DEFAULT_MESSAGE)
    ap.add_argument("--base", default=f"http://localhost:{os.getenv('PORT', '5050')}", help="Base URL of the running app")
    ap.add_argument("--session", default="test-cli", help="session_id to send")
    args = ap.parse_args()

    payload = {
        "message": args.message,
        "client": {"name": "Test Client", "ig": "@testclient", "phone": "+1-555-555-0000"},
        "session_id": args.session,
    }
    try:
        status, data = post_json(f"{args.base.rstrip('/')}/api/chat", payload)
    except urllib.error.URLError as e:
        sys.exit(f"Could not reach {args.base}: {e.reason}")

    print(json.dumps(data, indent=2, ensure_ascii=False))
    if status != 200:
        sys.exit(f"HTTP {status}")


if __name__ == "__main__":
    main()
