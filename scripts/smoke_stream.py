#!/usr/bin/env python3
"""
Smoke test for the streaming chat endpoint of a running ragrelay server.

Run:
  python scripts/smoke_stream.py --base-url http://127.0.0.1:8080

Options:
  --base-url         Server base URL (default: http://127.0.0.1:8080)
  --timeout          Timeout for one answer (seconds)
  --print-answers    Print answers in full
  --knowledge-base   Attach knowledge_base context to every question
  --dialog           Also run a multi-turn dialogue carrying history
"""

import argparse
import json
import sys

import httpx


DEFAULT_BASE_URL = "http://127.0.0.1:8080"

TESTS = [
    {
        "q": "What is this documentation about?",
        "expect_none": ["Traceback"],
    },
    {
        "q": "Summarize the main topics in one sentence.",
        "expect_none": ["Traceback"],
    },
]

DIALOGUE = [
    "What topics does the documentation cover?",
    "Thanks",
    "Tell me more about the first one.",
]


def read_events(client: httpx.Client, base_url: str, body: dict, timeout: float) -> list[dict]:
    events = []
    with client.stream(
        "POST", f"{base_url}/api/chat/stream", json=body, timeout=timeout
    ) as resp:
        resp.raise_for_status()
        content_type = resp.headers.get("content-type", "")
        if not content_type.startswith("text/event-stream"):
            raise RuntimeError(f"Unexpected content type: {content_type}")
        for line in resp.iter_lines():
            if not line.startswith("data: "):
                continue
            events.append(json.loads(line[len("data: "):]))
    return events


def check_order(events: list[dict]) -> list[str]:
    errors = []
    types = [e.get("type") for e in events]
    if not types:
        return ["no events"]
    if types == ["error"]:
        return [f"error before start: {events[0].get('error')}"]
    if types[0] != "start":
        errors.append(f"first event is {types[0]}, expected start")
    if not events[0].get("id", "").startswith("msg_"):
        errors.append("start event has no msg_ id")
    if types[-1] not in ("done", "error"):
        errors.append(f"last event is {types[-1]}, expected done or error")
    if types[-1] == "error":
        errors.append(f"stream error: {events[-1].get('error')}")
    if any(t != "content" for t in types[1:-1]):
        errors.append(f"unexpected events between start and end: {types[1:-1]}")
    return errors


def normalize(text: str) -> str:
    return (text or "").lower()


def check_expectations(answer: str, test: dict) -> list[str]:
    errors = []
    ans = normalize(answer)

    expect_any = test.get("expect_any") or []
    expect_none = test.get("expect_none") or []

    if expect_any:
        if not any(normalize(x) in ans for x in expect_any):
            errors.append(f"missing any of: {expect_any}")

    for token in expect_none:
        if normalize(token) in ans:
            errors.append(f"should not contain: {token}")

    return errors


def build_body(question: str, history: list[dict], knowledge_base: bool) -> dict:
    body = {"message": question, "history": history}
    if knowledge_base:
        body["context"] = {"type": "knowledge_base"}
    return body


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    parser.add_argument("--timeout", type=float, default=120)
    parser.add_argument("--print-answers", action="store_true")
    parser.add_argument("--knowledge-base", action="store_true")
    parser.add_argument("--dialog", action="store_true")
    args = parser.parse_args()

    client = httpx.Client()
    health = client.get(f"{args.base_url}/api/health", timeout=10)
    health.raise_for_status()

    failures = 0
    for idx, test in enumerate(TESTS, start=1):
        q = test["q"]
        print(f"\nQ{idx}: {q}")
        events = read_events(
            client, args.base_url, build_body(q, [], args.knowledge_base), args.timeout
        )
        answer = "".join(e.get("delta", "") for e in events if e.get("type") == "content")
        if args.print_answers:
            print("A:", answer)

        errors = check_order(events) + check_expectations(answer, test)
        if errors:
            failures += 1
            print("FAIL:", "; ".join(errors))
        else:
            usage = events[-1].get("usage")
            print("OK" + (f" (tokens: {usage.get('totalTokens')})" if usage else ""))

    if failures:
        print(f"\nFAILED: {failures} test(s) failed")
        sys.exit(1)
    print("\nALL OK")

    if args.dialog:
        history: list[dict] = []
        print("\nDIALOGUE:\n")
        for idx, q in enumerate(DIALOGUE, start=1):
            print(f"U{idx}: {q}")
            events = read_events(
                client, args.base_url, build_body(q, history, args.knowledge_base), args.timeout
            )
            answer = "".join(e.get("delta", "") for e in events if e.get("type") == "content")
            print(f"A{idx}: {answer}\n")
            history += [
                {"role": "user", "content": q},
                {"role": "assistant", "content": answer},
            ]
    client.close()
    return 0


if __name__ == "__main__":
    main()
