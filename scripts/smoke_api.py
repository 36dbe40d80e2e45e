#!/usr/bin/env python3
import argparse
import uuid

import httpx


def _data(response: httpx.Response) -> dict:
    response.raise_for_status()
    payload = response.json()
    if not payload.get("success"):
        raise RuntimeError(f"Request failed: {payload.get('error')}")
    return payload.get("data") or {}


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk a running backend through signup, practice and progress.")
    parser.add_argument("--api-base", default="http://127.0.0.1:8000", help="Backend base URL.")
    parser.add_argument(
        "--code",
        required=True,
        help="Verification code the backend was started with (VOICEBRIDGE_DEV_VERIFICATION_CODE).",
    )
    parser.add_argument("--password", default="smoke-test-password", help="Password for the throwaway account.")
    args = parser.parse_args()

    email = f"smoke-{uuid.uuid4().hex[:10]}@example.com"

    with httpx.Client(base_url=args.api_base, timeout=60.0, trust_env=False) as client:
        health = client.get("/health")
        health.raise_for_status()
        print(f"health: {health.json()}")

        user = _data(client.post("/api/auth/signup", json={"email": email, "password": args.password, "name": "Smoke"}))
        print(f"signed up: {user['id']} <{email}>")

        _data(client.post("/api/auth/verify-email", json={"email": email, "code": args.code}))
        user = _data(client.post("/api/auth/login", json={"email": email, "password": args.password}))
        user_id = user["id"]
        print(f"logged in: {user_id}")

        prompts = _data(client.get("/api/therapy/prompts", params={"difficulty": "easy"}))
        target = prompts[0]["text"]
        print(f"practising: {target}")

        analysis = _data(
            client.post("/api/therapy/analyze", json={"targetText": target, "transcribedText": target.lower()})
        )
        print(f"overall score: {analysis.get('overallScore')}")

        _data(
            client.post(
                "/api/therapy/session",
                json={
                    "userId": user_id,
                    "targetText": target,
                    "transcribedText": target.lower(),
                    "duration": 12,
                    "accuracy": analysis.get("accuracy"),
                    "clarityScore": analysis.get("clarityScore"),
                    "overallScore": analysis.get("overallScore"),
                    "phonemeIssues": analysis.get("phonemeIssues"),
                },
            )
        )

        stats = _data(client.get("/api/therapy/stats", params={"userId": user_id}))
        if stats.get("sessionsToday") != 1:
            raise RuntimeError(f"Expected one session today, got {stats}")

        dashboard = _data(client.get("/api/dashboard", params={"userId": user_id}))
        print(f"weekly sessions: {dashboard['weeklyStats']['sessions']}")

        progress = _data(client.get("/api/progress", params={"userId": user_id, "range": "week"}))
        print(f"streak: {progress['streak']}")

    print("smoke test passed")


if __name__ == "__main__":
    main()
