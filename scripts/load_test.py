"""Load test: concurrent reciprocal likes and chat against a running UniMatch server.

Pairs up seeded accounts (see ``scripts.seed_users``), fires both likes of
each pair at the same moment, and checks that every pair ends up with
exactly one match.  Each matched pair then exchanges a message over the
WebSocket and the recipient confirms it through chat history.

Usage: python -m scripts.load_test [--pairs 10] [--base-url http://localhost:8000]
"""
import argparse
import asyncio
import statistics
import sys
import time
from typing import Any
sys.path.insert(0, ".")

import httpx
from jose import jwt

from unimatch.realtime.client import ChatClient, ReconnectPolicy


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_PAIRS = 10
DEFAULT_PREFIX = "loadtest"
DEFAULT_PASSWORD = "password123"


async def login(client: httpx.AsyncClient, base_url: str, email: str, password: str) -> dict[str, Any] | None:
    """Log in and return ``{"token", "headers"}``, or ``None`` on failure."""
    resp = await client.post(
        f"{base_url}/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    if resp.status_code != 200:
        print(f"  [WARN] Login {email}: status {resp.status_code}")
        return None
    token = resp.json()["accessToken"]
    return {"token": token, "headers": {"Authorization": f"Bearer {token}"}}


async def timed_swipe(client: httpx.AsyncClient, base_url: str, headers: dict, target_id: str) -> tuple[float, dict | None]:
    t0 = time.monotonic()
    resp = await client.post(
        f"{base_url}/api/v1/matching/swipe",
        json={"swipedId": target_id, "isLike": True},
        headers=headers,
    )
    dt = time.monotonic() - t0
    return dt, resp.json() if resp.status_code == 200 else None


def token_subject(token: str) -> str | None:
    """The API has no /me route; the user id is the token subject."""
    return jwt.get_unverified_claims(token).get("sub")


async def chat_round_trip(base_url: str, client: httpx.AsyncClient, sender: dict, recipient: dict, match_id: str) -> bool:
    ws_url = base_url.replace("http", "ws", 1) + "/ws"
    chat = ChatClient(ws_url, sender["id"], policy=ReconnectPolicy(initial_delay=0.5, max_attempts=3))
    if not await chat.connect():
        return False
    try:
        await chat.receive()  # connection frame
        content = f"load test hello {time.time_ns()}"
        await chat.send_message(match_id, content)
        ack = await asyncio.wait_for(chat.receive(), timeout=10)
        if ack.get("type") != "message_sent":
            return False
    finally:
        await chat.close()

    resp = await client.get(f"{base_url}/api/v1/messages/match/{match_id}", headers=recipient["headers"])
    return resp.status_code == 200 and any(m["content"] == content for m in resp.json())


async def run_load_test(base_url: str, pairs: int, prefix: str, password: str) -> dict[str, Any]:
    results: dict[str, Any] = {
        "pairs": pairs,
        "logged_in": 0,
        "matched_pairs": 0,
        "duplicate_matches": 0,
        "chat_ok": 0,
        "errors": [],
        "timings": {"swipe": []},
    }

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Phase 1: Log in 2 * pairs users
        print(f"[1/3] Logging in {pairs * 2} users...")
        users: list[dict] = []
        for i in range(pairs * 2):
            session = await login(client, base_url, f"{prefix}_{i}@unimatch.dev", password)
            if session is None:
                continue
            session["id"] = token_subject(session["token"])
            users.append(session)
        results["logged_in"] = len(users)
        print(f"  -> {len(users)} users logged in\n")

        couples = [(users[i], users[i + 1]) for i in range(0, len(users) - 1, 2)]

        # Phase 2: Simultaneous reciprocal likes
        print(f"[2/3] Firing {len(couples)} reciprocal like pairs concurrently...")
        swipes = []
        for a, b in couples:
            swipes.append(timed_swipe(client, base_url, a["headers"], b["id"]))
            swipes.append(timed_swipe(client, base_url, b["headers"], a["id"]))
        outcomes = await asyncio.gather(*swipes, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                results["errors"].append(f"swipe: {outcome}")
                continue
            results["timings"]["swipe"].append(outcome[0])

        matched: list[tuple[dict, dict, str]] = []
        for a, b in couples:
            resp = await client.get(f"{base_url}/api/v1/matching/matches", headers=a["headers"])
            rows = [m for m in resp.json() if m["userId"] == b["id"]] if resp.status_code == 200 else []
            if len(rows) == 1:
                results["matched_pairs"] += 1
                matched.append((a, b, rows[0]["id"]))
            elif len(rows) > 1:
                results["duplicate_matches"] += len(rows) - 1
                results["errors"].append(f"Pair {a['id'][:8]}x{b['id'][:8]}: {len(rows)} matches")
            else:
                results["errors"].append(f"Pair {a['id'][:8]}x{b['id'][:8]}: no match")
        print(f"  -> {results['matched_pairs']} pairs matched\n")

        # Phase 3: One message per matched pair over WebSocket
        print(f"[3/3] Chat round trip for {len(matched)} pairs...")
        for a, b, match_id in matched:
            try:
                if await chat_round_trip(base_url, client, a, b, match_id):
                    results["chat_ok"] += 1
            except Exception as e:
                results["errors"].append(f"Chat {match_id[:8]}: {e}")
        print(f"  -> {results['chat_ok']} round trips confirmed\n")

    # Summary
    print(f"{'='*60}")
    print("LOAD TEST RESULTS")
    print(f"{'='*60}")
    print(f"Users logged in:   {results['logged_in']}/{pairs * 2}")
    print(f"Pairs matched:     {results['matched_pairs']}/{len(couples)}")
    print(f"Duplicate matches: {results['duplicate_matches']}")
    print(f"Chat round trips:  {results['chat_ok']}/{len(matched)}")

    for phase, timings in results["timings"].items():
        if timings:
            print(f"\n{phase} latency:")
            print(f"  mean:   {statistics.mean(timings):.3f}s")
            print(f"  median: {statistics.median(timings):.3f}s")
            print(f"  p95:    {sorted(timings)[int(len(timings)*0.95)]:.3f}s")
            print(f"  max:    {max(timings):.3f}s")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for e in results["errors"][:10]:
            print(f"  - {e}")

    print(f"\n{'='*60}\n")
    return results


def main():
    parser = argparse.ArgumentParser(description="UniMatch Load Test")
    parser.add_argument("--pairs", type=int, default=DEFAULT_PAIRS, help="Number of user pairs")
    parser.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")
    parser.add_argument("--prefix", type=str, default=DEFAULT_PREFIX, help="Seeded email prefix")
    parser.add_argument("--password", type=str, default=DEFAULT_PASSWORD, help="Seeded password")
    args = parser.parse_args()

    results = asyncio.run(run_load_test(args.base_url, args.pairs, args.prefix, args.password))

    if results["duplicate_matches"]:
        print(f"FAIL: {results['duplicate_matches']} duplicate matches")
        sys.exit(1)
    missed = results["pairs"] - results["matched_pairs"]
    if missed:
        print(f"FAIL: {missed} of {results['pairs']} pairs liked each other but have no match")
        sys.exit(1)
    print(f"PASS: all {results['pairs']} pairs matched, no duplicates")


if __name__ == "__main__":
    main()
