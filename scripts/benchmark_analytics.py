#!/usr/bin/env python3
"""
Benchmark Script for Event Query API

Seeds events through POST /events, then measures latency of the list,
stats and time-series endpoints against the seeded plan.

Usage:
    python scripts/benchmark_analytics.py [base_url] [seed_count]
"""

import random
import statistics
import sys
import time
import uuid

import requests

PLANS = ["free", "pro", "team", "enterprise"]
RUNS_PER_QUERY = 5


def seed_events(session: requests.Session, base_url: str, count: int, run_id: str) -> int:
    """Create `count` events tagged with this run's id; returns how many were accepted"""
    accepted = 0
    start = time.time()
    for i in range(count):
        properties = {
            "run": run_id,
            "plan": random.choice(PLANS),
            "value": random.randint(1, 100),
            "seq": i,
        }
        response = session.post(f"{base_url}/events", json={"properties": properties}, timeout=30)
        if response.status_code in (201, 202):
            accepted += 1
        else:
            print(f"Seed error: Status {response.status_code}: {response.text}")

    elapsed = max(time.time() - start, 0.001)
    print(f"Seeded {accepted}/{count} events in {elapsed:.1f}s ({accepted / elapsed:.0f} events/s)")
    return accepted


def time_query(session: requests.Session, url: str, params: dict) -> list[float]:
    """Run one query RUNS_PER_QUERY times, returning latencies in ms of the successful runs"""
    latencies = []
    for _ in range(RUNS_PER_QUERY):
        start = time.perf_counter()
        try:
            response = session.get(url, params=params, timeout=30)
        except requests.RequestException as e:
            print(f"Error: {e}")
            continue
        elapsed = (time.perf_counter() - start) * 1000
        body = response.json()
        if response.status_code == 200 and body.get("success"):
            latencies.append(elapsed)
        else:
            print(f"Error: Status {response.status_code}: {body.get('message')}")
    return latencies


def benchmark_queries(session: requests.Session, base_url: str, run_id: str):
    """Benchmark the read endpoints, restricted to the events of this run"""
    print(f"\n{'=' * 60}")
    print("BENCHMARK: Query Performance")
    print(f"{'=' * 60}")

    queries = [
        ("List (flat filter)", "/events", {"run": run_id, "limit": 50}),
        ("List (desc, page 2)", "/events", {"run": run_id, "limit": 100, "page": 2, "sortOrder": "desc"}),
        ("List (structured)", "/events",
         {"filters": f'{{"properties.run": "{run_id}", "properties.value": {{"$gte": 50}}}}'}),
        ("Stats (count)", "/events/stats", {"run": run_id, "groupBy": "plan"}),
        ("Stats (avg)", "/events/stats", {"run": run_id, "groupBy": "plan", "aggregates": "avg"}),
        ("Time Series (hour)", "/events/timeseries", {"run": run_id, "interval": "hour"}),
        ("Time Series (week, sum)", "/events/timeseries", {"run": run_id, "interval": "week", "aggregates": "sum"}),
    ]

    print(f"\n{'Query':<25} {'Median':>10} {'Min':>10} {'Max':>10} {'OK':>5}")
    print(f"{'-' * 64}")
    for name, path, params in queries:
        latencies = time_query(session, f"{base_url}{path}", params)
        if not latencies:
            print(f"{name:<25} {'failed':>10}")
            continue
        print(f"{name:<25} {statistics.median(latencies):>8.1f}ms {min(latencies):>8.1f}ms "
              f"{max(latencies):>8.1f}ms {len(latencies):>3}/{RUNS_PER_QUERY}")

    print(f"{'=' * 60}\n")


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    seed_count = int(sys.argv[2]) if len(sys.argv) > 2 else 500
    run_id = uuid.uuid4().hex[:12]

    print("\n" + "=" * 60)
    print("EVENT QUERY API - BENCHMARK")
    print("=" * 60)
    print(f"Target: {base_url}  Run: {run_id}")
    print("=" * 60)

    with requests.Session() as session:
        try:
            response = session.get(f"{base_url}/health", timeout=5)
            if response.status_code != 200:
                print("Error: API is not healthy")
                sys.exit(1)
        except requests.RequestException as e:
            print(f"Error: Cannot connect to API: {e}")
            sys.exit(1)

        if not seed_events(session, base_url, seed_count, run_id):
            print("Error: no events were seeded")
            sys.exit(1)

        benchmark_queries(session, base_url, run_id)


if __name__ == "__main__":
    main()
