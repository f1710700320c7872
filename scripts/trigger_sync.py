#!/usr/bin/env python3
"""
Trigger syncs against a running EHR sync API.

Usage:
    # Sync every source system once
    python scripts/trigger_sync.py

    # Sync one system every 60 seconds
    python scripts/trigger_sync.py --system athena --interval 60

    # Regenerate mock data before syncing
    python scripts/trigger_sync.py --regenerate 10 --seed 42

    # Show the latest sync events
    python scripts/trigger_sync.py --events --limit 10
"""

import argparse
import os
import sys
import time

import requests


def get_api_url():
    """Get API URL from environment variables."""
    host = os.environ.get("API_HOST", "localhost")
    port = int(os.environ.get("API_PORT", 8000))
    return f"http://{host}:{port}"


def health_check(api_url: str) -> bool:
    """Check if the sync API is available."""
    try:
        response = requests.get(f"{api_url}/health", timeout=5)
        if response.status_code == 200:
            print(f"Sync API healthy at {api_url}")
            return True
        print(f"Sync API unhealthy: {response.status_code}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"Sync API not reachable at {api_url}: {e}")
        return False


def print_result(result: dict):
    status = "OK" if result["success"] else "FAILED"
    print(f"[{status}] {result['system']}: {result['synced_resources']} resources in {result['elapsed_ms']} ms")
    for resource_type, count in sorted(result.get("resource_summary", {}).items()):
        print(f"    {resource_type}: {count}")
    for error in result["errors"]:
        print(f"    error: {error}")


def trigger_sync(api_url: str, system: str = None) -> bool:
    url = f"{api_url}/api/v1/sync/{system}" if system else f"{api_url}/api/v1/sync"
    try:
        response = requests.post(url, timeout=300)
    except requests.exceptions.RequestException as e:
        print(f"Request failed: {e}")
        return False

    if response.status_code != 200:
        print(f"Failed: {response.status_code} - {response.text[:200]}")
        return False

    data = response.json()
    if system:
        print_result(data)
        return data["success"]

    for result in data["results"].values():
        print_result(result)
    print(f"Total synced resources: {data['total_synced_resources']}")
    return data["success"]


def regenerate(api_url: str, patient_count: int, seed: int = None) -> bool:
    payload = {"patient_count": patient_count}
    if seed is not None:
        payload["seed"] = seed
    try:
        response = requests.post(f"{api_url}/api/v1/mock-data/regenerate", json=payload, timeout=60)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        print(f"Regeneration failed: {e}")
        return False

    for system, counts in response.json()["systems"].items():
        print(f"Regenerated {system}: {counts['patients']} patients, "
              f"{counts['documents']} documents, {counts['messages']} messages")
    return True


def show_events(api_url: str, system: str = None, limit: int = 20):
    params = {"limit": limit}
    if system:
        params["system"] = system
    response = requests.get(f"{api_url}/api/v1/sync/events", params=params, timeout=10)
    response.raise_for_status()
    data = response.json()
    for event in data["events"]:
        print(f"{event['timestamp']}  {event['system']:<8} {event['type']:<12} "
              f"{event['status']:<8} {event['resourceId']}  {event.get('details') or ''}")
    print(f"{len(data['events'])} of {data['total']} events")


def main():
    parser = argparse.ArgumentParser(description="Trigger EHR syncs against the sync API")
    parser.add_argument("--system", help="Sync a single system (athena, elation, nextgen)")
    parser.add_argument("--interval", type=int, default=0, help="Repeat every N seconds")
    parser.add_argument("--regenerate", type=int, metavar="PATIENTS", help="Regenerate mock data first")
    parser.add_argument("--seed", type=int, help="Seed for mock data regeneration")
    parser.add_argument("--events", action="store_true", help="Only show recent sync events")
    parser.add_argument("--limit", type=int, default=20, help="Number of events to show")
    args = parser.parse_args()

    api_url = get_api_url()
    if not health_check(api_url):
        sys.exit(1)

    if args.events:
        show_events(api_url, args.system, args.limit)
        return

    if args.regenerate and not regenerate(api_url, args.regenerate, args.seed):
        sys.exit(1)

    while True:
        ok = trigger_sync(api_url, args.system)
        if not args.interval:
            sys.exit(0 if ok else 1)
        print(f"Waiting {args.interval} seconds...")
        time.sleep(args.interval)


if __name__ == "__main__":
    main()
