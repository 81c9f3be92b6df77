#!/usr/bin/env python3
"""Smoke check for a running CrewClock server (clock in, then clock out)."""
import base64
import os
import sys

import requests

BASE_URL = os.environ.get("CREWCLOCK_URL", "http://localhost:8000")
PHOTO = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8smoke").decode("ascii")


def check_clock_flow():
    """Pick the first store and crew member, check eligibility, then clock twice."""
    print("🕒 Checking clock flow against", BASE_URL)
    print("=" * 50)

    print("\n1. Listing stores...")
    try:
        response = requests.get(f"{BASE_URL}/locations", timeout=5)
    except requests.exceptions.ConnectionError:
        print(f"❌ Cannot connect to server. Make sure it's running on {BASE_URL}")
        return False
    locations = response.json()
    if response.status_code != 200 or not locations:
        print(f"❌ No stores available: {response.status_code} - {response.text}")
        return False
    store = locations[0]
    print(f"✅ Using store {store['name']}")

    print("\n2. Listing crew...")
    response = requests.get(f"{BASE_URL}/locations/{store['id']}/crew", timeout=5)
    crew = response.json()
    if response.status_code != 200 or not crew:
        print(f"❌ No crew for store: {response.status_code} - {response.text}")
        return False
    member = crew[0]
    print(f"✅ Using crew member {member['name']}")

    body = {
        "crew_member_id": member["id"],
        "latitude": store["latitude"],
        "longitude": store["longitude"],
        "photo": PHOTO,
        "shift": requests.get(f"{BASE_URL}/clock/shifts", timeout=5).json()[0],
    }

    print("\n3. Checking eligibility...")
    response = requests.post(f"{BASE_URL}/clock/eligibility", json=body, timeout=5)
    eligibility = response.json()
    if response.status_code != 200 or not eligibility["eligible"]:
        print(f"❌ Not eligible: {response.status_code} - {response.text}")
        return False
    expected = eligibility["next_action"]
    print(f"✅ Eligible, next action is '{expected}'")

    print("\n4. Clocking twice...")
    for _ in range(2):
        response = requests.post(f"{BASE_URL}/clock", json=body, timeout=10)
        if response.status_code != 201:
            print(f"❌ Clock failed: {response.status_code} - {response.text}")
            return False
        event = response.json()["event"]
        if event["type"] != expected:
            print(f"❌ Expected '{expected}', got '{event['type']}'")
            return False
        print(f"✅ {response.json()['message']}")
        expected = "out" if expected == "in" else "in"

    print("\n5. Reading today's overview...")
    response = requests.get(f"{BASE_URL}/attendance/overview", timeout=5)
    if response.status_code != 200:
        print(f"❌ Overview failed: {response.status_code} - {response.text}")
        return False
    print(f"✅ {response.json()['present_count']} crew present today")

    print("\n🎉 Clock flow works!")
    return True


if __name__ == "__main__":
    success = check_clock_flow()
    sys.exit(0 if success else 1)
