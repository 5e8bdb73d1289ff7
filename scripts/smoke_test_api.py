"""
Smoke test for the SmartClinic API endpoints.
Run the API server first: python -m smartclinic.api.app
Then run this: python scripts/smoke_test_api.py
"""

import json
import traceback

import requests

BASE_URL = "http://localhost:8000"


def banner(title):
    print("\n" + "=" * 50)
    print(f"TEST: {title}")
    print("=" * 50)


def show(response):
    print(f"Status Code: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)[:1500]}")


def test_health():
    banner("Health Check")
    response = requests.get(f"{BASE_URL}/health")
    show(response)
    return response.status_code == 200


def test_index():
    banner("API Info")
    response = requests.get(f"{BASE_URL}/")
    show(response)
    return response.status_code == 200


def test_login(api_key):
    banner("Login")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": api_key})
    show(response)
    if response.status_code == 200:
        return response.json().get("token")
    return None


def test_login_invalid():
    banner("Login with Invalid Credentials")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": "invalid-key-123"})
    show(response)
    return response.status_code == 401


def test_public_procedure():
    banner("Public Procedure")
    response = requests.get(f"{BASE_URL}/api/rpc/healthCheck")
    show(response)
    return response.status_code == 200 and response.json()["data"] == "OK"


def test_procedure_without_token():
    banner("Protected Procedure Without Token")
    response = requests.get(f"{BASE_URL}/api/rpc/appointment.list")
    show(response)
    return response.status_code == 401


def test_profile(token):
    banner("Get User Profile")
    response = requests.get(
        f"{BASE_URL}/api/user/profile",
        headers={"Authorization": f"Bearer {token}"},
    )
    show(response)
    return response.status_code == 200


def test_query(token, procedure, payload=None):
    banner(f"Query {procedure}")
    params = {"input": json.dumps(payload)} if payload is not None else {}
    response = requests.get(
        f"{BASE_URL}/api/rpc/{procedure}",
        headers={"Authorization": f"Bearer {token}"},
        params=params,
    )
    show(response)
    return response.status_code == 200


def test_mutation_over_get(token):
    banner("Mutation Sent as GET")
    response = requests.get(
        f"{BASE_URL}/api/rpc/patient.delete",
        headers={"Authorization": f"Bearer {token}"},
    )
    show(response)
    return response.status_code == 405


def test_logout(token):
    banner("Logout")
    response = requests.post(
        f"{BASE_URL}/api/auth/logout",
        headers={"Authorization": f"Bearer {token}"},
    )
    show(response)
    return response.status_code == 200


def main():
    print("=" * 50)
    print("SmartClinic API Smoke Test")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")
    print()

    api_key = input("Enter your API key for testing: ").strip()
    if not api_key:
        print("ERROR: API key is required")
        return

    results = {}

    try:
        results["Health Check"] = test_health()
        results["API Info"] = test_index()
        results["Login Invalid"] = test_login_invalid()
        results["Public Procedure"] = test_public_procedure()
        results["Procedure Without Token"] = test_procedure_without_token()

        token = test_login(api_key)
        if token:
            results["Login Valid"] = True
            results["Get Profile"] = test_profile(token)
            results["Private Data"] = test_query(token, "privateData")
            results["Patient List"] = test_query(token, "patient.list", {"limit": 5})
            results["Today's Appointments"] = test_query(token, "appointment.getToday")
            results["Mutation Over GET"] = test_mutation_over_get(token)
            results["Logout"] = test_logout(token)
        else:
            results["Login Valid"] = False
            print("\nERROR: Could not login. Remaining tests skipped.")

    except Exception as e:
        print(f"\n\nERROR: {e}")
        traceback.print_exc()

    print("\n" + "=" * 50)
    print("TEST SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    total = len(results)

    for test, result in results.items():
        status = "✓ PASS" if result else "✗ FAIL"
        print(f"{status}: {test}")

    print(f"\nTotal: {passed}/{total} tests passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
