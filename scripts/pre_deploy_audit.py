#!/usr/bin/env python3
"""Gateway pre-deploy audit: catches broken code BEFORE it ships.

Validates the gateway codebase statically (no running server needed).

Run: python3 scripts/pre_deploy_audit.py
Exit code: 0 = pass, 1 = failures found

Checks:
1. WEBHOOK_AUTH      - Payment webhooks verify a signature before acting
2. ADMIN_AUTH        - Admin router is guarded by require_admin
3. HEALTH_ENDPOINT   - /health route exists
4. CATALOG           - Every bundle member is a registered paid app
5. NO_DEPRECATED_API - No datetime.utcnow() or other deprecated calls
6. NO_PLAINTEXT_OTP  - OTP rows store a hash, never the code
"""

import re
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
GW_DIR = REPO_ROOT / "iiskills_gateway"

sys.path.insert(0, str(REPO_ROOT))

PASS = "\033[32mPASS\033[0m"
FAIL = "\033[31mFAIL\033[0m"
WARN = "\033[33mWARN\033[0m"

failures = []
warnings = []


def check(name: str, passed: bool, detail: str = ""):
    status = PASS if passed else FAIL
    print(f"  [{status}] {name}" + (f" - {detail}" if detail else ""))
    if not passed:
        failures.append(f"{name}: {detail}")


def warn(name: str, detail: str = ""):
    print(f"  [{WARN}] {name} - {detail}")
    warnings.append(f"{name}: {detail}")


# ---------------------------------------------------------------------------
# CHECK 1: Webhook auth
# ---------------------------------------------------------------------------
def check_webhook_auth():
    print("\n1. WEBHOOK AUTHENTICATION")

    payments_file = GW_DIR / "routers" / "payments.py"
    if not payments_file.exists():
        check("Payments router exists", False, "iiskills_gateway/routers/payments.py not found")
        return

    content = payments_file.read_text()
    endpoints = re.findall(r'@router\.post\("(/[\w/.-]+)"\)', content)
    if not endpoints:
        check("Webhook endpoints found", False, "No @router.post endpoints in payments.py")
        return

    for endpoint in endpoints:
        pattern = rf'@router\.post\("{re.escape(endpoint)}"\).*?(?=@router\.post|$)'
        match = re.search(pattern, content, re.DOTALL)
        if match:
            func_body = match.group(0)
            has_auth = "verify_signature(" in func_body
            check(f"Signature check on {endpoint}", has_auth,
                  "No verify_signature() call found" if not has_auth else "")


# ---------------------------------------------------------------------------
# CHECK 2: Admin auth
# ---------------------------------------------------------------------------
def check_admin_auth():
    print("\n2. ADMIN AUTHENTICATION")

    admin_file = GW_DIR / "routers" / "admin.py"
    if not admin_file.exists():
        check("Admin router exists", False, "iiskills_gateway/routers/admin.py not found")
        return

    content = admin_file.read_text()
    guarded = re.search(r'APIRouter\([^)]*dependencies=\[Depends\(require_admin\)\]', content)
    check("Admin router guarded", bool(guarded),
          "APIRouter is missing dependencies=[Depends(require_admin)]" if not guarded else "")


# ---------------------------------------------------------------------------
# CHECK 3: Health endpoint
# ---------------------------------------------------------------------------
def check_health_endpoint():
    print("\n3. HEALTH ENDPOINT")

    app_file = GW_DIR / "app.py"
    if not app_file.exists():
        check("app.py exists", False)
        return

    content = app_file.read_text()
    has_health = '"/health"' in content or "'/health'" in content
    check("/health endpoint exists", has_health,
          "No /health endpoint found in app.py" if not has_health else "")


# ---------------------------------------------------------------------------
# CHECK 4: App catalog consistency
# ---------------------------------------------------------------------------
def check_catalog():
    print("\n4. APP CATALOG")

    from iiskills_gateway.catalog.apps import APPS, PAID
    from iiskills_gateway.catalog.bundles import BUNDLES

    problems = 0
    for bundle_id, bundle in BUNDLES.items():
        for app_id in bundle["apps"]:
            app = APPS.get(app_id)
            if not app:
                check("Bundle app registered", False, f"{bundle_id} lists unknown app '{app_id}'")
                problems += 1
            elif app["type"] != PAID:
                check("Bundle app is paid", False, f"{bundle_id} lists free app '{app_id}'")
                problems += 1
            elif app.get("bundle_id") != bundle_id:
                check("Bundle back-reference", False,
                      f"'{app_id}' is in {bundle_id} but has bundle_id={app.get('bundle_id')!r}")
                problems += 1

    for app_id, app in APPS.items():
        if app["id"] != app_id:
            check("App id matches key", False, f"APPS['{app_id}'] has id '{app['id']}'")
            problems += 1
        if app.get("bundle_id") and app["bundle_id"] not in BUNDLES:
            check("Bundle exists", False, f"'{app_id}' references missing bundle '{app['bundle_id']}'")
            problems += 1

    if not problems:
        check("Catalog consistent", True, f"{len(APPS)} apps, {len(BUNDLES)} bundles")


# ---------------------------------------------------------------------------
# CHECK 5: No deprecated API usage
# ---------------------------------------------------------------------------
def check_deprecated_api():
    print("\n5. DEPRECATED API USAGE")

    deprecated_patterns = [
        (r'datetime\.utcnow\(\)', "datetime.utcnow() is deprecated in Python 3.12 - use datetime.now(timezone.utc)"),
        (r'\.not_\.in_\(', ".not_.in_() is not valid supabase-py API - use .neq() chain"),
    ]

    found_any = False
    for py_file in GW_DIR.rglob("*.py"):
        if "tests" in py_file.parts:
            continue
        content = py_file.read_text()
        rel_path = py_file.relative_to(REPO_ROOT)
        for pattern, msg in deprecated_patterns:
            if re.search(pattern, content):
                check("No deprecated API", False, f"{rel_path}: {msg}")
                found_any = True

    if not found_any:
        check("No deprecated API usage", True)


# ---------------------------------------------------------------------------
# CHECK 6: OTP storage
# ---------------------------------------------------------------------------
def check_otp_storage():
    print("\n6. OTP STORAGE")

    otp_file = GW_DIR / "services" / "otp_service.py"
    if not otp_file.exists():
        check("otp_service.py exists", False)
        return

    content = otp_file.read_text()
    match = re.search(r'db\.insert_otp\(\{(.*?)\}\)', content, re.DOTALL)
    if not match:
        check("OTP insert found", False, "No db.insert_otp({...}) call in otp_service.py")
        return
    payload = match.group(1)
    stores_hash = '"otp_hash":' in payload
    stores_plain = '"otp":' in payload
    check("OTP stored as hash", stores_hash, "insert_otp payload has no otp_hash" if not stores_hash else "")
    check("No plaintext OTP column", not stores_plain,
          "insert_otp payload includes the plain code" if stores_plain else "")
    if "compare_digest" not in content:
        warn("Constant-time OTP compare", "hmac.compare_digest not used in otp_service.py")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    print("=" * 60)
    print("GATEWAY PRE-DEPLOY AUDIT")
    print("=" * 60)

    check_webhook_auth()
    check_admin_auth()
    check_health_endpoint()
    check_catalog()
    check_deprecated_api()
    check_otp_storage()

    print("\n" + "=" * 60)
    if failures:
        print(f"\033[31m{len(failures)} FAILURE(S)\033[0m - deploy blocked")
        for f in failures:
            print(f"  - {f}")
    else:
        print("\033[32mALL CHECKS PASSED\033[0m")

    if warnings:
        print(f"\n{len(warnings)} warning(s):")
        for w in warnings:
            print(f"  - {w}")

    print("=" * 60)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
