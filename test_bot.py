#!/usr/bin/env python3
"""
WarcraftLogs Parse Tracker Test Suite
Smoke tests for configuration, imports and basic bot wiring (no network)
"""

import sys
import asyncio
import traceback
from pathlib import Path
import pytest

# Add current directory to path for bot imports
sys.path.insert(0, str(Path(__file__).parent))

from wclbot import Config, make_session, open_store, build_registry  # noqa: E402
from wclbot.app import BOT_COMMANDS  # noqa: E402
from wclbot.models import Flavor  # noqa: E402
from wclbot.storage import SCHEMA_VERSION_KEY  # noqa: E402


def test_imports():
    """Test that all required modules can be imported"""
    print("📦 Testing module imports...")

    required_modules = [
        'aiohttp',
        'telegram',
        'dotenv',
        'cachetools',
        'matplotlib',
        'seaborn',
        'asyncio',
        'json',
        'logging'
    ]

    failed_imports = []

    for module in required_modules:
        try:
            __import__(module)
            print(f"  ✅ {module}")
        except ImportError:
            print(f"  ❌ {module}")
            failed_imports.append(module)

    assert not failed_imports, f"Missing dependencies: {', '.join(failed_imports)}"
    print("✅ All required modules imported successfully")


def test_bot_configuration():
    """Test configuration defaults and validation"""
    print("⚙️ Testing bot configuration...")

    assert Config.POLL_SECS >= 1, "Poll interval must be positive"
    assert Flavor(Config.WCL_FLAVOR), "Unknown WCL_FLAVOR"
    assert Config.WCL_TOKEN_URL.startswith("https://"), "Token URL must use https"
    print(f"  ✅ Flavor: {Config.WCL_FLAVOR}, polling every {Config.POLL_SECS}s")

    commands = {c.command for c in BOT_COMMANDS}
    assert {"register", "track", "untrack", "tracked", "parses"} <= commands
    print(f"  ✅ {len(commands)} bot commands declared")

    print("✅ Bot configuration looks good")


def test_missing_token_is_rejected(monkeypatch):
    """Test that the bot refuses to start without a token"""
    print("🔧 Testing configuration validation...")

    monkeypatch.setattr(Config, "BOT_TOKEN", None)
    with pytest.raises(ValueError):
        Config.validate_config()

    monkeypatch.setattr(Config, "BOT_TOKEN", "123:abc")
    monkeypatch.setattr(Config, "POLL_SECS", 0)
    with pytest.raises(ValueError):
        Config.validate_config()
    print("✅ Invalid configuration rejected")


def test_store_opens_migrated(tmp_path):
    """Test that a fresh database is brought to the latest schema"""
    print("💾 Testing database bootstrap...")

    store = open_store(str(tmp_path / "data.json"))
    assert store.get(SCHEMA_VERSION_KEY) == store.schema_version() > 0
    print(f"  ✅ Schema version {store.schema_version()}")


@pytest.mark.asyncio
async def test_registry_wiring(tmp_path):
    """Test that the registry can be built and shut down without any chat"""
    print("🔗 Testing registry wiring...")

    store = open_store(str(tmp_path / "data.json"))
    registry = build_registry(store, bot=None, flavor=Flavor.CLASSIC, interval=Config.POLL_SECS)

    assert await registry.resume_all() == 0
    await registry.shutdown()
    print("✅ Registry wiring works")


@pytest.mark.asyncio
async def test_session_creation():
    """Test that we can create and close HTTP sessions properly"""
    print("🔗 Testing session management...")

    session = make_session()
    assert session is not None, "Failed to create session"
    print("  ✅ Session created successfully")

    await session.close()
    print("  ✅ Session closed successfully")


# Run with: pytest -v


async def run_all_tests():
    """Run the smoke tests without pytest and return overall status"""
    print("🧪 Starting WarcraftLogs Parse Tracker Test Suite")
    print("=" * 50)

    tests = [
        ("Import Test", test_imports, False),  # Synchronous
        ("Bot Configuration Test", test_bot_configuration, False),  # Synchronous
        ("Session Management Test", test_session_creation, True),  # Async
    ]

    results = []

    for test_name, test_func, is_async in tests:
        print(f"\n🔍 Running {test_name}...")
        try:
            if is_async:
                await test_func()
            else:
                test_func()
            results.append((test_name, True))
        except Exception as e:
            print(f"❌ {test_name} failed with exception: {e}")
            print("Traceback:")
            traceback.print_exc()
            results.append((test_name, False))

    # Summary
    print("\n" + "=" * 50)
    print("📊 Test Results Summary:")

    passed = 0
    total = len(results)

    for test_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"  {status} - {test_name}")
        if result:
            passed += 1

    print(f"\nResults: {passed}/{total} tests passed")

    if passed == total:
        print("🎉 All tests passed! Bot is ready to run.")
        return True
    else:
        print("⚠️ Some tests failed. Please check the issues above.")
        return False


if __name__ == "__main__":
    try:
        success = asyncio.run(run_all_tests())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n⏹️ Tests interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n💥 Test suite crashed: {e}")
        traceback.print_exc()
        sys.exit(1)
