"""
Setup verification script for the Draftsmith backend.
Checks all dependencies and services are properly configured.
"""
import asyncio
import os
import shutil
import sys
from typing import List, Tuple

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_status(message: str, status: bool):
    """Print colored status message."""
    symbol = f"{GREEN}✓{RESET}" if status else f"{RED}✗{RESET}"
    print(f"{symbol} {message}")


async def check_python_version() -> bool:
    """Check Python version is 3.11+."""
    version = sys.version_info
    if version.major == 3 and version.minor >= 11:
        print_status(f"Python version: {version.major}.{version.minor}.{version.micro}", True)
        return True
    else:
        print_status(f"Python version {version.major}.{version.minor} (requires 3.11+)", False)
        return False


async def check_dependencies() -> bool:
    """Check if required packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "asyncpg",
        "httpx",
        "docx",
        "aiofiles",
        "pydantic_settings",
        "multipart",
    ]

    all_installed = True
    for package in required_packages:
        try:
            __import__(package)
            print_status(f"Package '{package}' installed", True)
        except ImportError:
            print_status(f"Package '{package}' missing", False)
            all_installed = False

    return all_installed


async def check_env_file() -> bool:
    """Check if .env file exists."""
    if os.path.exists(".env"):
        print_status(".env file exists", True)
        return True
    else:
        print_status(".env file missing (copy from .env.example)", False)
        return False


async def check_storage_dirs() -> bool:
    """Check if the upload and output directories exist."""
    from app.config import settings

    ok = True
    for label, path in (("Upload", settings.UPLOAD_DIR), ("Output", settings.OUTPUT_DIR)):
        exists = os.path.isdir(path)
        suffix = "" if exists else " (will be created on startup)"
        print_status(f"{label} directory {path}{suffix}", exists)
        ok = ok and exists
    return ok


async def check_database() -> bool:
    """Check the configured database accepts connections."""
    try:
        from sqlalchemy import text

        from app.database import engine

        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await engine.dispose()

        print_status("Database connection successful", True)
        return True

    except Exception as e:
        print_status(f"Database connection failed: {str(e)}", False)
        print(f"  {YELLOW}Check DATABASE_URL in .env{RESET}")
        return False


async def check_provider() -> bool:
    """Check the configured content provider is reachable."""
    from app.config import settings
    from app.services.content_provider import build_content_provider

    try:
        provider = build_content_provider(settings)
    except Exception as e:
        print_status(f"Content provider misconfigured: {str(e)}", False)
        return False

    try:
        healthy = await provider.check_health()
        print_status(f"Content provider '{provider.name}': {'OK' if healthy else 'Not ready'}", healthy)
        if not healthy and provider.name == "ollama":
            print(f"  {YELLOW}Run: ollama pull {settings.OLLAMA_LLM_MODEL}{RESET}")
        elif not healthy:
            print(f"  {YELLOW}Check GEMINI_API_KEY and GEMINI_MODEL in .env{RESET}")
        return healthy
    finally:
        await provider.aclose()


async def check_libreoffice() -> bool:
    """Check the LibreOffice binary used for PDF conversion exists."""
    from app.config import settings

    binary = settings.LIBREOFFICE_PATH
    found = shutil.which(binary) is not None or os.path.isfile(binary)
    print_status(f"LibreOffice binary ({binary}): {'Found' if found else 'Missing'}", found)
    if not found:
        print(f"  {YELLOW}Install LibreOffice or set LIBREOFFICE_PATH{RESET}")
    return found


async def main():
    """Run all verification checks."""
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}Draftsmith Backend - Setup Verification{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

    checks: List[Tuple[str, callable]] = [
        ("Python Version", check_python_version),
        ("Dependencies", check_dependencies),
        ("Environment File", check_env_file),
        ("Storage Directories", check_storage_dirs),
        ("Database", check_database),
        ("Content Provider", check_provider),
        ("LibreOffice", check_libreoffice),
    ]

    results = []

    for check_name, check_func in checks:
        print(f"\n{BLUE}Checking {check_name}...{RESET}")
        try:
            result = await check_func()
            results.append(result)
        except Exception as e:
            print_status(f"Error during check: {str(e)}", False)
            results.append(False)

    # Summary
    print(f"\n{BLUE}{'='*60}{RESET}")
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"{GREEN}✓ All checks passed! ({passed}/{total}){RESET}")
        print(f"\n{GREEN}You're ready to run the backend:{RESET}")
        print(f"  uvicorn app.main:app --reload")
    else:
        print(f"{RED}✗ Some checks failed ({passed}/{total} passed){RESET}")
        print(f"\n{YELLOW}Please fix the issues above before running the backend.{RESET}")
        sys.exit(1)

    print(f"{BLUE}{'='*60}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
