#!/usr/bin/env python
"""Validate setup - check dependencies, configuration and upstream services."""
import sys
import asyncio
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("Document Search - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 11):
        print_success("Python version >= 3.11")
    else:
        print_error("Python version < 3.11 (required)")
        errors.append("Python version too old")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("hypercorn", "Hypercorn ASGI server"),
        ("httpx", "HTTP client"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
        ("docx", "Word document reader"),
        ("pytest", "Testing framework"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    try:
        # Add parent directory to path to import docsearch
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from docsearch import config

        print_success(f"Config loaded successfully")
        print_info(f"  Storage bucket: {config.STORAGE_BUCKET}")
        print_info(f"  Index namespace: {config.PINECONE_NAMESPACE}")
        print_info(f"  Chat model: {config.CHAT_MODEL}")
        print_info(f"  Chunk size: {config.CHUNK_SIZE} chars (overlap {config.CHUNK_OVERLAP})")

        settings = {
            "SUPABASE_URL": config.SUPABASE_URL,
            "SUPABASE_SERVICE_ROLE_KEY": config.SUPABASE_SERVICE_ROLE_KEY,
            "PINECONE_API_KEY": config.PINECONE_API_KEY,
            "PINECONE_INDEX_HOST": config.PINECONE_INDEX_HOST,
            "LLM_API_KEY": config.LLM_API_KEY,
        }
        for name, value in settings.items():
            if value:
                print_success(f"{name} is set")
            else:
                print_error(f"{name} is not set")
                errors.append(f"Missing setting: {name}")

    except Exception as e:
        print_error(f"Failed to load config: {e}")
        errors.append("Config loading failed")
        return errors, warnings

    # 4. Upstream services
    print_section("4. Upstream Services")

    from docsearch.errors import DocSearchError
    from docsearch.llm_client import GenerationClient
    from docsearch.storage_client import SupabaseStorageClient
    from docsearch.vector_client import PineconeIndexClient

    try:
        objects = await SupabaseStorageClient().list(page_size=1)
        print_success(f"Storage bucket reachable: {config.STORAGE_BUCKET}")
        if not objects:
            print_info("  Bucket is empty")
    except DocSearchError as e:
        print_error(f"Storage check failed: {e.message}")
        errors.append(f"Storage error: {e.kind}")

    try:
        await PineconeIndexClient().list_ids(prefix="")
        print_success(f"Vector index reachable: {config.PINECONE_INDEX_HOST}")
    except DocSearchError as e:
        print_error(f"Vector index check failed: {e.message}")
        errors.append(f"Vector index error: {e.kind}")

    try:
        answer = await GenerationClient().chat([{"role": "user", "content": "Reply with OK."}])
        print_success(f"Generation API working (model: {config.CHAT_MODEL})")
        print_info(f"  Sample reply: {answer[:40]}")
    except DocSearchError as e:
        print_error(f"Generation check failed: {e.message}")
        errors.append(f"Generation error: {e.kind}")

    if config.AWAIT_INDEXING:
        print_warning("AWAIT_INDEXING is on: uploads wait for the vector upsert")
        warnings.append("Uploads block on indexing")

    # 5. Summary
    print_section("Summary")

    if not errors:
        print_success(f"All checks passed! ✨")
        print_info(f"  Start the server: hypercorn docsearch.main:app")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
