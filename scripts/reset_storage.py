#!/usr/bin/env python3
"""Script to reset the widget's durable local storage.

Usage:
  python scripts/reset_storage.py [--force] [--only limits|preferences]
"""

import argparse
import sys
from pathlib import Path

# Add project root to sys.path so we can import widget packages
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

from widget.config import (
    LANGUAGE_KEY,
    LANGUAGE_THROTTLE_KEY,
    RATE_LIMIT_BANNER_KEY,
    RATE_LIMITS_KEY,
    USER_INFO_KEY,
    WidgetConfig,
)
from widget.core.storage import LocalStorage

GROUPS = {
    "limits": [RATE_LIMITS_KEY, LANGUAGE_THROTTLE_KEY, RATE_LIMIT_BANNER_KEY],
    "preferences": [LANGUAGE_KEY, USER_INFO_KEY],
}


def reset_group(storage: LocalStorage, group: str, force: bool):
    """Remove every key in one group."""
    keys = GROUPS[group]
    print(f"🧊 Resetting {group}...")
    if not force:
        confirm = input(f"  This will delete {', '.join(keys)}. Continue? [y/N]: ")
        if confirm.lower() != 'y':
            print(f"  Skipping {group} reset.")
            return

    present = set(storage.keys())
    for key in keys:
        if key in present:
            storage.remove(key)
            print(f"  🗑️ Deleted: {key}")
        else:
            print(f"  ℹ️ {key} was not set.")


def main():
    parser = argparse.ArgumentParser(description="Reset IntelliBuddy local storage.")
    parser.add_argument("--force", "-f", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("--only", choices=list(GROUPS), help="Only reset one group of keys")
    args = parser.parse_args()

    # Load environment variables
    load_dotenv(project_root / ".env")
    storage = LocalStorage(WidgetConfig.from_env().storage_url)

    print("\n⚠️ WARNING: Storage Reset ⚠️\n")

    for group in GROUPS:
        if args.only in [group, None]:
            reset_group(storage, group, args.force)
            print("")

    print("✅ Done!")


if __name__ == "__main__":
    main()
