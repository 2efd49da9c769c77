#!/usr/bin/env python3
"""Clear every persisted completion record so all sessions start fresh."""

from dotenv import load_dotenv

load_dotenv()

from certshare.errors import StorageUnavailable
from certshare.services.completion_service import clear_all_records


def reset_completion_records() -> int:
    """Drop all completion records and report how many were removed."""
    try:
        removed = clear_all_records()
    except StorageUnavailable as e:
        print(f"Could not clear completion records: {e}")
        return 0

    print(f"Removed {removed} completion record(s).")
    return removed


if __name__ == "__main__":
    print("This will DELETE ALL completion records (steps already shared).")

    confirm = input("\nAre you sure? Type 'yes' to continue: ")
    if confirm.lower() == 'yes':
        reset_completion_records()
    else:
        print("Reset cancelled.")
