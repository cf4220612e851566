"""Print cache tier health and statistics for this process's view of the shared tier."""
from __future__ import annotations

import json

from _common import load_container


def main() -> None:
    container = load_container()
    try:
        print(json.dumps(container.cache.health(), indent=2))
    finally:
        container.close()


if __name__ == "__main__":
    main()
