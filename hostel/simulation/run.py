from __future__ import annotations

import argparse
import json

from hostel.connections.mongo import init_mongo, close_mongo
from hostel.simulation import run_simulation


def main() -> None:
    parser = argparse.ArgumentParser(description="Fire concurrent registrations and audit the result.")
    parser.add_argument("--count", type=int, default=500)
    parser.add_argument("--workers", type=int, default=16)
    args = parser.parse_args()

    init_mongo()
    try:
        result = run_simulation(count=args.count, workers=args.workers)
        print(json.dumps(result, indent=2))
    finally:
        close_mongo()


if __name__ == "__main__":
    main()
