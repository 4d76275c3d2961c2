#!/usr/bin/env python3
"""Generate a new random API key for FORMIE_API_KEY / FORMIE_API_KEY_LIMITED."""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from formgate.auth.key_registry import generate_api_key


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--prefix", default="sk_", help="Key prefix (default: sk_)")
    parser.add_argument("--count", type=int, default=1, help="Number of keys to print")
    args = parser.parse_args(argv)

    for _ in range(max(1, args.count)):
        print(generate_api_key(args.prefix))
    return 0


if __name__ == "__main__":
    sys.exit(main())
