#!/usr/bin/env python3
"""
Run a live demo of the batch client.

Demonstrates:
1. A single blocking request
2. Concurrent batches with results in input order
3. Per-request failures reported in place
"""

import argparse
import json
import sys
import time
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from batchclient.cli import setup_logging
from batchclient.client import HttpClient
from batchclient.config import ClientConfig, set_config
from batchclient.core.message import Request
from batchclient.exceptions import DispatchError, TransportFailure

DEFAULT_URLS = [
    "https://httpbin.org/delay/2",
    "https://httpbin.org/get",
    "https://httpbin.org/delay/1",
    "https://httpbin.org/status/404",
    "https://httpbin.org/response-headers?Set-Cookie=a%3D1&Set-Cookie=b%3D2",
    "https://does-not-exist.invalid/",
]


class DemoRunner:
    """Runs the demonstration against real endpoints."""

    def __init__(self, urls, batch_size: int, output: str):
        self.urls = urls
        self.output = Path(output) if output else None
        self.results = {
            "timestamp": datetime.now().isoformat(),
            "batch_size": batch_size,
            "steps": [],
        }

        self.config = ClientConfig(batch_size=batch_size, timeout=15.0)
        set_config(self.config)
        self.client = HttpClient(self.config)

    def run(self):
        """Run all demo steps."""
        print("\n" + "=" * 70)
        print("BATCH CLIENT DEMO")
        print("=" * 70)
        print(f"   Timestamp: {self.results['timestamp']}")
        print(f"   URLs: {len(self.urls)}, batch size: {self.config.batch_size}")

        self.step_single_request()
        self.step_batched_requests()
        self.save_results()

    def step_single_request(self):
        """Step 1: One blocking request."""
        print("\n" + "-" * 70)
        print("STEP 1: Single request")
        print("-" * 70)

        url = self.urls[0]
        started = time.monotonic()
        try:
            response = self.client.send_request(Request("GET", url))
        except TransportFailure as e:
            print(f"   FAILED {url}: {e.message}")
            self.results["steps"].append({"name": "Single request", "status": "FAILED", "error": e.message})
            return

        elapsed = time.monotonic() - started
        print(f"   {response.status_code} {response.reason_phrase}  {url}  ({elapsed:.2f}s)")
        self.results["steps"].append({
            "name": "Single request",
            "status": "PASSED",
            "elapsed": round(elapsed, 3),
        })

    def step_batched_requests(self):
        """Step 2: All URLs concurrently, in batches."""
        print("\n" + "-" * 70)
        print("STEP 2: Batched requests")
        print("-" * 70)

        requests = [Request("GET", url) for url in self.urls]
        started = time.monotonic()
        try:
            results = self.client.send_requests(requests, return_exceptions=True)
        except DispatchError as e:
            print(f"   FAILED: {e}")
            self.results["steps"].append({"name": "Batched requests", "status": "FAILED", "error": str(e)})
            return

        elapsed = time.monotonic() - started
        entries = []
        for index, (url, result) in enumerate(zip(self.urls, results)):
            if isinstance(result, TransportFailure):
                print(f"   [{index}] ERR {result.message}  {url}")
                entries.append({"url": url, "error": result.message})
                continue

            cookies = result.headers.get_all("Set-Cookie")
            suffix = f"  cookies={cookies}" if cookies else ""
            print(f"   [{index}] {result.status_code} {result.reason_phrase}  {url}{suffix}")
            entries.append({"url": url, "status": result.status_code})

        serial = sum(float(u.rsplit("/", 1)[-1]) for u in self.urls if "/delay/" in u)
        print(f"\n   Total: {elapsed:.2f}s (delays alone add up to {serial:.0f}s)")
        self.results["steps"].append({
            "name": "Batched requests",
            "status": "PASSED",
            "elapsed": round(elapsed, 3),
            "results": entries,
        })

    def save_results(self):
        """Print a summary and optionally save the results."""
        print("\n" + "=" * 70)
        passed = sum(1 for s in self.results["steps"] if s["status"] == "PASSED")
        print(f"   Steps passed: {passed}/{len(self.results['steps'])}")

        if self.output:
            with open(self.output, "w") as f:
                json.dump(self.results, f, indent=2)
            print(f"   Results saved to: {self.output}")


def main():
    parser = argparse.ArgumentParser(description="Run the batch client demo")
    parser.add_argument(
        "urls",
        nargs="*",
        help="URLs to fetch (defaults to a set of httpbin endpoints)"
    )
    parser.add_argument(
        "--batch-size", "-n",
        type=int,
        default=3,
        help="Requests per concurrent batch"
    )
    parser.add_argument(
        "--output", "-o",
        default="",
        help="Write results as JSON to this file"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level"
    )

    args = parser.parse_args()
    setup_logging(args.log_level)

    runner = DemoRunner(args.urls or DEFAULT_URLS, args.batch_size, args.output)
    runner.run()


if __name__ == "__main__":
    main()
