#!/usr/bin/env python3
"""Coverage runner for dpmon.

Runs each package's unit tests under pytest-cov, then combines the data into
one terminal and HTML report under ``coverage/``.

Usage:
    # Run all unit tests with coverage
    python scripts/run_coverage.py

    # Run specific package
    python scripts/run_coverage.py --package dpmon-scpi

    # Open HTML report in browser
    python scripts/run_coverage.py --open
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import webbrowser
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# All packages in the monorepo
PACKAGES = [
    "dpmon-core",
    "dpmon-scpi",
    "dpmon-rigol",
]


def run_pytest_with_coverage(packages: list[str] | None = None, verbose: bool = True) -> int:
    """Run pytest with coverage collection, one package at a time.

    Args:
        packages: List of packages to test, or None for all.
        verbose: Whether to show verbose output.

    Returns:
        0 if all tests passed, 1 otherwise.
    """
    coverage_dir = PROJECT_ROOT / "coverage"
    coverage_dir.mkdir(exist_ok=True)

    all_passed = True
    for pkg in packages or PACKAGES:
        pkg_path = PROJECT_ROOT / pkg
        test_path = pkg_path / "tests" / "unit"
        if not test_path.exists():
            print(f"Skipping {pkg}: no tests/unit directory")
            continue

        print(f"\n{'='*60}")
        print(f"Testing: {pkg}")
        print(f"{'='*60}")

        cmd = [
            sys.executable,
            "-m",
            "pytest",
            f"--cov={pkg_path / 'src'}",
            "--cov-report=",  # Reports are generated after combining
            str(test_path),
        ]
        if verbose:
            cmd.append("-v")

        env = dict(os.environ)
        env["COVERAGE_FILE"] = str(coverage_dir / f".coverage.{pkg}")

        result = subprocess.run(cmd, cwd=PROJECT_ROOT, env=env, check=False)
        if result.returncode != 0:
            all_passed = False

    return 0 if all_passed else 1


def combine_reports() -> None:
    """Combine per-package data and write terminal and HTML reports."""
    coverage_dir = PROJECT_ROOT / "coverage"
    env = dict(os.environ)
    env["COVERAGE_FILE"] = str(coverage_dir / ".coverage")
    data_files = [str(p) for p in coverage_dir.glob(".coverage.*")]
    if not data_files:
        print("No coverage data found")
        return
    coverage = [sys.executable, "-m", "coverage"]
    subprocess.run([*coverage, "combine", *data_files], cwd=PROJECT_ROOT, env=env, check=False)
    subprocess.run([*coverage, "report", "-m"], cwd=PROJECT_ROOT, env=env, check=False)
    subprocess.run(
        [*coverage, "html", "-d", str(coverage_dir / "html")],
        cwd=PROJECT_ROOT,
        env=env,
        check=False,
    )


def main() -> int:
    """Main entry point.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="Run unit tests with coverage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--package", "-p",
        action="append",
        dest="packages",
        choices=PACKAGES,
        help="Specific package(s) to test (can specify multiple)",
    )
    parser.add_argument(
        "--open", "-o",
        action="store_true",
        help="Open HTML report in browser after running",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output",
    )
    args = parser.parse_args()

    exit_code = run_pytest_with_coverage(packages=args.packages, verbose=not args.quiet)
    combine_reports()

    if args.open:
        html_report = PROJECT_ROOT / "coverage" / "html" / "index.html"
        if html_report.exists():
            webbrowser.open(f"file://{html_report}")
        else:
            print(f"HTML report not found at {html_report}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
