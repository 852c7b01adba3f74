#!/usr/bin/env python3
"""
Runs the MathPro test modules, all of them or one group.

Usage:
    python tests/run_all_tests.py            # everything
    python tests/run_all_tests.py drill      # one group
"""
import sys
import time
import unittest
from pathlib import Path

# Both ``mathpro`` and ``tests`` import from the project root
sys.path.insert(0, str(Path(__file__).parent.parent))

GROUPS = {
    'engine': ['tests.test_generators', 'tests.test_validator', 'tests.test_modules'],
    'drill': ['tests.test_drill'],
    'rewards': ['tests.test_rewards'],
    'storage': ['tests.test_data_manager', 'tests.test_config_manager'],
    'controller': ['tests.test_practice_controller', 'tests.test_feedback'],
    'frontend': ['tests.test_bot', 'tests.test_main'],
}


def collect(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    broken = []
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
        except Exception as e:
            broken.append(f"{module_name}: {e}")
    return suite, broken


def run(module_names) -> bool:
    suite, broken = collect(module_names)
    for problem in broken:
        print(f"could not load {problem}")

    started = time.perf_counter()
    result = unittest.TextTestRunner(verbosity=2, buffer=True).run(suite)
    elapsed = time.perf_counter() - started

    counts = {
        'run': result.testsRun,
        'failed': len(result.failures),
        'errors': len(result.errors),
        'skipped': len(result.skipped),
    }
    print(", ".join(f"{name}: {count}" for name, count in counts.items()) + f" in {elapsed:.2f}s")
    return result.wasSuccessful() and not broken


if __name__ == '__main__':
    selected = sys.argv[1:]
    unknown = [group for group in selected if group not in GROUPS]
    if unknown:
        print(f"Unknown group(s): {', '.join(unknown)}. Choose from: {', '.join(GROUPS)}")
        sys.exit(2)

    groups = selected or list(GROUPS)
    sys.exit(0 if run([name for group in groups for name in GROUPS[group]]) else 1)
