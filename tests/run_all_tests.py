#!/usr/bin/env python3
"""
Test runner for the Trivia Quiz bot.
Runs unit and integration tests and prints a summary report.
"""
import unittest
import sys
import time
from pathlib import Path

# Make the trivia_quiz and tests packages importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

TEST_CATEGORIES = {
    'unit': [
        'tests.test_data_manager',
        'tests.test_config_manager',
        'tests.test_quiz_engine',
        'tests.test_quiz_controller',
        'tests.test_timer_lifecycle',
    ],
    'integration': ['tests.test_integration_comprehensive'],
    'discord': ['tests.test_bot_discord_integration'],
    'data': ['tests.test_data_manager'],
    'config': ['tests.test_config_manager'],
    'engine': ['tests.test_quiz_engine', 'tests.test_timer_lifecycle'],
    'controller': ['tests.test_quiz_controller'],
}


def load_suite(module_names):
    """Load the named test modules into one suite."""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
            return None

    return suite


def run_test_suite():
    """Run the complete test suite and print a report."""
    print("=" * 70)
    print("Trivia Quiz Bot - Test Suite")
    print("=" * 70)

    modules = TEST_CATEGORIES['unit'] + TEST_CATEGORIES['integration'] + TEST_CATEGORIES['discord']
    suite = load_suite(modules)
    if suite is None:
        return False

    print("\n" + "=" * 70)
    print("Running Tests...")
    print("=" * 70)

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)
    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    for label, problems in (("FAILURES", result.failures), ("ERRORS", result.errors)):
        if problems:
            print("\n" + "-" * 50)
            print(f"{label}:")
            print("-" * 50)
            for test, traceback in problems:
                print(f"\n{test}:")
                print(traceback)

    return failures == 0 and errors == 0


def run_specific_test_category(category):
    """Run tests for a specific category."""
    if category not in TEST_CATEGORIES:
        print(f"Unknown category: {category}")
        print(f"Available categories: {', '.join(TEST_CATEGORIES.keys())}")
        return False

    print(f"Running {category} tests...")
    suite = load_suite(TEST_CATEGORIES[category])
    if suite is None:
        return False

    result = unittest.TextTestRunner(verbosity=2).run(suite)
    return len(result.failures) == 0 and len(result.errors) == 0


if __name__ == '__main__':
    if len(sys.argv) > 1:
        success = run_specific_test_category(sys.argv[1])
    else:
        success = run_test_suite()

    sys.exit(0 if success else 1)
