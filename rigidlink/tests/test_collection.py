# SPDX-FileCopyrightText: Copyright (c) 2025 The RigidLink Developers
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import importlib.util
import os
import unittest

from rigidlink.tests.unittest_utils import add_function_test

TESTS_DIR = os.path.dirname(os.path.abspath(__file__))


class _CollectedItems:
    def __init__(self):
        self.items = []

    def pytest_collection_finish(self, session):
        self.items = list(session.items)


def test_pytest_collects_only_test_case_methods(test, device):
    """Module-level ``test_*(test, device)`` helpers are not collected as pytest tests."""
    import pytest  # noqa: PLC0415

    collected = _CollectedItems()
    path = os.path.join(TESTS_DIR, "test_registry.py")
    exit_code = pytest.main(["--collect-only", "-q", "-p", "no:cacheprovider", path], plugins=[collected])

    test.assertEqual(exit_code, pytest.ExitCode.OK)
    test.assertGreater(len(collected.items), 0)
    for item in collected.items:
        test.assertIsNotNone(item.cls, item.nodeid)
        test.assertTrue(issubclass(item.cls, unittest.TestCase), item.nodeid)


@unittest.skipUnless(importlib.util.find_spec("pytest"), "pytest is not installed")
class TestCollection(unittest.TestCase):
    pass


add_function_test(
    TestCollection,
    "test_pytest_collects_only_test_case_methods",
    test_pytest_collects_only_test_case_methods,
    devices=None,
)


if __name__ == "__main__":
    unittest.main(verbosity=2)
