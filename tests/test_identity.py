from __future__ import annotations

import os
import subprocess
import unittest
from unittest.mock import patch

from txlock import identity
from txlock.identity import (
    generate_token,
    is_process_running,
    is_synthesized_identity,
    resolve_owner_identity,
)


class OwnerIdentityTests(unittest.TestCase):
    def test_resolves_current_pid(self) -> None:
        owner = resolve_owner_identity()
        self.assertEqual(owner, str(os.getpid()))
        self.assertFalse(is_synthesized_identity(owner))

    def test_falls_back_to_synthesized_identity(self) -> None:
        with patch("txlock.identity.os.getpid", side_effect=OSError("no pid")):
            owner = resolve_owner_identity()
        self.assertRegex(owner, r"^\d+_\d{6}$")
        self.assertTrue(is_synthesized_identity(owner))

    def test_token_embeds_owner_time_and_random_suffix(self) -> None:
        token = generate_token("4242", now=1700000000.7)
        self.assertRegex(token, r"^4242_1700000000_\d{6}$")
        suffix = int(token.rsplit("_", 1)[1])
        self.assertGreaterEqual(suffix, 100000)
        self.assertLessEqual(suffix, 999999)

    def test_tokens_differ_within_the_same_second(self) -> None:
        tokens = {generate_token("4242", now=1700000000) for _ in range(50)}
        self.assertGreater(len(tokens), 1)


class ProcessLivenessTests(unittest.TestCase):
    def test_current_process_is_running(self) -> None:
        self.assertTrue(is_process_running(str(os.getpid())))

    def test_empty_owner_is_not_running(self) -> None:
        self.assertFalse(is_process_running(""))

    def test_synthesized_owner_is_assumed_running(self) -> None:
        self.assertTrue(is_process_running("1700000000_123456"))

    @unittest.skipIf(os.name == "nt", "POSIX signal check")
    def test_missing_pid_is_not_running(self) -> None:
        with patch("txlock.identity.os.kill", side_effect=ProcessLookupError()):
            self.assertFalse(is_process_running("999999999"))

    @unittest.skipIf(os.name == "nt", "POSIX signal check")
    def test_permission_denied_counts_as_running(self) -> None:
        with patch("txlock.identity.os.kill", side_effect=PermissionError()):
            self.assertTrue(is_process_running("1"))

    @unittest.skipIf(os.name == "nt", "POSIX signal check")
    def test_ambiguous_kill_failure_counts_as_running(self) -> None:
        with patch("txlock.identity.os.kill", side_effect=OSError("kill failed")):
            self.assertTrue(is_process_running("31337"))

    @unittest.skipIf(os.name == "nt", "POSIX signal check")
    def test_pid_too_large_to_check_counts_as_running(self) -> None:
        self.assertTrue(is_process_running("99999999999999999999999"))

    def test_oversized_pid_overflow_counts_as_running(self) -> None:
        with patch("txlock.identity.os.kill", side_effect=OverflowError("too large")):
            self.assertTrue(identity._posix_pid_running(2**70))

    def test_windows_tasklist_parsing(self) -> None:
        found = subprocess.CompletedProcess(
            args=[], returncode=0, stdout='"python.exe","4242","Console","1","10,000 K"\n', stderr=""
        )
        missing = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="INFO: No tasks are running which match the specified criteria.\n", stderr=""
        )
        with patch("txlock.identity.subprocess.run", return_value=found):
            self.assertTrue(identity._windows_pid_running(4242))
        with patch("txlock.identity.subprocess.run", return_value=missing):
            self.assertFalse(identity._windows_pid_running(4242))

    def test_windows_tasklist_unavailable_counts_as_running(self) -> None:
        with patch("txlock.identity.subprocess.run", side_effect=FileNotFoundError("tasklist")):
            self.assertTrue(identity._windows_pid_running(4242))

    def test_synthesized_identity_detection(self) -> None:
        self.assertFalse(is_synthesized_identity("12345"))
        self.assertTrue(is_synthesized_identity("host-12345"))


if __name__ == "__main__":
    unittest.main()
