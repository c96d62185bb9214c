import json
import os
import subprocess
import sys
import pytest

TEST_DIR = os.path.dirname(__file__)
SCRIPT = os.path.abspath(os.path.join(TEST_DIR, "..", "..", "json_keys.py"))

json_files = sorted(f for f in os.listdir(TEST_DIR) if f.endswith(".json"))

VALID_FILES = [f for f in json_files if f.startswith("pass")]
INVALID_FILES = [f for f in json_files if f.startswith("fail")]

# Hard fail if test files are missing
if not VALID_FILES:
    raise RuntimeError("No pass*.json files found in cli directory")
if not INVALID_FILES:
    raise RuntimeError("No fail*.json files found in cli directory")


def _run(*args):
    return subprocess.run([sys.executable, SCRIPT, *args], capture_output=True, text=True)


@pytest.mark.parametrize("filename", VALID_FILES)
def test_valid_json_returns_0(filename):
    result = _run(os.path.join(TEST_DIR, filename))
    assert result.returncode == 0, f"Expected 0 from {filename}, got {result.returncode}: {result.stderr}"
    assert isinstance(json.loads(result.stdout), dict)


@pytest.mark.parametrize("filename", INVALID_FILES)
def test_invalid_json_returns_1(filename):
    result = _run(os.path.join(TEST_DIR, filename))
    assert result.returncode == 1, f"Expected 1 from {filename}, got {result.returncode}"
    assert "MalformedInput" in result.stderr
    assert result.stdout == ""


@pytest.mark.parametrize("threshold", ["1", "1000000"])
def test_pass1_key_order(threshold):
    """Chunked and whole-file reads report the same order."""
    with open(os.path.join(TEST_DIR, "expected_pass1.json"), encoding="utf-8") as fh:
        expected = json.load(fh)
    result = _run(os.path.join(TEST_DIR, "pass1.json"),
                  "--streaming-threshold", threshold, "--chunk-size", "3")
    assert result.returncode == 0
    assert json.loads(result.stdout) == expected


def test_pass2_arrays_hide_nested_objects():
    result = _run(os.path.join(TEST_DIR, "pass2.json"))
    assert json.loads(result.stdout) == {"root": ["matrix", "records", "meta", "z"], "root.meta": []}
