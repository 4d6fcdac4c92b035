import os
import subprocess
import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[2] / "src"


@pytest.mark.parametrize("args", [[], ["resolve"], ["parse"], ["elements"]])
def test_cli_help(args):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(SRC), env.get("PYTHONPATH")) if p)
    out = subprocess.check_output([sys.executable, "-m", "molsynth", *args, "--help"], text=True, env=env)
    assert "usage" in out.lower()
