# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import pathlib
import pytest
from chunkline._cli import main


def _unittest_cli_send(tmp_path: pathlib.Path) -> None:
    source = tmp_path / "map.bin"
    source.write_bytes(bytes(range(256)) * 20)
    assert main(["send", "loop://", "map", str(source), "--interval", "0", "--command", "data"]) == 0

    # Errors are reported with the exit code.
    assert main(["send", "loop://", "map", str(tmp_path / "missing.bin")]) == 1
    assert main(["send", "loop://", "map", str(source), "--command", "two words"]) == 1

    with pytest.raises(SystemExit):
        main(["send", "loop://"])
