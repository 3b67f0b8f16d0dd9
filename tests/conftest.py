"""Pytest configuration and fixtures for the script indexer."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tests.fakes import FakeEmbedder, FakeScriptStore

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_store() -> FakeScriptStore:
    return FakeScriptStore()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def write_script() -> Callable[..., Path]:
    """Factory fixture writing a file (text or bytes), creating parents."""

    def _write(path: Path, content: str | bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def script_tree(tmp_path: Path, write_script: Callable[..., Path]) -> Path:
    """A small scripts/ tree with three categories and some noise to skip."""
    root = tmp_path / "scripts"
    write_script(
        root / "audio" / "fix-audio.ts",
        "/**\n * Fix PipeWire audio routing\n *\n * Usage:\n *   deno run fix-audio.ts\n */\n"
        'import { run } from "../lib/common.ts";\n\nawait run("systemctl --user restart pipewire");\n',
    )
    write_script(
        root / "dev" / "deploy.ts",
        "// Deploy the scripts to ~/.local/bin\n"
        'import { copy } from "https://deno.land/std/fs/mod.ts";\n\nawait copy("a", "b");\n',
    )
    write_script(
        root / "system" / "cleanup-disk.ts",
        "/** Clean apt caches and old journals */\nconsole.log('cleaning disk');\n",
    )
    write_script(root / ".git" / "hooks" / "pre-commit.ts", "// hidden\n")
    write_script(root / "node_modules" / "pkg" / "index.ts", "// vendored\n")
    write_script(root / "audio" / "README.md", "# not a script\n")
    return root
