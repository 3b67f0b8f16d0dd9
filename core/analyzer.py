#!/usr/bin/env python3
"""
Script metadata analyzer.

Extracts from each script file:
- Category (first directory under the scan root)
- Description (leading comment block)
- Usage instructions
- Import / source dependencies
- Keyword tags
- Approximate token count and content hash
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from core.errors import AnalysisError

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 280

TAG_KEYWORDS = [
    "audio", "video", "gpu", "nvidia", "amd", "drivers", "configuration",
    "config", "setup", "install", "pulseaudio", "pipewire", "alsa",
    "davinci", "obs", "system", "network", "disk", "diagnostic", "monitor",
    "service", "docker", "deployment", "build", "test", "database", "api",
]

BLOCK_COMMENT_RE = re.compile(r"\A/\*\*?(.*?)\*/", re.DOTALL)
DESCRIPTION_LINE_RE = re.compile(r"^\s*(?://|#)\s*Description:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
USAGE_HEADER_RE = re.compile(r"^usage:\s*(.*)$", re.IGNORECASE)

DEPENDENCY_PATTERNS = [
    # TypeScript / JavaScript: import x from "y"; import "y"; export * from "y"
    re.compile(r"""^\s*(?:import|export)\s+(?:[\w*{}\s,]+?\s+from\s+)?["']([^"']+)["']""", re.MULTILINE),
    # Python: from x import y
    re.compile(r"^\s*from\s+([\w.]+)\s+import\s+", re.MULTILINE),
    # Python: import x, y
    re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)\s*$", re.MULTILINE),
    # Shell: source x / . x
    re.compile(r"^\s*(?:source|\.)\s+([^\s;&|]+)", re.MULTILINE),
]


@dataclass
class ScriptMetadata:
    """Metadata for one script file."""

    path: str
    name: str
    category: str
    description: str
    usage: str
    tags: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    token_count: int = 0
    content_hash: str = ""
    content: str = field(default="", repr=False)

    def embedding_text(self) -> str:
        """Text submitted to the embedding service for this script."""
        header = [f"Script: {self.name}", f"Category: {self.category}"]
        if self.description:
            header.append(f"Description: {self.description}")
        return "\n".join(header) + "\n\n" + self.content


def compute_content_hash(raw: bytes) -> str:
    """SHA-256 hex digest of raw file bytes."""
    return hashlib.sha256(raw).hexdigest()


def count_tokens(content: str) -> int:
    """Approximate token count: whitespace-delimited units."""
    return len(content.split())


def infer_category(relative_path: Path, root: Path) -> str:
    """
    First directory segment under the scan root.

    Files directly inside the root take the root directory's own name, so
    scanning ./scripts/audio still yields "audio".
    """
    if len(relative_path.parts) > 1:
        return relative_path.parts[0]
    return root.resolve().name or "root"


def relative_script_path(path: Union[str, Path], root: Union[str, Path]) -> Path:
    """
    Path of a script relative to the scan root.

    Computed lexically: symlinks are not followed, so a link keeps the key
    and category of the place it was discovered. Files outside the root
    fall back to their bare name.
    """
    try:
        relative = Path(os.path.relpath(os.path.abspath(path), os.path.abspath(root)))
    except ValueError:
        return Path(Path(path).name)
    if relative.parts and relative.parts[0] == os.pardir:
        return Path(Path(path).name)
    return relative


def _strip_shebang(content: str) -> str:
    if content.startswith("#!"):
        newline = content.find("\n")
        return "" if newline == -1 else content[newline + 1:]
    return content


def _leading_comment_lines(content: str) -> List[str]:
    """Lines of the leading comment block with comment markers removed."""
    text = _strip_shebang(content).lstrip()

    match = BLOCK_COMMENT_RE.match(text)
    if match:
        lines = []
        for line in match.group(1).splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:]
            lines.append(line.strip())
        return lines

    for marker in ("//", "#"):
        if text.startswith(marker):
            lines = []
            for line in text.splitlines():
                stripped = line.strip()
                if not stripped.startswith(marker):
                    break
                lines.append(stripped[len(marker):].strip())
            return lines

    return []


def _split_usage(lines: List[str]) -> tuple[List[str], List[str]]:
    """Separate description lines from the Usage: section."""
    description, usage = [], []
    in_usage = False
    for line in lines:
        header = USAGE_HEADER_RE.match(line)
        if header:
            in_usage = True
            if header.group(1):
                usage.append(header.group(1))
            continue
        if in_usage:
            if not line:
                in_usage = False
                continue
            usage.append(line)
        elif not line.startswith("@"):
            description.append(line)
    return description, usage


def truncate_description(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def extract_description(content: str) -> str:
    """
    Summary from the leading comment block, falling back to a
    "Description:" comment line anywhere in the file.
    """
    description, _ = _split_usage(_leading_comment_lines(content))
    text = " ".join(line for line in description if line)
    if not text:
        match = DESCRIPTION_LINE_RE.search(content)
        if match:
            text = match.group(1)
    return truncate_description(text)


def extract_usage(content: str) -> str:
    _, usage = _split_usage(_leading_comment_lines(content))
    return "\n".join(usage).strip()


def extract_dependencies(content: str) -> List[str]:
    """Import / source targets in order of first appearance."""
    found = []
    for pattern in DEPENDENCY_PATTERNS:
        for match in pattern.finditer(content):
            found.append((match.start(), match.group(1)))

    dependencies = []
    for _, value in sorted(found):
        for name in value.split(","):
            name = name.strip()
            if name and name not in dependencies:
                dependencies.append(name)
    return dependencies


def generate_tags(content: str) -> List[str]:
    lower_content = content.lower()
    return sorted({keyword for keyword in TAG_KEYWORDS if keyword in lower_content})


class ScriptAnalyzer:
    """Derives ScriptMetadata from files under a scan root."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        """
        Args:
            root: Scan root used for relative paths and categories. Defaults
                to the file's parent directory when analyzing a single file.
        """
        self.root = Path(root) if root is not None else None

    def analyze(self, path: Union[str, Path], root: Optional[Union[str, Path]] = None) -> ScriptMetadata:
        """
        Analyze a single script.

        Args:
            path: File to analyze.
            root: Scan root; overrides the analyzer's default root.

        Returns:
            ScriptMetadata for the file.

        Raises:
            AnalysisError: If the file cannot be read or is not UTF-8 text.
        """
        file_path = Path(path)
        scan_root = Path(root) if root is not None else (self.root or file_path.parent)

        relative = relative_script_path(file_path, scan_root)
        relative_path = relative.as_posix()

        try:
            raw = file_path.read_bytes()
        except OSError as e:
            raise AnalysisError(relative_path, f"{type(e).__name__}: {e.strerror or e}", cause=e) from e

        if b"\x00" in raw:
            raise AnalysisError(relative_path, "binary content (NUL bytes found)")
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AnalysisError(relative_path, f"UnicodeDecodeError: {e.reason}", cause=e) from e

        metadata = ScriptMetadata(
            path=relative_path,
            name=file_path.stem,
            category=infer_category(relative, scan_root),
            description=extract_description(content),
            usage=extract_usage(content),
            tags=generate_tags(content),
            dependencies=extract_dependencies(content),
            token_count=count_tokens(content),
            content_hash=compute_content_hash(raw),
            content=content,
        )
        logger.debug(f"Analyzed {relative_path}: {metadata.token_count} tokens, category={metadata.category}")
        return metadata
