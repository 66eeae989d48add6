"""Extracts package imports from JavaScript and TypeScript sources."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import pathspec
from tree_sitter_language_pack import get_parser

from .models import Import, ImportKind, ImportMap

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".mts", ".cts")

SKIP_DIRS = frozenset({"node_modules", "dist", "build", ".git", "coverage", ".next"})

NODE_BUILTINS = frozenset({
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
    "worker_threads", "zlib",
})

# Grammar per file extension; anything else is parsed as JavaScript
GRAMMARS = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_parser_cache: Dict[str, object] = {}


def _parser_for(file_path: Path):
    language = GRAMMARS.get(Path(file_path).suffix, "javascript")
    if language not in _parser_cache:
        _parser_cache[language] = get_parser(language)
    return _parser_cache[language]


def is_node_builtin(specifier: str) -> bool:
    """Check if a specifier names a Node.js built-in module ("fs", "node:fs", "fs/promises")."""
    if specifier.startswith("node:"):
        return True
    return specifier.split("/", 1)[0] in NODE_BUILTINS


def extract_package_name(specifier: str) -> Optional[str]:
    """
    Extract the package name from an import specifier.

    "lodash/fp" -> "lodash"
    "@scope/package/sub" -> "@scope/package"
    "./local", "/abs/path", "fs", "node:fs" -> None
    """
    if not specifier or specifier.startswith((".", "/")):
        return None

    if is_node_builtin(specifier):
        return None

    if specifier.startswith("@"):
        parts = specifier.split("/")
        if len(parts) < 2 or not parts[1]:
            return None
        return f"{parts[0]}/{parts[1]}"

    return specifier.split("/", 1)[0]


def _first_string_argument(call):
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return None
    for child in arguments.children:
        if child.type == "string":
            return child
    return None


def _import_source(node):
    """Return the (string node, kind) an import-like node loads, if any."""
    if node.type == "import_statement":
        source = node.child_by_field_name("source")
        if source is None:
            # TypeScript: import x = require('y')
            for child in node.children:
                if child.type == "import_require_clause":
                    source = child.child_by_field_name("source")
        return source, ImportKind.ES_MODULE

    if node.type == "export_statement":
        return node.child_by_field_name("source"), ImportKind.RE_EXPORT

    if node.type == "call_expression":
        function = node.child_by_field_name("function")
        if function is None:
            return None, None
        if function.type == "import":
            return _first_string_argument(node), ImportKind.DYNAMIC
        if function.type == "identifier" and function.text == b"require":
            return _first_string_argument(node), ImportKind.COMMON_JS

    return None, None


def extract_imports(source: str, file_path: Path) -> List[Import]:
    """Find every import, require, re-export and dynamic import in a source file.

    The file is parsed with tree-sitter, so import-like text inside string
    literals, template literals and comments is never reported.
    """
    tree = _parser_for(file_path).parse(source.encode("utf-8"))
    imports = []

    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        string_node, kind = _import_source(node)
        if string_node is not None and string_node.type == "string":
            specifier = string_node.text.decode("utf-8", errors="replace")[1:-1]
            if specifier:
                imports.append(Import(
                    file_path=file_path,
                    line=string_node.start_point[0] + 1,
                    specifier=specifier,
                    kind=kind,
                    resolved_package=extract_package_name(specifier),
                ))
        stack.extend(reversed(node.children))

    return imports


class ImportAnalyzer:
    """Walks a project and collects the imports of every JS/TS source file.

    Directories in SKIP_DIRS, hidden entries and paths matched by a
    ``.gitignore`` (at the root or in any walked directory) are skipped.
    """

    def __init__(self, root):
        self.root = Path(root)

    @staticmethod
    def _load_gitignore(directory: Path):
        path = directory / ".gitignore"
        if not path.is_file():
            return None
        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return None
        logger.debug(f"Using ignore rules from {path}")
        return pathspec.GitIgnoreSpec.from_lines(lines)

    @staticmethod
    def _is_ignored(path: Path, is_dir: bool, specs) -> bool:
        for base, spec in specs:
            relative = path.relative_to(base).as_posix()
            if is_dir:
                relative += "/"
            if spec.match_file(relative):
                return True
        return False

    def iter_source_files(self):
        ignore_specs = {}

        for dirpath, dirnames, filenames in os.walk(self.root):
            current = Path(dirpath)
            specs = list(ignore_specs.get(current.parent, []))
            spec = self._load_gitignore(current)
            if spec is not None:
                specs.append((current, spec))
            ignore_specs[current] = specs

            dirnames[:] = sorted(
                d for d in dirnames
                if d not in SKIP_DIRS and not d.startswith(".")
                and not self._is_ignored(current / d, True, specs)
            )
            for filename in sorted(filenames):
                if filename.startswith(".") or not filename.endswith(SOURCE_EXTENSIONS):
                    continue
                path = current / filename
                if not self._is_ignored(path, False, specs):
                    yield path

    def analyze(self) -> ImportMap:
        """Analyze all JS/TS files under the root."""
        import_map = ImportMap()

        for path in self.iter_source_files():
            try:
                source = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning(f"Skipping unreadable file {path}: {e}")
                continue

            for imp in extract_imports(source, path):
                import_map.add_import(imp)
            import_map.mark_file_analyzed()

        logger.info(f"Analyzed {import_map.files_analyzed()} files, "
                    f"found {import_map.total_imports()} imports "
                    f"of {len(import_map.packages_used())} packages")
        return import_map
