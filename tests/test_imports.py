"""Tests for JavaScript/TypeScript import extraction."""

from pathlib import Path

import pytest

from depx.imports import ImportAnalyzer, extract_imports, extract_package_name
from depx.models import ImportKind


def specifiers(source):
    return [imp.specifier for imp in extract_imports(source, Path("index.ts"))]


class TestExtractPackageName:
    """Tests for mapping specifiers to package names."""

    @pytest.mark.parametrize("specifier,expected", [
        ("lodash", "lodash"),
        ("lodash/fp", "lodash"),
        ("@scope/package", "@scope/package"),
        ("@scope/package/sub/path", "@scope/package"),
        ("./local", None),
        ("../utils", None),
        ("/absolute/path", None),
        ("fs", None),
        ("fs/promises", None),
        ("node:fs", None),
        ("node:test", None),
        ("@scope", None),
    ])
    def test_extract_package_name(self, specifier, expected):
        assert extract_package_name(specifier) == expected


class TestExtractImports:
    """Tests for finding import statements in source text."""

    def test_es_imports(self):
        source = (
            "import React from 'react';\n"
            "import { useState, useEffect } from \"react\";\n"
            "import * as path from 'path';\n"
            "import type { Config } from '@app/config';\n"
            "import defaultExport, { named as alias } from 'lodash/fp';\n"
        )

        assert specifiers(source) == ["react", "react", "path", "@app/config", "lodash/fp"]

    def test_multiline_named_imports(self):
        source = "import {\n  a,\n  b,\n} from 'multi';\n"

        imports = extract_imports(source, Path("x.js"))

        assert [i.specifier for i in imports] == ["multi"]
        assert imports[0].line == 4

    def test_side_effect_import(self):
        imports = extract_imports("import 'reflect-metadata';\n", Path("x.ts"))

        assert imports[0].specifier == "reflect-metadata"
        assert imports[0].kind == ImportKind.ES_MODULE

    def test_require(self):
        source = "const express = require('express');\nconst { join } = require(\"path\");\n"
        imports = extract_imports(source, Path("x.js"))

        assert [i.specifier for i in imports] == ["express", "path"]
        assert all(i.kind == ImportKind.COMMON_JS for i in imports)
        assert imports[0].resolved_package == "express"
        assert imports[1].resolved_package is None

    def test_dynamic_import(self):
        imports = extract_imports("const mod = await import('chart.js');\n", Path("x.js"))

        assert imports[0].specifier == "chart.js"
        assert imports[0].kind == ImportKind.DYNAMIC

    def test_re_exports(self):
        source = "export * from 'rxjs';\nexport { map } from 'rxjs/operators';\nexport * as u from './utils';\n"
        imports = extract_imports(source, Path("x.ts"))

        assert [i.specifier for i in imports] == ["rxjs", "rxjs/operators", "./utils"]
        assert all(i.kind == ImportKind.RE_EXPORT for i in imports)

    def test_comments_are_ignored(self):
        source = (
            "// import old from 'old-lib';\n"
            "/* const x = require('commented');\n"
            "   import y from 'also-commented'; */\n"
            "import real from 'real-lib';\n"
        )
        imports = extract_imports(source, Path("x.js"))

        assert [i.specifier for i in imports] == ["real-lib"]
        assert imports[0].line == 4

    def test_import_text_inside_strings_is_ignored(self):
        source = (
            "const help = \"usage: import x from 'left-pad'\";\n"
            "const r = \"require('chalk')\";\n"
            "const t = `await import('lazy-lib')`;\n"
            "const url = 'https://example.com';\n"
        )
        assert specifiers(source) == []

    def test_typescript_import_require(self):
        imports = extract_imports("import fs = require('fs-extra');\n", Path("x.ts"))

        assert [i.specifier for i in imports] == ["fs-extra"]
        assert imports[0].kind == ImportKind.ES_MODULE

    def test_tsx_file(self):
        source = "import React from 'react';\nexport const App = () => <div>{require('inline')}</div>;\n"
        imports = extract_imports(source, Path("App.tsx"))

        assert [(i.specifier, i.line) for i in imports] == [("react", 1), ("inline", 2)]

    def test_line_numbers(self):
        source = "\n\nimport a from 'a';\n\nconst b = require('b');\n"
        assert [i.line for i in extract_imports(source, Path("x.js"))] == [3, 5]


class TestImportAnalyzer:
    """Tests for walking a project tree."""

    def test_analyze_project(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "index.ts").write_text("import express from 'express';\nimport './local';\n")
        (tmp_path / "src" / "util.mjs").write_text("export * from '@scope/pkg/sub';\n")
        (tmp_path / "README.md").write_text("import nothing from 'markdown';\n")
        for skipped in ("node_modules/dep", "dist", ".cache"):
            (tmp_path / skipped).mkdir(parents=True)
            (tmp_path / skipped / "index.js").write_text("require('should-not-appear');\n")

        import_map = ImportAnalyzer(tmp_path).analyze()

        assert import_map.files_analyzed() == 2
        assert import_map.total_imports() == 3
        assert import_map.packages_used() == {"express", "@scope/pkg"}
        assert import_map.get_package_usages("express")[0].file_path == tmp_path / "src" / "index.ts"

    def test_empty_project(self, tmp_path):
        import_map = ImportAnalyzer(tmp_path).analyze()

        assert import_map.files_analyzed() == 0
        assert import_map.packages_used() == set()

    def test_gitignored_directories_are_skipped(self, tmp_path):
        (tmp_path / ".gitignore").write_text("generated/\n*.gen.js\n")
        (tmp_path / "generated").mkdir()
        (tmp_path / "generated" / "out.js").write_text("require('ignored-lib');\n")
        (tmp_path / "schema.gen.js").write_text("require('also-ignored');\n")
        (tmp_path / "index.js").write_text("require('kept-lib');\n")

        import_map = ImportAnalyzer(tmp_path).analyze()

        assert import_map.packages_used() == {"kept-lib"}
        assert import_map.files_analyzed() == 1

    def test_nested_gitignore_applies_below_its_directory(self, tmp_path):
        (tmp_path / "packages" / "web" / "tmp").mkdir(parents=True)
        (tmp_path / "packages" / "web" / ".gitignore").write_text("tmp/\n")
        (tmp_path / "packages" / "web" / "tmp" / "scratch.js").write_text("require('scratch-lib');\n")
        (tmp_path / "tmp").mkdir()
        (tmp_path / "tmp" / "keep.js").write_text("require('root-tmp-lib');\n")

        import_map = ImportAnalyzer(tmp_path).analyze()

        assert import_map.packages_used() == {"root-tmp-lib"}

    def test_negated_gitignore_pattern(self, tmp_path):
        (tmp_path / ".gitignore").write_text("*.js\n!main.js\n")
        (tmp_path / "main.js").write_text("require('main-lib');\n")
        (tmp_path / "other.js").write_text("require('other-lib');\n")

        assert ImportAnalyzer(tmp_path).analyze().packages_used() == {"main-lib"}
