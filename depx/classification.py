"""
Static classification of packages that are expected to never be imported.

Build tools, linters, test runners, type definitions and similar tooling are
legitimately declared as direct dependencies without ever appearing in an
import statement. They are reported separately so they do not pollute the
"safe to remove" list.
"""

from dataclasses import dataclass
from typing import FrozenSet, Tuple, Iterable

EXPECTED_UNUSED_EXACT: FrozenSet[str] = frozenset({
    # TypeScript
    "typescript", "ts-node", "tsx", "ts-jest",
    # Bundlers and build tools
    "vite", "webpack", "webpack-cli", "webpack-dev-server", "rollup", "esbuild",
    "parcel", "turbo", "nx", "tsup", "unbuild", "pkgroll", "microbundle", "tsdx",
    "preconstruct", "bunchee",
    # Linters and formatters
    "eslint", "prettier", "stylelint", "biome", "oxlint", "dprint", "xo", "standard",
    # Test runners
    "jest", "vitest", "mocha", "ava", "tap", "c8", "nyc", "playwright", "cypress",
    "@playwright/test", "uvu",
    # Dev servers and watchers
    "nodemon", "ts-node-dev", "tsnd", "concurrently", "npm-run-all", "npm-run-all2",
    "cross-env", "wait-on",
    # File utilities
    "rimraf", "del-cli", "copyfiles", "cpy-cli", "mkdirp", "shx",
    # Git hooks and commits
    "husky", "lint-staged", "commitlint", "simple-git-hooks", "lefthook",
    # Versioning and release
    "semantic-release", "release-it", "standard-version", "bumpp", "changelogithub",
    "changelogen", "np", "lerna", "changeset",
    # Patching
    "patch-package", "pnpm-patch",
    # Documentation
    "typedoc", "jsdoc", "documentation", "api-extractor",
    # Type checking and package hygiene
    "tsc", "attw", "publint", "arethetypeswrong", "knip", "depcheck",
})

EXPECTED_UNUSED_PREFIXES: Tuple[str, ...] = (
    "@types/",
    "@typescript-eslint/",
    "@eslint/",
    "eslint-plugin-",
    "eslint-config-",
    "@vitejs/",
    "@rollup/",
    "@babel/",
    "babel-",
    "@swc/",
    "@jest/",
    "@testing-library/",
    "@vitest/",
    "prettier-plugin-",
)


@dataclass(frozen=True)
class ExpectedUnusedRules:
    """Exact-name and prefix allowlists for tooling packages."""

    exact: FrozenSet[str] = EXPECTED_UNUSED_EXACT
    prefixes: Tuple[str, ...] = EXPECTED_UNUSED_PREFIXES

    def matches(self, name: str) -> bool:
        """Check if a package is expected to not be imported directly."""
        if name in self.exact:
            return True
        return any(name.startswith(prefix) for prefix in self.prefixes)

    def extended(self, patterns: Iterable[str]) -> "ExpectedUnusedRules":
        """
        Return a copy with extra rules added.

        A pattern ending in "*" is a prefix rule ("@storybook/*"); anything
        else is an exact name.
        """
        exact = set(self.exact)
        prefixes = list(self.prefixes)
        for pattern in patterns:
            pattern = pattern.strip()
            if not pattern:
                continue
            if pattern.endswith("*"):
                prefix = pattern.rstrip("*")
                if prefix and prefix not in prefixes:
                    prefixes.append(prefix)
            else:
                exact.add(pattern)
        return ExpectedUnusedRules(exact=frozenset(exact), prefixes=tuple(prefixes))


DEFAULT_RULES = ExpectedUnusedRules()


def is_expected_unused(name: str, rules: ExpectedUnusedRules = DEFAULT_RULES) -> bool:
    """Check if a package is build/lint/test tooling that is never imported."""
    return rules.matches(name)
