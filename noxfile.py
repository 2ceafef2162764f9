"""Nox session management for the bracket-pool quality pipeline.

Running ``nox`` executes Ruff (lint/format) -> Mypy (type check) -> Pytest (tests).
``nox -s smoke`` runs only the fast smoke-marked tests; ``nox -s docs``
builds the Sphinx documentation.
"""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session(python=False)
def lint(session: nox.Session) -> None:
    """Run Ruff linting with auto-fix and format checking."""
    session.run("ruff", "check", ".", "--fix")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=False)
def typecheck(session: nox.Session) -> None:
    """Run mypy strict type checking on source and test files."""
    session.run(
        "mypy",
        "--strict",
        "--show-error-codes",
        "--namespace-packages",
        "src/bracket_pool",
        "tests",
    )


@nox.session(python=False)
def tests(session: nox.Session) -> None:
    """Run the full pytest test suite."""
    session.run("pytest", "--tb=short", *session.posargs)


@nox.session(python=False)
def smoke(session: nox.Session) -> None:
    """Run the smoke-marked subset (imports, packaging, quick scenarios)."""
    session.run("pytest", "-m", "smoke", "--tb=short")


@nox.session(python=False)
def docs(session: nox.Session) -> None:
    """Build the HTML documentation into docs/_build."""
    session.run("sphinx-build", "-b", "html", "docs", "docs/_build/html")
