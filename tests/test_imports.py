"""Tests for import extraction from project sources."""
import re
import textwrap

from backends.python.backend import PoetryBackend
from constants import Constants
from guess.imports import extract_python_imports, extract_regexp_imports, iter_project_files


def _write(root, relpath, text):
    path = root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestIterProjectFiles:
    """Test project file discovery."""

    def test_ignored_directories_skipped(self, tmp_path):
        """Test that ignored directories are not descended into."""
        _write(tmp_path, "app.py", "")
        _write(tmp_path, "node_modules/dep/index.js", "")
        _write(tmp_path, ".venv/lib/site.py", "")
        found = list(iter_project_files(str(tmp_path), ["*.py", "*.js"], Constants.IGNORED_PATHS))
        assert found == [str(tmp_path / "app.py")]

    def test_sorted_and_filtered(self, tmp_path):
        """Test that files come back sorted and filtered by glob."""
        _write(tmp_path, "b.py", "")
        _write(tmp_path, "a.py", "")
        _write(tmp_path, "notes.txt", "")
        names = [p.rsplit("/", 1)[-1] for p in iter_project_files(str(tmp_path), ["*.py"], [])]
        assert names == ["a.py", "b.py"]


class TestPythonImports:
    """Test ast-based Python import extraction."""

    def test_top_level_modules(self, tmp_path):
        """Test that dotted imports reduce to their top-level module."""
        _write(tmp_path, "main.py", """
            import os
            import yaml, requests.adapters
            from flask import Flask
            from google.protobuf import message
        """)
        scan = extract_python_imports(str(tmp_path), [])
        assert scan.success
        assert set(scan.imports) == {"os", "yaml", "requests", "flask", "google"}

    def test_relative_and_local_imports_skipped(self, tmp_path):
        """Test that relative imports and project modules are skipped."""
        _write(tmp_path, "main.py", """
            from . import sibling
            from .models import Thing
            import helpers
            from mypkg.core import run
        """)
        _write(tmp_path, "helpers.py", "")
        _write(tmp_path, "mypkg/__init__.py", "")
        _write(tmp_path, "mypkg/core.py", "")
        scan = extract_python_imports(str(tmp_path), [])
        assert scan.imports == {}

    def test_pragma_recorded(self, tmp_path):
        """Test that a package pragma is attached to its import."""
        _write(tmp_path, "main.py", """
            import yaml  # unipm package(PyYAML)
            import cv2
        """)
        scan = extract_python_imports(str(tmp_path), [])
        assert scan.imports == {"yaml": "PyYAML", "cv2": None}

    def test_pragma_on_continuation_line(self, tmp_path):
        """Test a pragma inside a parenthesised multi-line import."""
        _write(tmp_path, "main.py", """
            from cv2 import (
                imread,  # unipm package(opencv-python-headless)
            )
        """)
        scan = extract_python_imports(str(tmp_path), [])
        assert scan.imports == {"cv2": "opencv-python-headless"}

    def test_imports_inside_functions_found(self, tmp_path):
        """Test that imports nested in functions are found."""
        _write(tmp_path, "main.py", """
            def lazy():
                import numpy
                return numpy
        """)
        assert "numpy" in extract_python_imports(str(tmp_path), []).imports

    def test_syntax_error_reported(self, tmp_path):
        """Test that an unparsable file fails the scan without fallback regexps."""
        _write(tmp_path, "broken.py", "def (:\n")
        _write(tmp_path, "ok.py", "import requests\n")
        scan = extract_python_imports(str(tmp_path), [])
        assert not scan.success
        assert scan.imports == {"requests": None}


class TestPythonFallbackRegexps:
    """Test regexp scanning of Python files that ast cannot parse."""

    PY2_SOURCE = """\
        import os, sys
        import yaml  # unipm package(PyYAML)
        import numpy as np
        from flask import Flask
        from requests.adapters import \\
            HTTPAdapter
        from . import sibling
        import helpers

        print "imported everything"
    """

    def test_python2_source_scanned(self, tmp_path):
        """Test that a Python 2 file is scanned with the Poetry import regexps."""
        _write(tmp_path, "legacy.py", self.PY2_SOURCE)
        _write(tmp_path, "helpers.py", "")
        scan = extract_python_imports(str(tmp_path), [], PoetryBackend.guess_regexps)
        assert scan.success
        assert scan.imports == {
            "os": None,
            "sys": None,
            "yaml": "PyYAML",
            "numpy": None,
            "flask": None,
            "requests": None,
        }

    def test_from_import_yields_module_only(self, tmp_path):
        """Test that ``from x import y`` contributes x and not y."""
        _write(tmp_path, "legacy.py", "from cv2 import imread\nexec 'pass'\n")
        scan = extract_python_imports(str(tmp_path), [], PoetryBackend.guess_regexps)
        assert scan.imports == {"cv2": None}

    def test_parsable_files_still_use_ast(self, tmp_path):
        """Test that text mentioning import in a string is not picked up."""
        _write(tmp_path, "main.py", 'HELP = """\nimport fake_module\n"""\nimport requests\n')
        scan = extract_python_imports(str(tmp_path), [], PoetryBackend.guess_regexps)
        assert scan.imports == {"requests": None}


class TestRegexpImports:
    """Test regexp-based import extraction."""

    REGEXPS = [re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)""")]

    def test_group_one_captured(self, tmp_path):
        """Test that group 1 of each match is recorded."""
        _write(tmp_path, "index.js", """
            const a = require('express');
            const b = require("lodash/fp");
        """)
        scan = extract_regexp_imports(str(tmp_path), ["*.js"], self.REGEXPS, [])
        assert scan.imports == {"express": None, "lodash/fp": None}

    def test_line_pragma(self, tmp_path):
        """Test that a line comment pragma is attached to the match."""
        _write(tmp_path, "index.js", """
            const a = require('pg');  // unipm package(pg-native)
            const b = require('express');
        """)
        scan = extract_regexp_imports(str(tmp_path), ["*.js"], self.REGEXPS, [])
        assert scan.imports == {"pg": "pg-native", "express": None}
