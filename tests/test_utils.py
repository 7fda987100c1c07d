from __future__ import annotations

import unittest
from pathlib import Path

from helpers_cli import workspace_temp_dir
from pdf_autocrop.utils import (
    UserError,
    default_output_path,
    ensure_file_exists,
    ensure_file_path,
    ensure_pdf_has_pages,
    validate_finite,
    validate_non_negative,
    validate_positive,
)


class UtilsTests(unittest.TestCase):
    def test_default_output_path(self) -> None:
        self.assertEqual(default_output_path(Path("docs/book.pdf")), Path("docs/book-cropped.pdf"))
        self.assertEqual(default_output_path(Path("notes")), Path("notes-cropped"))
        self.assertEqual(default_output_path(Path("a.b.PDF")), Path("a.b-cropped.PDF"))

    def test_numeric_validation(self) -> None:
        self.assertEqual(validate_positive(72.0, "r"), 72.0)
        self.assertEqual(validate_non_negative(0.0, "x"), 0.0)
        self.assertEqual(validate_finite(-4.0, "m"), -4.0)
        for func, value in (
            (validate_positive, 0.0),
            (validate_positive, float("inf")),
            (validate_non_negative, -0.5),
            (validate_finite, float("nan")),
        ):
            with self.subTest(func=func.__name__, value=value):
                with self.assertRaises(UserError):
                    func(value, "value")

    def test_empty_pdf_is_rejected(self) -> None:
        with self.assertRaises(UserError):
            ensure_pdf_has_pages(0)

    def test_path_checks(self) -> None:
        with workspace_temp_dir("utils") as tmp:
            with self.assertRaises(UserError):
                ensure_file_exists(tmp / "missing.pdf", "PDF")
            with self.assertRaises(UserError):
                ensure_file_exists(tmp, "PDF")
            with self.assertRaises(UserError):
                ensure_file_path(tmp, "Output PDF")
            ensure_file_path(tmp / "new.pdf", "Output PDF")


if __name__ == "__main__":
    unittest.main()
