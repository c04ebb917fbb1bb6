import unittest

from briolete_services.catalog import Material, ServicePriority, ServiceStatus, choices
from briolete_services.forms import UploadedFile
from briolete_services.validators import (
    MAX_FILE_SIZE,
    parse_money,
    sanitize_string,
    validate_date,
    validate_file,
    validate_material,
    validate_money,
    validate_phone,
    validate_priority,
    validate_status,
    validate_string,
    validate_time,
)


class DateAndTimeValidatorTests(unittest.TestCase):
    def test_accepts_real_calendar_dates(self) -> None:
        for value in ("2024-01-15", "2024-02-29", "1999-12-31"):
            with self.subTest(value=value):
                self.assertTrue(validate_date(value).valid)

    def test_rejects_malformed_dates(self) -> None:
        for value in ("2024-1-15", "15-01-2024", "2024/01/15", "2024-01-15T00:00", "abcd-ef-gh"):
            with self.subTest(value=value):
                result = validate_date(value)
                self.assertFalse(result.valid)
                self.assertEqual(result.error, "Formato de fecha inválido. Debe ser YYYY-MM-DD")

    def test_rejects_non_existent_dates(self) -> None:
        for value in ("2024-13-45", "2023-02-29", "2024-04-31"):
            with self.subTest(value=value):
                self.assertEqual(validate_date(value).error, "Fecha inválida")

    def test_missing_date_is_required(self) -> None:
        self.assertEqual(validate_date("").error, "La fecha es requerida")

    def test_time_accepts_minutes_and_seconds(self) -> None:
        for value in ("00:00", "13:00", "23:59", "07:05:09"):
            with self.subTest(value=value):
                self.assertTrue(validate_time(value).valid)

    def test_time_rejects_out_of_range_values(self) -> None:
        for value in ("24:00", "12:60", "12:00:60", "7:00", "12-00"):
            with self.subTest(value=value):
                self.assertFalse(validate_time(value).valid)


class TextValidatorTests(unittest.TestCase):
    def test_phone_rules(self) -> None:
        self.assertTrue(validate_phone("+57 (300) 123-4567").valid)
        self.assertEqual(validate_phone("").error, "El teléfono es requerido")
        self.assertEqual(validate_phone("1" * 51).error, "El teléfono es demasiado largo")
        self.assertEqual(validate_phone("300-ABC").error, "Formato de teléfono inválido")

    def test_string_required_and_length(self) -> None:
        self.assertEqual(validate_string("  ", "Cliente").error, "Cliente es requerido")
        self.assertTrue(validate_string("", "Cliente", required=False).valid)
        self.assertEqual(
            validate_string("x" * 501, "Cliente").error,
            "Cliente es demasiado largo (máximo 500 caracteres)",
        )
        self.assertTrue(validate_string("x" * 2000, "Descripción", 2000).valid)

    def test_sanitize_strips_brackets_and_truncates(self) -> None:
        self.assertEqual(sanitize_string("  <b>Ana</b> "), "bAna/b")
        self.assertEqual(len(sanitize_string("y" * 800)), 500)
        self.assertEqual(sanitize_string(None), "")


class ChoiceValidatorTests(unittest.TestCase):
    def test_every_catalog_value_is_accepted(self) -> None:
        for value in choices(ServiceStatus):
            self.assertTrue(validate_status(value).valid)
        for value in choices(ServicePriority):
            self.assertTrue(validate_priority(value).valid)
        for value in choices(Material):
            self.assertTrue(validate_material(value).valid)

    def test_rejection_lists_allowed_values(self) -> None:
        error = validate_status("Cerrado").error
        self.assertIsNotNone(error)
        assert error is not None
        self.assertIn("Pendiente, En fabricación, Garantía, Entregado", error)
        self.assertIn("24 horas", validate_priority("Urgente").error or "")
        self.assertIn("Plata 925", validate_material("Bronce").error or "")


class MoneyValidatorTests(unittest.TestCase):
    def test_comma_decimal_separator_is_normalized(self) -> None:
        self.assertEqual(parse_money("1500,5"), 1500.5)
        self.assertEqual(parse_money("1500.5"), 1500.5)
        self.assertEqual(parse_money(" 100 000 "), 100000)
        self.assertTrue(validate_money("12,75", "Abono").valid)

    def test_exponent_notation_is_accepted(self) -> None:
        self.assertTrue(validate_money("1e5", "Abono").valid)
        self.assertEqual(parse_money("1e5"), 100000)
        self.assertEqual(parse_money("2,5E3"), 2500)
        self.assertIsNone(parse_money("1e999"))

    def test_blank_is_no_value_not_zero(self) -> None:
        self.assertIsNone(parse_money(""))
        self.assertEqual(parse_money("0"), 0)
        self.assertTrue(validate_money("", "Abono", required=False).valid)
        self.assertEqual(validate_money("", "Costo final", required=True).error, "Costo final es requerido")

    def test_rejects_negative_invalid_and_too_large(self) -> None:
        self.assertEqual(validate_money("-5", "Abono").error, "Abono no puede ser negativo")
        self.assertEqual(validate_money("abc", "Abono").error, "Abono debe ser un número válido")
        self.assertEqual(validate_money("1e999", "Abono").error, "Abono debe ser un número válido")
        self.assertEqual(validate_money("1e10", "Abono").error, "Abono es demasiado alto")
        self.assertEqual(validate_money("1000000001", "Abono").error, "Abono es demasiado alto")
        self.assertTrue(validate_money("1000000000", "Abono").valid)


class FileValidatorTests(unittest.TestCase):
    def test_missing_file_passes(self) -> None:
        self.assertTrue(validate_file(None).valid)

    def test_accepts_allowed_types(self) -> None:
        upload = UploadedFile("cotizacion.pdf", "application/pdf", b"%PDF-1.4")
        self.assertTrue(validate_file(upload).valid)

    def test_rejects_executables(self) -> None:
        upload = UploadedFile("setup.exe", "application/x-msdownload", b"x" * 1024)
        result = validate_file(upload)
        self.assertFalse(result.valid)
        self.assertIn("Tipo de archivo no permitido", result.error or "")

    def test_rejects_oversized_files(self) -> None:
        upload = UploadedFile("big.png", "image/png", b"\0" * (MAX_FILE_SIZE + 1))
        self.assertEqual(validate_file(upload).error, "Archivo demasiado grande. Máximo 10MB")


if __name__ == "__main__":
    unittest.main()
