"""Account code normalization and reference parsing"""
import pytest

from rodmar.models import AccountKind, AccountRef
from rodmar.utils.codes import normalize_name_to_code


class TestNormalizeNameToCode:
    """Display names become upper-case ASCII codes"""

    @pytest.mark.parametrize("name,expected", [
        ("Cuentas German", "CUENTAS_GERMAN"),
        ("Refácil Colombia", "REFACIL_COLOMBIA"),
        ("Pedro Peña", "PEDRO_PENA"),
        ("  La   Casa del Motero ", "LA_CASA_DEL_MOTERO"),
        ("Postobón S.A.", "POSTOBON_SA"),
        ("Mina #3 - El Roble", "MINA_3_EL_ROBLE"),
        ("bemovil", "BEMOVIL"),
    ])
    def test_normalizes(self, name, expected):
        assert normalize_name_to_code(name) == expected

    @pytest.mark.parametrize("name", ["", "   ", "¿?!", "---"])
    def test_rejects_names_without_usable_characters(self, name):
        with pytest.raises(ValueError):
            normalize_name_to_code(name)


class TestAccountRef:
    def test_str_and_parse(self):
        ref = AccountRef(AccountKind.MINA, "LA_ESPERANZA")
        assert str(ref) == "MINA:LA_ESPERANZA"
        assert AccountRef.parse("mina:LA_ESPERANZA") == ref

    def test_kind_is_coerced_from_string(self):
        assert AccountRef("RODMAR", "EFECTIVO").kind is AccountKind.RODMAR

    def test_refs_are_hashable_and_compare_by_value(self):
        refs = {AccountRef("RODMAR", "EFECTIVO"), AccountRef(AccountKind.RODMAR, "EFECTIVO")}
        assert len(refs) == 1

    @pytest.mark.parametrize("value", ["EFECTIVO", "RODMAR:", "BANCO:EFECTIVO"])
    def test_parse_rejects_malformed_refs(self, value):
        with pytest.raises(ValueError):
            AccountRef.parse(value)
