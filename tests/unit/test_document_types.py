"""Unit tests for the document type registry and the mandatory-set policy."""

import pytest

from portal.core.exceptions import ValidationError
from portal.services.document_types import (
    ANNUAL_MANDATORY_TYPES,
    DOCUMENT_TYPES,
    MONTHLY_MANDATORY_TYPES,
    ONE_TIME_OPTIONAL_TYPES,
    DocumentCategory,
    DocumentType,
    available_types_for,
    is_mandatory,
    label_for,
    mandatory_types_for,
    missing_mandatory_types,
    month_label,
    parse_document_type,
    parse_month,
)


class TestCatalog:
    def test_category_sizes(self):
        assert len(MONTHLY_MANDATORY_TYPES) == 9
        assert ANNUAL_MANDATORY_TYPES == (DocumentType.LABOUR_WELFARE_FUND,)
        assert len(ONE_TIME_OPTIONAL_TYPES) == 7

    def test_every_type_has_label_and_category(self):
        assert set(DOCUMENT_TYPES) == set(DocumentType)
        for code, info in DOCUMENT_TYPES.items():
            assert info.code is code
            assert info.label
            assert info.category in DocumentCategory

    def test_label_for_unknown_code_falls_back_to_raw_value(self):
        assert label_for("BANK_STATEMENT") == "Bank Statement"
        assert label_for("registration") == "registration"


class TestMandatoryPolicy:
    def test_march_requires_only_monthly_set(self):
        assert mandatory_types_for(3) == frozenset(MONTHLY_MANDATORY_TYPES)

    def test_january_adds_annual_set(self):
        required = mandatory_types_for("Jan")
        assert DocumentType.LABOUR_WELFARE_FUND in required
        assert len(required) == 10

    @pytest.mark.parametrize("month", range(2, 13))
    def test_annual_set_only_in_january(self, month):
        assert DocumentType.LABOUR_WELFARE_FUND not in mandatory_types_for(month)

    def test_missing_types_reported_exactly_in_registry_order(self):
        present = [t.value for t in MONTHLY_MANDATORY_TYPES if t is not DocumentType.BANK_STATEMENT]
        assert missing_mandatory_types("Mar", present) == [DocumentType.BANK_STATEMENT]

        missing = missing_mandatory_types(1, [])
        assert missing == [*MONTHLY_MANDATORY_TYPES, DocumentType.LABOUR_WELFARE_FUND]

    def test_optional_and_unknown_present_types_are_ignored(self):
        present = [t.value for t in MONTHLY_MANDATORY_TYPES] + ["VENDOR_AGREEMENT", "something_else"]
        assert missing_mandatory_types(3, present) == []

    def test_is_mandatory(self):
        assert is_mandatory("invoice", 5)
        assert is_mandatory(DocumentType.LABOUR_WELFARE_FUND, 1)
        assert not is_mandatory(DocumentType.LABOUR_WELFARE_FUND, 2)
        assert not is_mandatory(DocumentType.VENDOR_AGREEMENT, 1)

    def test_available_types_hide_annual_group_outside_january(self):
        march = available_types_for(3)
        assert march[DocumentCategory.ANNUAL_MANDATORY] == []
        assert len(march[DocumentCategory.MONTHLY_MANDATORY]) == 9

        january = available_types_for(1)
        assert [i.code for i in january[DocumentCategory.ANNUAL_MANDATORY]] == [
            DocumentType.LABOUR_WELFARE_FUND
        ]


class TestParsing:
    @pytest.mark.parametrize("value", [3, "3", "Mar", "mar", "March", " march "])
    def test_month_forms(self, value):
        assert parse_month(value) == 3

    @pytest.mark.parametrize("value", [0, 13, "", "Marc", "thirteen", None, True])
    def test_invalid_months(self, value):
        with pytest.raises(ValidationError):
            parse_month(value)

    def test_month_label(self):
        assert month_label(12) == "Dec"

    def test_document_type_aliases(self):
        assert parse_document_type("bank_statement") is DocumentType.BANK_STATEMENT
        assert parse_document_type(" ECR ") is DocumentType.ECR

    @pytest.mark.parametrize("value", ["", "PASSPORT", "   "])
    def test_unknown_document_type(self, value):
        with pytest.raises(ValidationError):
            parse_document_type(value)
