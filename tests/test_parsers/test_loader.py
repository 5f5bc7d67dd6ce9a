"""Tests for loading dedup transactions from CSV and JSON files."""

import json

import pytest

from txn_dedup.parsers.loader import TransactionLoader, load_transactions


def _write_csv(tmp_path, text: str):
    path = tmp_path / "txns.csv"
    path.write_text(text)
    return path


def _write_json(tmp_path, data):
    path = tmp_path / "txns.json"
    path.write_text(json.dumps(data))
    return path


class TestCsvLoading:
    def test_basic_rows(self, tmp_path):
        path = _write_csv(tmp_path, (
            "id,description,amount,date\n"
            "t1,AplPay BURRITO BARN,-22.77,2026-01-15\n"
            "t2,RIDESHARE,-18.50,2026-01-10\n"
        ))
        txns = load_transactions(path)
        assert len(txns) == 2
        assert txns[0].id == "t1"
        assert txns[0].amount == -22.77
        assert txns[0].provider_merchant_name is None

    def test_provider_columns(self, tmp_path):
        path = _write_csv(tmp_path, (
            "description,amount,date,provider_posted_date,provider_merchant_name\n"
            "Burrito Barn,-22.77,2026-01-17,2026-01-17,Burrito Barn\n"
        ))
        txn = load_transactions(path)[0]
        assert txn.provider_posted_date == "2026-01-17"
        assert txn.provider_merchant_name == "Burrito Barn"

    def test_currency_formatting(self, tmp_path):
        path = _write_csv(tmp_path, 'description,amount,date\nRENT,"$1,234.50",2026-01-01\n')
        assert load_transactions(path)[0].amount == 1234.50

    def test_bad_rows_skipped_and_counted(self, tmp_path):
        path = _write_csv(tmp_path, (
            "description,amount,date\n"
            "GOOD,-1.00,2026-01-01\n"
            "BAD AMOUNT,abc,2026-01-01\n"
            ",-2.00,2026-01-01\n"
            "NO DATE,-3.00,\n"
        ))
        loader = TransactionLoader()
        txns = loader.load(path)
        assert [t.description for t in txns] == ["GOOD"]
        assert loader.skipped_count == 3

    def test_skipped_count_resets(self, tmp_path):
        bad = _write_csv(tmp_path, "description,amount,date\nX,abc,2026-01-01\n")
        good = tmp_path / "good.csv"
        good.write_text("description,amount,date\nX,-1,2026-01-01\n")
        loader = TransactionLoader()
        loader.load(bad)
        loader.load(good)
        assert loader.skipped_count == 0


class TestJsonLoading:
    def test_list_of_objects(self, tmp_path):
        path = _write_json(tmp_path, [
            {"description": "AWS", "amount": -150.0, "date": "2026-01-05"},
        ])
        txns = load_transactions(path)
        assert txns[0].description == "AWS"
        assert txns[0].amount == -150.0

    def test_camel_case_keys(self, tmp_path):
        path = _write_json(tmp_path, [{
            "description": "Amazon Web Services", "amount": -150.0, "date": "2026-01-05",
            "providerMerchantName": "Amazon Web Services",
            "providerAuthorizedDate": "2026-01-04",
        }])
        txn = load_transactions(path)[0]
        assert txn.provider_merchant_name == "Amazon Web Services"
        assert txn.provider_authorized_date == "2026-01-04"

    def test_wrapped_in_transactions_key(self, tmp_path):
        path = _write_json(tmp_path, {"transactions": [
            {"description": "AWS", "amount": "-150", "date": "2026-01-05"},
        ]})
        assert len(load_transactions(path)) == 1

    def test_non_object_rows_skipped(self, tmp_path):
        path = _write_json(tmp_path, [
            "not a row",
            {"description": "AWS", "amount": -150.0, "date": "2026-01-05"},
        ])
        loader = TransactionLoader()
        assert len(loader.load(path)) == 1
        assert loader.skipped_count == 1

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "txns.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_transactions(path)

    def test_not_a_list(self, tmp_path):
        path = _write_json(tmp_path, {"description": "AWS"})
        with pytest.raises(ValueError, match="Expected a list"):
            load_transactions(path)


class TestDetect:
    def test_uppercase_suffix_loads(self, tmp_path):
        path = tmp_path / "TXNS.CSV"
        path.write_text("description,amount,date\nAWS,-150.00,2026-01-05\n")
        assert len(load_transactions(path)) == 1

    def test_supported_types(self, tmp_path):
        loader = TransactionLoader()
        assert loader.detect(tmp_path / "a.csv")
        assert loader.detect(tmp_path / "a.JSON")
        assert not loader.detect(tmp_path / "a.qfx")

    def test_unsupported_type_rejected(self, tmp_path):
        path = tmp_path / "txns.qfx"
        path.write_text("OFXHEADER:100")
        with pytest.raises(ValueError, match="Unsupported file type"):
            load_transactions(path)
