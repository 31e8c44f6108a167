"""Tests for deposit / keyshares file handling."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ssv_automate.core.errors import DepositFileError, DepositMergeError
from ssv_automate.data.files import (
    default_merge_filename,
    find_shallowest,
    find_validator_dirs,
    load_deposit_data,
    load_keyshares,
    merge_deposit_files,
    normalize_pubkey,
    pair_validator_files,
)
from tests.factories import deposit_entry, make_pubkey, make_validator_dir


class TestLoading:
    def test_load_deposit_data(self, tmp_path: Path):
        path = tmp_path / "deposit_data.json"
        path.write_text(json.dumps([deposit_entry(make_pubkey(1))]))
        deposits = load_deposit_data(path)
        assert len(deposits) == 1
        assert deposits[0].amount == 32000000000
        assert deposits[0].network_name == "holesky"

    def test_load_deposit_data_missing_file(self, tmp_path: Path):
        with pytest.raises(DepositFileError, match="not found"):
            load_deposit_data(tmp_path / "nope.json")

    def test_load_deposit_data_not_a_list(self, tmp_path: Path):
        path = tmp_path / "deposit_data.json"
        path.write_text(json.dumps(deposit_entry(make_pubkey(1))))
        with pytest.raises(DepositFileError, match="list of deposits"):
            load_deposit_data(path)

    def test_load_keyshares_invalid_json(self, tmp_path: Path):
        path = tmp_path / "keyshares.json"
        path.write_text("{not json")
        with pytest.raises(DepositFileError, match="Invalid JSON"):
            load_keyshares(path)

    def test_load_keyshares(self, tmp_path: Path):
        directory = make_validator_dir(tmp_path, 5, make_pubkey(3))
        keyshares = load_keyshares(directory / "keyshares.json")
        share = keyshares.shares[0]
        assert share.data.owner_nonce == 5
        assert share.payload.operator_ids == [1, 2, 3, 4]
        assert share.payload.public_key == make_pubkey(3)


class TestFindShallowest:
    def test_prefers_top_level_file(self, tmp_path: Path):
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "a" / "deposit_data-1.json").write_text("[]")
        (tmp_path / "a" / "b" / "deposit_data.json").write_text("[]")
        assert find_shallowest(tmp_path, "deposit_data*.json") == tmp_path / "a" / "deposit_data-1.json"

    def test_none_when_missing(self, tmp_path: Path):
        assert find_shallowest(tmp_path, "keyshares*.json") is None

    def test_ambiguous_raises(self, tmp_path: Path):
        (tmp_path / "x").mkdir()
        (tmp_path / "y").mkdir()
        (tmp_path / "x" / "keyshares.json").write_text("{}")
        (tmp_path / "y" / "keyshares.json").write_text("{}")
        with pytest.raises(DepositFileError, match="Ambiguous"):
            find_shallowest(tmp_path, "keyshares*.json")


class TestFindValidatorDirs:
    def test_finds_dirs_by_naming_convention(self, tmp_path: Path):
        ceremony = tmp_path / "ceremony-2024-05-01--10-00-00.000"
        a = make_validator_dir(ceremony, 0, make_pubkey(1))
        b = make_validator_dir(ceremony, 1, make_pubkey(2))
        (tmp_path / "unrelated").mkdir()
        assert find_validator_dirs(tmp_path) == sorted([a, b])

    def test_filters_by_pubkey(self, tmp_path: Path):
        make_validator_dir(tmp_path, 0, make_pubkey(1))
        wanted = make_validator_dir(tmp_path, 1, make_pubkey(0xAB))
        selected = find_validator_dirs(tmp_path, [make_pubkey(0xAB)[2:].upper()])
        assert selected == [wanted]

    def test_missing_pubkey_raises(self, tmp_path: Path):
        make_validator_dir(tmp_path, 0, make_pubkey(1))
        with pytest.raises(DepositMergeError, match="No output directory"):
            find_validator_dirs(tmp_path, [make_pubkey(1), make_pubkey(9)])

    def test_missing_folder_raises(self, tmp_path: Path):
        with pytest.raises(DepositFileError, match="does not exist"):
            find_validator_dirs(tmp_path / "missing")


class TestPairing:
    def test_pairs_files(self, tmp_path: Path):
        directory = make_validator_dir(tmp_path, 2, make_pubkey(1))
        pairs = pair_validator_files([directory])
        assert pairs[0].deposit_file == directory / "deposit_data.json"
        assert pairs[0].keyshares_file == directory / "keyshares.json"
        assert normalize_pubkey(pairs[0].pubkey) == normalize_pubkey(make_pubkey(1))

    def test_missing_keyshares_fails_loudly(self, tmp_path: Path):
        good = make_validator_dir(tmp_path, 1, make_pubkey(1))
        bad = make_validator_dir(tmp_path, 2, make_pubkey(2))
        (bad / "keyshares.json").unlink()
        with pytest.raises(DepositMergeError, match="do not pair up") as exc_info:
            pair_validator_files([good, bad])
        assert str(bad) in str(exc_info.value)
        assert str(good) not in str(exc_info.value)

    def test_extra_deposit_file_fails_loudly(self, tmp_path: Path):
        directory = make_validator_dir(tmp_path, 1, make_pubkey(1))
        (directory / "deposit_data-copy.json").write_text("[]")
        with pytest.raises(DepositMergeError, match="2 deposit file"):
            pair_validator_files([directory])


class TestMerge:
    def test_orders_by_owner_nonce(self, tmp_path: Path):
        make_validator_dir(tmp_path, 3, make_pubkey(3))
        make_validator_dir(tmp_path, 1, make_pubkey(1))
        pairs = pair_validator_files(find_validator_dirs(tmp_path))

        merged = merge_deposit_files(list(reversed(pairs)))

        assert [d["pubkey"] for d in merged] == [
            normalize_pubkey(make_pubkey(1)),
            normalize_pubkey(make_pubkey(3)),
        ]

    def test_orders_numerically(self, tmp_path: Path):
        make_validator_dir(tmp_path, 10, make_pubkey(10))
        make_validator_dir(tmp_path, 3, make_pubkey(3))
        merged = merge_deposit_files(pair_validator_files(find_validator_dirs(tmp_path)))
        assert [d["pubkey"] for d in merged] == [
            normalize_pubkey(make_pubkey(3)),
            normalize_pubkey(make_pubkey(10)),
        ]

    def test_keeps_unknown_fields(self, tmp_path: Path):
        directory = make_validator_dir(tmp_path, 0, make_pubkey(1))
        entry = deposit_entry(make_pubkey(1)) | {"extra_field": "kept"}
        (directory / "deposit_data.json").write_text(json.dumps([entry]))
        merged = merge_deposit_files(pair_validator_files([directory]))
        assert merged[0]["extra_field"] == "kept"


def test_default_merge_filename():
    now = datetime(2024, 5, 1, 9, 8, 7, tzinfo=timezone.utc)
    assert default_merge_filename(now).name == "deposit_data-2024-05-01T09:08:07Z.json"


def test_skips_failed_ceremonies_without_pubkey_filter(tmp_path: Path):
    kept = make_validator_dir(tmp_path / f"{'ab' * 20}-7", 7, make_pubkey(1))
    failed = make_validator_dir(tmp_path / f"{'ab' * 20}-7-failed-1", 7, make_pubkey(2))

    assert find_validator_dirs(tmp_path) == [kept]
    assert find_validator_dirs(tmp_path, [make_pubkey(2)]) == [failed]
