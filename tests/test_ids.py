"""Tests for opencoders_sdk.ids module."""

import re

from opencoders_sdk.ids import BASE62, IdPrefix, generate_id

ID_PATTERN = re.compile(r"^(msg|ses|usr|prt|per)_[0-9a-f]{12}[0-9A-Za-z]{14}$")


def test_generate_id_format() -> None:
    for prefix in IdPrefix:
        value = generate_id(prefix)
        assert ID_PATTERN.match(value), value
        assert value.startswith(f"{prefix.value}_")


def test_generate_id_accepts_plain_prefix() -> None:
    assert generate_id("msg").startswith("msg_")


def test_ascending_ids_sort_in_creation_order() -> None:
    ids = [generate_id(IdPrefix.MESSAGE) for _ in range(200)]
    assert [i[4:16] for i in ids] == sorted(i[4:16] for i in ids)
    assert len(set(ids)) == len(ids)


def test_descending_ids_sort_in_reverse() -> None:
    ids = [generate_id(IdPrefix.SESSION, descending=True) for _ in range(200)]
    prefixes = [i[4:16] for i in ids]
    assert prefixes == sorted(prefixes, reverse=True)


def test_random_suffix_uses_base62() -> None:
    suffix = generate_id(IdPrefix.PART)[16:]
    assert len(suffix) == 14
    assert set(suffix) <= set(BASE62)
