import pytest

from dotmatrix.bits import (
    BitField,
    BitfieldByte,
    get_bits,
    set_bits,
)


class Sample(BitfieldByte):
    __slots__ = ()
    low = BitField(0, 3)
    flag = BitField(3)
    high = BitField(4, 4)


@pytest.mark.parametrize("offset,width,field", [(0, 1, 1), (3, 2, 2), (4, 4, 9), (0, 8, 0xA5)])
def test_set_then_get_round_trip(offset, width, field):
    value = set_bits(0, offset, width, field)
    assert get_bits(value, offset, width) == field


def test_set_bits_keeps_other_bits():
    value = set_bits(0xFF, 2, 3, 0)
    assert get_bits(value, 0, 2) == 0b11
    assert get_bits(value, 5, 3) == 0b111
    assert get_bits(value, 2, 3) == 0


def test_set_bits_truncates_field():
    assert get_bits(set_bits(0, 0, 2, 0b111), 0, 2) == 0b11
    assert get_bits(set_bits(0, 0, 2, 0b111), 2, 6) == 0


def test_field_write_updates_byte():
    s = Sample()
    s.flag = 1
    s.low = 5
    assert s.flag == 1
    assert s.low == 5
    assert s.high == 0
    assert int(s) == set_bits(set_bits(0, 3, 1, 1), 0, 3, 5)


def test_assign_replaces_whole_byte_and_masks():
    s = Sample(0)
    s.assign(0x1AB)
    assert int(s) == 0xAB
    assert s == 0xAB
    assert s.high == get_bits(0xAB, 4, 4)


def test_equality_between_registers():
    assert BitfieldByte(0x12) == BitfieldByte(0x12)
    assert not (BitfieldByte(0x12) == BitfieldByte(0x13))


def test_index_usable_as_int():
    assert [10, 20, 30][BitfieldByte(2)] == 30


def test_bitfield_must_fit_in_byte():
    with pytest.raises(ValueError):
        BitField(6, 4)