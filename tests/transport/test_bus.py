# tests/transport/test_bus.py
"""
retro6502.transport.busモジュールの単体テスト。
"""
import pytest
from retro6502.transport.bus import Bus, RAM, BusAccess, BusAccessType

# @intent:test_suite 64KBの内部メモリを持つバスの基本的な読み書きとアクセスログを検証します。

class TestRAM:
    """
    RAMデバイスの単体テスト。
    """
    # @intent:test_case_init RAMクラスが正しいサイズで初期化されることを検証します。
    def test_ram_init_valid_size(self):
        ram = RAM(16)
        assert ram.get_size() == 16
        assert all(ram.read(i) == 0 for i in range(16))

    # @intent:test_case_init 無効なサイズでRAMを初期化するとValueErrorが発生することを検証します。
    def test_ram_init_invalid_size(self):
        with pytest.raises(ValueError, match="RAM size must be a positive integer."):
            RAM(0)
        with pytest.raises(ValueError, match="RAM size must be a positive integer."):
            RAM(1.5)

    # @intent:test_case_oob 境界外アドレスへのアクセス時にIndexErrorが発生することを検証します。
    def test_ram_read_write_out_of_bounds(self):
        ram = RAM(4)
        with pytest.raises(IndexError, match="Address 4 out of bounds for RAM of size 4."):
            ram.read(4)
        with pytest.raises(IndexError, match="Address -1 out of bounds for RAM of size 4."):
            ram.write(-1, 0x00)

    def test_ram_write_invalid_data(self):
        ram = RAM(1)
        with pytest.raises(ValueError, match="Data 256 is not an 8-bit value."):
            ram.write(0, 0x100)


class TestBus:
    """
    Busの単体テスト。
    """
    # @intent:test_case_roundtrip 全アドレスで書き込んだ値がそのまま読み出せることを検証します。
    def test_round_trip_every_address(self):
        bus = Bus()
        for addr in range(0x10000):
            bus.write(addr, (addr * 7 + 3) & 0xFF)
        for addr in range(0x10000):
            assert bus.read(addr) == (addr * 7 + 3) & 0xFF

    # @intent:test_case_unmapped デバイス未登録のアドレスも有効で、初期値は0であることを検証します。
    def test_unmapped_memory_is_zero(self):
        bus = Bus()
        assert bus.read(0x1234) == 0x00
        assert bus.read(0xFFFF) == 0x00

    # @intent:test_case_wrap アドレスは65536を法として扱われることを検証します。
    def test_address_wraps_modulo_64k(self):
        bus = Bus()
        bus.write(0x10005, 0xAB)
        assert bus.read(0x0005) == 0xAB
        assert bus.read(-1 & 0x1FFFF) == bus.read(0xFFFF)

    # @intent:test_case_data 8bitを超えるデータは下位8bitのみが格納されることを検証します。
    def test_write_masks_data(self):
        bus = Bus()
        bus.write(0x0010, 0x1FF)
        assert bus.read(0x0010) == 0xFF

    # @intent:test_case_word リトルエンディアンでワードを読み出すことを検証します。
    def test_read_word_little_endian(self):
        bus = Bus()
        bus.write(0xFFFC, 0x00)
        bus.write(0xFFFD, 0x04)
        assert bus.read_word(0xFFFC) == 0x0400

    # @intent:test_case_word 上位バイトのアドレスが独立して $0000 へラップすることを検証します。
    def test_read_word_wraps_at_top_of_memory(self):
        bus = Bus()
        bus.write(0xFFFF, 0x34)
        bus.write(0x0000, 0x12)
        assert bus.read_word(0xFFFF) == 0x1234

    # @intent:test_case_log 読み書きがアクセスログに記録され、取得時にクリアされることを検証します。
    def test_activity_log(self):
        bus = Bus()
        bus.write(0x0200, 0x11)
        bus.write(0x0200, 0x22)
        bus.read(0x0200)

        log = bus.get_and_clear_activity_log()
        assert log == [
            BusAccess(0x0200, 0x11, BusAccessType.WRITE, previous_data=0x00),
            BusAccess(0x0200, 0x22, BusAccessType.WRITE, previous_data=0x11),
            BusAccess(0x0200, 0x22, BusAccessType.READ),
        ]
        assert bus.get_and_clear_activity_log() == []

    # @intent:test_case_log peek / load はアクセスログに残らないことを検証します。
    def test_peek_and_load_are_not_logged(self):
        bus = Bus()
        bus.load(0x0300, 0x5A)
        assert bus.peek(0x0300) == 0x5A
        assert bus.get_and_clear_activity_log() == []

    # @intent:test_case_image バイト列の配置が末尾で $0000 へ折り返すことを検証します。
    def test_load_image_wraps(self):
        bus = Bus()
        count = bus.load_image(0xFFFE, bytes([1, 2, 3, 4]))
        assert count == 4
        assert [bus.peek(a) for a in (0xFFFE, 0xFFFF, 0x0000, 0x0001)] == [1, 2, 3, 4]
