# retro6502/loader/loader.py
"""
プログラムローダーモジュール。
生バイナリイメージと Intel HEX 形式のロードをサポートします。

ロードはバスのバックドア (Bus.load) を通じて行うため、ROM領域にも書き込め、
バスアクティビティログにも残りません。
"""
import logging
from pathlib import Path
from typing import Union

from retro6502.errors import LoaderError
from retro6502.transport.bus import Bus, MEMORY_SIZE

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# @intent:responsibility 生のバイナリファイルを指定オフセットから配置します。
class BinaryImageLoader:
    """
    バイナリイメージをそのままメモリへ配置するローダー。
    64KBを超える位置はアドレス $0000 へラップします。
    """
    def load(self, file_path: PathLike, bus: Bus, offset: int = 0) -> int:
        path = Path(file_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise LoaderError(f"Cannot read image {path}: {e}") from e

        if len(data) > MEMORY_SIZE:
            raise LoaderError(f"Image {path} is {len(data)} bytes; the address space is {MEMORY_SIZE} bytes")

        count = bus.load_image(offset, data)
        logger.info("Loaded %d bytes from %s at $%04X", count, path, offset & 0xFFFF)
        return count

# @intent:responsibility Intel HEX形式のファイルを解析し、データをバスにロードします。
class IntelHexLoader:
    """
    Intel HEX形式のファイルを解析し、データをバスにロードするローダー。
    拡張アドレスレコード (02, 04) は受け付けますが、16bitのアドレス空間へ折り返されます。
    """
    def load(self, file_path: PathLike, bus: Bus) -> int:
        path = Path(file_path)
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            raise LoaderError(f"Cannot read {path}: {e}") from e

        base_address = 0
        count = 0
        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            comment_start = line.find(';')
            if comment_start != -1:
                line = line[:comment_start].strip()
            if not line or not line.startswith(':'):
                continue

            if len(line) < 11:
                raise LoaderError(f"Invalid Intel HEX record format on line {line_num}: Too short - {line}")

            try:
                record = bytes.fromhex(line[1:])
            except ValueError as e:
                raise LoaderError(f"Error parsing Intel HEX line {line_num}: {line} - {e}") from e

            data_length, addr_hi, addr_lo, record_type = record[0], record[1], record[2], record[3]
            data = record[4:-1]
            if len(data) != data_length:
                raise LoaderError(f"Data length mismatch on line {line_num}")

            calculated_checksum = (-sum(record[:-1])) & 0xFF
            if calculated_checksum != record[-1]:
                raise LoaderError(f"Checksum mismatch on line {line_num}: "
                                  f"Calculated {calculated_checksum:02X}, Expected {record[-1]:02X}")

            if record_type == 0x00:
                address = base_address + ((addr_hi << 8) | addr_lo)
                for i, byte_data in enumerate(data):
                    bus.load(address + i, byte_data)
                count += data_length
            elif record_type == 0x01:
                break
            elif record_type == 0x02:
                base_address = int.from_bytes(data, "big") << 4
            elif record_type == 0x04:
                base_address = int.from_bytes(data, "big") << 16
            elif record_type in (0x03, 0x05):
                # 開始アドレスレコード。6502はリセットベクタから開始するため無視する
                pass
            else:
                raise LoaderError(f"Unknown Intel HEX record type {record_type:02X} on line {line_num}")

        logger.info("Loaded %d bytes from %s", count, path)
        return count

# @intent:responsibility 拡張子からローダーを選択し、イメージをロードします。
def load_program(file_path: PathLike, bus: Bus, offset: int = 0) -> int:
    path = Path(file_path)
    if path.suffix.lower() in (".hex", ".ihx"):
        return IntelHexLoader().load(path, bus)
    return BinaryImageLoader().load(path, bus, offset)
