# retro6502/transport/bus.py
"""
Transport Layer (共通バス)

このモジュールは、6502の64KBアドレス空間を抽象化し、読み書きアクセスを
内部メモリまたは登録されたデバイスに委譲する責務を負います。
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from retro6502.errors import DeviceError

logger = logging.getLogger(__name__)

MEMORY_SIZE = 0x10000
ADDRESS_MASK = 0xFFFF

# @intent:responsibility バスアクセスを記録するためのタイプを定義します。
class BusAccessType(Enum):
    READ = "READ"
    WRITE = "WRITE"

# @intent:responsibility 個々のバスアクセス操作を記録します。
@dataclass(frozen=True) # 不変データ構造
class BusAccess:
    """
    バス上で行われた単一のアクセス（読み込みまたは書き込み）を記録するデータクラス。
    """
    address: int
    data: int # 8bit value
    access_type: BusAccessType
    previous_data: Optional[int] = None # 書き込み前の値（WRITEのみ）

# @intent:responsibility バスに接続されるデバイスの抽象インターフェースを定義します。
class Device(ABC):
    """
    バスに接続されるデバイスの抽象基底クラス。
    アドレスはデバイスの先頭からのオフセットとして渡されます。
    ハンドラはCPUをステップさせてはいけません（非リエントラント）。
    """
    @abstractmethod
    def read(self, address: int) -> int:
        pass

    @abstractmethod
    def write(self, address: int, data: int) -> None:
        pass

# @intent:responsibility 基本的なRAMデバイスの機能を提供します。
class RAM(Device):
    """
    固定サイズのRAMデバイス。
    """
    # @intent:pre-condition sizeは正の整数である必要があります。
    def __init__(self, size: int):
        if not isinstance(size, int) or size <= 0:
            raise ValueError("RAM size must be a positive integer.")
        self._memory = bytearray(size)
        self._size = size

    def read(self, address: int) -> int:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for RAM of size {self._size}.")
        return self._memory[address]

    def write(self, address: int, data: int) -> None:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for RAM of size {self._size}.")
        if not 0 <= data <= 0xFF:
            raise ValueError(f"Data {data} is not an 8-bit value.")
        self._memory[address] = data

    def get_size(self) -> int:
        return self._size

# @intent:responsibility 読み込み専用メモリ(ROM)の機能を提供します。
class ROM(RAM):
    """
    読み込み専用メモリデバイス。
    CPUからの書き込みは無視されます。初期化は load_data 経由で行います。
    """
    def write(self, address: int, data: int) -> None:
        if not 0 <= address < self._size:
            raise IndexError(f"Address {address} out of bounds for ROM of size {self._size}.")
        # Intentional: ROM writes are ignored as per hardware behavior.
        pass

    # @intent:responsibility ROMの内容を初期化するためのバックドアメソッドです。
    def load_data(self, address: int, data: int) -> None:
        super().write(address, data)

# @intent:responsibility 64KBのアドレス空間を管理し、デバイスへのアクセスをディスパッチする共通バス。
# @intent:rationale バスの全てのアクセスを記録し、Snapshotに含めることでシステムの観測可能性を高めます。
class Bus:
    """
    MOS 6502のメモリバス。

    65536バイトの内部メモリを常に持ち、全てのアドレスが有効です。
    アドレスは常に 65536 を法として扱われます。
    `register_device` で登録されたアドレス範囲へのアクセスは、内部メモリではなく
    そのデバイスへ転送されます（後から登録したものが優先）。
    """
    def __init__(self):
        self._memory = bytearray(MEMORY_SIZE)
        # メモリマップ: (start_address, end_address, device) のタプルリスト
        self._memory_map: List[Tuple[int, int, Device]] = []
        self._bus_activity_log: List[BusAccess] = []

    def _log_access(self, address: int, data: int, access_type: BusAccessType,
                    previous_data: Optional[int] = None) -> None:
        self._bus_activity_log.append(
            BusAccess(address=address, data=data, access_type=access_type, previous_data=previous_data)
        )

    # @intent:responsibility 記録されたバスアクティビティログを取得し、クリアします。
    def get_and_clear_activity_log(self) -> List[BusAccess]:
        log = self._bus_activity_log
        self._bus_activity_log = []
        return log

    # @intent:responsibility 指定されたアドレス範囲にデバイスを登録します。
    # @intent:pre-condition 0 <= start_address <= end_address <= 0xFFFF であり、deviceはDeviceのインスタンスである必要があります。
    def register_device(self, start_address: int, end_address: int, device: Device) -> None:
        """
        指定されたアドレス範囲にデバイスを登録します。
        範囲が重複した場合は後から登録したデバイスが応答します。
        """
        if not (0 <= start_address <= end_address <= ADDRESS_MASK):
            raise ValueError(
                "Invalid address range: start_address must be <= end_address and within 0x0000-0xFFFF."
            )
        if not isinstance(device, Device):
            raise TypeError("Device must be an instance of a class derived from Device.")

        if isinstance(device, RAM):
            expected_size = end_address - start_address + 1
            if device.get_size() != expected_size:
                raise ValueError(
                    f"Registered {type(device).__name__} device size ({device.get_size()} bytes) does not match "
                    f"the given address range size ({expected_size} bytes)."
                )

        self._memory_map.append((start_address, end_address, device))
        logger.debug("Registered %s at $%04X-$%04X", type(device).__name__, start_address, end_address)

    # @intent:responsibility 登録済みデバイスを取り除きます。未登録の場合は何もしません。
    def unregister_device(self, device: Device) -> None:
        self._memory_map = [entry for entry in self._memory_map if entry[2] is not device]

    # @intent:responsibility 指定アドレスを担当するデバイスとオフセットを検索します。
    # @intent:post-condition デバイスが無い場合は (None, address) を返し、内部メモリが応答します。
    def _find_device(self, address: int) -> Tuple[Optional[Device], int]:
        for start, end, device in reversed(self._memory_map):
            if start <= address <= end:
                return device, address - start
        return None, address

    def _device_read(self, device: Device, offset: int, address: int) -> int:
        try:
            return device.read(offset) & 0xFF
        except DeviceError as e:
            logger.warning("Device read failed at $%04X: %s", address, e)
            return 0x00

    def _device_write(self, device: Device, offset: int, address: int, data: int) -> None:
        try:
            device.write(offset, data)
        except DeviceError as e:
            logger.warning("Device write failed at $%04X: %s", address, e)

    # @intent:responsibility 指定されたアドレスから8bitのデータを読み出します。
    def read(self, address: int) -> int:
        address &= ADDRESS_MASK
        device, offset = self._find_device(address)
        data = self._memory[address] if device is None else self._device_read(device, offset, address)
        self._log_access(address, data, BusAccessType.READ)
        return data

    # @intent:responsibility リトルエンディアンで16bitワードを読み出します。
    # @intent:note 下位・上位バイトのアドレスはそれぞれ独立にラップします ($FFFF -> $0000)。
    def read_word(self, address: int) -> int:
        lo = self.read(address)
        hi = self.read(address + 1)
        return (hi << 8) | lo

    # @intent:responsibility ログを記録せずに指定されたアドレスからデータを読み出します。
    def peek(self, address: int) -> int:
        """
        ログ記録なしの読み出し。逆アセンブラやトレース表示などのインスペクタ用。
        周辺デバイスの読み出しは副作用を持ち得るため、RAM/ROM以外のウィンドウは 0x00 を返します。
        """
        address &= ADDRESS_MASK
        device, offset = self._find_device(address)
        if device is None:
            return self._memory[address]
        if not isinstance(device, RAM):
            return 0x00
        return self._device_read(device, offset, address)

    # @intent:responsibility 指定されたアドレスに8bitのデータを書き込みます。
    def write(self, address: int, data: int) -> None:
        address &= ADDRESS_MASK
        data &= 0xFF
        device, offset = self._find_device(address)
        if device is None:
            previous = self._memory[address]
            self._memory[address] = data
        else:
            # 周辺デバイスは読み出しに副作用を持ち得るため、以前の値はRAM/ROMのみ記録する
            previous = self._device_read(device, offset, address) if isinstance(device, RAM) else None
            self._device_write(device, offset, address, data)
        self._log_access(address, data, BusAccessType.WRITE, previous)

    # @intent:responsibility ローダー用の書き込み。ログを記録せず、ROMにも書き込めます。
    def load(self, address: int, data: int) -> None:
        address &= ADDRESS_MASK
        data &= 0xFF
        device, offset = self._find_device(address)
        if device is None:
            self._memory[address] = data
        elif isinstance(device, ROM):
            device.load_data(offset, data)
        else:
            self._device_write(device, offset, address, data)

    # @intent:responsibility バイト列を指定オフセットから連続して配置します。
    def load_image(self, offset: int, data: Iterable[int]) -> int:
        """
        バイト列をメモリに配置し、書き込んだバイト数を返します。
        64KBを超える部分は $0000 へ折り返します。
        """
        count = 0
        for i, byte in enumerate(data):
            self.load(offset + i, byte)
            count += 1
        return count
